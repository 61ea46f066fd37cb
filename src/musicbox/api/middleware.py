from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette import status

from musicbox.db.session import SessionManager
from musicbox.services.box.utils import ErrorCode, error_response

logger = logging.getLogger(__name__)


class DBSessionMiddleware(BaseHTTPMiddleware):
    """
    Opens one session per request.

    The session commits when the handler returns a success response and rolls
    back when it returns an error response, so a rejected request never
    persists a partial write.
    """

    def __init__(self, app, *, session_manager: SessionManager):
        super().__init__(app)
        self.session_manager = session_manager

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.scope.get("path", "")
        if path == "/health":
            return await call_next(request)

        try:
            with self.session_manager.with_session() as session:
                request.state.db_session = session
                response = await call_next(request)
                if response.status_code >= 400:
                    session.rollback()
                return response
        except Exception:
            logger.exception(f"Unhandled exception on {request.method} {path}")
            return JSONResponse(
                error_response(
                    ErrorCode.INTERNAL_SERVER_ERROR, "internal server error"
                ),
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
