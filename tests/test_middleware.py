"""
DBSessionMiddleware commit and rollback behaviour.
"""

from sqlalchemy.orm import Session
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.responses import JSONResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from musicbox.api.middleware import DBSessionMiddleware
from musicbox.db.session import SessionManager
from musicbox.services.box.database import operations as ops


def rename_then_respond(status_code: int):
    async def endpoint(request):
        box = ops.get_box_by_id(request.state.db_session, request.path_params["box_id"])
        box.name = "Renamed"
        request.state.db_session.flush()
        return JSONResponse({"status": status_code}, status_code=status_code)

    return endpoint


def app_for(engine) -> Starlette:
    return Starlette(
        routes=[
            Route("/ok/{box_id}", rename_then_respond(200), methods=["PUT"]),
            Route("/rejected/{box_id}", rename_then_respond(400), methods=["PUT"]),
        ],
        middleware=[
            Middleware(DBSessionMiddleware, session_manager=SessionManager(engine))
        ],
    )


def stored_name(engine, box_id: str) -> str:
    with Session(engine) as session:
        return ops.get_box_by_id(session, box_id).name


def test_success_response_commits(engine, session, box):
    session.commit()

    with TestClient(app_for(engine)) as client:
        assert client.put(f"/ok/{box.id}").status_code == 200

    assert stored_name(engine, box.id) == "Renamed"


def test_error_response_rolls_back(engine, session, box):
    session.commit()

    with TestClient(app_for(engine)) as client:
        assert client.put(f"/rejected/{box.id}").status_code == 400

    assert stored_name(engine, box.id) == "Road Trip"
