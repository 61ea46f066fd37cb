# ASGI entrypoint: uvicorn musicbox.asgi:app
from musicbox.api.main import create_app

app = create_app()
