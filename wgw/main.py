"""FastAPI entrypoint for the What's Going Well pipeline."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.routers import entries, health, sync
from .config import load_settings
from .infra.logging import configure_logging


def create_app() -> FastAPI:
    """Instantiate the FastAPI app and register routers."""

    settings = load_settings()
    configure_logging(settings.logging)
    application = FastAPI(title="What's Going Well API", version=__version__)
    allowed_origins = settings.raw.get("cors_origins") or [
        "http://localhost:8081",
        "http://127.0.0.1:8081",
        "http://localhost:19006",
    ]
    application.add_middleware(
        CORSMiddleware,
        allow_origins=list(allowed_origins),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    for router in (health.router, entries.router, sync.router):
        application.include_router(router)
    return application


app = create_app()
