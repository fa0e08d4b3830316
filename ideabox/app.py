"""Application factory for the IdeaBox FastAPI backend."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from ollama import ResponseError

from .config import get_settings
from .routers import boxes, generation
from .services import Services, build_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    # Learn whether the local weights are already present before serving.
    services: Services = app.state.services
    try:
        await services.manager.refresh()
    except (ResponseError, httpx.HTTPError, ConnectionError) as exc:
        logger.warning("Could not probe local model: %s", exc)
    yield


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Create and configure a FastAPI application instance."""

    settings = services.settings if services is not None else get_settings()
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(
        title="IdeaBox Backend",
        version="0.1.0",
        description="Streams structured business models and idea analyses from free text.",
        lifespan=_lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_origin_regex=r"http://localhost:\d+$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.services = services or build_services(settings)
    app.include_router(generation.router)
    app.include_router(boxes.router)
    return app


app = create_app()
