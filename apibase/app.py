"""
FastAPI application factory shared by both transports.
"""

from __future__ import annotations

from fastapi import FastAPI

from apibase.container import Container
from apibase.routes import router


def create_app(container: Container) -> FastAPI:
    settings = container.settings
    app = FastAPI(
        title="apibase",
        version="0.1.0",
        docs_url="/api-docs",
        redoc_url=None,
    )
    app.state.container = container
    app.include_router(router, prefix=settings.api_prefix)
    return app
