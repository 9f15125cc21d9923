"""
Socket-mode transport: CORS policy, socket binding and the uvicorn loop.
"""

from __future__ import annotations

import logging
import socket

import uvicorn
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp

from apibase.config import Settings
from apibase.errors import BindError
from apibase.router import Router

logger = logging.getLogger(__name__)

ALLOWED_HEADERS = [
    "Content-Type",
    "Access-Control-Allow-Headers",
    "Authorization",
    "X-Requested-With",
]
ALLOWED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
ALLOWED_ORIGINS = ["*"]


def with_cors(app: ASGIApp) -> ASGIApp:
    """Wrap the router app with the permissive cross-origin policy."""
    return CORSMiddleware(
        app,
        allow_origins=ALLOWED_ORIGINS,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
    )


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind the listening socket, raising BindError instead of retrying."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError as exc:
        sock.close()
        raise BindError(f"Could not bind {host}:{port}: {exc}") from exc
    sock.set_inheritable(True)
    return sock


def serve(router: Router, settings: Settings) -> None:
    """Accept connections until the process is stopped."""
    sock = bind_socket(settings.bind_host, settings.port)
    config = uvicorn.Config(
        with_cors(router.app),
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    logger.info("Listening on %s:%d", settings.bind_host, settings.port)
    server.run(sockets=[sock])
