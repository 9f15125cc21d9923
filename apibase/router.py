"""
Unified router facade.

Owns one FastAPI app built from the container and runs it in-process for a
GenericRequest, the same way a socket server would drive it for a connection.
"""

from __future__ import annotations

import asyncio
from urllib.parse import quote

from mangum.protocols.http import HTTPCycle
from starlette.datastructures import Headers

from apibase.app import create_app
from apibase.container import Container
from apibase.messages import GenericRequest, GenericResponse

# Characters left as-is when rebuilding the raw request target.
RAW_PATH_SAFE = "/:@!$&'()*+,;=-._~"


class Router:
    def __init__(self, container: Container):
        self.container = container
        self.app = create_app(container)

    def handle(self, request: GenericRequest) -> GenericResponse:
        """
        Process one request synchronously.

        Exceptions raised by the handler set are not caught here; the calling
        transport decides how to recover.
        """
        faults: list[BaseException] = []

        async def app(scope, receive, send):
            try:
                await self.app(scope, receive, send)
            except Exception as exc:
                faults.append(exc)
                raise

        cycle_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(cycle_loop)
        try:
            # HTTPCycle answers a failed app with its own 500.
            result = HTTPCycle(self._scope(request), request.body)(app)
        finally:
            asyncio.set_event_loop(None)
            cycle_loop.close()

        if faults:
            raise faults[0]
        return GenericResponse(
            status_code=result["status"],
            headers=Headers(raw=[(bytes(k).lower(), bytes(v)) for k, v in result["headers"]]),
            body=result["body"],
        )

    def _scope(self, request: GenericRequest) -> dict:
        scheme = request.headers.get("x-forwarded-proto", "https")
        host = request.headers.get("host", "localhost")
        hostname, _, port = host.partition(":")
        default_port = 443 if scheme == "https" else 80
        return {
            "type": "http",
            "asgi": {"version": "3.0", "spec_version": "2.3"},
            "http_version": "1.1",
            "method": request.method,
            "scheme": scheme,
            "path": request.path,
            "raw_path": quote(request.path, safe=RAW_PATH_SAFE).encode("ascii"),
            "root_path": "",
            "query_string": request.query_string.encode("ascii"),
            "headers": list(request.headers.raw),
            "client": (request.source_ip, 0),
            "server": (hostname, int(port) if port.isdigit() else default_port),
            "state": {},
        }
