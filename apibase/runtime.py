"""
Transport selection.

The execution mode is read from the environment once, the container is built
once, and then the process either serves sockets or waits for the Lambda host
to call ``invoke`` for each event.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from apibase.bridge import error_reply, to_generic_request, to_platform_reply
from apibase.config import Settings
from apibase.container import Container, build_container
from apibase.errors import HandlerPanic, MalformedEventError
from apibase.router import Router
from apibase.server import serve

logger = logging.getLogger(__name__)

# Set by the Lambda runtime in every function sandbox.
FUNCTION_MODE_ENV = "AWS_LAMBDA_FUNCTION_NAME"


class Mode(str, Enum):
    SERVER = "server"
    FUNCTION = "function"


class RuntimeState(str, Enum):
    UNINITIALIZED = "uninitialized"
    MODE_DETECTED = "mode_detected"
    RUNNING = "running"


def detect_mode(environ: Mapping[str, str]) -> Mode:
    if FUNCTION_MODE_ENV in environ:
        return Mode.FUNCTION
    return Mode.SERVER


class Runtime:
    def __init__(
        self,
        settings: Settings,
        environ: Optional[Mapping[str, str]] = None,
        container_factory: Callable[[Settings], Container] = build_container,
        server: Callable[[Router, Settings], None] = serve,
    ):
        self.settings = settings
        self.environ = os.environ if environ is None else environ
        self.state = RuntimeState.UNINITIALIZED
        self.mode: Optional[Mode] = None
        self.container: Optional[Container] = None
        self._container_factory = container_factory
        self._server = server

    def detect(self) -> Mode:
        if self.state != RuntimeState.UNINITIALIZED:
            raise RuntimeError("Execution mode has already been detected")
        self.mode = detect_mode(self.environ)
        self.state = RuntimeState.MODE_DETECTED
        return self.mode

    def start(self) -> None:
        """
        Build the container and enter the selected mode.

        Server mode blocks in the accept loop. Function mode returns at once;
        the host drives ``invoke``.
        """
        if self.state == RuntimeState.UNINITIALIZED:
            self.detect()
        if self.state != RuntimeState.MODE_DETECTED:
            raise RuntimeError("Runtime has already been started")

        self.container = self._container_factory(self.settings)
        self.state = RuntimeState.RUNNING
        if self.mode == Mode.SERVER:
            self._server(Router(self.container), self.settings)

    def invoke(self, event: Any, context: Any = None) -> Dict[str, Any]:
        """Handle one function-mode event, always returning exactly one reply."""
        if self.mode != Mode.FUNCTION or self.state != RuntimeState.RUNNING:
            raise RuntimeError("invoke() requires a running function-mode runtime")

        try:
            request = to_generic_request(event, context)
        except MalformedEventError as exc:
            logger.warning("Rejected malformed event: %s", exc)
            return error_reply(exc)

        try:
            # No execution state is assumed to survive between invocations.
            response = Router(self.container).handle(request)
        except Exception as exc:
            logger.exception("Unhandled fault for %s %s", request.method, request.path)
            return error_reply(HandlerPanic.from_exception(exc))
        return to_platform_reply(response, event)
