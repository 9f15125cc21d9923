"""
Process entry points.

``main`` is the console script for server mode. ``handler`` is the callback
registered with the Lambda runtime (``apibase.main.handler``). Inside a Lambda
sandbox the function runtime is started when this module is imported.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Dict, Optional

from apibase.bridge import error_reply
from apibase.config import Settings, get_settings
from apibase.errors import BindError, ConfigError
from apibase.runtime import Mode, Runtime, detect_mode

logger = logging.getLogger(__name__)

_runtime: Optional[Runtime] = None
_startup_error: Optional[ConfigError] = None


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def log_startup(runtime: Runtime) -> None:
    settings = runtime.settings
    logger.info("Initializing %s mode", runtime.mode.value)
    logger.info("Environment: %s", settings.env)
    if runtime.mode == Mode.SERVER:
        server_url = f"http://localhost:{settings.port}"
        logger.info("Server url: %s", server_url)
        logger.info("Docs url: %s/api-docs", server_url)


def main() -> int:
    try:
        settings = get_settings()
        configure_logging(settings)
        runtime = Runtime(settings)
        runtime.detect()
        log_startup(runtime)
        runtime.start()
    except (ConfigError, BindError) as exc:
        logger.error("Startup failed: %s", exc)
        return 1
    return 0


def init_function_runtime() -> None:
    """
    Start the process-wide function-mode runtime.

    Runs during the Lambda init phase, when this module is imported. A
    ConfigError is kept and answered on every invocation instead of being
    raised to the host.
    """
    global _runtime, _startup_error
    try:
        settings = get_settings()
        configure_logging(settings)
        runtime = Runtime(settings)
        if runtime.detect() != Mode.FUNCTION:
            raise RuntimeError("Lambda handler called outside the function host")
        log_startup(runtime)
        runtime.start()
    except ConfigError as exc:
        logger.error("Startup failed: %s", exc)
        _startup_error = exc
        return
    _runtime = runtime


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    if _runtime is None and _startup_error is None:
        init_function_runtime()
    if _startup_error is not None:
        return error_reply(_startup_error)
    return _runtime.invoke(event, context)


if detect_mode(os.environ) == Mode.FUNCTION:
    init_function_runtime()


if __name__ == "__main__":
    sys.exit(main())
