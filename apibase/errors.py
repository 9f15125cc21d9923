"""
Error taxonomy shared by the transport adapters.
"""

from __future__ import annotations


class ApiBaseError(Exception):
    """Base class for errors raised outside the handler set."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"


class ConfigError(ApiBaseError):
    """Missing or invalid environment configuration. Fatal at startup."""

    code = "CONFIG_ERROR"


class BindError(ApiBaseError):
    """The listening socket could not be bound. Fatal at startup."""

    code = "BIND_ERROR"


class MalformedEventError(ApiBaseError):
    """A function-mode event could not be turned into a request."""

    code = "MALFORMED_EVENT"


class HandlerPanic(ApiBaseError):
    """The handler set raised while processing a request."""

    code = "HANDLER_PANIC"

    @classmethod
    def from_exception(cls, exc: BaseException) -> "HandlerPanic":
        return cls(f"{type(exc).__name__}: {exc}")
