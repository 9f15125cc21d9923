"""
Request/response bridge for AWS Lambda function URL invocations.

Translates payload format 2.0 events (and the API Gateway REST 1.0 shape) into
a GenericRequest, and a GenericResponse back into the reply dict the Lambda
runtime expects. Mangum's gateway handlers do the event and reply mapping;
this module checks the event structure first so a broken event is reported
as MalformedEventError instead of surfacing as a fault later on.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import parse_qsl

from mangum.adapter import DEFAULT_TEXT_MIME_TYPES
from mangum.handlers import APIGateway, HTTPGateway
from mangum.types import LambdaConfig, LambdaHandler
from starlette.datastructures import Headers

from apibase.errors import ApiBaseError, HandlerPanic, MalformedEventError
from apibase.messages import GenericRequest, GenericResponse

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/json"

LAMBDA_CONFIG = LambdaConfig(
    api_gateway_base_path="/",
    text_mime_types=[
        *DEFAULT_TEXT_MIME_TYPES,
        "application/x-www-form-urlencoded",
        "+json",
        "+xml",
    ],
    exclude_headers=[],
)

# Replies produced without an originating event use the function URL format.
_FUNCTION_URL_EVENT = {
    "version": "2.0",
    "rawPath": "/",
    "requestContext": {"http": {"method": "GET"}},
}


def _mapping(value: Any, name: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise MalformedEventError(f"Event {name} must be a mapping")
    return value


def _checked_body(event: Mapping[str, Any]) -> str:
    body = event.get("body")
    if body is None:
        return ""
    if not isinstance(body, str):
        raise MalformedEventError("Event body must be a string")
    if event.get("isBase64Encoded"):
        try:
            base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedEventError(f"Body is not valid base64: {exc}") from exc
    return body


def _checked_path(path: Any) -> str:
    if not isinstance(path, str) or not path.startswith("/"):
        raise MalformedEventError(f"Event path is missing or invalid: {path!r}")
    return path


def _checked_method(method: Any) -> str:
    if not isinstance(method, str) or not method:
        raise MalformedEventError("Event does not name an HTTP method")
    return method


def _normalize(event: Any) -> tuple[Dict[str, Any], type[LambdaHandler]]:
    """Validate an event and fill the fields Mangum reads unconditionally."""
    if not isinstance(event, Mapping):
        raise MalformedEventError(f"Event must be an object, got {type(event).__name__}")

    normalized = dict(event)
    context = _mapping(event.get("requestContext"), "requestContext")
    headers = _mapping(event.get("headers"), "headers")
    normalized["headers"] = {str(name): str(value) for name, value in headers.items()}
    normalized["body"] = _checked_body(event)

    http = context.get("http")
    if http is not None:
        http = _mapping(http, "requestContext.http")
        cookies = event.get("cookies")
        if cookies is not None and not isinstance(cookies, list):
            raise MalformedEventError("Event cookies must be a list")
        query = event.get("rawQueryString") or ""
        if not isinstance(query, str):
            raise MalformedEventError("rawQueryString must be a string")
        normalized.update(
            version="2.0",
            rawQueryString=query,
            cookies=[str(cookie) for cookie in cookies or []],
            requestContext={
                **context,
                "http": {
                    **http,
                    "method": _checked_method(http.get("method")),
                    "path": _checked_path(event.get("rawPath") or http.get("path")),
                    "sourceIp": http.get("sourceIp") or "127.0.0.1",
                },
            },
        )
        return normalized, HTTPGateway

    _checked_method(event.get("httpMethod"))
    _checked_path(event.get("path"))
    for name in ("multiValueQueryStringParameters", "queryStringParameters"):
        _mapping(event.get(name), name)
    normalized["requestContext"] = {
        **context,
        "identity": _mapping(context.get("identity"), "requestContext.identity"),
    }
    return normalized, APIGateway


def gateway_for(event: Any, context: Any = None) -> LambdaHandler:
    """Return the Mangum handler for a validated copy of ``event``."""
    normalized, handler_cls = _normalize(event)
    return handler_cls(normalized, context, LAMBDA_CONFIG)


def to_generic_request(event: Any, context: Any = None) -> GenericRequest:
    """
    Build a GenericRequest from a Lambda invocation event.

    Raises MalformedEventError when a structural field is missing or
    cannot be decoded.
    """
    gateway = gateway_for(event, context)
    try:
        scope = gateway.scope
        return GenericRequest(
            method=scope["method"],
            path=scope["path"],
            headers=Headers(raw=[(bytes(k).lower(), bytes(v)) for k, v in scope["headers"]]),
            body=gateway.body,
            query=tuple(
                parse_qsl(scope["query_string"].decode("utf-8"), keep_blank_values=True)
            ),
            source_ip=scope["client"][0] or "127.0.0.1",
        )
    except (KeyError, AttributeError, TypeError, ValueError) as exc:
        raise MalformedEventError(f"Event has an unexpected structure: {exc}") from exc


def error_reply(error: ApiBaseError) -> Dict[str, Any]:
    """Best-effort reply describing an error raised outside the handler set."""
    return {
        "statusCode": error.status_code,
        "headers": {"content-type": DEFAULT_CONTENT_TYPE},
        "body": json.dumps({"error": error.code, "detail": str(error)}),
        "isBase64Encoded": False,
    }


def _build_reply(response: GenericResponse, event: Optional[Any]) -> Dict[str, Any]:
    headers = [[name, value] for name, value in response.headers.raw]
    if "content-type" not in response.headers:
        headers.append([b"content-type", DEFAULT_CONTENT_TYPE.encode("latin-1")])
    gateway = gateway_for(_FUNCTION_URL_EVENT if event is None else event)
    return gateway(
        {"status": response.status_code, "headers": headers, "body": response.body}
    )


def to_platform_reply(
    response: GenericResponse, event: Optional[Any] = None
) -> Dict[str, Any]:
    """
    Convert a GenericResponse into a Lambda reply.

    The reply format follows ``event`` (REST events get multi-value headers),
    defaulting to the function URL format. Never raises: the host expects
    exactly one reply per invocation.
    """
    try:
        return _build_reply(response, event)
    except Exception as exc:
        logger.exception("Failed to build platform reply")
        return error_reply(HandlerPanic.from_exception(exc))
