"""
Transport-agnostic request and response exchanged with the router.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Union
from urllib.parse import urlencode

from starlette.datastructures import Headers, QueryParams

HeaderItems = Union[Headers, Mapping[str, str], Iterable[tuple[str, str]]]


def make_headers(items: HeaderItems) -> Headers:
    """
    Build case-insensitive headers, keeping repeated names in order.

    Raises UnicodeEncodeError for names or values outside latin-1.
    """
    if isinstance(items, Headers):
        return items
    if isinstance(items, Mapping):
        items = items.items()
    raw = [
        (str(name).lower().encode("latin-1"), str(value).encode("latin-1"))
        for name, value in items
    ]
    return Headers(raw=raw)


@dataclass(frozen=True)
class GenericRequest:
    method: str
    path: str
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""
    query: tuple[tuple[str, str], ...] = ()
    source_ip: str = "127.0.0.1"

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "headers", make_headers(self.headers))
        object.__setattr__(self, "query", tuple(self.query))

    @property
    def query_params(self) -> QueryParams:
        return QueryParams(list(self.query))

    @property
    def query_string(self) -> str:
        return urlencode(self.query)


@dataclass(frozen=True)
class GenericResponse:
    status_code: int
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""

    def __post_init__(self):
        object.__setattr__(self, "headers", make_headers(self.headers))

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")
