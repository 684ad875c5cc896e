"""
HTTP request builder for one-shot mode and the shared HTTP method type.
"""

import logging
from enum import Enum
from typing import Iterable, Optional

from multidict import CIMultiDict

from hurley.configuration import DEFAULT_TIMEOUT_SECONDS, SUPPORTED_METHODS
from hurley.errors import InvalidHeader, InvalidMethod

logger = logging.getLogger(__name__)


class HttpMethod(str, Enum):
    """HTTP methods hurley can issue."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"

    @classmethod
    def parse(cls, value) -> "HttpMethod":
        """Parse a method name case-insensitively.

        Raises:
            InvalidMethod: If the value is not a supported method
        """
        if not isinstance(value, str) or value.strip().upper() not in SUPPORTED_METHODS:
            raise InvalidMethod(str(value))
        return cls(value.strip().upper())


def parse_header(header: str):
    """Split a "Name: Value" string into a (name, value) pair."""
    name, sep, value = header.partition(":")
    name = name.strip()
    if not sep or not name:
        raise InvalidHeader(header)
    return name, value.strip()


class HttpRequest:
    """HTTP request configuration built with chained setters.

    Example:
        request = (HttpRequest("https://api.example.com")
                   .method("POST")
                   .header("Content-Type", "application/json")
                   .body('{"key": "value"}'))
    """

    def __init__(self, url: str):
        self.url = url
        self.http_method = HttpMethod.GET
        self.headers = CIMultiDict()
        self.body_text: Optional[str] = None
        self.timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
        self.redirects: bool = True

    def method(self, method: str) -> "HttpRequest":
        self.http_method = HttpMethod.parse(method)
        return self

    def header(self, name: str, value: str) -> "HttpRequest":
        # Case-insensitive, last write wins
        self.headers[name] = value
        return self

    def headers_from_strings(self, headers: Iterable[str]) -> "HttpRequest":
        """Add headers given as "Name: Value" strings.

        Raises:
            InvalidHeader: If any header has no colon or an empty name
        """
        for header in headers:
            name, value = parse_header(header)
            self.headers[name] = value
        return self

    def body(self, body: str) -> "HttpRequest":
        self.body_text = body
        return self

    def body_from_file(self, path: str) -> "HttpRequest":
        with open(path, "r", encoding="utf-8") as f:
            self.body_text = f.read()
        logger.debug(f"Loaded request body from {path} ({len(self.body_text)} chars)")
        return self

    def timeout(self, seconds: float) -> "HttpRequest":
        self.timeout_seconds = seconds
        return self

    def follow_redirects(self, follow: bool) -> "HttpRequest":
        self.redirects = follow
        return self

    def __repr__(self) -> str:
        return f"HttpRequest({self.http_method.value} {self.url}, headers={len(self.headers)})"
