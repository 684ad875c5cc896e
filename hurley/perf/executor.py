"""
Request executor: sends one templated request and classifies the outcome.
"""

import asyncio
import time
import logging
from typing import Mapping, Optional

import aiohttp
from multidict import CIMultiDict

from hurley.configuration import (
    HTTP_ERROR_STATUS_MAX,
    HTTP_ERROR_STATUS_MIN,
    JSON_CONTENT_TYPE,
)
from hurley.perf.dataset import JsonBody, RequestTemplate
from hurley.perf.outcome import FailureReason, Outcome

logger = logging.getLogger(__name__)


def resolve_url(base_url: str, path: str) -> str:
    """Join a template path onto the base URL; absolute URLs are used as-is."""
    if path.startswith(("http://", "https://")):
        return path
    if not path.startswith("/"):
        path = "/" + path
    return base_url.rstrip("/") + path


class RequestExecutor:
    """Issues templated requests through a shared transport.

    The transport must provide ``await send(method, url, headers, body, timeout)``
    returning the status code once the full response has been read.
    """

    def __init__(self, transport, base_url: str, timeout: Optional[float] = None,
                 default_headers: Optional[Mapping[str, str]] = None,
                 default_body: Optional[JsonBody] = None):
        """Initialize the executor.

        Args:
            transport: Shared transport (see ``hurley.http.client.HttpTransport``)
            base_url: Base URL that template paths are resolved against
            timeout: Per-request timeout in seconds (None = transport default)
            default_headers: Headers sent with every request; template headers win
            default_body: Body for templates that do not carry one
        """
        self.transport = transport
        self.base_url = base_url
        self.timeout = timeout
        self.default_headers = CIMultiDict(default_headers or {})
        self.default_body = default_body

    def _prepare(self, template: RequestTemplate):
        url = resolve_url(self.base_url, template.path)

        headers = CIMultiDict(self.default_headers)
        headers.update(template.headers)

        body = None
        source = template.body if template.body is not None else self.default_body
        if source is not None:
            body = source.serialize()
            if "Content-Type" not in headers:
                headers["Content-Type"] = JSON_CONTENT_TYPE
        return url, headers, body

    async def execute(self, template: RequestTemplate) -> Outcome:
        """Send one request and return its outcome. Never raises for request failures."""
        key = template.endpoint_key
        # URL resolution and serialization stay outside the timed section
        url, headers, body = self._prepare(template)

        start = time.perf_counter()
        try:
            status = await self.transport.send(
                template.method.value, url, headers=headers, body=body, timeout=self.timeout
            )
        except asyncio.TimeoutError:
            latency = time.perf_counter() - start
            logger.debug(f"{key}: timeout after {latency * 1000:.1f} ms")
            return Outcome.failure(key, latency, FailureReason.TIMEOUT)
        except (aiohttp.ClientError, OSError) as e:
            latency = time.perf_counter() - start
            logger.debug(f"{key}: transport error: {e}")
            return Outcome.failure(key, latency, FailureReason.TRANSPORT)
        except Exception as e:
            latency = time.perf_counter() - start
            logger.error(f"{key}: unexpected transport error: {e}", exc_info=True)
            return Outcome.failure(key, latency, FailureReason.TRANSPORT)
        latency = time.perf_counter() - start

        if HTTP_ERROR_STATUS_MIN <= status <= HTTP_ERROR_STATUS_MAX:
            logger.debug(f"{key}: HTTP {status} in {latency * 1000:.1f} ms")
            return Outcome.failure(key, latency, FailureReason.HTTP_STATUS, status)
        return Outcome.success(key, latency, status)
