"""
Async HTTP transport and one-shot client built on aiohttp.
"""

import json
import time
import logging
from typing import Any, Dict, Mapping, Optional

import aiohttp
from rich.console import Console
from rich.text import Text

from hurley.configuration import MAX_REDIRECTS
from hurley.http.request import HttpRequest
from hurley.http.response import HttpResponse

logger = logging.getLogger(__name__)


class HttpTransport:
    """Shared aiohttp session with a bounded connection pool.

    Used as an async context manager; the session only exists between
    ``__aenter__`` and ``__aexit__``. Safe for concurrent use by many tasks.
    """

    def __init__(self, max_connections: int = 100, timeout: Optional[float] = None,
                 follow_redirects: bool = True):
        """Initialize the transport.

        Args:
            max_connections: Connection pool size (usually the run's concurrency)
            timeout: Default total timeout per request in seconds (None = no limit)
            follow_redirects: Whether to follow redirects (up to MAX_REDIRECTS)
        """
        self.max_connections = max_connections
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        connector = aiohttp.TCPConnector(limit=self.max_connections)
        self.session = aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        )
        logger.debug(f"Opened HTTP session (pool={self.max_connections}, timeout={self.timeout})")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None

    async def send(self, method: str, url: str, headers: Optional[Mapping[str, str]] = None,
                   body: Optional[str] = None, timeout: Optional[float] = None) -> int:
        """Send one request and read the full response body.

        Returns:
            The response status code

        Raises:
            asyncio.TimeoutError: If the request exceeds its timeout
            aiohttp.ClientError: On connection, DNS or protocol errors
        """
        if self.session is None:
            raise RuntimeError("HTTP transport not initialized. Use async context manager.")

        kwargs: Dict[str, Any] = {
            "headers": headers,
            "data": body,
            "allow_redirects": self.follow_redirects,
            "max_redirects": MAX_REDIRECTS,
        }
        if timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)

        async with self.session.request(method, url, **kwargs) as response:
            await response.read()
            return response.status


class HttpClient:
    """One-shot HTTP client with optional verbose request echo."""

    def __init__(self, verbose: bool = False, console: Optional[Console] = None):
        self.verbose = verbose
        self.console = console or Console()

    async def execute(self, request: HttpRequest) -> HttpResponse:
        """Execute a request and return the response.

        Raises:
            asyncio.TimeoutError: If the request times out
            aiohttp.ClientError: On network errors
        """
        if self.verbose:
            self._print_request_info(request)

        timeout = aiohttp.ClientTimeout(total=request.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            start = time.perf_counter()
            async with session.request(
                request.http_method.value,
                request.url,
                headers=request.headers,
                data=request.body_text,
                allow_redirects=request.redirects,
                max_redirects=MAX_REDIRECTS,
            ) as response:
                body = await response.text(errors="replace")
                duration = time.perf_counter() - start
                return HttpResponse(response.status, dict(response.headers), body, duration)

    def _print_request_info(self, request: HttpRequest) -> None:
        self.console.print(Text(">>> Request", style="bold blue"))
        line = Text()
        line.append(request.http_method.value, style="green")
        line.append(" ")
        line.append(request.url, style="cyan")
        self.console.print(line)

        for name, value in request.headers.items():
            header = Text()
            header.append(name, style="yellow")
            header.append(f": {value}")
            self.console.print(header)

        if request.body_text is not None:
            self.console.print()
            try:
                pretty = json.dumps(json.loads(request.body_text), indent=2)
            except ValueError:
                pretty = request.body_text
            self.console.print(pretty, markup=False, highlight=False)

        self.console.print()
        self.console.print(Text("<<< Response", style="bold blue"))
