"""
HTTP response with timing information and terminal rendering.
"""

import json
from http import HTTPStatus
from typing import Mapping

from rich.text import Text


class HttpResponse:
    """Response status, headers, body and the time taken to receive it."""

    def __init__(self, status: int, headers: Mapping[str, str], body: str, duration: float):
        self.status = status
        self.headers = headers
        self.body = body
        self.duration = duration  # seconds

    def is_success(self) -> bool:
        return 200 <= self.status < 300

    def format_status(self) -> Text:
        """Status line colored by class: 2xx green, 4xx yellow, 5xx red."""
        try:
            reason = HTTPStatus(self.status).phrase
        except ValueError:
            reason = ""
        line = f"HTTP/1.1 {self.status} {reason}".rstrip()
        if self.is_success():
            return Text(line, style="green")
        if 400 <= self.status < 500:
            return Text(line, style="yellow")
        if self.status >= 500:
            return Text(line, style="red")
        return Text(line)

    def format_headers(self) -> Text:
        text = Text()
        for name, value in self.headers.items():
            text.append(name, style="cyan")
            text.append(f": {value}\n")
        return text

    def format_duration(self) -> str:
        return f"Time: {self.duration * 1000:.3f}ms"

    def format_body(self) -> str:
        """Body text, pretty-printed when it parses as JSON."""
        try:
            return json.dumps(json.loads(self.body), indent=2)
        except ValueError:
            return self.body

    def render(self, console, include_headers: bool = False, verbose: bool = False) -> None:
        """Print the response to a rich console.

        Args:
            console: rich Console to print to
            include_headers: Whether to print the status line and headers
            verbose: Whether to print timing information
        """
        if verbose:
            console.print(Text(self.format_duration(), style="dim"))
            console.print()
        if include_headers:
            console.print(self.format_status())
            console.print(self.format_headers(), end="")
            console.print()
        console.print(self.format_body(), markup=False, highlight=False)
