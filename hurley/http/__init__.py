"""
HTTP layer: request builder, response rendering and the aiohttp transport.
"""

from .request import HttpMethod, HttpRequest
from .response import HttpResponse
from .client import HttpClient, HttpTransport

__all__ = ['HttpMethod', 'HttpRequest', 'HttpResponse', 'HttpClient', 'HttpTransport']
