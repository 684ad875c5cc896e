"""
hurley: a curl-like HTTP client with performance testing capabilities.
"""

__version__ = "0.1.1"
