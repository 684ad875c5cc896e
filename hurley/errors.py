"""
Error types for hurley.

Load-time and configuration errors are raised before any request is
dispatched. Per-request failures are never raised; they are recorded as
outcomes by the request executor.
"""


class HurleyError(Exception):
    """Base class for all hurley errors."""


class DatasetError(HurleyError):
    """Dataset could not be read or parsed."""


class MalformedDataset(DatasetError):
    """Dataset document has the wrong shape or an invalid entry."""

    def __init__(self, message: str, index: int = None):
        self.index = index
        if index is not None:
            message = f"entry {index}: {message}"
        super().__init__(f"Malformed dataset: {message}")


class EmptyDataset(DatasetError):
    """Dataset contains no entries."""

    def __init__(self):
        super().__init__("Empty dataset: at least one request entry is required")


class InvalidConfig(HurleyError, ValueError):
    """Run configuration is invalid (e.g. concurrency or request count below 1)."""


class InvalidMethod(HurleyError, ValueError):
    """Unsupported HTTP method."""

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Invalid method: {method!r}")


class InvalidHeader(HurleyError, ValueError):
    """Header string is not in 'Name: Value' form."""

    def __init__(self, header: str):
        self.header = header
        super().__init__(f"Invalid header format: {header!r}")


class TransportInitError(HurleyError):
    """The HTTP transport could not be constructed; the run is aborted."""


class RunAborted(HurleyError):
    """A fatal condition stopped the run before it could finish."""
