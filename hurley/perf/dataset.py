"""
Dataset parsing for performance tests.

A dataset is a JSON array of request entries:

    [
      {"method": "GET", "path": "/users"},
      {"method": "POST", "path": "/users", "body": {"name": "test"},
       "headers": {"X-Trace": "1"}}
    ]

Files ending in ``.ndjson`` / ``.jsonl`` hold one entry object per line.
"""

import json
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlsplit

from multidict import CIMultiDict, CIMultiDictProxy

from hurley.configuration import NDJSON_SUFFIXES
from hurley.errors import DatasetError, EmptyDataset, InvalidMethod, MalformedDataset
from hurley.http.request import HttpMethod

logger = logging.getLogger(__name__)

_EMPTY_HEADERS = CIMultiDictProxy(CIMultiDict())


@dataclass(frozen=True)
class JsonBody:
    """Opaque JSON value kept verbatim and serialized at dispatch time."""

    value: Any

    def serialize(self) -> str:
        return json.dumps(self.value)


@dataclass(frozen=True)
class RequestTemplate:
    """One request definition: method, path, optional body and headers."""

    method: HttpMethod
    path: str
    body: Optional[JsonBody] = None
    headers: CIMultiDictProxy = field(default_factory=lambda: _EMPTY_HEADERS, compare=False)

    @property
    def endpoint_key(self) -> str:
        """Identity used to bucket metrics per logical operation."""
        return f"{self.method.value} {self.path}"

    @classmethod
    def single(cls, method: Union[str, HttpMethod], url: str, headers=None,
               body: Optional[JsonBody] = None) -> Tuple[str, "RequestTemplate"]:
        """Split a full URL into a base URL and a template for single-request mode.

        Args:
            method: HTTP method
            url: Full target URL, e.g. "https://api.example.com/x?y=1"
            headers: Optional header mapping for the template
            body: Optional request body

        Returns:
            Tuple of (base_url, template)
        """
        parts = urlsplit(url)
        base_url = f"{parts.scheme}://{parts.netloc}" if parts.scheme else url
        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"
        if not isinstance(method, HttpMethod):
            method = HttpMethod.parse(method)
        return base_url, cls(method=method, path=path, body=body,
                             headers=_freeze_headers(headers or {}))


class Dataset:
    """Ordered, non-empty, read-only collection of request templates."""

    def __init__(self, entries: Sequence[RequestTemplate]):
        if not entries:
            raise EmptyDataset()
        self.entries: Tuple[RequestTemplate, ...] = tuple(entries)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[RequestTemplate]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> RequestTemplate:
        return self.entries[index]

    def choose(self, rng: random.Random) -> RequestTemplate:
        """Draw one entry uniformly at random (with replacement)."""
        return self.entries[rng.randrange(len(self.entries))]

    def endpoint_keys(self) -> List[str]:
        """Distinct endpoint keys in first-seen order."""
        return list(dict.fromkeys(entry.endpoint_key for entry in self.entries))

    @classmethod
    def from_file(cls, path: str) -> "Dataset":
        """Read and parse a dataset file.

        Raises:
            DatasetError: If the file cannot be read
            MalformedDataset: If the content is invalid
            EmptyDataset: If the file holds no entries
        """
        try:
            with open(path, "rb") as f:
                raw = f.read()
        except OSError as e:
            raise DatasetError(f"Cannot read dataset file {path}: {e}") from e

        if str(path).lower().endswith(NDJSON_SUFFIXES):
            dataset = load_ndjson(raw)
        else:
            dataset = load(raw)
        logger.info(f"Loaded {len(dataset)} requests from {path}")
        return dataset

    def __repr__(self) -> str:
        return f"Dataset(entries={len(self.entries)})"


def load(raw: Union[bytes, str]) -> Dataset:
    """Parse a JSON array document into a Dataset.

    Raises:
        MalformedDataset: If the document is not a JSON array or an entry is invalid
        EmptyDataset: If the array is empty
    """
    try:
        document = json.loads(raw)
    except ValueError as e:
        raise MalformedDataset(f"invalid JSON ({e})") from e

    if not isinstance(document, list):
        raise MalformedDataset(f"expected a JSON array, got {type(document).__name__}")
    if not document:
        raise EmptyDataset()

    return Dataset([parse_entry(entry, index) for index, entry in enumerate(document)])


def load_ndjson(raw: Union[bytes, str]) -> Dataset:
    """Parse newline-delimited JSON (one entry object per line) into a Dataset."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedDataset(f"dataset is not valid UTF-8 ({e})") from e

    entries = []
    for line in raw.splitlines():
        line = line.strip()
        if not line:
            continue
        index = len(entries)
        try:
            document = json.loads(line)
        except ValueError as e:
            raise MalformedDataset(f"invalid JSON line ({e})", index) from e
        entries.append(parse_entry(document, index))

    if not entries:
        raise EmptyDataset()
    return Dataset(entries)


def parse_entry(entry: Any, index: int) -> RequestTemplate:
    """Validate one decoded entry and build its template."""
    if not isinstance(entry, dict):
        raise MalformedDataset(f"expected an object, got {type(entry).__name__}", index)

    if "method" not in entry:
        raise MalformedDataset("missing 'method'", index)
    try:
        method = HttpMethod.parse(entry["method"])
    except InvalidMethod as e:
        raise MalformedDataset(f"unrecognized method {entry['method']!r}", index) from e

    path = entry.get("path")
    if not isinstance(path, str) or not path.strip():
        raise MalformedDataset("'path' must be a non-empty string", index)

    headers = entry.get("headers")
    if headers is None:
        headers = {}
    if not isinstance(headers, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in headers.items()
    ):
        raise MalformedDataset("'headers' must be an object of string values", index)

    # JSON null and a missing body are the same thing
    body = JsonBody(entry["body"]) if entry.get("body") is not None else None

    return RequestTemplate(method=method, path=path, body=body, headers=_freeze_headers(headers))


def _freeze_headers(headers) -> CIMultiDictProxy:
    merged = CIMultiDict()
    for name, value in headers.items():
        merged[name] = value  # last write wins, case-insensitive
    return CIMultiDictProxy(merged)
