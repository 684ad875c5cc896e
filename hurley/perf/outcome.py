"""
Per-request outcome record consumed by the metrics aggregator.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OutcomeResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class FailureReason(str, Enum):
    """Why a request failed. Timeouts are a kind of transport failure."""

    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"

    @property
    def is_transport(self) -> bool:
        return self in (FailureReason.TRANSPORT, FailureReason.TIMEOUT)


@dataclass(frozen=True)
class Outcome:
    """Result of one dispatched request.

    Attributes:
        endpoint_key: "METHOD path" of the template that was sent
        latency: Round-trip time in seconds, measured around the transport call
        result: Success or failure
        reason: Failure reason, only set when result is FAILURE
        status: HTTP status code, None when no response was received
    """

    endpoint_key: str
    latency: float
    result: OutcomeResult
    reason: Optional[FailureReason] = None
    status: Optional[int] = None

    @property
    def is_success(self) -> bool:
        return self.result is OutcomeResult.SUCCESS

    @classmethod
    def success(cls, endpoint_key: str, latency: float, status: int) -> "Outcome":
        return cls(endpoint_key, latency, OutcomeResult.SUCCESS, None, status)

    @classmethod
    def failure(cls, endpoint_key: str, latency: float, reason: FailureReason,
                status: Optional[int] = None) -> "Outcome":
        return cls(endpoint_key, latency, OutcomeResult.FAILURE, reason, status)
