"""Relay error taxonomy.

Broadcast failures always propagate to the caller: a rejected or lost
transaction has no meaningful local recovery.
"""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base class for relay (mempool.space / esplora) failures."""


class BroadcastError(RelayError):
    """The relay rejected the transaction.

    Attributes:
        status_code: HTTP status returned by the relay (None if no response)
        body: Raw relay response text, shown to the operator as-is
    """

    def __init__(self, status_code: Optional[int], body: str):
        self.status_code = status_code
        self.body = body
        if status_code is None:
            message = f"Transaction broadcast failed: {body}"
        else:
            message = f"Transaction broadcast failed: HTTP {status_code} {body}"
        super().__init__(message)

    @property
    def is_client_error(self) -> bool:
        """True when the relay judged the transaction itself invalid (4xx)."""
        return self.status_code is not None and 400 <= self.status_code < 500


class RelayUnavailableError(BroadcastError):
    """The relay could not be reached (DNS, refused connection, reset)."""

    def __init__(self, reason: str):
        super().__init__(None, reason)


class BroadcastTimeoutError(RelayError, TimeoutError):
    """The relay did not answer within the configured timeout."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Relay did not respond within {timeout_seconds}s")


class FeeEstimationError(RelayError):
    """Fee recommendations could not be fetched or parsed."""
