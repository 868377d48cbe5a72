"""Terminal delivery failure recording"""

import logging
from collections import deque
from typing import Optional
from urllib.parse import urlparse

from ..models.delivery import DeliveryResult, DeliveryStatus
from ..models.errors import DeliveryFailure

logger = logging.getLogger(__name__)

REMEDIATION_HINTS = [
    "Verify the collector is running and reachable from this host",
    "Check ERROR_RELAY_DSN in your configuration",
    "Review the collector's logs for rejected requests",
    "Run: error-relay verify --sync",
]

REJECTED_HINTS = [
    "The collector rejected the payload; it will not be retried",
    "Check that ERROR_RELAY_DSN points at the right collector endpoint",
    "Review the collector's logs for the rejection reason",
]

SHUTDOWN_HINTS = [
    "The process stopped before the delivery queue was drained",
    "Raise delivery.drain_timeout_seconds to give pending reports more time",
    "Check whether the collector was slow or unreachable at shutdown",
]


def endpoint_host(dsn: str) -> str:
    """Host part of the endpoint, safe to log"""
    return urlparse(dsn).hostname or "invalid"


class FailureRecorder:
    """
    Records reports that will never reach the collector

    Logs every terminal failure at error level with remediation hints and
    keeps the most recent ones in memory for operator tooling. Nothing is
    re-queued.
    """

    def __init__(self, keep_in_memory: int = 100):
        """
        Initialize failure recorder

        Args:
            keep_in_memory: Number of failures to keep in memory
        """
        self.keep_in_memory = keep_in_memory
        self.failure_history: deque[DeliveryFailure] = deque(maxlen=keep_in_memory)

    def record(self, payload: dict, result: DeliveryResult, dsn: str = "") -> DeliveryFailure:
        """
        Record a report whose delivery ended without success

        Args:
            payload: The report body that was being delivered
            result: Final delivery result (retry budget exhausted or rejected)
            dsn: Collector endpoint, logged by host only

        Returns:
            The stored failure record
        """
        error = payload.get("error") or {}
        failure = DeliveryFailure(
            error_hash=payload.get("error_hash", "unknown"),
            project=payload.get("project") or "unknown",
            original_error_class=error.get("class") or "unknown",
            original_error_file=error.get("file") or "unknown",
            reason=result.reason or result.status.value,
            status=result.status_code,
            attempts=result.attempts,
            endpoint_host=endpoint_host(dsn) if dsn else None,
        )

        self.failure_history.append(failure)

        if result.status is DeliveryStatus.TERMINAL:
            message = "❌ Error report rejected by the collector; it was not delivered"
            hints = REJECTED_HINTS
        elif result.status is DeliveryStatus.ABANDONED:
            message = "❌ Error report abandoned at shutdown; it was not delivered"
            hints = SHUTDOWN_HINTS
        else:
            message = (
                f"❌ Error report permanently failed after {result.attempts} attempts; "
                "the collector did not receive it"
            )
            hints = REMEDIATION_HINTS

        logger.error(
            message,
            extra={**failure.to_log_extra(), "action_required": hints},
        )
        return failure

    def get_recent_failures(self, limit: int = 10) -> list[dict]:
        """
        Get recent failures for operator tooling

        Args:
            limit: Maximum number of failures to return

        Returns:
            List of failure dictionaries, oldest first
        """
        failures = list(self.failure_history)[-limit:] if limit > 0 else []
        return [failure.model_dump(mode="json") for failure in failures]

    def clear_history(self) -> None:
        """Clear failure history"""
        self.failure_history.clear()
        logger.info("Delivery failure history cleared")

    def __len__(self) -> int:
        return len(self.failure_history)
