"""Delivery attempt outcome"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class DeliveryStatus(str, Enum):
    """How a single delivery attempt ended"""
    DELIVERED = "delivered"
    RETRYABLE = "retryable"  # transport error or 5xx
    TERMINAL = "terminal"  # 4xx and other non-success responses
    ABANDONED = "abandoned"  # still queued or in flight at shutdown


class DeliveryResult(BaseModel):
    """Result of one delivery attempt, or of the whole retry run"""
    status: DeliveryStatus
    status_code: Optional[int] = None
    reason: str = ""
    attempts: int = 1

    @property
    def delivered(self) -> bool:
        return self.status is DeliveryStatus.DELIVERED

    @property
    def retryable(self) -> bool:
        return self.status is DeliveryStatus.RETRYABLE

    @classmethod
    def from_status_code(cls, status_code: int, attempt: int = 1) -> "DeliveryResult":
        """Classify an HTTP response status"""
        if 200 <= status_code < 300:
            return cls(status=DeliveryStatus.DELIVERED, status_code=status_code, attempts=attempt)
        if status_code >= 500:
            return cls(
                status=DeliveryStatus.RETRYABLE,
                status_code=status_code,
                reason=f"collector returned server error {status_code}",
                attempts=attempt,
            )
        return cls(
            status=DeliveryStatus.TERMINAL,
            status_code=status_code,
            reason=f"collector rejected report with status {status_code}",
            attempts=attempt,
        )
