"""Error models: package exceptions and delivery failure records"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from .report import utc_now


class ErrorRelayError(Exception):
    """Base exception for the reporter itself"""


class ConfigurationError(ErrorRelayError):
    """Raised when the reporter cannot be built from its configuration"""


class Unreportable:
    """
    Marker capability for errors that must never be reported

    Mix into an exception class (class PaymentDeclined(Unreportable, Exception))
    to keep it out of the pipeline without touching configuration.
    """

    report_ignored = True


class DeliveryFailure(BaseModel):
    """Report that could not be delivered"""
    error_hash: str
    project: str
    original_error_class: str = "unknown"
    original_error_file: str = "unknown"
    reason: str
    status: Optional[int] = None
    attempts: int
    endpoint_host: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)

    def to_log_extra(self) -> dict:
        """Convert to structured logging extra"""
        return {
            "error_hash": self.error_hash,
            "project": self.project,
            "original_error_class": self.original_error_class,
            "original_error_file": self.original_error_file,
            "failure_reason": self.reason,
            "status": self.status,
            "retry_attempts": self.attempts,
            "endpoint_host": self.endpoint_host,
        }
