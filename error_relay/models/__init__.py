"""Data models"""

from .report import (
    ErrorReport,
    ErrorDetails,
    StackFrame,
    SourceContext,
    RequestContext,
    RequestSnapshot,
    UserContext,
    AppContext,
    GitInfo,
)
from .delivery import DeliveryResult, DeliveryStatus
from .errors import DeliveryFailure, ErrorRelayError, ConfigurationError, Unreportable
from .state import ReporterState

__all__ = [
    "ErrorReport",
    "ErrorDetails",
    "StackFrame",
    "SourceContext",
    "RequestContext",
    "RequestSnapshot",
    "UserContext",
    "AppContext",
    "GitInfo",
    "DeliveryResult",
    "DeliveryStatus",
    "DeliveryFailure",
    "ErrorRelayError",
    "ConfigurationError",
    "Unreportable",
    "ReporterState",
]
