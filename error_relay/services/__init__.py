"""Service modules"""

from .capture_gate import CaptureGate
from .delivery import ReportSender, ImmediateDelivery, QueuedDelivery, build_strategy
from .failure_recorder import FailureRecorder
from .payload_builder import PayloadBuilder
from .rate_limiter import DedupRateLimiter
from .source_reader import SourceContextReader
from .store import MemoryStore, TTLStore

__all__ = [
    "CaptureGate",
    "ReportSender",
    "ImmediateDelivery",
    "QueuedDelivery",
    "build_strategy",
    "FailureRecorder",
    "PayloadBuilder",
    "DedupRateLimiter",
    "SourceContextReader",
    "MemoryStore",
    "TTLStore",
]
