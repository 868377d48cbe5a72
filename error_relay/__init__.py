"""Error capture pipeline: gate, fingerprint, dedupe, build and deliver error reports"""

__version__ = "1.0.0"

from .reporter import ErrorReporter, ReportScope
from .models.errors import Unreportable
from .utils.config import AppConfig, load_config

__all__ = [
    "__version__",
    "ErrorReporter",
    "ReportScope",
    "Unreportable",
    "AppConfig",
    "load_config",
]
