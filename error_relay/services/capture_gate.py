"""Capture gate: decides whether an error is reported at all"""

import importlib
import logging
import random
from typing import Callable, Iterable, Optional, Tuple, Type, Union

from ..models.errors import Unreportable

logger = logging.getLogger(__name__)

IgnoredType = Union[str, Type[BaseException]]


def resolve_type(path: str) -> Optional[type]:
    """
    Import a class from a dotted path ("package.module.ClassName")

    Returns:
        The class, or None if it cannot be imported
    """
    module_name, _, attr = path.rpartition(".")
    if not module_name:
        module_name, attr = "builtins", path

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        logger.warning(f"Ignored exception type {path!r} could not be imported: {e}")
        return None

    resolved = getattr(module, attr, None)
    if not isinstance(resolved, type):
        logger.warning(f"Ignored exception type {path!r} is not a class")
        return None
    return resolved


class CaptureGate:
    """
    Pure predicate over errors

    An error passes when reporting is enabled, an endpoint is set, the error
    is not an instance of an ignored type, and the sample draw accepts it.
    """

    def __init__(
        self,
        enabled: bool,
        dsn: str,
        sample_rate: float = 1.0,
        ignored: Iterable[IgnoredType] = (),
        rng: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize capture gate

        Args:
            enabled: Global reporting switch
            dsn: Collector endpoint; empty disables reporting
            sample_rate: Fraction of errors to report, 0.0 to 1.0
            ignored: Exception classes or dotted paths never to report
            rng: Uniform [0, 1) source (default random.random)
        """
        self.enabled = enabled
        self.dsn = dsn
        self.sample_rate = sample_rate
        self.ignored_types = self._resolve_all(ignored)
        self.rng = rng or random.random

    @staticmethod
    def _resolve_all(ignored: Iterable[IgnoredType]) -> Tuple[type, ...]:
        resolved = []
        for entry in ignored:
            cls = resolve_type(entry) if isinstance(entry, str) else entry
            if cls is not None:
                resolved.append(cls)
        return tuple(resolved)

    def is_ignored(self, error: BaseException) -> bool:
        """True if the error matches the ignore list or is marked unreportable"""
        if isinstance(error, Unreportable) or getattr(error, "report_ignored", False):
            return True
        return bool(self.ignored_types) and isinstance(error, self.ignored_types)

    def is_sampled(self) -> bool:
        """Draw against the sample rate; the bounds never depend on the draw"""
        if self.sample_rate >= 1.0:
            return True
        if self.sample_rate <= 0.0:
            return False
        return self.rng() <= self.sample_rate

    def should_capture(self, error: BaseException) -> bool:
        """
        Decide whether an error is eligible for reporting

        Args:
            error: The error to check

        Returns:
            True if the error should go through the pipeline
        """
        if not self.enabled or not self.dsn:
            return False

        if self.is_ignored(error):
            return False

        return self.is_sampled()
