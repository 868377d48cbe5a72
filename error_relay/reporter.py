"""Error reporter - coordinates the capture pipeline"""

import asyncio
import logging
import traceback
from typing import Any, Dict, Optional, Union

from .models.report import ErrorReport, RequestSnapshot, UserContext
from .models.state import ReporterState
from .services.capture_gate import CaptureGate
from .services.delivery import DeliveryStrategy, ReportSender, build_strategy
from .services.failure_recorder import FailureRecorder
from .services.fingerprint import error_class_name, generate_hash
from .services.payload_builder import PayloadBuilder
from .services.rate_limiter import DedupRateLimiter
from .services.store import MemoryStore, TTLStore
from .utils.config import AppConfig

logger = logging.getLogger(__name__)


class ErrorReporter:
    """
    Central coordinator of the capture pipeline

    Pipeline per captured error:
    - CaptureGate filters (enabled, endpoint, ignore list, sampling)
    - Fingerprint is computed
    - DedupRateLimiter may drop it
    - PayloadBuilder assembles the ErrorReport in a worker thread
    - DeliveryStrategy sends it now or queues it

    Shared by the whole process. Per-request or per-job state lives in the
    ReportScope objects handed out by scope().
    """

    def __init__(
        self,
        config: AppConfig,
        store: Optional[TTLStore] = None,
        gate: Optional[CaptureGate] = None,
        builder: Optional[PayloadBuilder] = None,
        delivery: Optional[DeliveryStrategy] = None,
    ):
        """
        Initialize error reporter

        Args:
            config: Application configuration
            store: Shared TTL store for dedup and rate limiting (default: in-memory)
            gate: Capture gate override
            builder: Payload builder override
            delivery: Delivery strategy override
        """
        self.config = config
        self._running = False

        self.gate = gate or CaptureGate(
            enabled=config.enabled,
            dsn=config.dsn,
            sample_rate=config.capture.sample_rate,
            ignored=config.capture.ignored_exceptions,
        )

        self.store = store if store is not None else MemoryStore()
        self.limiter = DedupRateLimiter(
            store=self.store,
            enabled=config.rate_limit.enabled,
            max_per_minute=config.rate_limit.max_per_minute,
            dedup_window_seconds=config.rate_limit.dedup_window_seconds,
        )

        self.builder = builder or PayloadBuilder(config)

        self.failure_recorder = FailureRecorder(
            keep_in_memory=config.error_logging.keep_in_memory,
        )

        if delivery is None:
            sender = ReportSender(
                dsn=config.dsn,
                project=config.project,
                timeout=config.delivery.timeout_seconds,
                max_attempts=config.delivery.max_attempts,
                backoff_seconds=config.delivery.backoff_seconds,
                failure_recorder=self.failure_recorder,
            )
            delivery = build_strategy(
                sender,
                queue=config.delivery.queue,
                queue_size=config.delivery.queue_size,
                drain_timeout=config.delivery.drain_timeout_seconds,
            )
        self.delivery = delivery

    async def start(self) -> None:
        """Start background delivery, if configured"""
        if self._running:
            return
        self._running = True
        await self.delivery.start()
        logger.info(
            f"✅ Error reporter started (project={self.config.project or 'unset'}, "
            f"environment={self.config.environment})"
        )

    async def stop(self) -> None:
        """Stop background delivery"""
        if not self._running:
            return
        self._running = False
        await self.delivery.stop()
        logger.info("Error reporter stopped")

    def scope(
        self,
        request: Optional[RequestSnapshot] = None,
        state: Optional[ReporterState] = None,
    ) -> "ReportScope":
        """
        Open a scope for one unit of work (a request, a job execution)

        Args:
            request: Request being handled, if any
            state: Existing state to continue (default: fresh state)

        Returns:
            ReportScope owning its own ReporterState
        """
        return ReportScope(self, request=request, state=state)

    async def capture(
        self,
        error: BaseException,
        extra_context: Optional[Dict[str, Any]] = None,
        request: Optional[RequestSnapshot] = None,
    ) -> Optional[ErrorReport]:
        """Capture an error outside of any scope"""
        return await self.scope(request=request).capture(error, extra_context)

    async def process(
        self,
        error: BaseException,
        state: ReporterState,
        extra_context: Optional[Dict[str, Any]] = None,
        request: Optional[RequestSnapshot] = None,
    ) -> Optional[ErrorReport]:
        """
        Run one error through the pipeline

        Raises whatever a pipeline stage raises; ReportScope.capture is the
        boundary that swallows it.

        Returns:
            The report handed to delivery, or None if it was suppressed
        """
        if not self.gate.should_capture(error):
            return None

        error_hash = generate_hash(error)

        if self.limiter.is_duplicate(error_hash):
            logger.debug(f"Skipping duplicate error {error_hash}")
            return None

        if self.limiter.is_rate_limited():
            logger.info(
                f"Rate limit of {self.config.rate_limit.max_per_minute}/min reached, "
                f"skipping error report {error_hash}"
            )
            return None

        # Source files are read in a worker thread; the capture site stack is taken here
        report = await asyncio.to_thread(
            self.builder.build,
            error,
            state=state,
            extra_context=extra_context,
            request=request,
            error_hash=error_hash,
            capture_stack=traceback.extract_stack(),
        )

        await self.delivery.submit(report.to_payload())
        return report

    def get_status(self) -> dict:
        """Get reporter status"""
        return {
            "running": self._running,
            "enabled": self.gate.enabled and bool(self.gate.dsn),
            "project": self.config.project,
            "environment": self.config.environment,
            "queued": self.config.delivery.queue,
            "pending_reports": self.delivery.pending(),
            "delivery_failures": len(self.failure_recorder),
        }


class ReportScope:
    """
    Reporter API for one unit of work

    Holds the context and user accumulated during a request or job and
    merges them into every report captured through it.
    """

    def __init__(
        self,
        reporter: ErrorReporter,
        request: Optional[RequestSnapshot] = None,
        state: Optional[ReporterState] = None,
    ):
        self.reporter = reporter
        self.request = request
        self.state = state if state is not None else ReporterState()

    def set_context(self, context: Dict[str, Any]) -> "ReportScope":
        """Merge custom context into every later report of this scope"""
        self.state.merge_context(context)
        return self

    def set_user(
        self,
        id: Optional[Union[int, str]],
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> "ReportScope":
        """Replace the user attached to later reports of this scope"""
        self.state.user = UserContext(id=id, email=email, name=name)
        return self

    async def capture(
        self,
        error: BaseException,
        extra_context: Optional[Dict[str, Any]] = None,
    ) -> Optional[ErrorReport]:
        """
        Report an error; never raises

        Args:
            error: The error to report
            extra_context: Context for this report only

        Returns:
            The report handed to delivery, or None if suppressed or failed
        """
        try:
            return await self.reporter.process(
                error,
                state=self.state,
                extra_context=extra_context,
                request=self.request,
            )
        except Exception as e:
            logger.error(
                f"Error reporter failed to capture {error_class_name(error)}: {e}",
                exc_info=True,
                extra={
                    "reporter_error_class": type(e).__name__,
                    "original_exception": error_class_name(error),
                },
            )
            return None
