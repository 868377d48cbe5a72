"""Delivery of error reports to the collector"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

import aiohttp

from ..models.delivery import DeliveryResult, DeliveryStatus
from ..utils.retry import retry_async
from .failure_recorder import FailureRecorder, endpoint_host

logger = logging.getLogger(__name__)

PROJECT_HEADER = "X-Error-Relay-Project"


class ReportSender:
    """
    HTTP client for the collector with bounded retries

    Transport errors and 5xx responses are retried with increasing backoff;
    any other non-success response is terminal. Whatever ends undelivered is
    handed to the FailureRecorder.
    """

    def __init__(
        self,
        dsn: str,
        project: str = "",
        timeout: float = 5.0,
        max_attempts: int = 3,
        backoff_seconds: Sequence[float] = (5.0, 30.0, 60.0),
        failure_recorder: Optional[FailureRecorder] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize report sender

        Args:
            dsn: Collector endpoint URL
            project: Project id sent in the project header
            timeout: Per-attempt request timeout in seconds
            max_attempts: Attempt budget per report
            backoff_seconds: Delays between attempts
            failure_recorder: Receives reports that could not be delivered
            sleep: Sleep coroutine used between attempts (default asyncio.sleep)
        """
        self.dsn = dsn
        self.project = project
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.max_attempts = max_attempts
        self.backoff_seconds = list(backoff_seconds)
        self.failure_recorder = failure_recorder
        self.sleep = sleep

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            PROJECT_HEADER: self.project or "unknown",
        }

    async def attempt(self, payload: Dict[str, Any], attempt: int = 1) -> DeliveryResult:
        """
        Post the report once

        Args:
            payload: Report body
            attempt: 1-based attempt number, for logging

        Returns:
            DeliveryResult classifying the outcome
        """
        error_hash = payload.get("error_hash", "unknown")
        host = endpoint_host(self.dsn)

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(self.dsn, json=payload, headers=self.headers) as resp:
                    result = DeliveryResult.from_status_code(resp.status, attempt=attempt)
                    if result.delivered:
                        logger.debug(
                            f"Error report {error_hash} delivered to {host}",
                            extra={"project": self.project, "error_hash": error_hash},
                        )
                        return result
                    body = (await resp.text(errors="replace"))[:500]
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(
                f"Error report {error_hash} to {host} failed on attempt "
                f"{attempt}/{self.max_attempts}: {type(e).__name__}: {e}"
            )
            return DeliveryResult(
                status=DeliveryStatus.RETRYABLE,
                reason=f"{type(e).__name__}: {e}",
                attempts=attempt,
            )

        logger.warning(
            f"Error report {error_hash} to {host} got HTTP {result.status_code} on attempt "
            f"{attempt}/{self.max_attempts}",
            extra={"status": result.status_code, "body": body, "error_hash": error_hash},
        )
        return result

    async def deliver(self, payload: Dict[str, Any]) -> DeliveryResult:
        """
        Deliver a report, retrying transient failures

        Args:
            payload: Report body

        Returns:
            Final DeliveryResult; attempts holds the number of attempts made
        """

        async def attempt_fn(attempt: int) -> DeliveryResult:
            return await self.attempt(payload, attempt)

        result = await retry_async(
            attempt_fn,
            max_attempts=self.max_attempts,
            delays=self.backoff_seconds,
            label=f"error report {payload.get('error_hash', 'unknown')}",
            sleep=self.sleep,
        )

        if not result.delivered and self.failure_recorder is not None:
            self.failure_recorder.record(payload, result, dsn=self.dsn)

        return result


class DeliveryStrategy(ABC):
    """How a built report gets to the ReportSender"""

    def __init__(self, sender: ReportSender):
        self.sender = sender

    @abstractmethod
    async def submit(self, payload: Dict[str, Any]) -> None:
        """Hand a report over for delivery"""

    async def start(self) -> None:
        """Start background resources, if any"""

    async def stop(self) -> None:
        """Release background resources, if any"""

    def pending(self) -> int:
        """Reports accepted but not yet delivered"""
        return 0


class ImmediateDelivery(DeliveryStrategy):
    """Delivers inline; the caller waits for the whole retry run"""

    async def submit(self, payload: Dict[str, Any]) -> None:
        await self.sender.deliver(payload)


class QueuedDelivery(DeliveryStrategy):
    """
    Delivers from a background task fed by an asyncio queue

    The worker starts on first submit if start() was not called. A full
    queue drops the report with a warning. stop() lets the worker drain the
    queue for up to drain_timeout seconds; whatever is still queued or in
    flight after that is handed to the sender's FailureRecorder.
    """

    def __init__(self, sender: ReportSender, maxsize: int = 1000, drain_timeout: float = 10.0):
        super().__init__(sender)
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.drain_timeout = drain_timeout
        self._worker: Optional[asyncio.Task] = None
        self._in_flight: Optional[Dict[str, Any]] = None

    async def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
            logger.info("Error report delivery worker started")

    async def stop(self) -> None:
        if self._worker is None:
            return

        try:
            await asyncio.wait_for(self.queue.join(), timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Delivery queue not drained within {self.drain_timeout:.1f}s, stopping worker"
            )

        in_flight = self._in_flight
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self._in_flight = None

        abandoned = [in_flight] if in_flight is not None else []
        while not self.queue.empty():
            abandoned.append(self.queue.get_nowait())
            self.queue.task_done()

        for payload in abandoned:
            self._abandon(payload)

        if abandoned:
            logger.warning(f"Delivery worker stopped with {len(abandoned)} reports undelivered")
        logger.info("Error report delivery worker stopped")

    def _abandon(self, payload: Dict[str, Any]) -> None:
        """Record a report that will never be sent"""
        recorder = self.sender.failure_recorder
        if recorder is None:
            return
        recorder.record(
            payload,
            DeliveryResult(
                status=DeliveryStatus.ABANDONED,
                reason="delivery worker stopped before the report was delivered",
                attempts=0,
            ),
            dsn=self.sender.dsn,
        )

    async def submit(self, payload: Dict[str, Any]) -> None:
        await self.start()
        try:
            self.queue.put_nowait(payload)
        except asyncio.QueueFull:
            logger.warning(
                f"Delivery queue full, dropping error report {payload.get('error_hash', 'unknown')}"
            )

    async def join(self) -> None:
        """Wait until every queued report has been processed"""
        await self.queue.join()

    def pending(self) -> int:
        return self.queue.qsize()

    async def _run(self) -> None:
        """Worker loop"""
        while True:
            payload = await self.queue.get()
            self._in_flight = payload
            try:
                await self.sender.deliver(payload)
            except Exception as e:
                logger.error(f"Delivery worker error: {e}", exc_info=True)
            finally:
                self._in_flight = None
                self.queue.task_done()


def build_strategy(
    sender: ReportSender,
    queue: bool,
    queue_size: int = 1000,
    drain_timeout: float = 10.0,
) -> DeliveryStrategy:
    """Pick the delivery strategy from configuration"""
    if queue:
        return QueuedDelivery(sender, maxsize=queue_size, drain_timeout=drain_timeout)
    return ImmediateDelivery(sender)
