"""Tests for the ErrorReporter pipeline"""

import asyncio
import logging
import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch
import pytest

from error_relay.models import RequestSnapshot, Unreportable
from error_relay.reporter import ErrorReporter, ReportScope
from error_relay.services.delivery import ImmediateDelivery, QueuedDelivery


class CheckoutError(Unreportable, Exception):
    """Business error kept out of reports"""


def _divide(a, b):
    return a / b


def _division_error() -> ZeroDivisionError:
    try:
        _divide(10, 0)
    except ZeroDivisionError as e:
        return e


def _error_at_fixed_site(message: str) -> ValueError:
    try:
        raise ValueError(message)
    except ValueError as e:
        return e


@pytest.fixture
def reporter(mock_config, sleep_recorder) -> ErrorReporter:
    rep = ErrorReporter(mock_config)
    rep.delivery.sender.sleep = sleep_recorder
    return rep


@pytest.fixture
def rate_limited_config(mock_config):
    return mock_config.model_copy(
        update={
            "rate_limit": mock_config.rate_limit.model_copy(
                update={"enabled": True, "max_per_minute": 2}
            )
        }
    )


@pytest.mark.asyncio
async def test_division_by_zero_end_to_end(reporter, make_response):
    """Test one captured error becomes one POST with the expected payload"""
    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.return_value.__aenter__.return_value = make_response(200)

        report = await reporter.capture(_division_error())

    assert report is not None
    mock_post.assert_called_once()
    payload = mock_post.call_args.kwargs["json"]

    assert payload["error"]["class"] == "ZeroDivisionError"
    assert payload["error"]["message"] == "division by zero"
    assert payload["error"]["line"] > 0
    assert payload["error"]["trace"][0]["function"] == "_divide"
    assert payload["project"] == "test-project"
    assert payload["environment"] == "testing"
    assert payload["should_autofix"] is False
    assert len(payload["error_hash"]) == 32
    assert "user" not in payload
    assert "request" not in payload
    assert "source" in payload
    assert len(reporter.failure_recorder) == 0


@pytest.mark.asyncio
async def test_disabled_reporter_sends_nothing(mock_config, make_response):
    """Test nothing is built or sent when disabled"""
    config = mock_config.model_copy(update={"enabled": False})
    rep = ErrorReporter(config)
    rep.builder = MagicMock()

    with patch("aiohttp.ClientSession.post") as mock_post:
        report = await rep.capture(_division_error())

    assert report is None
    mock_post.assert_not_called()
    rep.builder.build.assert_not_called()


@pytest.mark.asyncio
async def test_ignored_errors_are_not_sent(reporter, mock_delivery):
    """Test marker and configured ignore list"""
    reporter.delivery = mock_delivery
    reporter.gate.ignored_types = (KeyError,)

    assert await reporter.capture(CheckoutError("declined")) is None
    assert await reporter.capture(KeyError("sku")) is None
    mock_delivery.submit.assert_not_awaited()


@pytest.mark.asyncio
async def test_duplicates_are_dropped_before_build(rate_limited_config, mock_delivery):
    """Test the same error twice in the window is reported once"""
    rep = ErrorReporter(rate_limited_config, delivery=mock_delivery)

    first = await rep.capture(_error_at_fixed_site("Same error"))
    with patch.object(rep.builder, "build") as build:
        second = await rep.capture(_error_at_fixed_site("Same error"))

    assert first is not None
    assert second is None
    build.assert_not_called()
    mock_delivery.submit.assert_awaited_once()


@pytest.mark.asyncio
async def test_different_messages_are_not_duplicates(rate_limited_config, mock_delivery):
    """Test dedup is keyed by fingerprint"""
    rep = ErrorReporter(rate_limited_config, delivery=mock_delivery)

    await rep.capture(_error_at_fixed_site("Same error"))
    await rep.capture(_error_at_fixed_site("Different error"))

    assert mock_delivery.submit.await_count == 2


@pytest.mark.asyncio
async def test_rate_limit_caps_reports_per_minute(rate_limited_config, mock_delivery, caplog):
    """Test distinct errors beyond the limit are dropped"""
    rep = ErrorReporter(rate_limited_config, delivery=mock_delivery)
    rep.limiter.now = lambda: datetime(2026, 1, 1, 12, 0, 30, tzinfo=timezone.utc)

    with caplog.at_level(logging.INFO, logger="error_relay"):
        results = [await rep.capture(_error_at_fixed_site(f"error {n}")) for n in range(4)]

    assert [r is not None for r in results] == [True, True, False, False]
    assert mock_delivery.submit.await_count == 2
    assert "Rate limit" in caplog.text


@pytest.mark.asyncio
async def test_capture_never_raises(reporter, mock_delivery, caplog):
    """Test a failing pipeline stage is logged and swallowed"""
    reporter.delivery = mock_delivery

    with patch.object(reporter.builder, "build", side_effect=RuntimeError("builder exploded")):
        with caplog.at_level(logging.ERROR, logger="error_relay"):
            result = await reporter.capture(_division_error())

    assert result is None
    mock_delivery.submit.assert_not_awaited()
    record = caplog.records[-1]
    assert "builder exploded" in record.getMessage()
    assert record.original_exception == "ZeroDivisionError"
    assert record.reporter_error_class == "RuntimeError"


@pytest.mark.asyncio
async def test_capture_survives_delivery_failure(reporter, make_response):
    """Test a rejected report does not reach the caller"""
    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.return_value.__aenter__.return_value = make_response(400, "bad")

        report = await reporter.capture(_division_error())

    assert report is not None
    assert len(reporter.failure_recorder) == 1


@pytest.mark.asyncio
async def test_scope_context_and_user(reporter, mock_delivery):
    """Test a scope's context and user reach its reports"""
    reporter.delivery = mock_delivery
    scope = reporter.scope()

    scope.set_context({"tenant": "acme", "step": "cart"}).set_user(42, "dev@example.com", "Dev")
    await scope.capture(_division_error(), {"step": "payment"})

    payload = mock_delivery.submit.await_args.args[0]
    assert payload["context"] == {"tenant": "acme", "step": "payment"}
    assert payload["user"] == {"id": 42, "email": "dev@example.com", "name": "Dev"}


@pytest.mark.asyncio
async def test_set_user_replaces_previous_user(reporter, mock_delivery):
    """Test set_user does not merge with an earlier user"""
    reporter.delivery = mock_delivery
    scope = reporter.scope()

    scope.set_user(1, "first@example.com", "First")
    scope.set_user(2)
    await scope.capture(_division_error())

    payload = mock_delivery.submit.await_args.args[0]
    assert payload["user"] == {"id": 2, "email": None, "name": None}


@pytest.mark.asyncio
async def test_concurrent_scopes_are_isolated(reporter, mock_delivery):
    """Test context from one unit of work never leaks into another"""
    reporter.delivery = mock_delivery

    async def handle(tenant: str) -> dict:
        scope = reporter.scope()
        scope.set_context({"tenant": tenant})
        await asyncio.sleep(0)
        report = await scope.capture(_error_at_fixed_site(tenant))
        return report.context

    contexts = await asyncio.gather(*(handle(f"tenant-{n}") for n in range(5)))

    assert contexts == [{"tenant": f"tenant-{n}"} for n in range(5)]
    assert reporter.scope().state.context == {}


@pytest.mark.asyncio
async def test_scope_request_is_reported(reporter, mock_delivery):
    """Test the scope's request is sanitized into the report"""
    reporter.delivery = mock_delivery
    request = RequestSnapshot(
        url="https://shop.example.com/login",
        method="POST",
        input={"username": "dev", "password": "hunter2"},
    )

    await reporter.scope(request=request).capture(_division_error())

    payload = mock_delivery.submit.await_args.args[0]
    assert payload["request"]["input"] == {"username": "dev", "password": "[REDACTED]"}
    assert payload["request"]["url"] == "https://shop.example.com/login"


@pytest.mark.asyncio
async def test_queued_reporter_delivers_in_background(mock_config, make_response):
    """Test the queue strategy sends after capture returns"""
    config = mock_config.model_copy(
        update={"delivery": mock_config.delivery.model_copy(update={"queue": True})}
    )
    rep = ErrorReporter(config)
    assert isinstance(rep.delivery, QueuedDelivery)

    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.return_value.__aenter__.return_value = make_response(200)

        await rep.start()
        await rep.capture(_division_error())
        await rep.delivery.join()
        await rep.stop()

    mock_post.assert_called_once()


@pytest.mark.asyncio
async def test_start_stop_and_status(reporter):
    """Test lifecycle and status reporting"""
    assert isinstance(reporter.delivery, ImmediateDelivery)
    assert reporter.get_status()["running"] is False

    await reporter.start()
    await reporter.start()
    status = reporter.get_status()

    assert status["running"] is True
    assert status["enabled"] is True
    assert status["project"] == "test-project"
    assert status["queued"] is False
    assert status["pending_reports"] == 0
    assert status["delivery_failures"] == 0

    await reporter.stop()
    assert reporter.get_status()["running"] is False


def test_scope_defaults(reporter):
    """Test a scope starts empty"""
    scope = reporter.scope()

    assert isinstance(scope, ReportScope)
    assert scope.request is None
    assert scope.state.context == {}
    assert scope.state.user is None


@pytest.mark.asyncio
async def test_report_is_built_off_the_event_loop(reporter, mock_delivery):
    """Test source files are read in a worker thread, not on the loop"""
    reporter.delivery = mock_delivery
    build = reporter.builder.build
    seen = {}

    def recording_build(*args, **kwargs):
        seen["thread"] = threading.get_ident()
        seen["capture_stack"] = kwargs["capture_stack"]
        return build(*args, **kwargs)

    with patch.object(reporter.builder, "build", side_effect=recording_build):
        report = await reporter.capture(_division_error())

    assert report is not None
    assert seen["thread"] != threading.get_ident()
    functions = [frame.name for frame in seen["capture_stack"]]
    assert "test_report_is_built_off_the_event_loop" in functions
    mock_delivery.submit.assert_awaited_once()


class Order:
    def __repr__(self) -> str:
        return "<Order 17>"


@pytest.mark.asyncio
async def test_unserializable_context_is_still_delivered(reporter, make_response):
    """Test arbitrary objects in scope context do not stop delivery"""
    scope = reporter.scope().set_context(
        {"order": Order(), "placed": datetime(2026, 5, 1, tzinfo=timezone.utc)}
    )

    with patch("aiohttp.ClientSession.post") as mock_post:
        mock_post.return_value.__aenter__.return_value = make_response(200)

        report = await scope.capture(_division_error())

    assert report is not None
    mock_post.assert_called_once()
    payload = mock_post.call_args.kwargs["json"]
    assert payload["context"] == {"order": "<Order 17>", "placed": "2026-05-01T00:00:00Z"}
