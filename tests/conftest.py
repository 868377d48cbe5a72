"""Pytest configuration and shared fixtures"""

from pathlib import Path
from typing import Callable, List
from unittest.mock import AsyncMock, MagicMock
import pytest

from error_relay.utils.config import (
    AppConfig,
    CaptureConfig,
    SourceConfig,
    PrivacyConfig,
    RateLimitConfig,
    DeliveryConfig,
    ErrorLoggingConfig,
    LoggingConfig,
)


def _raise_and_catch(error: BaseException) -> BaseException:
    """Raise an error and return it with its traceback attached"""
    try:
        raise error
    except BaseException as e:
        return e


def _error_from_file(path: Path, source: str, func: str = "fail") -> BaseException:
    """
    Raise an error from code compiled as if it lived in path

    The resulting traceback points at path, so source reading and
    fingerprinting see a real file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(source)
    namespace: dict = {}
    exec(compile(source, str(path), "exec"), namespace)
    try:
        namespace[func]()
    except Exception as e:
        return e
    raise AssertionError(f"{func} did not raise")


@pytest.fixture
def raise_and_catch():
    """Helper raising an error at one fixed call site"""
    return _raise_and_catch


@pytest.fixture
def error_from_file():
    """Helper raising an error from a file on disk"""
    return _error_from_file


@pytest.fixture
def mock_config(tmp_path: Path) -> AppConfig:
    """Create a mock AppConfig for testing"""
    return AppConfig(
        enabled=True,
        dsn="https://collector.example.com/webhook/errors",
        project="test-project",
        environment="testing",
        autofix_environments=["production", "staging"],
        capture=CaptureConfig(sample_rate=1.0, ignored_exceptions=[]),
        source=SourceConfig(include_contents=True, context_lines=3, project_root=str(tmp_path)),
        privacy=PrivacyConfig(sensitive_fields=["password", "token"]),
        rate_limit=RateLimitConfig(enabled=False, max_per_minute=10, dedup_window_seconds=60),
        delivery=DeliveryConfig(
            timeout_seconds=5,
            queue=False,
            max_attempts=3,
            backoff_seconds=[5, 30, 60],
        ),
        error_logging=ErrorLoggingConfig(keep_in_memory=10),
        logging=LoggingConfig(level="INFO", format="%(message)s", file=None),
    )


@pytest.fixture
def make_response() -> Callable[[int], AsyncMock]:
    """Factory for fake aiohttp responses"""

    def _make(status: int, body: str = "") -> AsyncMock:
        response = AsyncMock()
        response.status = status
        response.text = AsyncMock(return_value=body)
        return response

    return _make


@pytest.fixture
def sleep_recorder():
    """Sleep replacement recording requested delays"""
    delays: List[float] = []

    async def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def mock_delivery():
    """Create a mock DeliveryStrategy"""
    delivery = AsyncMock()
    delivery.submit = AsyncMock()
    delivery.start = AsyncMock()
    delivery.stop = AsyncMock()
    delivery.pending = MagicMock(return_value=0)
    return delivery


@pytest.fixture
def sample_payload() -> dict:
    """Minimal report body"""
    return {
        "error_hash": "0123456789abcdef0123456789abcdef",
        "project": "test-project",
        "environment": "testing",
        "error": {"class": "RuntimeError", "file": "/app/service.py", "line": 12},
    }
