"""Tests for the operator API routes and application"""

from unittest.mock import patch
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from error_relay import __version__
from error_relay.api import routes
from error_relay.api.routes import router, set_reporter
from error_relay.main import create_app
from error_relay.models.delivery import DeliveryResult
from error_relay.reporter import ErrorReporter


@pytest.fixture
def client():
    app = FastAPI()
    app.include_router(router)
    yield TestClient(app)
    set_reporter(None)


def test_health_before_reporter_is_set(client):
    """Test health reports initializing until a reporter exists"""
    set_reporter(None)

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json() == {"status": "initializing", "version": __version__}


def test_health_with_reporter(client, mock_config):
    """Test health exposes reporter status"""
    set_reporter(ErrorReporter(mock_config))

    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "stopped"
    assert body["project"] == "test-project"
    assert body["delivery_failures"] == 0


def test_failures_endpoint(client, mock_config, sample_payload):
    """Test recent delivery failures are listed"""
    reporter = ErrorReporter(mock_config)
    reporter.failure_recorder.record(sample_payload, DeliveryResult.from_status_code(400))
    set_reporter(reporter)

    response = client.get("/failures", params={"limit": 5})

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["failures"][0]["error_hash"] == sample_payload["error_hash"]
    assert body["failures"][0]["status"] == 400


def test_failures_limit_validation(client, mock_config):
    """Test limit bounds"""
    set_reporter(ErrorReporter(mock_config))

    assert client.get("/failures", params={"limit": 0}).status_code == 422
    assert client.get("/failures", params={"limit": 101}).status_code == 422


def test_failures_before_reporter_is_set(client):
    """Test failures are unavailable until a reporter exists"""
    set_reporter(None)

    assert client.get("/failures").status_code == 503


def test_app_lifespan_starts_and_stops_reporter(mock_config):
    """Test the app builds, starts and releases the reporter"""
    with patch("error_relay.main.setup_from_config"):
        app = create_app(mock_config)

        with TestClient(app) as test_client:
            assert isinstance(app.state.reporter, ErrorReporter)
            assert routes.reporter is app.state.reporter

            health = test_client.get("/health")
            root = test_client.get("/")

        assert routes.reporter is None

    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert health.json()["running"] is True
    assert root.json()["name"] == "Error Relay"
    assert root.json()["version"] == __version__


def test_clear_failures(client, mock_config, sample_payload):
    """Test the failure history can be cleared"""
    reporter = ErrorReporter(mock_config)
    reporter.failure_recorder.record(sample_payload, DeliveryResult.from_status_code(400))
    set_reporter(reporter)

    response = client.delete("/failures")

    assert response.status_code == 200
    assert response.json() == {"cleared": 1}
    assert client.get("/failures").json()["count"] == 0


def test_clear_failures_before_reporter_is_set(client):
    """Test clearing is unavailable until a reporter exists"""
    set_reporter(None)

    assert client.delete("/failures").status_code == 503
