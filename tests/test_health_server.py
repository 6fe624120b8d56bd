"""
Tests for health server

Tests Flask-based liveness/readiness endpoints, the detailed health
report and the metrics endpoint.
"""

import sqlite3

import pytest

from tender_quorum import health_server
from tender_quorum.health_server import app, initialize_health_server
from tender_quorum.marketplace import Marketplace
from tests.helpers import published_tender


@pytest.fixture
def client():
    """Flask test client"""
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


@pytest.fixture(autouse=True)
def reset_server():
    yield
    health_server._db_path = None
    health_server._marketplace = None


@pytest.fixture
def initialized_server(market: Marketplace, temp_db):
    """Health server pointed at a marketplace with one tender and one bid"""
    tender = published_tender(market)
    market.create_bid(
        name="Offer",
        description="",
        tender_id=tender.tender_id,
        organization_id="org-b",
        creator_id="u1",
    )
    initialize_health_server(temp_db, marketplace=market)


def test_initialize_health_server_accepts_string_path(temp_db) -> None:
    initialize_health_server(str(temp_db))

    assert health_server._db_path == temp_db


def test_security_headers(client, initialized_server) -> None:
    for path in ("/health/live", "/health/ready", "/health"):
        response = client.get(path)
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert "default-src 'none'" in response.headers["Content-Security-Policy"]


def test_liveness_works_without_initialization(client) -> None:
    response = client.get("/health/live")

    assert response.status_code == 200
    assert response.get_json() == {"status": "alive", "service": "tender-quorum"}


def test_readiness_returns_event_count(client, initialized_server, market) -> None:
    response = client.get("/health/ready")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "ready"
    assert data["event_count"] == market.event_store.count_events()


def test_readiness_returns_503_when_not_initialized(client) -> None:
    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.get_json()["reason"] == "database_path_not_initialized"


def test_readiness_returns_503_when_db_file_missing(client) -> None:
    initialize_health_server("/nonexistent/path/to/market.db")

    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.get_json()["reason"] == "database_file_not_found"


def test_readiness_returns_503_on_database_error(client, temp_db) -> None:
    conn = sqlite3.connect(str(temp_db))
    conn.execute("CREATE TABLE unrelated (id INTEGER)")
    conn.commit()
    conn.close()
    initialize_health_server(temp_db)

    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.get_json()["reason"] == "database_operational_error"


def test_detailed_health_reports_marketplace(client, initialized_server) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "healthy"
    assert data["database"]["stream_count"] == 4
    assert data["marketplace"] == {"tender_count": 1, "open_tender_count": 1, "bid_count": 1}


def test_detailed_health_degraded_without_database(client) -> None:
    response = client.get("/health")

    assert response.status_code == 503
    assert response.get_json()["status"] == "degraded"


def test_metrics_endpoint(client, initialized_server) -> None:
    response = client.get("/metrics")

    assert response.status_code == 200
    assert b"tq_events_appended_total" in response.data
