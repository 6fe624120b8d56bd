"""
Health check HTTP server for liveness and readiness probes.

Provides endpoints for monitoring the health and readiness of the
marketplace database, plus Prometheus metrics.
"""

import sqlite3
from pathlib import Path
from typing import Any

from flask import Flask, Response, jsonify
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from tender_quorum import __version__
from tender_quorum.kernel.logging import get_logger

logger = get_logger(__name__)

app = Flask(__name__)

# Global state - will be set by initialize_health_server()
_db_path: Path | None = None
_marketplace: Any = None  # Marketplace instance for detailed health checks


def initialize_health_server(db_path: str | Path, marketplace: Any = None) -> None:
    """
    Initialize the health server with database path and Marketplace instance.

    Args:
        db_path: Path to SQLite database
        marketplace: Optional Marketplace instance for tender/bid counts
    """
    global _db_path, _marketplace
    _db_path = Path(db_path)
    _marketplace = marketplace
    logger.info("Health server initialized", db_path=str(_db_path))


@app.after_request
def add_security_headers(response: Response) -> Response:
    """Probe responses are JSON only; forbid everything else"""
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
    response.headers["Cache-Control"] = "no-store"
    return response


@app.route("/health/live", methods=["GET"])
def liveness() -> tuple[Response, int]:
    """
    Liveness probe - checks if the process is running.

    Returns:
        JSON response with status and 200 OK
    """
    return jsonify({"status": "alive", "service": "tender-quorum"}), 200


@app.route("/health/ready", methods=["GET"])
def readiness() -> tuple[Response, int]:
    """
    Readiness probe - checks if the service is ready to accept requests.

    Checks:
    - Database path is configured and the file exists
    - The events table can be queried

    Returns:
        JSON response with status and 200 OK if ready, 503 if not ready
    """
    if _db_path is None:
        logger.error("Readiness check failed: DB path not initialized")
        return jsonify({"status": "not_ready", "reason": "database_path_not_initialized"}), 503

    if not _db_path.exists():
        logger.error("Readiness check failed: DB file does not exist", db_path=str(_db_path))
        return (
            jsonify(
                {
                    "status": "not_ready",
                    "reason": "database_file_not_found",
                    "db_path": str(_db_path),
                }
            ),
            503,
        )

    try:
        conn = sqlite3.connect(str(_db_path), timeout=1.0)
        try:
            event_count = conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
        finally:
            conn.close()
    except sqlite3.Error as e:
        logger.error("Readiness check failed: DB error", error=str(e))
        return (
            jsonify(
                {
                    "status": "not_ready",
                    "reason": "database_operational_error",
                    "error": str(e),
                }
            ),
            503,
        )

    logger.debug("Readiness check passed", event_count=event_count)
    return jsonify({"status": "ready", "database": "accessible", "event_count": event_count}), 200


@app.route("/health", methods=["GET"])
def detailed_health() -> tuple[Response, int]:
    """
    Detailed health check - database stats and, when a Marketplace is
    attached, live tender and bid counts.
    """
    health_data: dict[str, Any] = {
        "status": "healthy",
        "service": "tender-quorum",
        "version": __version__,
    }

    if _db_path and _db_path.exists():
        try:
            conn = sqlite3.connect(str(_db_path), timeout=1.0)
            try:
                event_count = conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
                stream_count = conn.execute(
                    "SELECT COUNT(DISTINCT stream_id) FROM events"
                ).fetchone()[0]
                page_count = conn.execute("PRAGMA page_count").fetchone()[0]
                page_size = conn.execute("PRAGMA page_size").fetchone()[0]
            finally:
                conn.close()

            health_data["database"] = {
                "status": "healthy",
                "path": str(_db_path),
                "event_count": event_count,
                "stream_count": stream_count,
                "size_mb": round((page_count * page_size) / (1024 * 1024), 2),
            }
        except sqlite3.Error as e:
            logger.error("Database health check failed", error=str(e))
            health_data["database"] = {"status": "unhealthy", "error": str(e)}
            health_data["status"] = "degraded"
    else:
        health_data["database"] = {"status": "not_initialized"}
        health_data["status"] = "degraded"

    if _marketplace is not None:
        try:
            stats = _marketplace.stats()
            health_data["marketplace"] = {
                "tender_count": stats["tender_count"],
                "open_tender_count": stats["open_tender_count"],
                "bid_count": stats["bid_count"],
            }
        except Exception as e:
            # Counts are informational; the probe result comes from the database check
            logger.warning("Could not compute marketplace counts", error=str(e))
            health_data["marketplace"] = {"status": "unavailable", "error": str(e)}

    status_code = 200 if health_data["status"] == "healthy" else 503
    return jsonify(health_data), status_code


@app.route("/metrics", methods=["GET"])
def metrics() -> Response:
    """Prometheus exposition of the marketplace counters"""
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)


def run_health_server(host: str = "0.0.0.0", port: int = 8080, db_path: str | None = None) -> None:
    """
    Run the health check server.

    Args:
        host: Bind address
        port: Port to listen on (default: 8080)
        db_path: Database to report on (initializes the server if given)
    """
    if db_path is not None:
        from tender_quorum.marketplace import Marketplace

        initialize_health_server(db_path, Marketplace(db_path))
    logger.info("Starting health check server", host=host, port=port)
    app.run(host=host, port=port)
