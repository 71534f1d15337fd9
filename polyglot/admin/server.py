"""
Local Admin Server — Flask JSON API over the mirror services.

This provides a small web API for local management.
It should NEVER be exposed to the internet.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from flask import Flask, jsonify, request

from ..config.loader import Settings
from ..services import Services, build_services
from .routes_mirror import mirror_bp

logger = logging.getLogger(__name__)


def create_app(services: Optional[Services] = None) -> Flask:
    """Create the Flask application."""
    if services is None:
        services = build_services(Settings.from_env())

    app = Flask(__name__)
    app.config["SERVICES"] = services

    # ── Register Blueprints ───────────────────────────────────────
    app.register_blueprint(mirror_bp, url_prefix="/api")   # /api/libraries, /api/mirrors/*, /api/cleanup

    # ── Error Handlers ────────────────────────────────────────────

    @app.errorhandler(500)
    def internal_server_error(e):
        """Catch-all: return JSON for any unhandled 500 so clients never see raw HTML."""
        logger.error(f"Unhandled 500 on {request.method} {request.path}: {e}", exc_info=True)
        return jsonify({
            "success": False,
            "error": f"Internal server error: {str(e)}",
        }), 500

    # ── Request Logging ───────────────────────────────────────────

    @app.before_request
    def log_request_start():
        request._start_time = time.time()

    @app.after_request
    def log_request_end(response):
        """Log API requests with duration."""
        duration_ms = 0
        if hasattr(request, "_start_time"):
            duration_ms = int((time.time() - request._start_time) * 1000)
        if request.path.startswith("/api/"):
            logger.info(
                f"{request.method} {request.path} → {response.status_code} ({duration_ms}ms)"
            )
        return response

    logger.info(f"Admin server initialized (host={services.host.name})")

    return app


def run_server(
    host: str = "127.0.0.1",
    port: int = 5050,
    debug: bool = False,
    services: Optional[Services] = None,
) -> None:
    """
    Run the admin server.

    Args:
        host: Bind address (default: localhost only)
        port: Port to run on
        debug: Enable Flask debug mode
        services: Pre-built services (default: built from the environment)
    """
    app = create_app(services)

    logger.info(f"Admin API listening on http://{host}:{port} (local use only)")

    # The reloader forks; services hold file handles and locks.
    app.run(host=host, port=port, debug=debug, use_reloader=False)
