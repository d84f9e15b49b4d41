"""
Tag Index HTTP API Server

Flask REST API for:
- Reading both counter indexes (pruned)
- Applying counter deltas
- Health checks

Run:
    flask --app "api.server:create_app()" run --port 8080

Or with gunicorn (production):
    gunicorn -w 4 -b 0.0.0.0:8080 "api.server:create_app()"
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from api.responses import failure, failure_status, success
from tag_index import __version__
from tag_index.errors import TagIndexError
from tag_index.models import parse_put_request
from tag_index.service import IndexService
from tag_index.settings import Settings, configure_logging

logger = logging.getLogger(__name__)


def _to_response(envelope: Dict[str, Any]) -> Response:
    return Response(
        envelope["body"],
        status=envelope["statusCode"],
        mimetype="application/json",
    )


def create_app(service: Optional[IndexService] = None) -> Flask:
    """
    Build the Flask app.

    Without an explicit service, settings are loaded from the environment;
    a missing table name raises ConfigurationError here, at startup.
    """
    if service is None:
        settings = Settings.load()
        configure_logging(settings.LOG_LEVEL)
        service = IndexService.from_settings(settings)

    app = Flask(__name__)
    CORS(app)
    app.config["INDEX_SERVICE"] = service

    @app.route("/api/health")
    def health_check():
        """Health check endpoint."""
        return jsonify({
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        })

    @app.route("/api/indexes", methods=["GET"])
    def get_indexes():
        """Read both indexes; non-positive counters are pruned and written back."""
        try:
            result = service.read()
            return _to_response(success(result.to_dict()))
        except TagIndexError as e:
            logger.error(f"Index read failed: {e}")
            return _to_response(failure(e, failure_status(e)))
        except Exception as e:
            logger.exception("Unexpected error during index read")
            return _to_response(failure(e))

    @app.route("/api/indexes", methods=["PUT", "POST"])
    def put_indexes():
        """
        Apply counter deltas.

        Body:
            {"indexUpdate": {"tags": {"red": 1}, "people": {"bob": -1}}}
        """
        raw = request.get_data(as_text=True)
        try:
            parsed = parse_put_request(raw)
            results = service.update(parsed.index_update)
            body: Dict[str, Any] = {"requestBody": parsed.model_dump(by_alias=True)}
            body.update({slot: r.to_dict() for slot, r in results.items()})
            return _to_response(success(body))
        except TagIndexError as e:
            logger.error(f"Index update failed: {e} (body={raw!r})")
            return _to_response(failure(e, failure_status(e)))
        except Exception as e:
            logger.exception("Unexpected error during index update")
            return _to_response(failure(e))

    return app
