## routes.py
from __future__ import annotations

from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from fleet_compliance.domain.models import ApplicationResult
from fleet_compliance.services.fleet_summary import summarize

TRUTHY = {"true", "1", "yes", "on"}


def _debug_flag() -> bool:
    return (request.args.get("debug") or "").strip().lower() in TRUTHY


def _error(error: str, message: str, code: int):
    return jsonify({"error": error, "message": message}), code


def create_blueprint(compliance_service, secret_store) -> Blueprint:
    bp = Blueprint("api", __name__, url_prefix="/api")

    @bp.get("/health")
    def health():
        current_app.logger.info("Health check requested")
        try:
            connected = bool(secret_store.test_connection())
        except Exception as e:
            current_app.logger.exception("Health check failed")
            return jsonify({"status": "unhealthy", "vault_connected": False, "error": str(e)}), 500

        return jsonify(
            {
                "status": "healthy" if connected else "unhealthy",
                "vault_connected": connected,
                "message": (
                    "API is running and Vault is accessible"
                    if connected
                    else "API is running but Vault is not accessible"
                ),
            }
        )

    @bp.get("/apps")
    def apps():
        current_app.logger.info("Apps list requested")
        try:
            names = sorted(secret_store.list_application_names())
        except Exception as e:
            current_app.logger.exception("Error fetching apps")
            return _error(str(e), "Failed to fetch apps from Vault", 500)

        return jsonify({"apps": names, "count": len(names)})

    @bp.get("/compliance")
    def compliance():
        app_name = (request.args.get("app") or "").strip()
        debug = _debug_flag()
        current_app.logger.info("Compliance check requested - app: %s, debug: %s", app_name or None, debug)

        try:
            if app_name:
                result: ApplicationResult = compliance_service.check_compliance(app_name, debug=debug)
                if result.error:
                    return _error(result.error, "Failed to check compliance", 500)
                return jsonify(result.to_dict())

            started = datetime.now()
            results = compliance_service.evaluate_all(debug=debug)
        except Exception as e:
            current_app.logger.exception("Error in compliance check")
            return _error(str(e), "Failed to check compliance", 500)

        return jsonify(
            {
                "timestamp": started.isoformat(),
                "apps": {name: r.to_dict() for name, r in results.items()},
            }
        )

    @bp.get("/compliance/summary")
    def compliance_summary():
        debug = _debug_flag()
        current_app.logger.info("Compliance summary requested - debug: %s", debug)

        try:
            started = datetime.now()
            summary = summarize(compliance_service.evaluate_all(debug=debug), timestamp=started)
        except Exception as e:
            current_app.logger.exception("Error generating summary")
            return _error(str(e), "Failed to generate compliance summary", 500)

        return jsonify(summary.to_dict())

    return bp


def register_error_handlers(app) -> None:
    @app.errorhandler(404)
    def not_found(e):
        return _error("Endpoint not found", getattr(e, "description", str(e)), 404)

    @app.errorhandler(Exception)
    def internal_error(e):
        # Let werkzeug keep its own status for non-404 HTTP errors (405 etc.)
        if isinstance(e, HTTPException):
            return _error(e.name, e.description or "", e.code or 500)
        current_app.logger.exception("Internal server error")
        return _error("Internal server error", str(e), 500)
