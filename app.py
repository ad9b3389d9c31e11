import logging
import os
import secrets
import uuid

from flask import Flask, g, jsonify
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from config import Config
from extensions import cors, limiter, mail
from routes.auth_routes import auth_bp
from routes.payment_routes import payment_bp
from routes.student_routes import student_bp
from utils.errors import ApiError
from utils.notify import build_notifier
from utils.receipts import LEDGER_FILE_NAME, Branding, ReceiptLedger, ReceiptService
from utils.roster import RosterStore
from utils.security import CredentialVerifier, Identity


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(exc: ApiError):
        if exc.status_code >= 500:
            app.logger.error("%s: %s (%s)", exc.code, exc.message, exc.error)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return jsonify({"success": False, "message": exc.description, "code": exc.name}), exc.code

    @app.errorhandler(Exception)
    def _unhandled(exc: Exception):
        app.logger.exception("Unhandled error")
        return jsonify({"success": False, "message": "Internal server error", "error": str(exc)}), 500


def create_app(overrides: dict | None = None) -> Flask:
    """Build the API app. ``overrides`` replaces Config values (used by tests)."""
    app = Flask(__name__)

    # Load configuration from Config, then apply explicit overrides
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    if not app.config.get("SECRET_KEY"):
        app.config["SECRET_KEY"] = secrets.token_hex(32)
        app.logger.warning("SECRET_KEY is not set; using a random key, tokens will not survive a restart")

    identity = Identity.from_config(app.config)
    if not identity.configured:
        app.logger.warning("ADMIN_EMAIL/ADMIN_PASSWORD are not set; every login will be rejected")

    # Trust reverse proxy headers for scheme/host when enabled
    if app.config.get("TRUST_PROXY"):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore[method-assign]

    limiter.init_app(app)
    mail.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})

    receipts_dir = app.config["RECEIPTS_DIR"]
    roster = RosterStore(app.config["STUDENTS_FILE"], app.config.get("REQUIRED_STUDENT_FIELDS") or ())
    receipt_service = ReceiptService(
        receipts_dir,
        ReceiptLedger(os.path.join(receipts_dir, LEDGER_FILE_NAME)),
        Branding.from_config(app.config),
    )
    app.extensions["credential_verifier"] = CredentialVerifier(
        identity, app.config["SECRET_KEY"], app.config.get("TOKEN_TTL_HOURS", 24)
    )
    app.extensions["roster_store"] = roster
    app.extensions["receipt_service"] = receipt_service
    app.extensions["notifier"] = build_notifier(app, receipt_service, mail)

    app.register_blueprint(auth_bp)
    app.register_blueprint(student_bp)
    app.register_blueprint(payment_bp)
    _register_error_handlers(app)

    # Assign a per-request correlation id for tracing
    @app.before_request
    def _assign_request_id():
        g.request_id = uuid.uuid4().hex[:16]

    @app.after_request
    def _set_response_headers(resp):
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        request_id = g.get("request_id")
        if request_id:
            resp.headers.setdefault("X-Request-ID", request_id)
        return resp

    @app.route("/health")
    def health():
        return jsonify({"success": True, "status": "ok"})

    return app


if __name__ == "__main__":
    app = create_app()
    port = app.config.get("PORT", 5000)
    app.logger.info("Server running on port %s", port)
    app.run(host="0.0.0.0", port=port)
