import atexit
import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from werkzeug.exceptions import HTTPException

db = SQLAlchemy()

from .constants import DEFAULT_ARTIFACT_URL_TTL_SECONDS, DEFAULT_CONTAINER_NAME
from .errors import CertdeskError
from .extensions import EXTENSION_KEY, ClientRegistry
from .shared.channels import DEFAULT_COUNTRY_CODE


def _database_url() -> str:
    DB_USER = os.getenv("DB_USER", "certdesk")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_NAME = os.getenv("DB_NAME", "certdesk")
    return os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}/{DB_NAME}",
    )


def _env_config() -> dict:
    site_root = os.getenv("SITE_ROOT", "/srv")
    return {
        "SECRET_KEY": os.getenv("SECRET_KEY", "dev"),
        "SQLALCHEMY_DATABASE_URI": _database_url(),
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "SITE_ROOT": site_root,
        "PUBLIC_BASE_URL": os.getenv("PUBLIC_BASE_URL", ""),
        "ARTIFACT_STORE": os.getenv("ARTIFACT_STORE", "local"),
        "ARTIFACT_URL_TTL_SECONDS": int(
            os.getenv("ARTIFACT_URL_TTL_SECONDS", DEFAULT_ARTIFACT_URL_TTL_SECONDS)
        ),
        "AZURE_STORAGE_CONNECTION_STRING": os.getenv("AZURE_STORAGE_CONNECTION_STRING"),
        "AZURE_STORAGE_CONTAINER": os.getenv("AZURE_STORAGE_CONTAINER", DEFAULT_CONTAINER_NAME),
        "CERT_ASSET_DIR": os.getenv("CERT_ASSET_DIR"),
        "CERT_TEMPLATE_PDF": os.getenv("CERT_TEMPLATE_PDF"),
        "CERT_WORK_DIR": os.getenv("CERT_WORK_DIR", os.path.join(site_root, "tmp")),
        "SMTP_HOST": os.getenv("SMTP_HOST"),
        "SMTP_PORT": os.getenv("SMTP_PORT"),
        "SMTP_USER": os.getenv("SMTP_USER"),
        "SMTP_PASS": os.getenv("SMTP_PASS"),
        "SMTP_FROM_DEFAULT": os.getenv("SMTP_FROM_DEFAULT"),
        "SMTP_FROM_NAME": os.getenv("SMTP_FROM_NAME", ""),
        "TWILIO_ACCOUNT_SID": os.getenv("TWILIO_ACCOUNT_SID"),
        "TWILIO_AUTH_TOKEN": os.getenv("TWILIO_AUTH_TOKEN"),
        "TWILIO_PHONE_NUMBER": os.getenv("TWILIO_PHONE_NUMBER"),
        "DEFAULT_COUNTRY_CODE": os.getenv("DEFAULT_COUNTRY_CODE", DEFAULT_COUNTRY_CODE),
    }


def create_app(test_config=None):
    app = Flask(__name__, template_folder="templates")
    app.config.update(_env_config())
    if test_config:
        app.config.update(test_config)
    app.config["MAX_CONTENT_LENGTH"] = 1 * 1024 * 1024

    db.init_app(app)
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    registry = ClientRegistry(app.config)
    app.extensions[EXTENSION_KEY] = registry
    atexit.register(registry.close)

    @app.errorhandler(CertdeskError)
    def handle_certdesk_error(exc: CertdeskError):
        db.session.rollback()
        if exc.status_code >= 500:
            app.logger.error("[API-ERROR] %s: %s", type(exc).__name__, exc)
            return jsonify({"error": exc.public_message}), exc.status_code
        return jsonify({"error": exc.message}), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        db.session.rollback()
        app.logger.exception("[API-ERROR] unexpected")
        return jsonify({"error": "Internal server error"}), 500

    @app.get("/health")
    def health():
        return jsonify({"status": "ok"}), 200

    from .routes.artifacts import bp as artifacts_bp
    from .routes.submissions import bp as submissions_bp

    app.register_blueprint(submissions_bp)
    app.register_blueprint(artifacts_bp)

    with app.app_context():
        if not app.config.get("FLASK_SKIP_SCHEMA") and not os.getenv("FLASK_SKIP_SCHEMA"):
            ensure_schema_safely()

    return app


def ensure_schema_safely() -> None:
    """Create or extend the submissions table; failures are logged, not raised."""

    from .shared.schema import ensure_submission_schema

    try:
        changes = ensure_submission_schema(db.engine)
        if changes:
            logging.info("Schema updated: %s", ", ".join(changes))
    except Exception:
        logging.exception("ensure_schema_safely failed")
