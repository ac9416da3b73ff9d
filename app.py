"""Flask application factory for the JanConnect+ grievance service."""
import os
from typing import Optional

import click
from flask import Flask, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from dotenv import load_dotenv

from extensions import csrf, db, migrate, login_manager
from utils.email_service import EmailChannel, EmailSettings
from utils.logger import init_logging
from utils.security import apply_security_headers


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(400)
    def bad_request(error):
        app.logger.warning("400 Bad Request", extra={"path": request.path, "method": request.method})
        return jsonify({"error": "Bad request"}), 400

    @app.errorhandler(403)
    def forbidden(error):
        app.logger.warning("403 Forbidden", extra={"path": request.path, "method": request.method})
        return jsonify({"error": "Forbidden"}), 403

    @app.errorhandler(404)
    def not_found_error(error):
        app.logger.warning("404 Not Found", extra={"path": request.path, "method": request.method})
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception("500 Internal Server Error")
        return jsonify({"error": "Internal server error"}), 500


def ensure_default_roles_and_admin(app: Flask) -> None:
    """Ensure baseline roles exist and a default admin account is present."""
    from models import ADMIN_ROLE_NAME, Role, User  # Local import to avoid circular dependency

    default_roles = [
        ("Citizen", "Default role for citizens filing grievances"),
        (ADMIN_ROLE_NAME, "Platform administrator notified of every complaint status change"),
    ]

    role_cache: dict[str, Role] = {}
    for name, description in default_roles:
        role_cache[name] = Role.get_or_create(name, description=description)

    admin_email = (app.config.get("DEFAULT_ADMIN_EMAIL") or "").lower().strip()
    admin_password = app.config.get("DEFAULT_ADMIN_PASSWORD") or ""
    if not admin_email or not admin_password:
        return

    admin_role = role_cache[ADMIN_ROLE_NAME]
    admin_user = User.query.filter_by(email=admin_email).first()

    if admin_user:
        if admin_user.role != admin_role or not admin_user.is_active:
            admin_user.role = admin_role
            admin_user.is_active = True
            db.session.commit()
        return

    admin_user = User(full_name="System Administrator", email=admin_email, role=admin_role, is_active=True)
    admin_user.set_password(admin_password)
    db.session.add(admin_user)
    db.session.commit()


def register_cli(app: Flask) -> None:
    @app.cli.command("complaint-set-status")
    @click.argument("reference_code")
    @click.argument("status")
    @click.option("--remarks", default=None, help="Remarks stored in the status history.")
    def complaint_set_status(reference_code, status, remarks):
        """Transition a complaint by reference code and dispatch its notifications."""
        from utils.complaint_lifecycle import change_status, find_by_reference
        from utils.notification_errors import ConfigurationError
        from utils.status_taxonomy import InvalidStatusTransition

        complaint = find_by_reference(reference_code)
        if complaint is None:
            raise click.ClickException(f"No complaint with reference {reference_code}")
        try:
            complaint, dispatch = change_status(complaint, status, remarks=remarks or "Updated from CLI")
        except (InvalidStatusTransition, ConfigurationError) as exc:
            db.session.rollback()
            raise click.ClickException(str(exc)) from exc
        click.echo(f"{complaint.reference_code} -> {complaint.status}")
        if dispatch:
            click.echo(
                f"notified={dispatch.recipients_notified} "
                f"email_attempted={dispatch.email_attempted} email_succeeded={dispatch.email_succeeded} "
                f"failures={len(dispatch.failures)}"
            )


def create_app(config_name: Optional[str] = None, overrides: Optional[dict] = None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    # Resolve configuration
    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())

    # Optional instance-specific overrides
    app.config.from_pyfile("config.py", silent=True)
    if overrides:
        app.config.update(overrides)
    os.makedirs(app.instance_path, exist_ok=True)

    # Initialize logging early
    logger = init_logging(app)
    app.logger = logger

    # Initialize extensions
    csrf.init_app(app)
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.session_protection = "strong"

    @login_manager.user_loader
    def load_user(user_id):
        from models import User  # Local import to avoid circular dependency

        if not user_id:
            return None
        return db.session.get(User, str(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Authentication required"}), 401

    # Email credentials are read once; the channel keeps that decision for the app's lifetime.
    app.extensions["email_channel"] = EmailChannel(EmailSettings.from_config(app.config))

    # Blueprints
    from routes import admin_bp, complaints_bp, main_bp, notifications_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(complaints_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(notifications_bp)

    register_cli(app)
    register_error_handlers(app)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    # Ensure tables exist so first run creates the database structure automatically.
    with app.app_context():
        try:
            db.create_all()
            ensure_default_roles_and_admin(app)
        except SQLAlchemyError:
            app.logger.exception("Database bootstrap failed")
            raise

    app.logger.info(
        "Application ready",
        extra={"config": config_class.__name__, "email_channel": app.extensions["email_channel"].is_configured},
    )
    return app
