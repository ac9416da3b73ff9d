"""Blueprint registration and service-level routes."""
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from utils.email_service import get_email_channel
from .admin import admin_bp
from .complaints import complaints_bp
from .notifications import notifications_bp

main_bp = Blueprint("main", __name__)


@main_bp.route("/health", methods=["GET"])
def health():
    database_ok = True
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        db.session.rollback()
        database_ok = False
    return (
        jsonify(
            {
                "status": "ok" if database_ok else "degraded",
                "database": database_ok,
                "email_channel": get_email_channel().is_configured,
            }
        ),
        200 if database_ok else 503,
    )


__all__ = ["main_bp", "admin_bp", "complaints_bp", "notifications_bp"]
