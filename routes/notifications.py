"""Signed-in user's notification inbox."""
from flask import Blueprint, abort, current_app, jsonify, request
from flask_login import current_user, login_required

from utils.notification_inbox import mark_all_read, mark_read, notifications_for, unread_count

notifications_bp = Blueprint("notifications", __name__, url_prefix="/notifications")


@notifications_bp.route("/", methods=["GET"])
@login_required
def list_notifications():
    limit = int(current_app.config.get("NOTIFICATIONS_PAGE_SIZE", 50))
    unread_only = (request.args.get("unread") or "").lower() in {"1", "true", "yes"}
    items = notifications_for(current_user.id, limit=limit, unread_only=unread_only)
    return jsonify({"notifications": [n.to_dict() for n in items], "unread": unread_count(current_user.id)})


@notifications_bp.route("/<string:notification_id>/read", methods=["POST"])
@login_required
def read_notification(notification_id):
    notification = mark_read(current_user.id, notification_id)
    if notification is None:
        abort(404)
    return jsonify(notification.to_dict())


@notifications_bp.route("/read-all", methods=["POST"])
@login_required
def read_all():
    return jsonify({"updated": mark_all_read(current_user.id)})
