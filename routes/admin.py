"""Administrator actions: status transitions, automated classification, dashboard stats."""
from flask import Blueprint, abort, current_app, jsonify, request
from flask_login import current_user
from flask_wtf import FlaskForm
from sqlalchemy.exc import SQLAlchemyError
from wtforms import SelectField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from extensions import db
from models import COMPLAINT_PRIORITIES, COMPLAINT_STATUSES, Complaint
from utils.ai_classifier import AIClassificationError, classify_complaint
from utils.complaint_lifecycle import apply_classification, change_status, complaint_stats
from utils.decorators import admin_required
from utils.security import sanitize_input
from utils.status_taxonomy import InvalidStatusTransition

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


class StatusUpdateForm(FlaskForm):
    status = SelectField(
        "Status",
        choices=[(s, s.replace("_", " ")) for s in COMPLAINT_STATUSES],
        validators=[DataRequired()],
    )
    remarks = TextAreaField("Remarks", validators=[Optional(), Length(max=1000)])


def _complaint_or_404(complaint_id) -> Complaint:
    complaint = db.session.get(Complaint, str(complaint_id))
    if complaint is None:
        abort(404)
    return complaint


@admin_bp.route("/complaints", methods=["GET"])
@admin_required
def list_complaints():
    filters = sanitize_input(request.args)
    try:
        page = max(1, int(filters.get("page", 1)))
    except (TypeError, ValueError):
        page = 1
    per_page = max(1, min(int(current_app.config.get("COMPLAINTS_PER_PAGE", 20)), 100))

    query = Complaint.query
    if filters.get("status") in COMPLAINT_STATUSES:
        query = query.filter(Complaint.status == filters["status"])
    if filters.get("priority") in COMPLAINT_PRIORITIES:
        query = query.filter(Complaint.priority == filters["priority"])
    search = (request.args.get("q") or "").strip()
    if search:
        query = query.filter(
            db.or_(Complaint.title.ilike(f"%{search}%"), Complaint.reference_code.ilike(f"%{search}%"))
        )

    pagination = query.order_by(Complaint.created_at.desc()).paginate(page=page, per_page=per_page, error_out=False)
    return jsonify(
        {
            "complaints": [c.to_dict() for c in pagination.items],
            "page": pagination.page,
            "pages": pagination.pages,
            "total": pagination.total,
        }
    )


@admin_bp.route("/complaints/<string:complaint_id>/status", methods=["POST"])
@admin_required
def update_status(complaint_id):
    complaint = _complaint_or_404(complaint_id)
    form = StatusUpdateForm()
    if not form.validate_on_submit():
        return jsonify({"error": "Invalid status", "fields": form.errors}), 400

    try:
        complaint, dispatch = change_status(complaint, form.status.data, actor=current_user, remarks=form.remarks.data)
    except InvalidStatusTransition as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 409
    except SQLAlchemyError:
        return jsonify({"error": "Failed to update status"}), 500

    return jsonify(
        {
            "complaint": complaint.to_dict(),
            "notification": dispatch.as_dict() if dispatch else None,
            "message": f"Complaint status changed to {complaint.status.replace('_', ' ')}",
        }
    )


@admin_bp.route("/complaints/<string:complaint_id>/classify", methods=["POST"])
@admin_required
def classify(complaint_id):
    complaint = _complaint_or_404(complaint_id)
    try:
        classification = classify_complaint(complaint.title, complaint.description, complaint.language)
        complaint, dispatch = apply_classification(complaint, classification)
    except AIClassificationError as exc:
        current_app.logger.warning("Complaint classification failed", extra={"complaint_id": str(complaint.id), "error": str(exc)})
        return jsonify({"error": str(exc)}), 502
    except InvalidStatusTransition as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 409
    except SQLAlchemyError:
        return jsonify({"error": "Failed to store classification"}), 500

    return jsonify({"complaint": complaint.to_dict(), "notification": dispatch.as_dict() if dispatch else None})


@admin_bp.route("/stats", methods=["GET"])
@admin_required
def stats():
    return jsonify(complaint_stats())
