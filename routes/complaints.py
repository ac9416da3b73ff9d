"""Citizen complaint intake and tracking blueprint."""
from flask import Blueprint, abort, current_app, jsonify, request
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from sqlalchemy.exc import SQLAlchemyError
from wtforms import SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from models import (
    COMPLAINT_CATEGORIES,
    COMPLAINT_LANGUAGES,
    COMPLAINT_PRIORITIES,
    COMPLAINT_STATUSES,
    Complaint,
)
from utils.complaint_lifecycle import (
    ComplaintValidationError,
    complaint_timeline,
    create_complaint,
    find_by_reference,
)
from utils.security import sanitize_input

complaints_bp = Blueprint("complaints", __name__, url_prefix="/complaints")

MAX_ATTACHMENTS = 10


class ComplaintSubmitForm(FlaskForm):
    title = StringField("Title", validators=[DataRequired(), Length(max=255)])
    description = TextAreaField("Description", validators=[DataRequired(), Length(max=5000)])
    category = SelectField(
        "Category",
        choices=[(c, c) for c in COMPLAINT_CATEGORIES],
        validators=[DataRequired()],
    )
    priority = SelectField(
        "Priority",
        choices=[(p, p.title()) for p in COMPLAINT_PRIORITIES],
        default="MEDIUM",
    )
    language = SelectField(
        "Language",
        choices=[(lang, lang) for lang in COMPLAINT_LANGUAGES],
        default="English",
    )
    location = StringField("Location", validators=[Optional(), Length(max=500)])


def _attachment_refs(payload) -> list[str]:
    refs = payload.get("attachments") if isinstance(payload, dict) else None
    if not isinstance(refs, list):
        return []
    return [str(ref) for ref in refs if isinstance(ref, str) and ref.strip()][:MAX_ATTACHMENTS]


def _can_view(complaint: Complaint) -> bool:
    return str(complaint.user_id) == str(current_user.id) or current_user.is_admin


@complaints_bp.route("/", methods=["POST"])
@login_required
def submit_complaint():
    form = ComplaintSubmitForm()
    if not form.validate_on_submit():
        return jsonify({"error": "Please fill in all required fields", "fields": form.errors}), 400

    try:
        complaint, dispatch = create_complaint(
            current_user,
            title=form.title.data,
            description=form.description.data,
            category=form.category.data,
            priority=form.priority.data or "MEDIUM",
            location=form.location.data,
            language=form.language.data,
            attachments=_attachment_refs(request.get_json(silent=True) or {}),
        )
    except ComplaintValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except SQLAlchemyError:
        return jsonify({"error": "Unable to save complaint. Please retry."}), 500

    return (
        jsonify(
            {
                "complaint": complaint.to_dict(),
                "notification": dispatch.as_dict() if dispatch else None,
                "message": f"Your complaint ID is {complaint.reference_code}. Track it anytime.",
            }
        ),
        201,
    )


@complaints_bp.route("/", methods=["GET"])
@login_required
def list_my_complaints():
    filters = sanitize_input(request.args)
    try:
        page = int(filters.get("page", 1))
    except (TypeError, ValueError):
        page = 1
    page = 1 if page < 1 else page
    per_page = max(1, min(int(current_app.config.get("COMPLAINTS_PER_PAGE", 20)), 50))

    query = Complaint.query.filter_by(user_id=current_user.id)
    status_filter = filters.get("status")
    if status_filter and status_filter in COMPLAINT_STATUSES:
        query = query.filter(Complaint.status == status_filter)

    pagination = query.order_by(Complaint.created_at.desc()).paginate(page=page, per_page=per_page, error_out=False)
    return jsonify(
        {
            "complaints": [c.to_dict() for c in pagination.items],
            "page": pagination.page,
            "pages": pagination.pages,
            "total": pagination.total,
        }
    )


@complaints_bp.route("/track/<string:reference_code>", methods=["GET"])
@login_required
def track_complaint(reference_code):
    complaint = find_by_reference(reference_code)
    if complaint is None:
        abort(404)
    if not _can_view(complaint):
        abort(403)
    return jsonify({"complaint": complaint.to_dict(), "timeline": complaint_timeline(complaint)})
