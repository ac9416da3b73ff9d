"""Core data models for accounts, complaints, status history, and notifications."""
import uuid
from datetime import datetime

from flask_login import UserMixin
from sqlalchemy import event
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db
from utils.status_taxonomy import ComplaintStatus


def generate_uuid() -> str:
	return str(uuid.uuid4())


def _sql_in(column: str, values) -> str:
	quoted = ",".join(f"'{value}'" for value in values)
	return f"{column} IN ({quoted})"


COMPLAINT_CATEGORIES: tuple[str, ...] = (
	"Road & Transport",
	"Water Supply",
	"Electricity",
	"Sanitation",
	"Public Health",
	"Education",
	"Housing",
	"Law & Order",
	"Environment",
	"Other",
)

COMPLAINT_PRIORITIES: tuple[str, ...] = (
	"LOW",
	"MEDIUM",
	"HIGH",
	"CRITICAL",
)

COMPLAINT_STATUSES: tuple[str, ...] = tuple(status.value for status in ComplaintStatus)

COMPLAINT_LANGUAGES: tuple[str, ...] = (
	"English",
	"Hindi",
	"Tamil",
	"Telugu",
	"Bengali",
	"Marathi",
	"Gujarati",
	"Kannada",
	"Malayalam",
	"Punjabi",
	"Odia",
	"Urdu",
)

NOTIFICATION_TYPES: tuple[str, ...] = (
	"IN_APP",
	"EMAIL",
)

ADMIN_ROLE_NAME = "Admin"


class Role(db.Model):
	__tablename__ = "roles"

	id = db.Column(db.Integer, primary_key=True)
	name = db.Column(db.String(50), unique=True, nullable=False, index=True)
	description = db.Column(db.String(255), nullable=True)

	users = db.relationship("User", back_populates="role", lazy="dynamic")

	@staticmethod
	def get_or_create(name: str, description: str = ""):
		role = Role.query.filter_by(name=name).first()
		if role:
			return role
		role = Role(name=name, description=description)
		db.session.add(role)
		db.session.commit()
		return role


class User(UserMixin, db.Model):
	__tablename__ = "users"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	full_name = db.Column(db.String(150), nullable=True)
	email = db.Column(db.String(255), unique=True, nullable=True, index=True)
	password_hash = db.Column(db.String(255), nullable=True)
	role_id = db.Column(db.Integer, db.ForeignKey("roles.id"), nullable=False)
	is_active = db.Column(db.Boolean, default=True, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	role = db.relationship("Role", back_populates="users")
	audit_logs = db.relationship("AuditLog", back_populates="user", lazy="dynamic")
	complaints = db.relationship("Complaint", back_populates="user", lazy="dynamic")
	notifications = db.relationship("Notification", back_populates="user", lazy="dynamic")

	def set_password(self, password: str) -> None:
		self.password_hash = generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)

	def check_password(self, password: str) -> bool:
		return bool(self.password_hash) and check_password_hash(self.password_hash, password)

	@property
	def is_admin(self) -> bool:
		return bool(self.role and self.role.name.lower() == ADMIN_ROLE_NAME.lower())

	@property
	def active(self) -> bool:  # Flask-Login compatibility alias
		return self.is_active


class AuditLog(db.Model):
	__tablename__ = "audit_logs"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
	action_type = db.Column(db.String(50), nullable=False)
	ip_address = db.Column(db.String(64), nullable=True)
	user_agent = db.Column(db.String(255), nullable=True)
	context_entity = db.Column(db.String(120), nullable=True)
	timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	user = db.relationship("User", back_populates="audit_logs")


class ComplaintSequence(db.Model):
	"""Per-year counter backing the JC-<year>-<sequence> reference codes."""

	__tablename__ = "complaint_sequences"

	year = db.Column(db.Integer, primary_key=True, autoincrement=False)
	last_value = db.Column(db.Integer, nullable=False, default=0)


class Complaint(db.Model):
	__tablename__ = "complaints"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	reference_code = db.Column(db.String(32), unique=True, nullable=False, index=True)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	title = db.Column(db.String(255), nullable=False)
	description = db.Column(db.Text, nullable=False)
	category = db.Column(db.String(50), nullable=False, index=True)
	priority = db.Column(db.String(20), nullable=False, default="MEDIUM", index=True)
	status = db.Column(db.String(20), nullable=False, default=ComplaintStatus.SUBMITTED.value, index=True)
	location = db.Column(db.String(500), nullable=True)
	language = db.Column(db.String(32), nullable=True, default="English")
	attachments = db.Column(db.JSON, nullable=True)
	ai_classification = db.Column(db.JSON, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	updated_at = db.Column(
		db.DateTime,
		default=datetime.utcnow,
		onupdate=datetime.utcnow,
		nullable=False,
		index=True,
	)

	__table_args__ = (
		db.CheckConstraint(_sql_in("status", COMPLAINT_STATUSES), name="ck_complaint_status_valid"),
		db.CheckConstraint(_sql_in("priority", COMPLAINT_PRIORITIES), name="ck_complaint_priority_valid"),
		db.CheckConstraint(_sql_in("category", COMPLAINT_CATEGORIES), name="ck_complaint_category_valid"),
		db.Index("ix_complaint_user_created", "user_id", "created_at"),
	)

	user = db.relationship("User", back_populates="complaints")
	status_history = db.relationship(
		"ComplaintStatusHistory",
		back_populates="complaint",
		order_by="ComplaintStatusHistory.changed_at",
		cascade="all, delete-orphan",
	)
	notifications = db.relationship("Notification", back_populates="complaint", lazy="dynamic")

	@property
	def is_terminal(self) -> bool:
		return ComplaintStatus(self.status).is_terminal

	def to_dict(self) -> dict:
		return {
			"id": str(self.id),
			"reference_code": self.reference_code,
			"title": self.title,
			"description": self.description,
			"category": self.category,
			"priority": self.priority,
			"status": self.status,
			"location": self.location,
			"language": self.language,
			"attachments": list(self.attachments or []),
			"ai_classification": self.ai_classification,
			"created_at": self.created_at.isoformat() if self.created_at else None,
			"updated_at": self.updated_at.isoformat() if self.updated_at else None,
		}


@event.listens_for(Complaint.reference_code, "set", active_history=True)
def _freeze_reference_code(target, value, oldvalue, initiator):
	if isinstance(oldvalue, str) and oldvalue and value != oldvalue:
		raise ValueError("Complaint reference code is immutable once assigned")


class ComplaintStatusHistory(db.Model):
	__tablename__ = "complaint_status_history"

	id = db.Column(db.Integer, primary_key=True)
	complaint_id = db.Column(db.String(36), db.ForeignKey("complaints.id"), nullable=False, index=True)
	previous_status = db.Column(db.String(20), nullable=True)
	new_status = db.Column(db.String(20), nullable=False, index=True)
	remarks = db.Column(db.Text, nullable=True)
	changed_by = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=True)
	changed_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(_sql_in("new_status", COMPLAINT_STATUSES), name="ck_complaint_status_history_valid"),
	)

	complaint = db.relationship("Complaint", back_populates="status_history")
	actor = db.relationship("User")

	def to_dict(self) -> dict:
		return {
			"previous_status": self.previous_status,
			"new_status": self.new_status,
			"remarks": self.remarks,
			"changed_at": self.changed_at.isoformat() if self.changed_at else None,
		}


class Notification(db.Model):
	__tablename__ = "notifications"

	id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
	user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
	complaint_id = db.Column(db.String(36), db.ForeignKey("complaints.id"), nullable=False, index=True)
	event_id = db.Column(db.String(36), nullable=True, index=True)
	title = db.Column(db.String(400), nullable=False)
	message = db.Column(db.Text, nullable=False)
	type = db.Column(db.String(20), nullable=False, default="IN_APP", index=True)
	is_read = db.Column(db.Boolean, nullable=False, default=False)
	sent_at = db.Column(db.DateTime, nullable=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	__table_args__ = (
		db.CheckConstraint(_sql_in("type", NOTIFICATION_TYPES), name="ck_notification_type"),
		db.Index("ix_notification_user_created", "user_id", "created_at"),
	)

	user = db.relationship("User", back_populates="notifications")
	complaint = db.relationship("Complaint", back_populates="notifications")

	def to_dict(self) -> dict:
		return {
			"id": str(self.id),
			"complaint_id": str(self.complaint_id),
			"reference_code": self.complaint.reference_code if self.complaint else None,
			"title": self.title,
			"message": self.message,
			"type": self.type,
			"is_read": self.is_read,
			"sent_at": self.sent_at.isoformat() if self.sent_at else None,
			"created_at": self.created_at.isoformat() if self.created_at else None,
		}
