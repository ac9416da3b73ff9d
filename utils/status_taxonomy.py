"""Complaint lifecycle states, permitted transitions, and the status/role message table."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, FrozenSet, Mapping, Tuple

from utils.notification_errors import ConfigurationError

logger = logging.getLogger(__name__)


class ComplaintStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    AI_PROCESSED = "AI_PROCESSED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class RecipientRole(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"


class InvalidStatusTransition(ValueError):
    """Raised when a complaint cannot move from its current status to the requested one."""


FORWARD_CHAIN: Tuple[ComplaintStatus, ...] = (
    ComplaintStatus.SUBMITTED,
    ComplaintStatus.AI_PROCESSED,
    ComplaintStatus.ASSIGNED,
    ComplaintStatus.IN_PROGRESS,
    ComplaintStatus.RESOLVED,
)

TERMINAL_STATUSES: FrozenSet[ComplaintStatus] = frozenset({ComplaintStatus.RESOLVED, ComplaintStatus.REJECTED})

PENDING_STATUSES: FrozenSet[ComplaintStatus] = frozenset(
    {ComplaintStatus.SUBMITTED, ComplaintStatus.AI_PROCESSED, ComplaintStatus.ASSIGNED}
)


def _build_transitions() -> Dict[ComplaintStatus, FrozenSet[ComplaintStatus]]:
    # Any later step of the forward chain is reachable (admins may skip classification);
    # REJECTED is reachable from every non-terminal state.
    transitions: Dict[ComplaintStatus, FrozenSet[ComplaintStatus]] = {}
    for index, status in enumerate(FORWARD_CHAIN):
        if status in TERMINAL_STATUSES:
            transitions[status] = frozenset()
            continue
        transitions[status] = frozenset(FORWARD_CHAIN[index + 1 :]) | {ComplaintStatus.REJECTED}
    transitions[ComplaintStatus.REJECTED] = frozenset()
    return transitions


ALLOWED_TRANSITIONS: Dict[ComplaintStatus, FrozenSet[ComplaintStatus]] = _build_transitions()


STATUS_MESSAGES: Dict[ComplaintStatus, Dict[RecipientRole, str]] = {
    ComplaintStatus.SUBMITTED: {
        RecipientRole.OWNER: "Your complaint has been submitted successfully. We will keep you informed at every step.",
        RecipientRole.ADMIN: "A new complaint has been submitted and requires attention for review.",
    },
    ComplaintStatus.AI_PROCESSED: {
        RecipientRole.OWNER: "Your complaint has been analysed and classified. It will be routed to the relevant department shortly.",
        RecipientRole.ADMIN: "A complaint has been classified automatically and requires attention for assignment.",
    },
    ComplaintStatus.ASSIGNED: {
        RecipientRole.OWNER: "Your complaint has been assigned to the relevant department.",
        RecipientRole.ADMIN: "A complaint has been assigned and requires attention from the responsible department.",
    },
    ComplaintStatus.IN_PROGRESS: {
        RecipientRole.OWNER: "Good news! Work has started on resolving your complaint.",
        RecipientRole.ADMIN: "A complaint is now in progress and requires attention until it is resolved.",
    },
    ComplaintStatus.RESOLVED: {
        RecipientRole.OWNER: "Your complaint has been resolved. Thank you for your patience.",
        RecipientRole.ADMIN: "A complaint has been marked resolved. Please verify the resolution with the department.",
    },
    ComplaintStatus.REJECTED: {
        RecipientRole.OWNER: "Your complaint could not be processed. Please contact support for more information.",
        RecipientRole.ADMIN: "A complaint has been rejected. Please confirm the citizen was given a reason.",
    },
}

_FALLBACK_MESSAGES: Dict[RecipientRole, str] = {
    RecipientRole.OWNER: "Your complaint status has been updated to {label}.",
    RecipientRole.ADMIN: "A complaint status has been updated to {label} and requires attention.",
}


def validate_message_table(table: Mapping[ComplaintStatus, Mapping[RecipientRole, str]] = STATUS_MESSAGES) -> None:
    """Fail fast unless every status has a non-empty body for every role."""
    missing = []
    for status in ComplaintStatus:
        variants = table.get(status) or {}
        for role in RecipientRole:
            if not (variants.get(role) or "").strip():
                missing.append(f"{status.value}/{role.value}")
    if missing:
        logger.critical("Notification message table incomplete", extra={"missing": missing})
        raise ConfigurationError(f"Missing notification message variants: {', '.join(missing)}")


def coerce_status(value) -> ComplaintStatus:
    if isinstance(value, ComplaintStatus):
        return value
    try:
        return ComplaintStatus(str(value or "").strip().upper())
    except ValueError as exc:
        raise ConfigurationError(f"Unknown complaint status: {value!r}") from exc


def coerce_role(value) -> RecipientRole:
    if isinstance(value, RecipientRole):
        return value
    try:
        return RecipientRole(str(value or "").strip().upper())
    except ValueError as exc:
        raise ConfigurationError(f"Unknown recipient role: {value!r}") from exc


def status_label(value) -> str:
    if isinstance(value, ComplaintStatus):
        return value.label
    return str(value or "").strip().upper().replace("_", " ")


def message_for(status, role, *, allow_fallback: bool = False) -> Tuple[str, str]:
    """Return ``(status words, body)`` for a status and recipient role.

    Unknown statuses raise ``ConfigurationError`` unless ``allow_fallback`` is set,
    in which case a generic body is returned and the event is logged as unexpected.
    """
    recipient_role = coerce_role(role)
    try:
        resolved = coerce_status(status)
    except ConfigurationError:
        if not allow_fallback:
            logger.error("Notification requested for unknown status", extra={"status": status})
            raise
        label = status_label(status)
        logger.warning("Using fallback notification text for unexpected status", extra={"status": status})
        return label, _FALLBACK_MESSAGES[recipient_role].format(label=label)

    variants = STATUS_MESSAGES.get(resolved) or {}
    body = variants.get(recipient_role)
    if not body:
        raise ConfigurationError(f"No {recipient_role.value} message for status {resolved.value}")
    return resolved.label, body


def can_transition(current, new) -> bool:
    return coerce_status(new) in ALLOWED_TRANSITIONS[coerce_status(current)]


def validate_transition(current, new) -> ComplaintStatus:
    source = coerce_status(current)
    target = coerce_status(new)
    if source.is_terminal:
        raise InvalidStatusTransition(f"Complaint is already {source.value} and cannot change status")
    if target not in ALLOWED_TRANSITIONS[source]:
        raise InvalidStatusTransition(f"Cannot move complaint from {source.value} to {target.value}")
    return target


validate_message_table()
