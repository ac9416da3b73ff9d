"""Recipients of a complaint status notification: the owning citizen plus every administrator."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, List, Tuple

from sqlalchemy import func

from extensions import db
from models import ADMIN_ROLE_NAME, Complaint, Role, User
from utils.status_taxonomy import RecipientRole


@dataclass(frozen=True)
class Audience:
    owner: str
    admins: FrozenSet[str] = field(default_factory=frozenset)

    def recipients(self) -> List[Tuple[str, RecipientRole]]:
        """Owner first with the OWNER role, then admins sorted, de-duplicated by identity."""
        ordered: List[Tuple[str, RecipientRole]] = [(self.owner, RecipientRole.OWNER)]
        for admin_id in sorted(self.admins):
            if admin_id != self.owner:
                ordered.append((admin_id, RecipientRole.ADMIN))
        return ordered


def list_admin_ids() -> FrozenSet[str]:
    # Always queried at dispatch time; role membership may change between events.
    rows = (
        db.session.query(User.id)
        .join(Role, User.role_id == Role.id)
        .filter(func.lower(Role.name) == ADMIN_ROLE_NAME.lower(), User.is_active.is_(True))
        .all()
    )
    return frozenset(str(row[0]) for row in rows)


def resolve_audience(complaint: Complaint) -> Audience:
    return Audience(owner=str(complaint.user_id), admins=list_admin_ids())
