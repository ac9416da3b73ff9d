"""Read side of the notifications table for the signed-in user."""
from typing import List, Optional

from extensions import db
from models import Notification


def notifications_for(user_id: str, limit: int = 50, unread_only: bool = False) -> List[Notification]:
    query = Notification.query.filter(Notification.user_id == str(user_id))
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(max(1, min(limit, 200))).all()


def unread_count(user_id: str) -> int:
    return Notification.query.filter(Notification.user_id == str(user_id), Notification.is_read.is_(False)).count()


def mark_read(user_id: str, notification_id: str) -> Optional[Notification]:
    notification = Notification.query.filter(
        Notification.id == str(notification_id),
        Notification.user_id == str(user_id),
    ).first()
    if notification is None:
        return None
    if not notification.is_read:
        notification.is_read = True
        db.session.commit()
    return notification


def mark_all_read(user_id: str) -> int:
    updated = (
        Notification.query.filter(Notification.user_id == str(user_id), Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.session.commit()
    return updated
