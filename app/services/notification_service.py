"""
Notification Service for ChapterHub.

In-app notifications for:
- Awards earned
- Milestones reached
- Incentive submissions reviewed

Notifications are best-effort. A failure to write one is logged and
swallowed so it never fails the award or calculation that triggered it.
Callers must commit their own work before notifying.
"""
from typing import Optional
from flask import current_app

from ..extensions import db
from ..models.notification import Notification


class NotificationService:
    """Writes Notification rows for members."""

    def notify(
        self,
        member_id: int,
        title: str,
        message: str,
        notification_type: str = 'info'
    ) -> Optional[int]:
        """
        Record a notification for a member.

        Returns:
            Notification id, or None when the write failed
        """
        try:
            notification = Notification(
                member_id=member_id,
                title=title,
                message=message,
                notification_type=notification_type,
            )
            db.session.add(notification)
            db.session.commit()
            return notification.id
        except Exception as e:
            db.session.rollback()
            current_app.logger.warning(f"Notification to member {member_id} failed: {e}")
            return None


# Singleton instance
notification_service = NotificationService()
