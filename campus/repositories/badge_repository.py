from typing import List, Set
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from ..models.badge import Badge, StudentBadge, Notification


class BadgeRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_all(self) -> List[Badge]:
        return self.session.query(Badge).all()

    def get_earned_badge_ids(self, student_id: str) -> Set[str]:
        rows = self.session.query(StudentBadge.badge_id).filter(StudentBadge.student_id == student_id).all()
        return {row.badge_id for row in rows}

    def award(self, student_id: str, badge: Badge, notification: Notification) -> bool:
        """Award one badge with its notification. False if it was already earned."""
        self.session.add(StudentBadge(student_id=student_id, badge_id=badge.id))
        self.session.add(notification)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            return False
        return True

    def get_notifications(self, user_id: str) -> List[Notification]:
        return (
            self.session.query(Notification)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .all()
        )
