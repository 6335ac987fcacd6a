from typing import List

import structlog

from ..models.badge import Badge, Notification
from ..models.enums import BadgeRequirement
from ..repositories.badge_repository import BadgeRepository
from ..repositories.course_repository import CourseRepository
from ..repositories.quiz_repository import QuizRepository

logger = structlog.get_logger(__name__)


class BadgeService:

    def __init__(self, badge_repo: BadgeRepository, course_repo: CourseRepository, quiz_repo: QuizRepository):
        self.badge_repo = badge_repo
        self.course_repo = course_repo
        self.quiz_repo = quiz_repo

    def check_and_award(self, student_id: str) -> List[Badge]:
        progress = {
            BadgeRequirement.VIDEOS_COMPLETED.value: self.course_repo.count_all_completed_videos(student_id),
            BadgeRequirement.QUIZZES_PASSED.value: self.quiz_repo.count_passed_attempts(student_id),
        }
        earned = self.badge_repo.get_earned_badge_ids(student_id)

        awarded = []
        for badge in self.badge_repo.get_all():
            if badge.id in earned:
                continue
            if progress.get(badge.requirement_type, 0) < badge.requirement_count:
                continue

            notification = Notification(
                user_id=student_id,
                title="🎉 Nouveau badge débloqué!",
                message=f'Vous avez obtenu le badge "{badge.name}": {badge.description or ""}',
                type="badge",
                link="/espace-formation",
            )
            if self.badge_repo.award(student_id, badge, notification):
                awarded.append(badge)

        if awarded:
            logger.info("badges_awarded", student_id=student_id, badge_ids=[b.id for b in awarded])
        return awarded
