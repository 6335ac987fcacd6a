from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from ..exceptions import CourseNotFoundError
from ..models.certificate import Certificate
from ..repositories.certificate_repository import CertificateRepository
from ..repositories.course_repository import CourseRepository
from ..repositories.quiz_repository import QuizRepository
from ..utils.time_utils import format_completion_date, utcnow
from .certificate_renderer import CertificateRenderer

logger = structlog.get_logger(__name__)


class CompletionStatus(str, Enum):
    ISSUED = "issued"
    ALREADY_ISSUED = "already_issued"
    NO_VIDEOS = "no_videos"
    NO_QUIZZES = "no_quizzes"
    INCOMPLETE = "incomplete"
    NOT_CERTIFYING = "not_certifying"
    PROFILE_MISSING = "profile_missing"


@dataclass
class CompletionResult:
    status: CompletionStatus
    videos_completed: int = 0
    videos_total: int = 0
    quizzes_passed: int = 0
    quizzes_total: int = 0
    certificate: Optional[Certificate] = None

    @property
    def issued(self) -> bool:
        return self.status == CompletionStatus.ISSUED


class CourseCompletionEvaluator:
    """
    Decides whether a student finished a course and issues its certificate once.

    A course with no videos, or no quizzes, is never evaluated as complete:
    the evaluation stops early without a determination.
    """

    def __init__(self, course_repo: CourseRepository, quiz_repo: QuizRepository,
                 certificate_repo: CertificateRepository, renderer: CertificateRenderer):
        self.course_repo = course_repo
        self.quiz_repo = quiz_repo
        self.certificate_repo = certificate_repo
        self.renderer = renderer

    async def evaluate(self, course_id: str, student_id: str) -> CompletionResult:
        course = self.course_repo.get(course_id)
        if not course:
            raise CourseNotFoundError(course_id)

        video_ids = self.course_repo.get_video_ids(course_id)
        if not video_ids:
            return CompletionResult(status=CompletionStatus.NO_VIDEOS)
        videos_completed = self.course_repo.count_completed_videos(student_id, video_ids)

        quiz_ids = self.quiz_repo.get_quiz_ids_for_course(course_id)
        if not quiz_ids:
            return CompletionResult(
                status=CompletionStatus.NO_QUIZZES,
                videos_completed=videos_completed,
                videos_total=len(video_ids),
            )
        quizzes_passed = self.quiz_repo.count_passed_quizzes(student_id, quiz_ids)

        progress = dict(
            videos_completed=videos_completed,
            videos_total=len(video_ids),
            quizzes_passed=quizzes_passed,
            quizzes_total=len(quiz_ids),
        )

        if videos_completed != len(video_ids) or quizzes_passed != len(quiz_ids):
            return CompletionResult(status=CompletionStatus.INCOMPLETE, **progress)

        if not course.is_certifying:
            return CompletionResult(status=CompletionStatus.NOT_CERTIFYING, **progress)

        existing = self.certificate_repo.get_for_student(student_id, course_id)
        if existing:
            return CompletionResult(status=CompletionStatus.ALREADY_ISSUED, certificate=existing, **progress)

        profile = self.course_repo.get_profile(student_id)
        if not profile:
            logger.warning("certificate_skipped_no_profile", course_id=course_id, student_id=student_id)
            return CompletionResult(status=CompletionStatus.PROFILE_MISSING, **progress)

        certificate_url = await self.renderer.generate(
            profile.full_name,
            course.title,
            format_completion_date(utcnow()),
        )
        try:
            certificate, created = self.certificate_repo.create_if_absent(student_id, course_id, certificate_url)
        except Exception:
            self.renderer.discard(certificate_url)
            raise

        if not created:
            # A concurrent evaluation recorded its own file first.
            self.renderer.discard(certificate_url)
            return CompletionResult(status=CompletionStatus.ALREADY_ISSUED, certificate=certificate, **progress)

        logger.info("certificate_issued", course_id=course_id, student_id=student_id, certificate_id=certificate.id)
        return CompletionResult(status=CompletionStatus.ISSUED, certificate=certificate, **progress)
