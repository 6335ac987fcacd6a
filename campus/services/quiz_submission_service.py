from dataclasses import dataclass, field
from typing import Dict, List

from ..exceptions import QuizNotFoundError
from ..models.badge import Badge
from ..models.quiz import QuizAttempt
from ..repositories.quiz_repository import QuizRepository
from .badge_service import BadgeService
from .course_completion_service import CompletionResult, CourseCompletionEvaluator
from .quiz_grading_service import QuizGradingEngine


@dataclass
class SubmissionOutcome:
    attempt: QuizAttempt
    completion: CompletionResult
    new_badges: List[Badge] = field(default_factory=list)


class QuizSubmissionService:
    """Grade, then evaluate course completion, then award badges."""

    def __init__(self, quiz_repo: QuizRepository, grading: QuizGradingEngine,
                 evaluator: CourseCompletionEvaluator, badges: BadgeService):
        self.quiz_repo = quiz_repo
        self.grading = grading
        self.evaluator = evaluator
        self.badges = badges

    async def submit(self, quiz_id: str, student_id: str, answers: Dict[str, str]) -> SubmissionOutcome:
        quiz = self.quiz_repo.get(quiz_id)
        if not quiz:
            raise QuizNotFoundError(quiz_id)

        attempt = await self.grading.submit_quiz(quiz_id, student_id, answers)
        completion = await self.evaluator.evaluate(quiz.course_id, student_id)
        new_badges = self.badges.check_and_award(student_id)
        return SubmissionOutcome(attempt=attempt, completion=completion, new_badges=new_badges)
