from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

import structlog

from ..exceptions import ConfigurationError, QuizNotFoundError
from ..models.quiz import QuizAttempt, QuizQuestion
from ..repositories.quiz_repository import QuizRepository

logger = structlog.get_logger(__name__)


@dataclass
class GradeResult:
    earned_points: int
    total_points: int
    score: int
    correct_question_ids: List[str] = field(default_factory=list)


def round_half_up_percentage(earned: int, total: int) -> int:
    """round(100 * earned / total) with halves rounded up, in integer arithmetic."""
    return (200 * earned + total) // (2 * total)


def grade_answers(questions: Sequence[QuizQuestion], answers: Mapping[str, str]) -> GradeResult:
    """
    Score answers against a question bank.

    An answer earns the question's points only when it is exactly equal to the
    stored correct answer: case-sensitive, untrimmed, no numeric coercion.
    Unanswered questions still count toward the total.
    """
    earned = 0
    total = 0
    correct_ids = []

    for question in questions:
        if question.points is None or question.points <= 0:
            raise ConfigurationError(
                "Question points must be positive",
                error_code="INVALID_QUESTION_POINTS",
                details={"question_id": question.id, "points": question.points}
            )
        total += question.points
        if answers.get(question.id) == question.correct_answer:
            earned += question.points
            correct_ids.append(question.id)

    if total <= 0:
        raise ConfigurationError(
            "Quiz has no questions",
            error_code="QUIZ_HAS_NO_QUESTIONS",
            details={"question_count": len(questions)}
        )

    return GradeResult(
        earned_points=earned,
        total_points=total,
        score=round_half_up_percentage(earned, total),
        correct_question_ids=correct_ids,
    )


class QuizGradingEngine:

    def __init__(self, quiz_repo: QuizRepository):
        self.quiz_repo = quiz_repo

    async def submit_quiz(self, quiz_id: str, student_id: str, answers: Dict[str, str]) -> QuizAttempt:
        quiz = self.quiz_repo.get(quiz_id)
        if not quiz:
            raise QuizNotFoundError(quiz_id)
        if not 0 <= quiz.passing_score <= 100:
            raise ConfigurationError(
                "Passing score must be between 0 and 100",
                error_code="INVALID_PASSING_SCORE",
                details={"quiz_id": quiz_id, "passing_score": quiz.passing_score}
            )

        questions = self.quiz_repo.get_questions(quiz_id)
        result = grade_answers(questions, answers)
        passed = result.score >= quiz.passing_score

        attempt = self.quiz_repo.create_attempt(
            QuizAttempt(
                student_id=student_id,
                quiz_id=quiz_id,
                answers=dict(answers),
                score=result.score,
                passed=passed,
            )
        )

        logger.info(
            "quiz_attempt_recorded",
            quiz_id=quiz_id,
            student_id=student_id,
            score=result.score,
            passing_score=quiz.passing_score,
            passed=passed,
            earned_points=result.earned_points,
            total_points=result.total_points,
        )
        return attempt
