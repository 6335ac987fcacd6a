from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import desc, and_, distinct

from ..exceptions import ConflictError
from ..models.quiz import Quiz, QuizQuestion, QuizAttempt


class QuizRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, quiz_id: str) -> Optional[Quiz]:
        return self.session.query(Quiz).filter(Quiz.id == quiz_id).first()

    def create(self, quiz: Quiz) -> Quiz:
        """Insert a quiz; a second quiz for the same (course, video) is rejected."""
        self.session.add(quiz)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise ConflictError(
                f"Course {quiz.course_id} already has a quiz for video {quiz.video_id}",
                error_code="QUIZ_SLOT_TAKEN",
                details={"course_id": quiz.course_id, "video_id": quiz.video_id}
            ) from e
        self.session.refresh(quiz)
        return quiz

    def get_questions(self, quiz_id: str) -> List[QuizQuestion]:
        return (
            self.session.query(QuizQuestion)
            .filter(QuizQuestion.quiz_id == quiz_id)
            .order_by(QuizQuestion.order_index)
            .all()
        )

    def get_quiz_ids_for_course(self, course_id: str) -> List[str]:
        rows = self.session.query(Quiz.id).filter(Quiz.course_id == course_id).all()
        return [row.id for row in rows]

    def create_attempt(self, attempt: QuizAttempt) -> QuizAttempt:
        self.session.add(attempt)
        self.session.commit()
        self.session.refresh(attempt)
        return attempt

    def get_attempts(self, quiz_id: str, student_id: Optional[str] = None, limit: int = 50) -> List[QuizAttempt]:
        query = self.session.query(QuizAttempt).filter(QuizAttempt.quiz_id == quiz_id)
        if student_id:
            query = query.filter(QuizAttempt.student_id == student_id)
        return query.order_by(desc(QuizAttempt.completed_at)).limit(limit).all()

    def count_passed_quizzes(self, student_id: str, quiz_ids: List[str]) -> int:
        """Distinct quizzes among quiz_ids with at least one passed attempt."""
        if not quiz_ids:
            return 0
        return (
            self.session.query(distinct(QuizAttempt.quiz_id))
            .filter(
                and_(
                    QuizAttempt.student_id == student_id,
                    QuizAttempt.quiz_id.in_(quiz_ids),
                    QuizAttempt.passed == True
                )
            )
            .count()
        )

    def count_passed_attempts(self, student_id: str) -> int:
        return (
            self.session.query(QuizAttempt)
            .filter(QuizAttempt.student_id == student_id, QuizAttempt.passed == True)
            .count()
        )
