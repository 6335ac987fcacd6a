from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Boolean, UniqueConstraint, CheckConstraint

from ..core.database import Base
from ..utils.time_utils import utcnow
from .base import generate_uuid
from .enums import QuestionType


class Quiz(Base):
    """
    A scored assessment attached to a course, or to one video of it.

    A null video_id marks a course-level quiz. At most one quiz may target a
    given (course, video) pair; course-level quizzes are not restricted since
    NULLs never collide in the unique key.
    """
    __tablename__ = "quizzes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    video_id = Column(String(36), ForeignKey("course_videos.id", ondelete="SET NULL"), nullable=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    passing_score = Column(Integer, nullable=False, default=70)
    is_required = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("course_id", "video_id", name="uq_quizzes_course_video"),
        CheckConstraint("passing_score BETWEEN 0 AND 100", name="ck_quizzes_passing_score_range"),
    )

    def __repr__(self):
        return f"<Quiz(id={self.id}, course_id={self.course_id}, passing_score={self.passing_score})>"


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    quiz_id = Column(String(36), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(String, nullable=False, default=QuestionType.MULTIPLE_CHOICE.value)
    options = Column(JSON, nullable=True)
    correct_answer = Column(String, nullable=False)
    points = Column(Integer, nullable=False, default=1)
    order_index = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("points > 0", name="ck_quiz_questions_points_positive"),
    )


class QuizAttempt(Base):
    """One graded submission. Rows are inserted, never updated."""
    __tablename__ = "quiz_attempts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    student_id = Column(String(36), nullable=False, index=True)
    quiz_id = Column(String(36), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    answers = Column(JSON, nullable=False, default=dict)
    score = Column(Integer, nullable=False)
    passed = Column(Boolean, nullable=False)
    completed_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<QuizAttempt(id={self.id}, quiz_id={self.quiz_id}, score={self.score}, passed={self.passed})>"
