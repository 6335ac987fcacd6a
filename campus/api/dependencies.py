from fastapi import Depends
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..repositories.badge_repository import BadgeRepository
from ..repositories.certificate_repository import CertificateRepository
from ..repositories.course_repository import CourseRepository
from ..repositories.quiz_repository import QuizRepository
from ..repositories.workflow_repository import WorkflowExecutionRepository
from ..services.badge_service import BadgeService
from ..services.certificate_renderer import CertificateRenderer
from ..services.course_completion_service import CourseCompletionEvaluator
from ..services.mail_sender import MailSender
from ..services.quiz_grading_service import QuizGradingEngine
from ..services.quiz_submission_service import QuizSubmissionService
from ..services.workflow.engine import WorkflowExecutionEngine, build_workflow_engine


def get_quiz_repository(db: Session = Depends(get_db)) -> QuizRepository:
    return QuizRepository(db)


def get_course_repository(db: Session = Depends(get_db)) -> CourseRepository:
    return CourseRepository(db)


def get_certificate_repository(db: Session = Depends(get_db)) -> CertificateRepository:
    return CertificateRepository(db)


def get_execution_repository(db: Session = Depends(get_db)) -> WorkflowExecutionRepository:
    return WorkflowExecutionRepository(db)


def get_certificate_renderer() -> CertificateRenderer:
    return CertificateRenderer()


def get_mail_sender() -> MailSender:
    return MailSender()


def get_completion_evaluator(
    db: Session = Depends(get_db),
    renderer: CertificateRenderer = Depends(get_certificate_renderer)
) -> CourseCompletionEvaluator:
    return CourseCompletionEvaluator(
        course_repo=CourseRepository(db),
        quiz_repo=QuizRepository(db),
        certificate_repo=CertificateRepository(db),
        renderer=renderer,
    )


def get_submission_service(
    db: Session = Depends(get_db),
    evaluator: CourseCompletionEvaluator = Depends(get_completion_evaluator)
) -> QuizSubmissionService:
    quiz_repo = QuizRepository(db)
    return QuizSubmissionService(
        quiz_repo=quiz_repo,
        grading=QuizGradingEngine(quiz_repo),
        evaluator=evaluator,
        badges=BadgeService(BadgeRepository(db), CourseRepository(db), quiz_repo),
    )


def get_workflow_engine(
    db: Session = Depends(get_db),
    mail_sender: MailSender = Depends(get_mail_sender)
) -> WorkflowExecutionEngine:
    return build_workflow_engine(db, mail_sender=mail_sender)


