from .course_repository import CourseRepository
from .quiz_repository import QuizRepository
from .certificate_repository import CertificateRepository
from .badge_repository import BadgeRepository
from .contact_repository import ContactRepository
from .email_template_repository import EmailTemplateRepository
from .workflow_repository import WorkflowRepository, WorkflowExecutionRepository

__all__ = [
    "CourseRepository", "QuizRepository", "CertificateRepository", "BadgeRepository",
    "ContactRepository", "EmailTemplateRepository", "WorkflowRepository", "WorkflowExecutionRepository",
]
