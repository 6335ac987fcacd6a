from .course import Course, CourseVideo, VideoProgress
from .profile import Profile
from .quiz import Quiz, QuizQuestion, QuizAttempt
from .certificate import Certificate
from .badge import Badge, StudentBadge, Notification
from .contact import Contact, ContactList, ContactListMember
from .email_template import EmailTemplate
from .workflow import Workflow, WorkflowExecution

__all__ = [
    "Course", "CourseVideo", "VideoProgress", "Profile",
    "Quiz", "QuizQuestion", "QuizAttempt", "Certificate",
    "Badge", "StudentBadge", "Notification",
    "Contact", "ContactList", "ContactListMember", "EmailTemplate",
    "Workflow", "WorkflowExecution",
]
