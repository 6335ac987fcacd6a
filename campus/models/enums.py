from enum import Enum


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


class BadgeRequirement(str, Enum):
    VIDEOS_COMPLETED = "videos_completed"
    QUIZZES_PASSED = "quizzes_passed"


class WorkflowStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class TriggerType(str, Enum):
    FORM_SUBMISSION = "form_submission"
    CONTACT_CREATED = "contact_created"
    EMAIL_OPENED = "email_opened"
    LINK_CLICKED = "link_clicked"
    INACTIVITY = "inactivity"
    TAG_ADDED = "tag_added"
    LIST_ADDED = "list_added"
    DATE_BASED = "date_based"


class ActionType(str, Enum):
    CREATE_CONTACT = "create_contact"
    SEND_EMAIL = "send_email"
    ADD_TO_LIST = "add_to_list"
    REMOVE_FROM_LIST = "remove_from_list"
    ADD_TAG = "add_tag"
    REMOVE_TAG = "remove_tag"
    UPDATE_FIELD = "update_field"
    WAIT = "wait"
    SEND_NOTIFICATION = "send_notification"


class ContactStatus(str, Enum):
    ACTIVE = "active"
    UNSUBSCRIBED = "unsubscribed"
