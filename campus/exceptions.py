from typing import Optional, Dict, Any


class CampusError(Exception):
    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class ConfigurationError(CampusError):
    pass


class QuizNotFoundError(ConfigurationError):
    def __init__(self, quiz_id: str):
        super().__init__(
            message=f"Quiz {quiz_id} not found",
            error_code="QUIZ_NOT_FOUND",
            details={"quiz_id": quiz_id}
        )


class CourseNotFoundError(ConfigurationError):
    def __init__(self, course_id: str):
        super().__init__(
            message=f"Course {course_id} not found",
            error_code="COURSE_NOT_FOUND",
            details={"course_id": course_id}
        )


class WorkflowNotFoundError(ConfigurationError):
    def __init__(self, workflow_id: str):
        super().__init__(
            message=f"Workflow {workflow_id} not found",
            error_code="WORKFLOW_NOT_FOUND",
            details={"workflow_id": workflow_id}
        )


class ExecutionNotFoundError(ConfigurationError):
    def __init__(self, execution_id: str):
        super().__init__(
            message=f"Workflow execution {execution_id} not found",
            error_code="EXECUTION_NOT_FOUND",
            details={"execution_id": execution_id}
        )


class TemplateNotFoundError(ConfigurationError):
    def __init__(self, template_id: str):
        super().__init__(
            message=f"Email template {template_id} not found or inactive",
            error_code="TEMPLATE_NOT_FOUND",
            details={"template_id": template_id}
        )


class TransientBackendError(CampusError):
    pass


class ConflictError(CampusError):
    pass


class WorkflowActionError(CampusError):
    pass
