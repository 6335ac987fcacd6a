from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class QuizSubmissionRequest(BaseModel):
    student_id: str = Field(..., min_length=1)
    answers: Dict[str, str] = Field(default_factory=dict, description="Question id to chosen answer")


class QuizAttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    quiz_id: str
    student_id: str
    answers: Dict[str, Any]
    score: int
    passed: bool
    completed_at: datetime


class CertificateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    course_id: str
    certificate_url: str
    issued_at: datetime


class BadgeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None


class CompletionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: str
    issued: bool
    videos_completed: int
    videos_total: int
    quizzes_passed: int
    quizzes_total: int
    certificate: Optional[CertificateResponse] = None


class QuizSubmissionResponse(BaseModel):
    attempt: QuizAttemptResponse
    completion: CompletionResponse
    new_badges: List[BadgeResponse] = Field(default_factory=list)


class CompletionRequest(BaseModel):
    student_id: str = Field(..., min_length=1)


class WorkflowEventRequest(BaseModel):
    event_type: str = Field(..., description="Trigger type, e.g. form_submission or tag_added")
    payload: Dict[str, Any] = Field(default_factory=dict)


class WorkflowExecutionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workflow_id: str
    contact_id: Optional[str] = None
    status: str
    current_step: int
    resume_at: Optional[datetime] = None
    actions_completed: List[Dict[str, Any]] = Field(default_factory=list)
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None


class DispatchResponse(BaseModel):
    resumed: int
    inactivity_started: int
    date_based_started: int
