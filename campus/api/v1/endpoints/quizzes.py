from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from ...dependencies import get_quiz_repository, get_submission_service
from ..schemas import (
    BadgeResponse,
    CertificateResponse,
    CompletionResponse,
    QuizAttemptResponse,
    QuizSubmissionRequest,
    QuizSubmissionResponse,
)
from ....exceptions import ConfigurationError, ConflictError, QuizNotFoundError, TransientBackendError
from ....repositories.quiz_repository import QuizRepository
from ....services.course_completion_service import CompletionResult
from ....services.quiz_submission_service import QuizSubmissionService

logger = structlog.get_logger(__name__)

router = APIRouter()


def to_completion_response(result: CompletionResult) -> CompletionResponse:
    return CompletionResponse(
        status=result.status.value,
        issued=result.issued,
        videos_completed=result.videos_completed,
        videos_total=result.videos_total,
        quizzes_passed=result.quizzes_passed,
        quizzes_total=result.quizzes_total,
        certificate=CertificateResponse.model_validate(result.certificate) if result.certificate else None,
    )


@router.post("/{quiz_id}/attempts", response_model=QuizSubmissionResponse)
async def submit_quiz_attempt(
    quiz_id: str,
    submission: QuizSubmissionRequest,
    service: QuizSubmissionService = Depends(get_submission_service)
) -> QuizSubmissionResponse:
    try:
        outcome = await service.submit(quiz_id, submission.student_id, submission.answers)
        return QuizSubmissionResponse(
            attempt=QuizAttemptResponse.model_validate(outcome.attempt),
            completion=to_completion_response(outcome.completion),
            new_badges=[BadgeResponse.model_validate(badge) for badge in outcome.new_badges],
        )

    except QuizNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_dict())
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=e.to_dict())
    except TransientBackendError as e:
        logger.warning("quiz_submission_backend_unavailable", quiz_id=quiz_id, error=e.message)
        raise HTTPException(status_code=503, detail=e.to_dict())


@router.get("/{quiz_id}/attempts", response_model=List[QuizAttemptResponse])
async def list_quiz_attempts(
    quiz_id: str,
    student_id: str = Query(None),
    limit: int = Query(50, ge=1, le=200),
    quiz_repo: QuizRepository = Depends(get_quiz_repository)
) -> List[QuizAttemptResponse]:
    if not quiz_repo.get(quiz_id):
        raise HTTPException(status_code=404, detail=QuizNotFoundError(quiz_id).to_dict())

    attempts = quiz_repo.get_attempts(quiz_id, student_id=student_id, limit=limit)
    return [QuizAttemptResponse.model_validate(attempt) for attempt in attempts]
