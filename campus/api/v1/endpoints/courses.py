from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from ...dependencies import get_certificate_repository, get_completion_evaluator, get_course_repository
from ..schemas import CertificateResponse, CompletionRequest, CompletionResponse
from .quizzes import to_completion_response
from ....exceptions import CourseNotFoundError, TransientBackendError
from ....repositories.certificate_repository import CertificateRepository
from ....repositories.course_repository import CourseRepository
from ....services.course_completion_service import CourseCompletionEvaluator

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/{course_id}/completion", response_model=CompletionResponse)
async def evaluate_course_completion(
    course_id: str,
    request: CompletionRequest,
    evaluator: CourseCompletionEvaluator = Depends(get_completion_evaluator)
) -> CompletionResponse:
    try:
        result = await evaluator.evaluate(course_id, request.student_id)
        return to_completion_response(result)

    except CourseNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_dict())
    except TransientBackendError as e:
        logger.warning("course_completion_backend_unavailable", course_id=course_id, error=e.message)
        raise HTTPException(status_code=503, detail=e.to_dict())


@router.get("/{course_id}/certificates", response_model=List[CertificateResponse])
async def list_course_certificates(
    course_id: str,
    student_id: str = Query(None),
    course_repo: CourseRepository = Depends(get_course_repository),
    certificate_repo: CertificateRepository = Depends(get_certificate_repository)
) -> List[CertificateResponse]:
    if not course_repo.get(course_id):
        raise HTTPException(status_code=404, detail=CourseNotFoundError(course_id).to_dict())

    certificates = certificate_repo.list_for_course(course_id, student_id=student_id)
    return [CertificateResponse.model_validate(cert) for cert in certificates]
