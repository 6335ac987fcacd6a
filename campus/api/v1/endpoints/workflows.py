from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...dependencies import get_execution_repository, get_workflow_engine
from ..schemas import DispatchResponse, WorkflowEventRequest, WorkflowExecutionResponse
from ....core.database import get_db
from ....exceptions import ConfigurationError, ExecutionNotFoundError
from ....repositories.workflow_repository import WorkflowExecutionRepository
from ....services.workflow.dispatcher import WorkflowDispatcher
from ....services.workflow.engine import WorkflowExecutionEngine

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/events", response_model=List[WorkflowExecutionResponse])
async def receive_workflow_event(
    event: WorkflowEventRequest,
    engine: WorkflowExecutionEngine = Depends(get_workflow_engine)
) -> List[WorkflowExecutionResponse]:
    try:
        executions = await engine.trigger(event.event_type, event.payload)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())

    return [WorkflowExecutionResponse.model_validate(execution) for execution in executions]


@router.get("/executions/{execution_id}", response_model=WorkflowExecutionResponse)
async def get_workflow_execution(
    execution_id: str,
    execution_repo: WorkflowExecutionRepository = Depends(get_execution_repository)
) -> WorkflowExecutionResponse:
    execution = execution_repo.get(execution_id)
    if not execution:
        raise HTTPException(status_code=404, detail=ExecutionNotFoundError(execution_id).to_dict())
    return WorkflowExecutionResponse.model_validate(execution)


@router.post("/dispatch", response_model=DispatchResponse)
async def dispatch_workflows(
    db: Session = Depends(get_db),
    engine: WorkflowExecutionEngine = Depends(get_workflow_engine)
) -> DispatchResponse:
    stats = await WorkflowDispatcher(db, engine).run_pass()
    return DispatchResponse(**stats)
