from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy import and_, or_

import structlog

from ..models.enums import ExecutionStatus, WorkflowStatus
from ..models.workflow import Workflow, WorkflowExecution

logger = structlog.get_logger(__name__)


class WorkflowRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, workflow_id: str) -> Optional[Workflow]:
        return self.session.query(Workflow).filter(Workflow.id == workflow_id).first()

    def get_active_by_trigger(self, trigger_type: str) -> List[Workflow]:
        return (
            self.session.query(Workflow)
            .filter(and_(Workflow.status == WorkflowStatus.ACTIVE.value, Workflow.trigger_type == trigger_type))
            .order_by(Workflow.created_at)
            .all()
        )


class WorkflowExecutionRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, execution_id: str) -> Optional[WorkflowExecution]:
        return self.session.query(WorkflowExecution).filter(WorkflowExecution.id == execution_id).first()

    def create(self, execution: WorkflowExecution) -> WorkflowExecution:
        self.session.add(execution)
        self.session.commit()
        self.session.refresh(execution)
        return execution

    def save(self, execution: WorkflowExecution) -> WorkflowExecution:
        self.session.commit()
        self.session.refresh(execution)
        return execution

    def get_due(self, now: datetime, stale_before: datetime, limit: int = 50) -> List[WorkflowExecution]:
        """Pending executions whose resume time has passed, plus stalled ones."""
        return (
            self.session.query(WorkflowExecution)
            .filter(
                and_(
                    WorkflowExecution.status == ExecutionStatus.PENDING.value,
                    or_(
                        WorkflowExecution.resume_at <= now,
                        and_(
                            WorkflowExecution.resume_at.is_(None),
                            WorkflowExecution.updated_at < stale_before
                        )
                    )
                )
            )
            .order_by(WorkflowExecution.resume_at)
            .limit(limit)
            .all()
        )

    def claim(self, execution: WorkflowExecution, now: datetime) -> bool:
        """
        Take ownership of a due execution.

        The version check on the row makes this a compare-and-swap: when
        another dispatcher claimed or advanced it first the update matches no
        row and the claim is abandoned.
        """
        execution.resume_at = None
        execution.updated_at = now
        try:
            self.session.commit()
        except StaleDataError:
            self.session.rollback()
            logger.info("workflow_execution_claim_lost", execution_id=execution.id)
            return False
        self.session.refresh(execution)
        return True

    def has_execution_since(self, workflow_id: str, contact_id: str, since: Optional[datetime] = None) -> bool:
        query = self.session.query(WorkflowExecution.id).filter(
            and_(WorkflowExecution.workflow_id == workflow_id, WorkflowExecution.contact_id == contact_id)
        )
        if since is not None:
            query = query.filter(WorkflowExecution.started_at >= since)
        return query.first() is not None
