"""
Durable scheduling for workflow executions.

Suspended executions live in the workflow_executions table with a resume
time, so nothing is lost when a process restarts. Any number of dispatcher
processes may poll concurrently: each resume is claimed through the row's
version column first, and only the claimant runs it.
"""

import asyncio
from datetime import date, datetime, timedelta
from typing import Callable, Dict, Optional

import structlog
from sqlalchemy.orm import Session

from ...config import get_settings
from ...core.database import SessionLocal
from ...models.enums import ExecutionStatus, TriggerType
from ...models.workflow import WorkflowExecution
from ...repositories.contact_repository import ContactRepository
from ...repositories.workflow_repository import WorkflowExecutionRepository, WorkflowRepository
from ...utils.time_utils import utcnow
from .engine import WorkflowExecutionEngine, build_workflow_engine

logger = structlog.get_logger(__name__)


class WorkflowDispatcher:

    def __init__(self, session: Session, engine: WorkflowExecutionEngine, settings=None):
        self.settings = settings or get_settings()
        self.engine = engine
        self.workflow_repo = WorkflowRepository(session)
        self.execution_repo = WorkflowExecutionRepository(session)
        self.contact_repo = ContactRepository(session)

    async def run_pass(self, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or utcnow()
        stats = {
            "resumed": await self.run_due_executions(now),
            "inactivity_started": await self.process_inactivity_workflows(now),
            "date_based_started": await self.process_date_based_workflows(now),
        }
        logger.info("workflow_dispatcher_pass_completed", **stats)
        return stats

    async def run_due_executions(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        stale_before = now - timedelta(minutes=self.settings.stale_execution_minutes)
        due = self.execution_repo.get_due(now, stale_before, limit=self.settings.workflow_batch_size)

        resumed = 0
        for execution in due:
            if not self._is_due(execution, now, stale_before):
                continue
            if not self.execution_repo.claim(execution, now):
                continue
            # Suspensions inside the run read the engine clock, not this pass start time.
            await self.engine.resume(execution)
            resumed += 1
        return resumed

    async def process_inactivity_workflows(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        started = 0

        for workflow in self.workflow_repo.get_active_by_trigger(TriggerType.INACTIVITY.value):
            days = int((workflow.trigger_config or {}).get("days") or self.settings.inactivity_default_days)
            cutoff = now - timedelta(days=days)

            for contact in self.contact_repo.get_inactive_contacts(cutoff):
                if self.execution_repo.has_execution_since(workflow.id, contact.id, since=cutoff):
                    continue
                logger.info("inactivity_workflow_triggered", workflow_id=workflow.id, contact_id=contact.id, days=days)
                await self.engine.start(
                    workflow,
                    {"type": TriggerType.INACTIVITY.value, "days": days, "contact_id": contact.id},
                    contact_id=contact.id,
                )
                started += 1
        return started

    async def process_date_based_workflows(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        started = 0

        for workflow in self.workflow_repo.get_active_by_trigger(TriggerType.DATE_BASED.value):
            raw_date = (workflow.trigger_config or {}).get("date")
            try:
                target = date.fromisoformat(raw_date)
            except (TypeError, ValueError):
                logger.warning("date_based_workflow_invalid_date", workflow_id=workflow.id, date=raw_date)
                continue
            if target > now.date():
                continue

            for contact in self.contact_repo.get_active_contacts():
                if self.execution_repo.has_execution_since(workflow.id, contact.id):
                    continue
                await self.engine.start(
                    workflow,
                    {"type": TriggerType.DATE_BASED.value, "date": raw_date, "contact_id": contact.id},
                    contact_id=contact.id,
                )
                started += 1
        return started

    @staticmethod
    def _is_due(execution: WorkflowExecution, now: datetime, stale_before: datetime) -> bool:
        # Re-read after earlier commits in this pass; another dispatcher may have moved it.
        if execution.status != ExecutionStatus.PENDING.value:
            return False
        if execution.resume_at is None:
            return execution.updated_at < stale_before
        return execution.resume_at <= now


async def run_dispatcher_pass(session_factory: Callable[[], Session] = SessionLocal) -> Dict[str, int]:
    db = session_factory()
    try:
        dispatcher = WorkflowDispatcher(db, build_workflow_engine(db))
        return await dispatcher.run_pass()
    finally:
        db.close()


async def run_forever(session_factory: Callable[[], Session] = SessionLocal,
                      interval_seconds: Optional[int] = None,
                      stop_event: Optional[asyncio.Event] = None) -> None:
    interval = interval_seconds or get_settings().workflow_poll_interval_seconds
    stop_event = stop_event or asyncio.Event()
    logger.info("workflow_dispatcher_started", interval_seconds=interval)

    while not stop_event.is_set():
        try:
            await run_dispatcher_pass(session_factory)
        except Exception as e:
            logger.error("workflow_dispatcher_pass_failed", error=str(e), exc_info=e)

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass

    logger.info("workflow_dispatcher_stopped")
