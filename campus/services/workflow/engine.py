from datetime import datetime, timedelta
from typing import Any, Callable, List, Mapping, Optional

import structlog
from sqlalchemy.orm import Session

from ...exceptions import CampusError, ConfigurationError, WorkflowNotFoundError
from ...models.contact import Contact
from ...models.enums import ActionType, ExecutionStatus, TriggerType
from ...models.workflow import Workflow, WorkflowExecution
from ...repositories.contact_repository import ContactRepository
from ...repositories.email_template_repository import EmailTemplateRepository
from ...repositories.workflow_repository import WorkflowExecutionRepository, WorkflowRepository
from ...utils.time_utils import utcnow
from ..mail_sender import MailSender
from .action_handlers import WorkflowActionHandlers
from .contact_mapping import has_form_data
from .trigger_matcher import trigger_matches

logger = structlog.get_logger(__name__)


class WorkflowExecutionEngine:
    """
    Runs workflows for trigger events.

    An execution walks the workflow's actions in stored order and commits after
    every step. When it reaches an action carrying delay_minutes, or finishes a
    wait action, it persists a resume time and returns; WorkflowDispatcher
    picks it up again once that time has passed.

    Resume times are measured from the clock reading taken when execution
    reaches the suspending step. Passing `now` pins the clock for a whole run.
    """

    def __init__(self, workflow_repo: WorkflowRepository, execution_repo: WorkflowExecutionRepository,
                 contact_repo: ContactRepository, handlers: WorkflowActionHandlers,
                 clock: Callable[[], datetime] = utcnow):
        self.workflow_repo = workflow_repo
        self.execution_repo = execution_repo
        self.contact_repo = contact_repo
        self.handlers = handlers
        self.clock = clock

    async def trigger(self, event_type: str, payload: Optional[Mapping[str, Any]] = None,
                      now: Optional[datetime] = None) -> List[WorkflowExecution]:
        try:
            trigger_type = TriggerType(event_type)
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown trigger event: {event_type}",
                error_code="UNKNOWN_TRIGGER_TYPE",
                details={"event_type": event_type}
            ) from e

        payload = dict(payload or {})
        candidates = self.workflow_repo.get_active_by_trigger(trigger_type.value)
        matched = [workflow for workflow in candidates if trigger_matches(workflow, payload)]

        logger.info(
            "workflow_trigger_received",
            event_type=trigger_type.value,
            candidates=len(candidates),
            matched=len(matched),
        )

        executions = []
        for workflow in matched:
            executions.append(await self.start(workflow, payload, now=now))
        return executions

    async def start(self, workflow: Workflow, trigger_data: Mapping[str, Any],
                    contact_id: Optional[str] = None, now: Optional[datetime] = None) -> WorkflowExecution:
        contact = self._resolve_contact(trigger_data, contact_id)

        execution = self.execution_repo.create(
            WorkflowExecution(
                workflow_id=workflow.id,
                contact_id=contact.id if contact else None,
                trigger_data=dict(trigger_data),
                status=ExecutionStatus.PENDING.value,
            )
        )
        logger.info("workflow_execution_created", execution_id=execution.id, workflow_id=workflow.id)

        if contact is None and has_form_data(trigger_data):
            try:
                contact = await self.handlers.create_contact({}, None, trigger_data)
            except CampusError as e:
                # Later actions may not need a contact; they fail on their own if they do.
                logger.warning("workflow_contact_autocreate_failed", execution_id=execution.id, error=e.message)
            else:
                execution.contact_id = contact.id
                self.execution_repo.save(execution)

        return await self.advance(execution, workflow, now=now)

    async def resume(self, execution: WorkflowExecution, now: Optional[datetime] = None) -> WorkflowExecution:
        workflow = self.workflow_repo.get(execution.workflow_id)
        if workflow is None:
            return self._fail(execution, execution.current_step, None, WorkflowNotFoundError(execution.workflow_id).message)
        return await self.advance(execution, workflow, now=now)

    async def advance(self, execution: WorkflowExecution, workflow: Workflow,
                      now: Optional[datetime] = None) -> WorkflowExecution:
        actions = workflow.action_list
        contact = self.contact_repo.get(execution.contact_id) if execution.contact_id else None

        while execution.current_step < len(actions):
            index = execution.current_step
            action = actions[index]
            action_type = action.get("type")

            delay = int(action.get("delay_minutes") or 0)
            if delay > 0 and execution.delay_served_step != index:
                return self._suspend(execution, index, self._now(now) + timedelta(minutes=delay))

            logger.info(
                "workflow_action_started",
                execution_id=execution.id,
                step=index + 1,
                total=len(actions),
                action=action_type,
            )
            try:
                contact = await self.handlers.run(action, contact, execution.trigger_data)
            except Exception as e:
                return self._fail(execution, index, action_type, str(e), exc=e)

            execution.record_step(index, action_type, "completed")
            execution.current_step = index + 1
            if contact is not None:
                execution.contact_id = contact.id

            if action_type == ActionType.WAIT.value:
                minutes = self.handlers.wait_minutes(action)
                if minutes > 0:
                    return self._suspend(execution, index + 1, self._now(now) + timedelta(minutes=minutes), served=False)

            self.execution_repo.save(execution)

        execution.status = ExecutionStatus.COMPLETED.value
        execution.completed_at = self.clock()
        execution.resume_at = None
        self.execution_repo.save(execution)
        logger.info("workflow_execution_completed", execution_id=execution.id, actions=len(actions))
        return execution

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock()

    def _suspend(self, execution: WorkflowExecution, step: int, resume_at: datetime,
                 served: bool = True) -> WorkflowExecution:
        if served:
            execution.delay_served_step = step
        execution.resume_at = resume_at
        self.execution_repo.save(execution)
        logger.info("workflow_execution_suspended", execution_id=execution.id, step=step + 1, resume_at=resume_at.isoformat())
        return execution

    def _fail(self, execution: WorkflowExecution, index: int, action_type: Optional[str], message: str,
              exc: Optional[Exception] = None) -> WorkflowExecution:
        # Discard whatever the failed action left pending; earlier steps are already committed.
        self.execution_repo.session.rollback()

        logger.error(
            "workflow_action_failed",
            execution_id=execution.id,
            step=index + 1,
            action=action_type,
            error=message,
            exc_info=exc if exc is not None and not isinstance(exc, CampusError) else None,
        )
        execution.record_step(index, action_type, "failed", error=message)
        execution.status = ExecutionStatus.FAILED.value
        execution.error_message = f"Action {index + 1} failed: {message}"
        execution.completed_at = self.clock()
        execution.resume_at = None
        self.execution_repo.save(execution)
        return execution

    def _resolve_contact(self, trigger_data: Mapping[str, Any], contact_id: Optional[str]) -> Optional[Contact]:
        contact_id = contact_id or trigger_data.get("contact_id")
        if contact_id:
            return self.contact_repo.get(contact_id)
        email = trigger_data.get("email")
        if email:
            return self.contact_repo.get_by_email(email)
        return None


def build_workflow_engine(session: Session, mail_sender: Optional[MailSender] = None,
                          clock: Callable[[], datetime] = utcnow) -> WorkflowExecutionEngine:
    contact_repo = ContactRepository(session)
    handlers = WorkflowActionHandlers(
        contact_repo=contact_repo,
        template_repo=EmailTemplateRepository(session),
        mail_sender=mail_sender or MailSender(),
    )
    return WorkflowExecutionEngine(
        workflow_repo=WorkflowRepository(session),
        execution_repo=WorkflowExecutionRepository(session),
        contact_repo=contact_repo,
        handlers=handlers,
        clock=clock,
    )
