from typing import Any, Dict, List

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON

from ..core.database import Base
from ..utils.time_utils import utcnow
from .base import generate_uuid


class Workflow(Base):
    """
    Automation definition: one trigger and an ordered list of actions.

    Each action is stored as {"id", "type", "config", "delay_minutes"}; list
    order is execution order.
    """
    __tablename__ = "workflows"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    trigger_type = Column(String, nullable=False, index=True)
    trigger_config = Column(JSON, nullable=False, default=dict)
    actions = Column(JSON, nullable=False, default=list)
    status = Column(String, nullable=False, default="draft", index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def action_list(self) -> List[Dict[str, Any]]:
        return list(self.actions or [])

    def __repr__(self):
        return f"<Workflow(id={self.id}, name={self.name!r}, trigger={self.trigger_type}, status={self.status})>"


class WorkflowExecution(Base):
    """
    One run of a workflow for one triggering event.

    current_step is the index of the next action to run. A suspended
    execution stays pending with resume_at set; delay_served_step records the
    action whose own delay has already elapsed so it is not applied twice.
    """
    __tablename__ = "workflow_executions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    workflow_id = Column(String(36), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True)
    contact_id = Column(String(36), ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True)
    trigger_data = Column(JSON, nullable=False, default=dict)
    status = Column(String, nullable=False, default="pending", index=True)
    current_step = Column(Integer, nullable=False, default=0)
    delay_served_step = Column(Integer, nullable=True)
    resume_at = Column(DateTime, nullable=True, index=True)
    actions_completed = Column(JSON, nullable=False, default=list)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def record_step(self, index: int, action_type: str, status: str, error: str = None):
        entry = {
            "step": index,
            "action": action_type,
            "status": status,
            "timestamp": utcnow().isoformat(),
        }
        if error:
            entry["error"] = error
        # JSON columns only detect reassignment
        self.actions_completed = list(self.actions_completed or []) + [entry]

    def __repr__(self):
        return f"<WorkflowExecution(id={self.id}, workflow_id={self.workflow_id}, status={self.status}, step={self.current_step})>"
