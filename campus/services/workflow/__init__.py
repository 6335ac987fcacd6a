from .engine import WorkflowExecutionEngine, build_workflow_engine
from .dispatcher import WorkflowDispatcher, run_dispatcher_pass, run_forever
from .action_handlers import WorkflowActionHandlers

__all__ = [
    "WorkflowExecutionEngine", "build_workflow_engine", "WorkflowDispatcher",
    "run_dispatcher_pass", "run_forever", "WorkflowActionHandlers",
]
