from typing import Any, Mapping

from ...config import get_settings
from ...models.enums import TriggerType
from ...models.workflow import Workflow

# Trigger config key that must equal the same key in the event payload.
MATCH_KEYS = {
    TriggerType.FORM_SUBMISSION: "form_id",
    TriggerType.TAG_ADDED: "tag",
    TriggerType.LIST_ADDED: "list_id",
    TriggerType.EMAIL_OPENED: "template_id",
    TriggerType.LINK_CLICKED: "url",
    TriggerType.DATE_BASED: "date",
}


def trigger_matches(workflow: Workflow, payload: Mapping[str, Any]) -> bool:
    config = workflow.trigger_config or {}
    trigger_type = TriggerType(workflow.trigger_type)

    if trigger_type == TriggerType.INACTIVITY:
        days = payload.get("days")
        if days is None:
            return False
        required = config.get("days") or get_settings().inactivity_default_days
        return int(days) >= int(required)

    key = MATCH_KEYS.get(trigger_type)
    if key is None:
        return True

    expected = config.get(key)
    if expected in (None, ""):
        return True
    return payload.get(key) == expected
