import re
from typing import Any, Dict, Mapping, Optional

from ...exceptions import WorkflowActionError
from ...models.enums import ContactStatus
from ...utils.time_utils import utcnow

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")

FIELD_ALIASES = {
    "first_name": ("first_name", "prenom", "firstName"),
    "last_name": ("last_name", "nom", "lastName"),
    "phone": ("phone", "telephone"),
    "notes": ("notes", "message"),
}
EMAIL_ALIASES = ("email", "email_address", "mail")


def has_form_data(trigger_data: Optional[Mapping[str, Any]]) -> bool:
    if not trigger_data:
        return False
    return bool(trigger_data.get("submission_data") or trigger_data.get("data"))


def _first_value(data: Mapping[str, Any], keys) -> Optional[Any]:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def build_contact_data(trigger_data: Mapping[str, Any], source: str = "workflow_automation") -> Dict[str, Any]:
    """
    Derive contact columns from a triggering payload.

    Form submissions carry raw field ids; the form's mapping_config (field id
    -> contact column) renames them before the usual aliases are looked up.
    When no email field is named, the first email-looking value is used.
    """
    raw = trigger_data.get("submission_data") or trigger_data.get("data") or trigger_data
    if not isinstance(raw, Mapping):
        raw = {}

    form_data = dict(raw)
    mapping = trigger_data.get("mapping_config")
    if isinstance(mapping, Mapping):
        for field_id, target in mapping.items():
            value = raw.get(field_id)
            if target and target != "none" and value not in (None, ""):
                form_data[target] = value

    email = _first_value(form_data, EMAIL_ALIASES)
    if not email:
        email = next(
            (value for value in raw.values() if isinstance(value, str) and EMAIL_PATTERN.search(value)),
            None,
        )
    if not email:
        raise WorkflowActionError(
            "Email missing from form data; the form must contain an email field",
            error_code="CONTACT_EMAIL_MISSING"
        )

    contact_data: Dict[str, Any] = {
        "email": email,
        "source": source,
        "status": ContactStatus.ACTIVE.value,
        "contact_metadata": {
            "workflow_created": True,
            "form_submission_id": trigger_data.get("submission_id"),
            "submission_date": utcnow().isoformat(),
            "raw_form_data": dict(raw),
        },
    }
    for column, aliases in FIELD_ALIASES.items():
        value = _first_value(form_data, aliases)
        if value is not None:
            contact_data[column] = value

    return contact_data
