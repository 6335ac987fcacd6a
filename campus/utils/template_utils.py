import re
from typing import Any, Dict, Mapping, Optional

PLACEHOLDER_PATTERN = re.compile(r"\{([a-zA-Z_][a-zA-Z0-9_]*)\}")


def render_template(text: Optional[str], variables: Mapping[str, Any]) -> str:
    """Replace {name} placeholders; unknown placeholders are left as written."""
    if not text:
        return ""

    def replace(match):
        key = match.group(1)
        if key in variables and variables[key] is not None:
            return str(variables[key])
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(replace, text)


def build_template_context(contact, trigger_data: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    context: Dict[str, Any] = {}

    for key, value in (trigger_data or {}).items():
        if isinstance(value, (str, int, float, bool)):
            context[key] = value

    if contact is not None:
        context.update({
            "contact_name": contact.full_name,
            "first_name": contact.first_name or "",
            "last_name": contact.last_name or "",
            "email": contact.email,
        })
        context.setdefault("student_name", contact.full_name)

    return context
