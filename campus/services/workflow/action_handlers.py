from typing import Any, Callable, Dict, List, Mapping, Optional

import structlog

from ...config import get_settings
from ...exceptions import ConfigurationError, ConflictError, TemplateNotFoundError, WorkflowActionError
from ...models.contact import Contact
from ...models.enums import ActionType
from ...repositories.contact_repository import ContactRepository
from ...repositories.email_template_repository import EmailTemplateRepository
from ...utils.template_utils import build_template_context, render_template
from ..mail_sender import MailSender
from .contact_mapping import build_contact_data

logger = structlog.get_logger(__name__)

UPDATABLE_FIELDS = {"first_name", "last_name", "phone", "notes", "status"}
METADATA_PREFIX = "metadata."


class WorkflowActionHandlers:
    """
    Side effects of individual workflow actions.

    Every handler receives the action config, the execution's current contact
    (possibly None) and the trigger payload, and returns the contact that the
    following actions should use.
    """

    def __init__(self, contact_repo: ContactRepository, template_repo: EmailTemplateRepository,
                 mail_sender: MailSender, admin_email: Optional[str] = None, max_retries: Optional[int] = None):
        settings = get_settings()
        self.contact_repo = contact_repo
        self.template_repo = template_repo
        self.mail_sender = mail_sender
        self.admin_email = admin_email or settings.admin_email
        self.max_retries = max_retries or settings.tag_update_max_retries

        self._handlers = {
            ActionType.CREATE_CONTACT: self.create_contact,
            ActionType.SEND_EMAIL: self.send_email,
            ActionType.ADD_TO_LIST: self.add_to_list,
            ActionType.REMOVE_FROM_LIST: self.remove_from_list,
            ActionType.ADD_TAG: self.add_tag,
            ActionType.REMOVE_TAG: self.remove_tag,
            ActionType.UPDATE_FIELD: self.update_field,
            ActionType.WAIT: self.wait,
            ActionType.SEND_NOTIFICATION: self.send_notification,
        }

    @staticmethod
    def parse_type(action: Mapping[str, Any]) -> ActionType:
        try:
            return ActionType(action.get("type"))
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown action type: {action.get('type')}",
                error_code="UNKNOWN_ACTION_TYPE",
                details={"action": dict(action)}
            ) from e

    async def run(self, action: Mapping[str, Any], contact: Optional[Contact],
                  trigger_data: Mapping[str, Any]) -> Optional[Contact]:
        handler = self._handlers[self.parse_type(action)]
        return await handler(action.get("config") or {}, contact, trigger_data or {})

    async def create_contact(self, config, contact, trigger_data) -> Contact:
        contact_data = build_contact_data(trigger_data, source=config.get("source", "workflow_automation"))
        created_contact, created = self.contact_repo.upsert_by_email(contact_data)
        logger.info("workflow_contact_upserted", contact_id=created_contact.id, created=created)
        return created_contact

    async def send_email(self, config, contact, trigger_data) -> Contact:
        contact = self._require_contact(contact, ActionType.SEND_EMAIL)
        template_id = self._require(config, "template_id")

        template = self.template_repo.get_active(template_id)
        if not template:
            raise TemplateNotFoundError(template_id)

        context = build_template_context(contact, trigger_data)
        await self.mail_sender.send(
            contact.email,
            render_template(template.subject, context),
            render_template(template.html_body, context),
        )
        return contact

    async def add_to_list(self, config, contact, trigger_data) -> Contact:
        contact = self._require_contact(contact, ActionType.ADD_TO_LIST)
        list_id = self._require(config, "list_id")
        added = self.contact_repo.add_to_list(contact.id, list_id)
        logger.info("workflow_contact_added_to_list", contact_id=contact.id, list_id=list_id, already_member=not added)
        return contact

    async def remove_from_list(self, config, contact, trigger_data) -> Contact:
        contact = self._require_contact(contact, ActionType.REMOVE_FROM_LIST)
        list_id = self._require(config, "list_id")
        self.contact_repo.remove_from_list(contact.id, list_id)
        return contact

    async def add_tag(self, config, contact, trigger_data) -> Contact:
        contact = self._require_contact(contact, ActionType.ADD_TAG)
        tag = self._require(config, "tag")
        return self._mutate_tags(contact, lambda tags: list(dict.fromkeys(tags + [tag])))

    async def remove_tag(self, config, contact, trigger_data) -> Contact:
        contact = self._require_contact(contact, ActionType.REMOVE_TAG)
        tag = self._require(config, "tag")
        return self._mutate_tags(contact, lambda tags: [t for t in tags if t != tag])

    async def update_field(self, config, contact, trigger_data) -> Contact:
        contact = self._require_contact(contact, ActionType.UPDATE_FIELD)
        field = self._require(config, "field")
        value = config.get("value")

        if field.startswith(METADATA_PREFIX):
            key = field[len(METADATA_PREFIX):]
            contact.contact_metadata = {**(contact.contact_metadata or {}), key: value}
        elif field in UPDATABLE_FIELDS:
            setattr(contact, field, value)
        else:
            raise ConfigurationError(
                f"Field {field} cannot be updated by a workflow",
                error_code="FIELD_NOT_UPDATABLE",
                details={"field": field}
            )
        return self.contact_repo.save(contact)

    async def wait(self, config, contact, trigger_data) -> Optional[Contact]:
        return contact

    async def send_notification(self, config, contact, trigger_data) -> Contact:
        contact = self._require_contact(contact, ActionType.SEND_NOTIFICATION)
        message = config.get("message") or ""

        html = (
            "<h2>Notification Workflow</h2>"
            f"<p><strong>Contact:</strong> {contact.full_name} ({contact.email})</p>"
            f"<p><strong>Message:</strong> {message or 'Aucun message'}</p>"
        )
        await self.mail_sender.send(
            self.admin_email,
            f"Notification workflow: {message or 'Événement workflow'}",
            html,
        )
        return contact

    @staticmethod
    def wait_minutes(action: Mapping[str, Any]) -> int:
        config = action.get("config") or {}
        return int(config.get("minutes") or 0)

    def _mutate_tags(self, contact: Contact, change: Callable[[List[str]], List[str]]) -> Contact:
        for attempt in range(1, self.max_retries + 1):
            current = list(contact.tags or [])
            updated = change(current)
            if updated == current:
                return contact

            contact.tags = updated
            try:
                return self.contact_repo.save(contact)
            except ConflictError:
                if attempt == self.max_retries:
                    raise
                logger.info("contact_tag_update_retry", contact_id=contact.id, attempt=attempt)
                contact = self.contact_repo.get(contact.id)
                if contact is None:
                    raise WorkflowActionError("Contact disappeared during tag update")
        return contact

    @staticmethod
    def _require_contact(contact: Optional[Contact], action_type: ActionType) -> Contact:
        if contact is None:
            raise WorkflowActionError(
                f"No contact available for {action_type.value}",
                error_code="CONTACT_REQUIRED",
                details={"action": action_type.value}
            )
        return contact

    @staticmethod
    def _require(config: Dict[str, Any], key: str) -> Any:
        value = config.get(key)
        if value in (None, ""):
            raise ConfigurationError(
                f"Action config is missing '{key}'",
                error_code="ACTION_CONFIG_INVALID",
                details={"missing": key}
            )
        return value
