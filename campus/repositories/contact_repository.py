from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.exc import IntegrityError
from sqlalchemy import and_

import structlog

from ..exceptions import ConflictError
from ..models.contact import Contact, ContactListMember
from ..models.enums import ContactStatus

logger = structlog.get_logger(__name__)


class ContactRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, contact_id: str) -> Optional[Contact]:
        return self.session.query(Contact).filter(Contact.id == contact_id).first()

    def get_by_email(self, email: str) -> Optional[Contact]:
        return self.session.query(Contact).filter(Contact.email == email).first()

    def upsert_by_email(self, contact_data: Dict[str, Any]) -> Tuple[Contact, bool]:
        """
        Insert a contact keyed by email, or update the existing one.

        The insert is attempted first; a unique-key conflict (including one
        from a concurrent writer) falls back to updating the stored row.
        Returns (contact, created).
        """
        contact = Contact(**contact_data)
        self.session.add(contact)
        try:
            self.session.commit()
            self.session.refresh(contact)
            return contact, True
        except IntegrityError:
            self.session.rollback()

        existing = self.get_by_email(contact_data["email"])
        if existing is None:
            raise ConflictError(
                f"Contact {contact_data['email']} could not be inserted or found",
                details={"email": contact_data["email"]}
            )
        for key, value in contact_data.items():
            if key == "email":
                continue
            setattr(existing, key, value)
        self.save(existing)
        return existing, False

    def save(self, contact: Contact) -> Contact:
        """Commit pending changes; a lost version race surfaces as ConflictError."""
        try:
            self.session.commit()
        except StaleDataError as e:
            self.session.rollback()
            raise ConflictError(
                f"Contact {contact.id} was modified concurrently",
                error_code="CONTACT_VERSION_CONFLICT",
                details={"contact_id": contact.id}
            ) from e
        self.session.refresh(contact)
        return contact

    def add_to_list(self, contact_id: str, list_id: str) -> bool:
        """False when the contact was already a member."""
        self.session.add(ContactListMember(contact_id=contact_id, list_id=list_id))
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            return False
        return True

    def remove_from_list(self, contact_id: str, list_id: str) -> int:
        deleted = (
            self.session.query(ContactListMember)
            .filter(and_(ContactListMember.contact_id == contact_id, ContactListMember.list_id == list_id))
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return deleted

    def is_member(self, contact_id: str, list_id: str) -> bool:
        return (
            self.session.query(ContactListMember)
            .filter(and_(ContactListMember.contact_id == contact_id, ContactListMember.list_id == list_id))
            .first()
            is not None
        )

    def get_inactive_contacts(self, cutoff: datetime) -> List[Contact]:
        return (
            self.session.query(Contact)
            .filter(and_(Contact.status == ContactStatus.ACTIVE.value, Contact.updated_at < cutoff))
            .all()
        )

    def get_active_contacts(self) -> List[Contact]:
        return self.session.query(Contact).filter(Contact.status == ContactStatus.ACTIVE.value).all()
