from typing import Optional
from sqlalchemy.orm import Session

from ..models.email_template import EmailTemplate


class EmailTemplateRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_active(self, template_id: str) -> Optional[EmailTemplate]:
        return (
            self.session.query(EmailTemplate)
            .filter(EmailTemplate.id == template_id, EmailTemplate.is_active == True)
            .first()
        )
