from sqlalchemy import Column, String, Text, Boolean

from ..core.database import Base
from .base import generate_uuid


class EmailTemplate(Base):
    __tablename__ = "email_templates"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    template_key = Column(String, nullable=False, index=True)
    subject = Column(String, nullable=False)
    html_body = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
