from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint

from ..core.database import Base
from ..utils.time_utils import utcnow
from .base import generate_uuid


class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    student_id = Column(String(36), nullable=False, index=True)
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    certificate_url = Column(String, nullable=False)
    issued_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_certificates_student_course"),
    )
