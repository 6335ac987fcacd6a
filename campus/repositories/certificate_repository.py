from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import desc

import structlog

from ..models.certificate import Certificate

logger = structlog.get_logger(__name__)


class CertificateRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_for_student(self, student_id: str, course_id: str) -> Optional[Certificate]:
        return (
            self.session.query(Certificate)
            .filter(Certificate.student_id == student_id, Certificate.course_id == course_id)
            .first()
        )

    def list_for_course(self, course_id: str, student_id: Optional[str] = None) -> List[Certificate]:
        query = self.session.query(Certificate).filter(Certificate.course_id == course_id)
        if student_id:
            query = query.filter(Certificate.student_id == student_id)
        return query.order_by(desc(Certificate.issued_at)).all()

    def create_if_absent(self, student_id: str, course_id: str, certificate_url: str) -> Tuple[Certificate, bool]:
        """
        Insert a certificate, relying on the (student_id, course_id) unique key.

        Returns (certificate, created). When another writer got there first the
        existing row is returned with created=False.
        """
        certificate = Certificate(student_id=student_id, course_id=course_id, certificate_url=certificate_url)
        self.session.add(certificate)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            existing = self.get_for_student(student_id, course_id)
            if existing is None:
                raise
            logger.info("certificate_insert_conflict", student_id=student_id, course_id=course_id)
            return existing, False

        self.session.refresh(certificate)
        return certificate, True
