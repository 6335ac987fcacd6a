from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean, UniqueConstraint

from ..core.database import Base
from ..utils.time_utils import utcnow
from .base import generate_uuid


class Course(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_certifying = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Course(id={self.id}, title={self.title!r}, certifying={self.is_certifying})>"


class CourseVideo(Base):
    __tablename__ = "course_videos"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    course_id = Column(String(36), ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    order_index = Column(Integer, nullable=False, default=0)


class VideoProgress(Base):
    """Per (student, video) completion marker. Partial progress is not used for completion."""
    __tablename__ = "video_progress"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    student_id = Column(String(36), nullable=False, index=True)
    video_id = Column(String(36), ForeignKey("course_videos.id", ondelete="CASCADE"), nullable=False, index=True)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("student_id", "video_id", name="uq_video_progress_student_video"),
    )
