from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_

from ..models.course import Course, CourseVideo, VideoProgress
from ..models.profile import Profile
from ..utils.time_utils import utcnow


class CourseRepository:
    def __init__(self, session: Session):
        self.session = session

    def get(self, course_id: str) -> Optional[Course]:
        return self.session.query(Course).filter(Course.id == course_id).first()

    def get_video_ids(self, course_id: str) -> List[str]:
        rows = (
            self.session.query(CourseVideo.id)
            .filter(CourseVideo.course_id == course_id)
            .order_by(CourseVideo.order_index)
            .all()
        )
        return [row.id for row in rows]

    def count_completed_videos(self, student_id: str, video_ids: List[str]) -> int:
        if not video_ids:
            return 0
        return (
            self.session.query(VideoProgress)
            .filter(
                and_(
                    VideoProgress.student_id == student_id,
                    VideoProgress.video_id.in_(video_ids),
                    VideoProgress.completed == True
                )
            )
            .count()
        )

    def count_all_completed_videos(self, student_id: str) -> int:
        return (
            self.session.query(VideoProgress)
            .filter(VideoProgress.student_id == student_id, VideoProgress.completed == True)
            .count()
        )

    def mark_video_completed(self, student_id: str, video_id: str) -> VideoProgress:
        progress = (
            self.session.query(VideoProgress)
            .filter(VideoProgress.student_id == student_id, VideoProgress.video_id == video_id)
            .first()
        )
        if not progress:
            progress = VideoProgress(student_id=student_id, video_id=video_id)
            self.session.add(progress)
        progress.completed = True
        progress.completed_at = utcnow()
        self.session.commit()
        self.session.refresh(progress)
        return progress

    def get_profile(self, user_id: str) -> Optional[Profile]:
        return self.session.query(Profile).filter(Profile.user_id == user_id).first()
