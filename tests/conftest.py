import pytest
from unittest.mock import MagicMock, AsyncMock


@pytest.fixture
def test_db():
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker
    from sqlalchemy.pool import StaticPool
    from campus.core.database import Base
    from campus import models  # noqa: F401

    # Use in-memory SQLite for tests; StaticPool keeps one connection so the API sees the same data
    SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def mock_mail_sender():
    sender = MagicMock()
    sender.send = AsyncMock(return_value="msg_test_1")
    return sender


@pytest.fixture
def mock_renderer():
    renderer = MagicMock()
    renderer.generate = AsyncMock(return_value="/certificates/certificate-test.pdf")
    return renderer


@pytest.fixture
def make_quiz(test_db):
    from campus.models import Quiz, QuizQuestion

    def _make(course, questions=(("A", 1), ("B", 1)), passing_score=70, video=None):
        quiz = Quiz(
            course_id=course.id,
            video_id=video.id if video else None,
            title=f"Quiz {course.title}",
            passing_score=passing_score,
        )
        test_db.add(quiz)
        test_db.flush()
        for index, (correct_answer, points) in enumerate(questions):
            test_db.add(QuizQuestion(
                quiz_id=quiz.id,
                question_text=f"Question {index + 1}",
                options=["A", "B", "C", "D"],
                correct_answer=correct_answer,
                points=points,
                order_index=index,
            ))
        test_db.commit()
        test_db.refresh(quiz)
        return quiz

    return _make


@pytest.fixture
def course_setup(test_db, make_quiz):
    """A certifying course with two videos, one quiz per video and a student profile."""
    from campus.models import Course, CourseVideo, Profile

    course = Course(title="Meta Ads Fondamentaux", is_certifying=True)
    test_db.add(course)
    test_db.flush()

    videos = [
        CourseVideo(course_id=course.id, title="Introduction", order_index=0),
        CourseVideo(course_id=course.id, title="Ciblage", order_index=1),
    ]
    test_db.add_all(videos)
    test_db.add(Profile(user_id="student-1", first_name="Marie", last_name="Curie", email="marie@example.com"))
    test_db.commit()

    quizzes = [make_quiz(course, video=video) for video in videos]
    return {"course": course, "videos": videos, "quizzes": quizzes, "student_id": "student-1"}


@pytest.fixture
def make_contact(test_db):
    from campus.models import Contact

    def _make(email="lead@example.com", **fields):
        contact = Contact(email=email, **fields)
        test_db.add(contact)
        test_db.commit()
        test_db.refresh(contact)
        return contact

    return _make


@pytest.fixture
def make_workflow(test_db):
    from campus.models import Workflow

    def _make(trigger_type, actions, trigger_config=None, status="active", name="Test workflow"):
        workflow = Workflow(
            name=name,
            trigger_type=trigger_type,
            trigger_config=trigger_config or {},
            actions=actions,
            status=status,
        )
        test_db.add(workflow)
        test_db.commit()
        test_db.refresh(workflow)
        return workflow

    return _make


@pytest.fixture
def workflow_engine(test_db, mock_mail_sender):
    from campus.services.workflow.engine import build_workflow_engine
    return build_workflow_engine(test_db, mail_sender=mock_mail_sender)


@pytest.fixture
async def async_client(test_db, mock_renderer, mock_mail_sender):
    from httpx import AsyncClient, ASGITransport
    from campus.main import app
    from campus.core.database import get_db
    from campus.api.dependencies import get_certificate_renderer, get_mail_sender

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_certificate_renderer] = lambda: mock_renderer
    app.dependency_overrides[get_mail_sender] = lambda: mock_mail_sender

    # Use ASGITransport for direct app interaction
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


class FakeClock:
    """Manually advanced stand-in for utcnow."""

    def __init__(self, start):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        from datetime import timedelta
        self.current += timedelta(**kwargs)


@pytest.fixture
def fake_clock():
    from campus.utils.time_utils import utcnow
    return FakeClock(utcnow())


@pytest.fixture
def clocked_engine(test_db, mock_mail_sender, fake_clock):
    from campus.services.workflow.engine import build_workflow_engine
    return build_workflow_engine(test_db, mail_sender=mock_mail_sender, clock=fake_clock)
