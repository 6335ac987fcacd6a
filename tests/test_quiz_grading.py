import pytest
from sqlalchemy.exc import IntegrityError

from campus.exceptions import ConfigurationError, ConflictError, QuizNotFoundError
from campus.models import Course, CourseVideo, Quiz, QuizAttempt, QuizQuestion
from campus.repositories.quiz_repository import QuizRepository
from campus.services.quiz_grading_service import QuizGradingEngine, grade_answers, round_half_up_percentage


@pytest.fixture
def course(test_db):
    course = Course(title="Pixel & Conversions")
    test_db.add(course)
    test_db.commit()
    return course


@pytest.fixture
def engine(test_db):
    return QuizGradingEngine(QuizRepository(test_db))


def question(question_id, correct_answer, points=1):
    return QuizQuestion(id=question_id, question_text=question_id, correct_answer=correct_answer, points=points)


def test_round_half_up_percentage():
    assert round_half_up_percentage(1, 8) == 13  # 12.5
    assert round_half_up_percentage(3, 8) == 38  # 37.5
    assert round_half_up_percentage(2, 3) == 67
    assert round_half_up_percentage(1, 3) == 33
    assert round_half_up_percentage(0, 5) == 0
    assert round_half_up_percentage(5, 5) == 100


def test_grade_answers_weights_points():
    questions = [question("q1", "A", points=3), question("q2", "B", points=1)]

    result = grade_answers(questions, {"q1": "A", "q2": "C"})

    assert result.earned_points == 3
    assert result.total_points == 4
    assert result.score == 75
    assert result.correct_question_ids == ["q1"]


def test_grade_answers_requires_exact_match():
    questions = [question("q1", "Paris")]

    assert grade_answers(questions, {"q1": "paris"}).score == 0
    assert grade_answers(questions, {"q1": " Paris"}).score == 0
    assert grade_answers(questions, {"q1": "Paris"}).score == 100


def test_unanswered_questions_count_toward_total():
    questions = [question("q1", "A"), question("q2", "B")]

    result = grade_answers(questions, {"q1": "A", "unknown": "B"})

    assert result.score == 50


def test_grade_answers_without_points_is_a_configuration_error():
    with pytest.raises(ConfigurationError) as exc_info:
        grade_answers([], {})
    assert exc_info.value.error_code == "QUIZ_HAS_NO_QUESTIONS"


def test_non_positive_points_are_rejected_before_scoring():
    questions = [question("q1", "A", points=3), question("q2", "B", points=-1)]

    with pytest.raises(ConfigurationError) as exc_info:
        grade_answers(questions, {"q1": "A", "q2": "X"})

    assert exc_info.value.error_code == "INVALID_QUESTION_POINTS"
    assert exc_info.value.details == {"question_id": "q2", "points": -1}


def test_question_points_must_be_positive_in_storage(test_db, course, make_quiz):
    quiz = make_quiz(course, questions=(("A", 1),))
    test_db.add(QuizQuestion(quiz_id=quiz.id, question_text="q", correct_answer="B", points=0))

    with pytest.raises(IntegrityError):
        test_db.commit()
    test_db.rollback()


def test_passing_score_must_stay_within_percent_range(test_db, course):
    test_db.add(Quiz(course_id=course.id, title="Out of range", passing_score=120))

    with pytest.raises(IntegrityError):
        test_db.commit()
    test_db.rollback()


@pytest.mark.asyncio
async def test_submit_quiz_full_marks_passes(engine, course, make_quiz):
    quiz = make_quiz(course, questions=(("A", 1), ("B", 1)), passing_score=70)
    question_ids = [q.id for q in engine.quiz_repo.get_questions(quiz.id)]

    attempt = await engine.submit_quiz(quiz.id, "student-1", {question_ids[0]: "A", question_ids[1]: "B"})

    assert attempt.score == 100
    assert attempt.passed is True
    assert attempt.answers == {question_ids[0]: "A", question_ids[1]: "B"}


@pytest.mark.asyncio
async def test_submit_quiz_half_marks_fails(engine, course, make_quiz):
    quiz = make_quiz(course, questions=(("A", 1), ("B", 1)), passing_score=70)
    question_ids = [q.id for q in engine.quiz_repo.get_questions(quiz.id)]

    attempt = await engine.submit_quiz(quiz.id, "student-1", {question_ids[0]: "A", question_ids[1]: "X"})

    assert attempt.score == 50
    assert attempt.passed is False


@pytest.mark.asyncio
async def test_score_equal_to_passing_score_passes(engine, course, make_quiz):
    quiz = make_quiz(course, questions=(("A", 7), ("B", 3)), passing_score=70)
    first, _ = engine.quiz_repo.get_questions(quiz.id)

    attempt = await engine.submit_quiz(quiz.id, "student-1", {first.id: "A"})

    assert attempt.score == 70
    assert attempt.passed is True


@pytest.mark.asyncio
async def test_every_submission_is_recorded(engine, course, make_quiz, test_db):
    quiz = make_quiz(course)

    await engine.submit_quiz(quiz.id, "student-1", {})
    await engine.submit_quiz(quiz.id, "student-1", {})

    assert test_db.query(QuizAttempt).filter(QuizAttempt.quiz_id == quiz.id).count() == 2


@pytest.mark.asyncio
async def test_unknown_quiz_writes_nothing(engine, test_db):
    with pytest.raises(QuizNotFoundError):
        await engine.submit_quiz("missing-quiz", "student-1", {"q1": "A"})

    assert test_db.query(QuizAttempt).count() == 0


@pytest.mark.asyncio
async def test_quiz_without_questions_writes_nothing(engine, course, make_quiz, test_db):
    quiz = make_quiz(course, questions=())

    with pytest.raises(ConfigurationError):
        await engine.submit_quiz(quiz.id, "student-1", {})

    assert test_db.query(QuizAttempt).count() == 0


def test_second_quiz_for_the_same_video_is_rejected(test_db, course):
    video = CourseVideo(course_id=course.id, title="Pixel")
    test_db.add(video)
    test_db.commit()
    repo = QuizRepository(test_db)

    repo.create(Quiz(course_id=course.id, video_id=video.id, title="Quiz 1"))
    with pytest.raises(ConflictError) as exc_info:
        repo.create(Quiz(course_id=course.id, video_id=video.id, title="Quiz 2"))

    assert exc_info.value.error_code == "QUIZ_SLOT_TAKEN"
    # Course-level quizzes have no video and never collide.
    repo.create(Quiz(course_id=course.id, title="Examen final"))
    repo.create(Quiz(course_id=course.id, title="Examen de rattrapage"))
    assert len(repo.get_quiz_ids_for_course(course.id)) == 3


@pytest.mark.asyncio
async def test_score_one_below_passing_score_fails(engine, course, make_quiz):
    quiz = make_quiz(course, questions=(("A", 69), ("B", 31)), passing_score=70)
    first, _ = engine.quiz_repo.get_questions(quiz.id)

    attempt = await engine.submit_quiz(quiz.id, "student-1", {first.id: "A"})

    assert attempt.score == 69
    assert attempt.passed is False
