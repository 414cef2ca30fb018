import os
from datetime import datetime, timedelta, timezone

TEST_DB_FILE = "test_submission_engine.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"

# point the app engine at the test database before it is created
os.environ.setdefault("DATABASE_URL", TEST_DB_URL)

import pytest  # noqa: E402
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from submission_engine.core.deps import get_db, get_media_service, get_notifier
from submission_engine.core.permissions import Actor
from submission_engine.core.security import create_access_token
from submission_engine.db.base import Base
from submission_engine.main import app
from submission_engine.models.assignment import Assignment, PublicationStatus
from submission_engine.models.course import Course
from submission_engine.models.enrollment import Enrollment
from submission_engine.models.peer_review import PeerReview
from submission_engine.models.submission import Submission
from submission_engine.models.user import User
from submission_engine.services.media import LocalMediaStorage

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, event, submission):
        self.events.append((event, submission.id))


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create a fresh schema once for the whole test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)


@pytest.fixture(autouse=True)
def seed_data():
    """Seed a clean minimal dataset for each test; yields the ids."""
    db = TestingSessionLocal()
    try:
        # Clear tables (child -> parent)
        db.query(PeerReview).delete()
        db.query(Submission).delete()
        db.query(Enrollment).delete()
        db.query(Assignment).delete()
        db.query(Course).delete()
        db.query(User).delete()
        db.commit()

        student = User(email="student1@example.com", full_name="Student One", role="student")
        peer = User(email="student2@example.com", full_name="Student Two", role="student")
        outsider = User(email="student3@example.com", full_name="Student Three", role="student")
        instructor = User(email="instructor1@example.com", full_name="Instructor One", role="instructor")
        other_instructor = User(email="instructor2@example.com", full_name="Instructor Two", role="instructor")
        db.add_all([student, peer, outsider, instructor, other_instructor])
        db.commit()

        course = Course(title="CS5004", instructor_id=instructor.id)
        db.add(course)
        db.commit()

        db.add_all(
            [
                Enrollment(course_id=course.id, student_id=student.id),
                Enrollment(course_id=course.id, student_id=peer.id),
            ]
        )

        # Assignment (future due date so submissions allowed)
        assignment = Assignment(
            course_id=course.id,
            title="HW1",
            due_at=datetime.now(timezone.utc) + timedelta(days=1),
            total_points=100,
            allow_late_submission=True,
            late_penalty=10,
            max_attempts=2,
            allow_peer_review=True,
            publication_status=PublicationStatus.PUBLISHED,
        )
        db.add(assignment)
        db.commit()

        yield {
            "student": student.id,
            "peer": peer.id,
            "outsider": outsider.id,
            "instructor": instructor.id,
            "other_instructor": other_instructor.id,
            "course": course.id,
            "assignment": assignment.id,
        }
    finally:
        db.close()


@pytest.fixture()
def ids(seed_data):
    return seed_data


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def student(ids):
    return Actor(user_id=ids["student"], role="student")


@pytest.fixture()
def peer(ids):
    return Actor(user_id=ids["peer"], role="student")


@pytest.fixture()
def instructor(ids):
    return Actor(user_id=ids["instructor"], role="instructor", can_grade=True)


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def media(tmp_path):
    return LocalMediaStorage(root=tmp_path / "media", url_prefix="/media")


@pytest.fixture()
def client(notifier, media):
    """Test client that uses the test DB session via dependency override."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_media_service] = lambda: media
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth_header(user_id: int) -> dict:
    token = create_access_token(data={"sub": str(user_id)})
    return {"Authorization": f"Bearer {token}"}


def update_assignment(assignment_id: int, **values) -> None:
    db = TestingSessionLocal()
    try:
        db.query(Assignment).filter(Assignment.id == assignment_id).update(values)
        db.commit()
    finally:
        db.close()
