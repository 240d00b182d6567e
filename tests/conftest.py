import os
from datetime import datetime, timedelta, timezone

TEST_DB_FILE = "test_labsync.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"

# keep the app's own startup hook off the development database
os.environ.setdefault("LABSYNC_DATABASE_URL", TEST_DB_URL)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from labsync.core.deps import get_db, get_storage  # noqa: E402
from labsync.core.security import hash_password  # noqa: E402
from labsync.db.base import Base  # noqa: E402
from labsync.db.session import make_engine  # noqa: E402
from labsync.main import app  # noqa: E402
from labsync.models.assignment import Assignment  # noqa: E402
from labsync.models.distribution import AssignmentDistribution  # noqa: E402
from labsync.models.grade import AssignmentGrade  # noqa: E402
from labsync.models.group import Group, GroupMember  # noqa: E402
from labsync.models.school_class import ClassStudent, SchoolClass  # noqa: E402
from labsync.models.submission import AssignmentSubmission  # noqa: E402
from labsync.models.user import User  # noqa: E402
from labsync.services.file_storage import LocalFileStorage  # noqa: E402

PASSWORD = "password123"
PASSWORD_HASH = hash_password(PASSWORD)

engine = make_engine(TEST_DB_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


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
    """Seed a clean minimal dataset for each test and hand back the ids.

    student1 and student2 are enrolled in CS101 and form "Team A";
    student3 is a student outside the class.
    """
    db = TestingSessionLocal()
    try:
        # Clear tables (child -> parent)
        for model in (
            AssignmentGrade,
            AssignmentSubmission,
            AssignmentDistribution,
            Assignment,
            GroupMember,
            Group,
            ClassStudent,
            SchoolClass,
            User,
        ):
            db.query(model).delete()
        db.commit()

        def user(email, role, first, last, student_id=None):
            return User(
                email=email,
                first_name=first,
                last_name=last,
                student_id=student_id,
                role=role,
                hashed_password=PASSWORD_HASH,
            )

        admin = user("admin@example.com", "admin", "Ada", "Admin")
        instructor = user("instructor1@example.com", "instructor", "Ian", "Instructor")
        student1 = user("student1@example.com", "student", "Sam", "One", "S-001")
        student2 = user("student2@example.com", "student", "Sue", "Two", "S-002")
        student3 = user("student3@example.com", "student", "Sid", "Three", "S-003")
        db.add_all([admin, instructor, student1, student2, student3])
        db.commit()

        # Class and enrollment
        school_class = SchoolClass(class_code="CS101", name="Intro Lab", instructor_id=instructor.id)
        db.add(school_class)
        db.commit()
        db.add_all(
            [
                ClassStudent(class_id=school_class.id, user_id=student1.id),
                ClassStudent(class_id=school_class.id, user_id=student2.id),
            ]
        )

        group = Group(class_id=school_class.id, name="Team A", leader_id=student1.id)
        db.add(group)
        db.commit()
        db.add_all(
            [
                GroupMember(group_id=group.id, user_id=student1.id),
                GroupMember(group_id=group.id, user_id=student2.id),
            ]
        )

        # Assignments
        published = Assignment(name="Lab 1", status="published", created_by=instructor.id)
        draft = Assignment(name="Lab 2 (draft)", status="draft", created_by=instructor.id)
        db.add_all([published, draft])
        db.commit()

        yield {
            "admin_id": admin.id,
            "instructor_id": instructor.id,
            "student1_id": student1.id,
            "student2_id": student2.id,
            "student3_id": student3.id,
            "class_id": school_class.id,
            "group_id": group.id,
            "assignment_id": published.id,
            "draft_assignment_id": draft.id,
        }
    finally:
        db.close()


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def storage(tmp_path):
    return LocalFileStorage(tmp_path / "uploads", max_bytes=1024)


@pytest.fixture()
def client(storage):
    """Test client that uses the test DB session and a temp upload dir."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_distribution(db, seed_data):
    """Create a distribution directly, bypassing the API."""

    def _make(
        scheduled_date=None,
        deadline=None,
        assignment_type="class",
        status="assigned",
        group_id=None,
        user_id=None,
    ):
        now = datetime.now(timezone.utc)
        d = AssignmentDistribution(
            assignment_id=seed_data["assignment_id"],
            class_id=seed_data["class_id"],
            assignment_type=assignment_type,
            group_id=group_id,
            user_id=user_id,
            scheduled_date=scheduled_date or now - timedelta(days=1),
            deadline=deadline or now + timedelta(days=7),
            status=status,
        )
        db.add(d)
        db.commit()
        db.refresh(d)
        return d

    return _make


@pytest.fixture()
def session_factory():
    return TestingSessionLocal
