from datetime import datetime, timedelta, timezone

import pytest

from labsync.core.errors import NotFoundError, ValidationError
from labsync.models.distribution import AssignmentDistribution
from labsync.models.grade import AssignmentGrade
from labsync.models.submission import AssignmentSubmission
from labsync.services import distributions as dist_service
from labsync.services import grading
from labsync.services import submissions as tracker
from labsync.services.submissions import FileMetadata, FileType

PASSWORD = "password123"
T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
T1 = datetime(2024, 1, 8, tzinfo=timezone.utc)


def login(client, email: str, password: str = PASSWORD) -> str:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_deadline_must_follow_schedule(db, seed_data):
    with pytest.raises(ValidationError) as exc:
        dist_service.create_distributions(
            db, seed_data["assignment_id"], seed_data["class_id"], "class", T1, T0
        )
    assert exc.value.field == "deadline"

    with pytest.raises(ValidationError):
        dist_service.create_distributions(
            db, seed_data["assignment_id"], seed_data["class_id"], "class", T0, T0
        )


@pytest.mark.parametrize(
    "assignment_type, group_ids, user_ids",
    [
        ("class", [1], []),
        ("class", [], [1]),
        ("group", [], []),
        ("group", [1], [1]),
        ("individual", [], []),
        ("individual", [1], [1]),
        ("team", [], []),
    ],
)
def test_audience_must_match_type(db, seed_data, assignment_type, group_ids, user_ids):
    with pytest.raises(ValidationError):
        dist_service.create_distributions(
            db,
            seed_data["assignment_id"],
            seed_data["class_id"],
            assignment_type,
            T0,
            T1,
            group_ids=group_ids,
            user_ids=user_ids,
        )


def test_only_published_assignments_can_be_distributed(db, seed_data):
    with pytest.raises(ValidationError):
        dist_service.create_distributions(
            db, seed_data["draft_assignment_id"], seed_data["class_id"], "class", T0, T1
        )
    with pytest.raises(NotFoundError):
        dist_service.create_distributions(db, 999999, seed_data["class_id"], "class", T0, T1)


def test_class_distribution_reaches_enrolled_and_group_students(db, seed_data):
    [d] = dist_service.create_distributions(
        db, seed_data["assignment_id"], seed_data["class_id"], "class", T0, T1
    )
    assert d.status == "assigned"
    assert dist_service.audience_user_ids(db, d) == {seed_data["student1_id"], seed_data["student2_id"]}
    assert not dist_service.is_in_audience(db, d, seed_data["student3_id"])


def test_group_fan_out_one_row_per_group(db, seed_data):
    rows = dist_service.create_distributions(
        db,
        seed_data["assignment_id"],
        seed_data["class_id"],
        "group",
        T0,
        T1,
        group_ids=[seed_data["group_id"], seed_data["group_id"]],
    )
    assert len(rows) == 1
    assert rows[0].group_id == seed_data["group_id"]
    assert dist_service.audience_user_ids(db, rows[0]) == {
        seed_data["student1_id"],
        seed_data["student2_id"],
    }


def test_individual_fan_out_one_row_per_student(db, seed_data):
    rows = dist_service.create_distributions(
        db,
        seed_data["assignment_id"],
        seed_data["class_id"],
        "individual",
        T0,
        T1,
        user_ids=[seed_data["student1_id"], seed_data["student3_id"]],
    )
    assert sorted(r.user_id for r in rows) == sorted([seed_data["student1_id"], seed_data["student3_id"]])
    assert all(r.group_id is None for r in rows)

    ids = {d.id for d in dist_service.distributions_for_student(db, seed_data["student3_id"])}
    assert ids == {r.id for r in rows if r.user_id == seed_data["student3_id"]}


def test_individual_audience_must_be_students(db, seed_data):
    with pytest.raises(ValidationError):
        dist_service.create_distributions(
            db,
            seed_data["assignment_id"],
            seed_data["class_id"],
            "individual",
            T0,
            T1,
            user_ids=[seed_data["instructor_id"]],
        )


def test_status_transitions(db, make_distribution):
    d = make_distribution()
    d = dist_service.update_distribution(db, d, status="in_progress")
    assert d.status == "in_progress"

    with pytest.raises(ValidationError):
        dist_service.update_distribution(db, d, status="assigned")

    d = dist_service.update_distribution(db, d, status="completed")
    # same status again is a no-op
    d = dist_service.update_distribution(db, d, status="completed")
    assert d.status == "completed"

    for target in ("assigned", "in_progress", "cancelled"):
        with pytest.raises(ValidationError):
            dist_service.update_distribution(db, d, status=target)


def test_reschedule_validates_against_stored_dates(db, make_distribution):
    d = make_distribution(scheduled_date=T0, deadline=T1)
    with pytest.raises(ValidationError):
        dist_service.update_distribution(db, d, deadline=T0 - timedelta(days=1))

    d = dist_service.update_distribution(db, d, deadline=T1 + timedelta(days=2))
    assert d.deadline.replace(tzinfo=None) == datetime(2024, 1, 10)


def test_deadline_does_not_change_persisted_status(db, make_distribution):
    d = make_distribution(scheduled_date=T0, deadline=T1)
    # deadline long gone, nothing has run
    db.refresh(d)
    assert d.status == "assigned"


def test_delete_cascades_to_submissions_and_grades(db, make_distribution, seed_data):
    d = make_distribution()
    sub = tracker.attach_file(
        db,
        d,
        seed_data["student1_id"],
        FileType.ASSIGNMENT_RESPONSE,
        FileMetadata(filename="assignment_response-x.pdf", size_bytes=5),
    ).submission
    grading.submit_grade(db, sub.id, 10, 10, seed_data["instructor_id"])

    dist_service.delete_distribution(db, d)

    assert db.query(AssignmentDistribution).count() == 0
    assert db.query(AssignmentSubmission).count() == 0
    assert db.query(AssignmentGrade).count() == 0


# HTTP


def _payload(seed_data, **overrides):
    now = datetime.now(timezone.utc)
    body = {
        "assignment_id": seed_data["assignment_id"],
        "class_id": seed_data["class_id"],
        "assignment_type": "class",
        "scheduled_date": (now - timedelta(hours=1)).isoformat(),
        "deadline": (now + timedelta(days=7)).isoformat(),
    }
    body.update(overrides)
    return body


def test_create_and_list_distributions_via_api(client, seed_data):
    instructor = login(client, "instructor1@example.com")
    r = client.post("/distributions/", headers=auth_header(instructor), json=_payload(seed_data))
    assert r.status_code == 201, r.text
    [created] = r.json()

    student = login(client, "student1@example.com")
    r = client.get("/distributions/", headers=auth_header(student))
    assert [d["id"] for d in r.json()] == [created["id"]]

    outsider = login(client, "student3@example.com")
    assert client.get("/distributions/", headers=auth_header(outsider)).json() == []
    r = client.get(f"/distributions/{created['id']}", headers=auth_header(outsider))
    assert r.status_code == 404


def test_api_rejects_bad_schedule(client, seed_data):
    instructor = login(client, "instructor1@example.com")
    now = datetime.now(timezone.utc)
    r = client.post(
        "/distributions/",
        headers=auth_header(instructor),
        json=_payload(seed_data, deadline=(now - timedelta(days=1)).isoformat()),
    )
    assert r.status_code == 400
    assert r.json()["field"] == "deadline"


def test_students_cannot_distribute(client, seed_data):
    student = login(client, "student1@example.com")
    r = client.post("/distributions/", headers=auth_header(student), json=_payload(seed_data))
    assert r.status_code == 403


def test_cancel_via_api_blocks_uploads(client, seed_data):
    instructor = login(client, "instructor1@example.com")
    [created] = client.post(
        "/distributions/", headers=auth_header(instructor), json=_payload(seed_data)
    ).json()

    r = client.put(
        f"/distributions/{created['id']}",
        headers=auth_header(instructor),
        json={"status": "cancelled"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "cancelled"

    student = login(client, "student1@example.com")
    rows = client.get("/submissions/me", headers=auth_header(student)).json()
    assert rows[0]["status"]["status"] == "cancelled"
    assert rows[0]["can_upload"] is False


def test_delete_via_api(client, seed_data):
    instructor = login(client, "instructor1@example.com")
    [created] = client.post(
        "/distributions/", headers=auth_header(instructor), json=_payload(seed_data)
    ).json()

    r = client.delete(f"/distributions/{created['id']}", headers=auth_header(instructor))
    assert r.status_code == 204
    r = client.get(f"/distributions/{created['id']}", headers=auth_header(instructor))
    assert r.status_code == 404
