import csv
import io
from datetime import datetime, timedelta, timezone

PASSWORD = "password123"


def login(client, email: str, password: str = PASSWORD) -> str:
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()["access_token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_register_always_creates_student(client):
    r = client.post(
        "/auth/register",
        json={"email": "new@example.com", "password": "longenough1", "first_name": "New"},
    )
    assert r.status_code == 201, r.text
    assert r.json()["role"] == "student"

    token = login(client, "new@example.com", "longenough1")
    me = client.get("/auth/me", headers=auth_header(token)).json()
    assert me["email"] == "new@example.com"

    r = client.post(
        "/auth/register", json={"email": "new@example.com", "password": "longenough1"}
    )
    assert r.status_code == 400


def test_login_rejects_bad_password_and_token(client):
    r = client.post("/auth/login", json={"email": "student1@example.com", "password": "nope"})
    assert r.status_code == 401

    r = client.get("/auth/me", headers=auth_header("not-a-token"))
    assert r.status_code == 401


def test_admin_manages_users(client, seed_data):
    admin = login(client, "admin@example.com")

    r = client.get("/users/?role=student", headers=auth_header(admin))
    assert r.status_code == 200
    assert [u["email"] for u in r.json()] == [
        "student1@example.com",
        "student2@example.com",
        "student3@example.com",
    ]

    r = client.post(
        "/users/",
        headers=auth_header(admin),
        json={"email": "ta@example.com", "password": "longenough1", "role": "instructor"},
    )
    assert r.status_code == 201, r.text
    assert r.json()["role"] == "instructor"

    r = client.patch(
        f"/users/{seed_data['student3_id']}", headers=auth_header(admin), json={"is_active": False}
    )
    assert r.json()["is_active"] is False
    r = client.post("/auth/login", json={"email": "student3@example.com", "password": PASSWORD})
    assert r.status_code == 401

    r = client.patch(f"/users/{seed_data['admin_id']}", headers=auth_header(admin), json={"role": "student"})
    assert r.status_code == 400

    instructor = login(client, "instructor1@example.com")
    assert client.get("/users/", headers=auth_header(instructor)).status_code == 403


def test_classes_and_groups(client, seed_data):
    instructor = login(client, "instructor1@example.com")

    r = client.post(
        "/classes/", headers=auth_header(instructor), json={"class_code": "CS202", "name": "Systems"}
    )
    assert r.status_code == 201, r.text
    class_id = r.json()["id"]

    r = client.post(
        "/classes/", headers=auth_header(instructor), json={"class_code": "CS202", "name": "Again"}
    )
    assert r.status_code == 409

    r = client.post(
        f"/classes/{class_id}/students",
        headers=auth_header(instructor),
        json={"user_id": seed_data["student3_id"]},
    )
    assert r.status_code == 201

    r = client.post("/groups/", headers=auth_header(instructor), json={"class_id": class_id, "name": "Pair 1"})
    assert r.status_code == 201, r.text
    group_id = r.json()["id"]

    r = client.post(
        f"/groups/{group_id}/members",
        headers=auth_header(instructor),
        json={"user_id": seed_data["student3_id"]},
    )
    assert r.status_code == 201, r.text

    student3 = login(client, "student3@example.com")
    mine = client.get("/groups/me", headers=auth_header(student3)).json()
    assert [g["id"] for g in mine] == [group_id]

    student1 = login(client, "student1@example.com")
    r = client.get(f"/groups/{group_id}/members", headers=auth_header(student1))
    assert r.status_code == 403

    students = client.get(f"/classes/{class_id}/students", headers=auth_header(instructor)).json()
    assert [s["email"] for s in students] == ["student3@example.com"]


def test_assignment_lifecycle(client, seed_data):
    instructor = login(client, "instructor1@example.com")
    student = login(client, "student1@example.com")

    r = client.post("/assignments/", headers=auth_header(instructor), json={"name": "Lab 3"})
    assert r.status_code == 201, r.text
    assignment = r.json()
    assert assignment["status"] == "draft"

    # nothing has been distributed to the student yet
    assert client.get(f"/assignments/{assignment['id']}", headers=auth_header(student)).status_code == 404
    assert client.get("/assignments/", headers=auth_header(student)).json() == []

    r = client.put(
        f"/assignments/{assignment['id']}", headers=auth_header(instructor), json={"status": "archived"}
    )
    assert r.status_code == 400

    r = client.put(
        f"/assignments/{assignment['id']}", headers=auth_header(instructor), json={"status": "published"}
    )
    assert r.status_code == 200
    assert r.json()["status"] == "published"

    now = datetime.now(timezone.utc)
    r = client.post(
        "/distributions/",
        headers=auth_header(instructor),
        json={
            "assignment_id": assignment["id"],
            "class_id": seed_data["class_id"],
            "assignment_type": "group",
            "group_ids": [seed_data["group_id"]],
            "scheduled_date": (now - timedelta(hours=1)).isoformat(),
            "deadline": (now + timedelta(days=2)).isoformat(),
        },
    )
    assert r.status_code == 201, r.text

    # once distributed it can be archived, never sent back to draft
    r = client.put(
        f"/assignments/{assignment['id']}", headers=auth_header(instructor), json={"status": "draft"}
    )
    assert r.status_code == 400
    r = client.put(
        f"/assignments/{assignment['id']}", headers=auth_header(instructor), json={"status": "archived"}
    )
    assert r.status_code == 200


def test_assignment_pdf_is_gated_by_schedule(client, seed_data):
    instructor = login(client, "instructor1@example.com")
    student = login(client, "student1@example.com")
    assignment_id = seed_data["assignment_id"]

    r = client.post(
        f"/assignments/{assignment_id}/pdf",
        headers=auth_header(instructor),
        files={"file": ("lab1.pdf", io.BytesIO(b"%PDF-1.4 lab"), "application/pdf")},
    )
    assert r.status_code == 200, r.text
    assert r.json()["pdf_file_size"] == len(b"%PDF-1.4 lab")

    r = client.post(
        f"/assignments/{assignment_id}/pdf",
        headers=auth_header(instructor),
        files={"file": ("lab1.docx", io.BytesIO(b"nope"), "application/octet-stream")},
    )
    assert r.status_code == 400

    # not distributed yet
    assert client.get(f"/assignments/{assignment_id}/pdf", headers=auth_header(student)).status_code == 404

    now = datetime.now(timezone.utc)
    client.post(
        "/distributions/",
        headers=auth_header(instructor),
        json={
            "assignment_id": assignment_id,
            "class_id": seed_data["class_id"],
            "assignment_type": "class",
            "scheduled_date": (now - timedelta(minutes=5)).isoformat(),
            "deadline": (now + timedelta(days=2)).isoformat(),
        },
    )
    r = client.get(f"/assignments/{assignment_id}/pdf", headers=auth_header(student))
    assert r.status_code == 200
    assert r.content == b"%PDF-1.4 lab"


def test_dashboards(client, seed_data):
    instructor = login(client, "instructor1@example.com")
    student = login(client, "student1@example.com")
    now = datetime.now(timezone.utc)

    [d] = client.post(
        "/distributions/",
        headers=auth_header(instructor),
        json={
            "assignment_id": seed_data["assignment_id"],
            "class_id": seed_data["class_id"],
            "assignment_type": "class",
            "scheduled_date": (now - timedelta(hours=1)).isoformat(),
            "deadline": (now + timedelta(days=3)).isoformat(),
        },
    ).json()

    for file_type, name in (("assignment_response", "a.pdf"), ("output_test", "out.txt")):
        r = client.post(
            "/submissions/upload",
            headers=auth_header(student),
            data={"distribution_id": str(d["id"]), "file_type": file_type},
            files={"file": (name, io.BytesIO(b"data"), "application/octet-stream")},
        )
        assert r.status_code == 200, r.text
    submission_id = r.json()["submission"]["id"]

    client.post(
        "/grades/",
        headers=auth_header(instructor),
        json={"submission_id": submission_id, "score": 45, "max_score": 50},
    )

    r = client.get("/dashboard/student", headers=auth_header(student))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["total_assignments"] == 1
    assert body["by_status"] == {"completed": 1}
    assert body["graded"] == 1
    assert body["average_percentage"] == 90.0
    # graded, so locked: nothing left to hand in
    assert body["next_deadline_title"] is None

    r = client.get("/dashboard/instructor", headers=auth_header(instructor))
    assert r.status_code == 200, r.text
    [stats] = r.json()
    assert stats["assignment_name"] == "Lab 1"
    assert stats["expected_submissions"] == 2
    assert stats["submitted"] == 1
    assert stats["completed"] == 1
    assert stats["graded"] == 1
    assert stats["ungraded"] == 0

    r = client.get("/grades/analytics", headers=auth_header(instructor))
    assert r.json()["total_grades"] == 1


def test_responses_carry_request_id(client):
    r = client.get("/health")
    assert r.headers["X-Request-ID"]

    r = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"


def _distribute(client, token, seed_data, scheduled_date, deadline):
    r = client.post(
        "/distributions/",
        headers=auth_header(token),
        json={
            "assignment_id": seed_data["assignment_id"],
            "class_id": seed_data["class_id"],
            "assignment_type": "class",
            "scheduled_date": scheduled_date.isoformat(),
            "deadline": deadline.isoformat(),
        },
    )
    assert r.status_code == 201, r.text
    return r.json()[0]


def test_assignment_content_hidden_until_distribution_opens(client, seed_data):
    instructor = login(client, "instructor1@example.com")
    student = login(client, "student1@example.com")
    outsider = login(client, "student3@example.com")
    assignment_id = seed_data["assignment_id"]
    now = datetime.now(timezone.utc)

    client.put(
        f"/assignments/{assignment_id}",
        headers=auth_header(instructor),
        json={"description": "Questions 1 to 5"},
    )
    d = _distribute(client, instructor, seed_data, now + timedelta(days=3), now + timedelta(days=10))

    for token in (student, outsider):
        assert client.get("/assignments/", headers=auth_header(token)).json() == []
        r = client.get(f"/assignments/{assignment_id}", headers=auth_header(token))
        assert r.status_code == 404

    [row] = client.get("/submissions/me", headers=auth_header(student)).json()
    assert row["status"]["status"] == "upcoming"
    assert row["can_access_pdf"] is False
    assert row["description"] is None

    r = client.put(
        f"/distributions/{d['id']}",
        headers=auth_header(instructor),
        json={"scheduled_date": (now - timedelta(hours=1)).isoformat()},
    )
    assert r.status_code == 200, r.text

    listed = client.get("/assignments/", headers=auth_header(student)).json()
    assert [a["id"] for a in listed] == [assignment_id]
    [row] = client.get("/submissions/me", headers=auth_header(student)).json()
    assert row["description"] == "Questions 1 to 5"

    # still outside the audience
    assert client.get("/assignments/", headers=auth_header(outsider)).json() == []
    r = client.get(f"/assignments/{assignment_id}", headers=auth_header(outsider))
    assert r.status_code == 404


def test_archived_assignment_stays_open_through_existing_distribution(client, seed_data):
    instructor = login(client, "instructor1@example.com")
    student = login(client, "student1@example.com")
    assignment_id = seed_data["assignment_id"]
    now = datetime.now(timezone.utc)

    client.post(
        f"/assignments/{assignment_id}/pdf",
        headers=auth_header(instructor),
        files={"file": ("lab1.pdf", io.BytesIO(b"%PDF-1.4 lab"), "application/pdf")},
    )
    _distribute(client, instructor, seed_data, now - timedelta(hours=1), now + timedelta(days=2))

    r = client.put(
        f"/assignments/{assignment_id}", headers=auth_header(instructor), json={"status": "archived"}
    )
    assert r.status_code == 200, r.text

    [row] = client.get("/submissions/me", headers=auth_header(student)).json()
    assert row["can_access_pdf"] is True
    assert row["can_upload"] is True

    r = client.get(f"/assignments/{assignment_id}", headers=auth_header(student))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "archived"

    r = client.get(f"/assignments/{assignment_id}/pdf", headers=auth_header(student))
    assert r.status_code == 200
    assert r.content == b"%PDF-1.4 lab"


def _read_csv(response):
    assert response.status_code == 200, response.text
    assert response.headers["content-type"].startswith("text/csv")
    return list(csv.DictReader(io.StringIO(response.text)))


def test_exports(client, seed_data):
    instructor = login(client, "instructor1@example.com")
    student = login(client, "student1@example.com")
    now = datetime.now(timezone.utc)

    d = _distribute(client, instructor, seed_data, now - timedelta(hours=1), now + timedelta(days=3))
    for file_type, name in (("assignment_response", "a.pdf"), ("output_test", "out.txt")):
        r = client.post(
            "/submissions/upload",
            headers=auth_header(student),
            data={"distribution_id": str(d["id"]), "file_type": file_type},
            files={"file": (name, io.BytesIO(b"data"), "application/octet-stream")},
        )
        assert r.status_code == 200, r.text
    submission_id = r.json()["submission"]["id"]
    client.post(
        "/grades/",
        headers=auth_header(instructor),
        json={"submission_id": submission_id, "score": 45, "max_score": 50, "feedback": "Good, tidy"},
    )

    r = client.get("/export/assignments", headers=auth_header(instructor))
    assert 'filename="assignments_export_' in r.headers["content-disposition"]
    [row] = _read_csv(r)
    assert row["assignment_name"] == "Lab 1"
    assert row["class_name"] == "Intro Lab"
    assert row["assignee"] == "Intro Lab"
    assert row["status"] == "assigned"
    assert row["created_by"] == "Ian Instructor"

    rows = _read_csv(client.get("/export/submissions", headers=auth_header(instructor)))
    by_email = {row["student_email"]: row for row in rows}
    assert set(by_email) == {"student1@example.com", "student2@example.com"}
    assert by_email["student1@example.com"]["status"] == "completed"
    assert by_email["student1@example.com"]["is_locked"] == "true"
    assert by_email["student2@example.com"]["status"] == "pending"
    assert by_email["student2@example.com"]["submitted_at"] == ""

    rows = _read_csv(
        client.get("/export/submissions?status=pending", headers=auth_header(instructor))
    )
    assert [row["student_email"] for row in rows] == ["student2@example.com"]

    [grade] = _read_csv(client.get("/export/grades", headers=auth_header(instructor)))
    assert grade["student_number"] == "S-001"
    assert grade["percentage"] == "90.0"
    assert grade["feedback"] == "Good, tidy"
    assert grade["graded_by"] == "Ian Instructor"

    assert client.get("/export/grades", headers=auth_header(student)).status_code == 403
