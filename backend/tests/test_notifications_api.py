from app.models.activity_log import ActivityLog
from factories import MONDAY, auth_headers, make_class, make_user


def _seed_notifications(client, db):
    hod = make_user(db, "Hana Head", "teacher")
    admin = make_user(db, "Ada Admin", "admin")
    student = make_user(db, "Sam Student", "student")
    school_class = make_class(db, "Grade 7A", hod=hod, students=[student])
    response = client.post(
        "/api/absences",
        json={
            "role": "student",
            "class_id": school_class.id,
            "reason": "Flu",
            "absence_date": MONDAY.isoformat(),
            "duration": 1,
        },
        headers=auth_headers(student),
    )
    assert response.status_code == 201
    return hod, admin, student, response.json()["absence"]["id"]


def test_recipients_see_their_notifications(client, db_session):
    hod, admin, student, absence_id = _seed_notifications(client, db_session)

    response = client.get("/api/notifications", headers=auth_headers(hod))
    assert response.status_code == 200
    [item] = response.json()
    assert item["user_id"] == hod.id
    assert item["event_type"] == "absence_submitted"
    assert item["absence_id"] == absence_id
    assert item["title"] == "Student Absence Application"
    assert "Sam Student" in item["message"]
    assert item["payload"]["absenceId"] == absence_id
    assert item["is_read"] is False

    assert len(client.get("/api/notifications", headers=auth_headers(admin)).json()) == 1
    assert client.get("/api/notifications", headers=auth_headers(student)).json() == []


def test_mark_read_and_read_all(client, db_session):
    hod, admin, _, _ = _seed_notifications(client, db_session)
    [item] = client.get("/api/notifications", headers=auth_headers(hod)).json()

    not_mine = client.post(f"/api/notifications/{item['id']}/read", headers=auth_headers(admin))
    assert not_mine.status_code == 404

    marked = client.post(f"/api/notifications/{item['id']}/read", headers=auth_headers(hod))
    assert marked.status_code == 200
    assert marked.json()["is_read"] is True

    unread = client.get("/api/notifications", params={"is_read": False}, headers=auth_headers(hod))
    assert unread.json() == []

    read_all = client.post("/api/notifications/read-all", headers=auth_headers(admin))
    assert read_all.json() == {"updated": 1}
    assert client.post("/api/notifications/read-all", headers=auth_headers(admin)).json() == {"updated": 0}

    db_session.expire_all()
    actions = [entry.action for entry in db_session.query(ActivityLog).all()]
    assert actions.count("notification.read_all") == 1


def test_filter_by_event_type(client, db_session):
    hod, _, _, _ = _seed_notifications(client, db_session)

    submitted = client.get(
        "/api/notifications",
        params={"event_type": "absence_submitted"},
        headers=auth_headers(hod),
    )
    assert len(submitted.json()) == 1

    assigned = client.get(
        "/api/notifications",
        params={"event_type": "substitute_assigned"},
        headers=auth_headers(hod),
    )
    assert assigned.json() == []
