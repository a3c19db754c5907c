from app.core.exceptions import (
    AppError,
    NotFoundError,
    PushDeliveryError,
    ScheduleConflictError,
    UpstreamUnavailable,
    ValidationError,
)
from factories import auth_headers, make_user


def test_validation_error_structure():
    err = ValidationError(message="Reason must not be empty", details={"field": "reason"})
    assert err.status_code == 422
    assert err.message == "Reason must not be empty"
    assert err.details == {"field": "reason"}
    assert isinstance(err, AppError)


def test_not_found_error_names_resource():
    err = NotFoundError("Class", "c-404")
    assert err.status_code == 404
    assert err.message == "Class with id c-404 not found"
    assert err.details == {"resource_type": "Class", "resource_id": "c-404"}


def test_upstream_and_push_errors():
    upstream = UpstreamUnavailable("roster")
    assert upstream.status_code == 503
    assert upstream.message == "roster is unavailable"
    assert upstream.details == {"service": "roster"}

    assert ScheduleConflictError("changed").status_code == 409
    assert PushDeliveryError("timed out").status_code == 502


def test_app_error_defaults():
    err = AppError("Generic error")
    assert err.status_code == 500
    assert err.details == {}


def test_app_errors_render_as_json(client, db_session):
    teacher = make_user(db_session, "Tara Teacher", "teacher")

    response = client.get("/api/classes/missing/schedule", headers=auth_headers(teacher))
    assert response.status_code == 404
    body = response.json()
    assert body["message"] == "Class with id missing not found"
    assert body["details"] == {"resource_type": "Class", "resource_id": "missing"}
