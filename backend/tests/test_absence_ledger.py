import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.models.absence import AbsenceRole, AbsenceStatus
from app.models.activity_log import ActivityLog
from app.services.absence_ledger import AbsenceFilter, AbsenceLedger
from factories import MONDAY, TUESDAY, make_class, make_user


def _base_payload(person, school_class, **overrides):
    payload = {
        "person_id": person.id,
        "role": "teacher",
        "class_id": school_class.id,
        "reason": "Medical appointment",
        "absence_date": MONDAY,
        "duration": 1,
    }
    payload.update(overrides)
    return payload


def test_submit_persists_pending_record_and_activity(db_session):
    teacher = make_user(db_session, "Tara Teacher", "teacher")
    school_class = make_class(db_session, "Grade 7A")
    ledger = AbsenceLedger(db_session)

    record = ledger.submit(**_base_payload(teacher, school_class, reason="  Medical appointment  "))

    assert record.id
    assert record.status == AbsenceStatus.pending
    assert record.role == AbsenceRole.teacher
    assert record.reason == "Medical appointment"
    assert record.absence_date == MONDAY
    assert record.duration == 1.0

    actions = [item.action for item in db_session.query(ActivityLog).all()]
    assert actions == ["absence.submit"]


def test_submit_accepts_iso_date_strings_and_fractional_duration(db_session):
    student = make_user(db_session, "Sam Student", "student")
    school_class = make_class(db_session, "Grade 7A", students=[student])
    ledger = AbsenceLedger(db_session)

    record = ledger.submit(
        **_base_payload(student, school_class, role="Student", absence_date="2026-10-20", duration="0.5")
    )

    assert record.role == AbsenceRole.student
    assert record.absence_date == TUESDAY
    assert record.duration == 0.5


@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"reason": "   "}, "reason"),
        ({"role": "janitor"}, "role"),
        ({"role": ""}, "role"),
        ({"absence_date": "2026-02-30"}, "date"),
        ({"absence_date": None}, "date"),
        ({"duration": 0}, "duration"),
        ({"duration": -2}, "duration"),
        ({"duration": "half a day"}, "duration"),
        ({"duration": True}, "duration"),
        ({"class_id": " "}, "class_id"),
    ],
)
def test_submit_rejects_invalid_input(db_session, overrides, field):
    teacher = make_user(db_session, "Tara Teacher", "teacher")
    school_class = make_class(db_session, "Grade 7A")
    ledger = AbsenceLedger(db_session)

    with pytest.raises(ValidationError) as exc_info:
        ledger.submit(**_base_payload(teacher, school_class, **overrides))

    assert exc_info.value.details["field"] == field
    assert ledger.list_absences() == []


def test_submit_rejects_overlong_evidence_reference(db_session):
    teacher = make_user(db_session, "Tara Teacher", "teacher")
    school_class = make_class(db_session, "Grade 7A")
    ledger = AbsenceLedger(db_session, max_evidence_ref_length=10)

    with pytest.raises(ValidationError):
        ledger.submit(**_base_payload(teacher, school_class, evidence_ref="https://files.example.com/note.pdf"))

    record = ledger.submit(**_base_payload(teacher, school_class, evidence_ref="note.pdf"))
    assert record.evidence_ref == "note.pdf"


def test_submit_rejects_unknown_references(db_session):
    teacher = make_user(db_session, "Tara Teacher", "teacher")
    school_class = make_class(db_session, "Grade 7A")
    ledger = AbsenceLedger(db_session)

    with pytest.raises(NotFoundError) as class_missing:
        ledger.submit(**_base_payload(teacher, school_class, class_id="no-such-class"))
    assert class_missing.value.details["resource_type"] == "Class"

    with pytest.raises(NotFoundError) as person_missing:
        ledger.submit(**_base_payload(teacher, school_class, person_id="no-such-person"))
    assert person_missing.value.details["resource_type"] == "User"


def test_set_status_records_reviewer(db_session):
    teacher = make_user(db_session, "Tara Teacher", "teacher")
    admin = make_user(db_session, "Ada Admin", "admin")
    school_class = make_class(db_session, "Grade 7A")
    ledger = AbsenceLedger(db_session)
    record = ledger.submit(**_base_payload(teacher, school_class))

    updated = ledger.set_status(record.id, AbsenceStatus.approved, reviewer_id=admin.id)

    assert updated.status == AbsenceStatus.approved
    assert updated.reviewed_by_id == admin.id
    assert updated.reviewed_at is not None

    with pytest.raises(NotFoundError):
        ledger.set_status("missing", AbsenceStatus.rejected, reviewer_id=admin.id)


def test_list_absences_filters_and_names(db_session):
    teacher = make_user(db_session, "Tara Teacher", "teacher")
    student = make_user(db_session, "Sam Student", "student")
    school_class = make_class(db_session, "Grade 7A", students=[student])
    ledger = AbsenceLedger(db_session)
    ledger.submit(**_base_payload(teacher, school_class))
    ledger.submit(**_base_payload(student, school_class, role="student", absence_date=TUESDAY))

    everything = ledger.list_absences()
    assert [item.record.absence_date for item in everything] == [TUESDAY, MONDAY]
    assert everything[0].person_name == "Sam Student"
    assert everything[0].class_name == "Grade 7A"
    assert everything[1].substitute_teacher_id is None

    teachers_only = ledger.list_absences(AbsenceFilter(role=AbsenceRole.teacher))
    assert [item.record.person_id for item in teachers_only] == [teacher.id]

    on_monday = ledger.list_absences(AbsenceFilter(absence_date=MONDAY))
    assert len(on_monday) == 1

    paged = ledger.list_absences(AbsenceFilter(limit=1, offset=1))
    assert [item.record.absence_date for item in paged] == [MONDAY]
