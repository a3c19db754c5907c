from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_absence_workflow, get_current_user, require_roles
from app.models.absence import AbsenceRole, AbsenceStatus
from app.models.user import User, UserRole
from app.schemas.absence import (
    AbsenceCreate,
    AbsenceListItem,
    AbsenceOut,
    AbsenceStatusUpdate,
    AbsenceSubmissionOut,
    ResolutionRunOut,
)
from app.services.absence_ledger import AbsenceFilter, AbsenceListing
from app.services.absence_workflow import AbsenceWorkflow

router = APIRouter()


def _listing_out(listing: AbsenceListing) -> AbsenceListItem:
    base = AbsenceOut.model_validate(listing.record)
    return AbsenceListItem(
        **base.model_dump(),
        person_name=listing.person_name,
        class_name=listing.class_name,
        substitute_teacher_id=listing.substitute_teacher_id,
        substitute_name=listing.substitute_name,
    )


@router.post(
    "/absences",
    response_model=AbsenceSubmissionOut,
    status_code=status.HTTP_201_CREATED,
)
def submit_absence(
    payload: AbsenceCreate,
    current_user: User = Depends(get_current_user),
    workflow: AbsenceWorkflow = Depends(get_absence_workflow),
) -> AbsenceSubmissionOut:
    person_id = payload.person_id or current_user.id
    if person_id != current_user.id and current_user.role != UserRole.admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators can report an absence for someone else",
        )

    result = workflow.submit_absence(
        person_id=person_id,
        role=payload.role,
        class_id=payload.class_id,
        reason=payload.reason,
        absence_date=payload.absence_date,
        duration=payload.duration,
        evidence_ref=payload.evidence_ref,
        actor_id=current_user.id,
    )
    return AbsenceSubmissionOut.model_validate(result)


@router.get("/absences", response_model=list[AbsenceListItem])
def list_absences(
    absence_status: AbsenceStatus | None = Query(default=None, alias="status"),
    role: AbsenceRole | None = Query(default=None),
    class_id: str | None = Query(default=None),
    person_id: str | None = Query(default=None),
    absence_date: date | None = Query(default=None, alias="date"),
    limit: int = Query(default=200, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    current_user: User = Depends(get_current_user),
    workflow: AbsenceWorkflow = Depends(get_absence_workflow),
) -> list[AbsenceListItem]:
    if current_user.role != UserRole.admin:
        person_id = current_user.id
    listings = workflow.ledger.list_absences(
        AbsenceFilter(
            status=absence_status,
            role=role,
            class_id=class_id,
            person_id=person_id,
            absence_date=absence_date,
            limit=limit,
            offset=offset,
        )
    )
    return [_listing_out(item) for item in listings]


@router.put("/absences/{absence_id}/status", response_model=AbsenceOut)
def update_absence_status(
    absence_id: str,
    payload: AbsenceStatusUpdate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    workflow: AbsenceWorkflow = Depends(get_absence_workflow),
) -> AbsenceOut:
    record = workflow.ledger.set_status(absence_id, payload.status, reviewer_id=current_user.id)
    return AbsenceOut.model_validate(record)


@router.post("/absences/{absence_id}/resolve", response_model=ResolutionRunOut)
def resolve_absence(
    absence_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    workflow: AbsenceWorkflow = Depends(get_absence_workflow),
) -> ResolutionRunOut:
    resolution, reports = workflow.resolve_absence(absence_id)
    return ResolutionRunOut.model_validate({"resolution": resolution, "notifications": reports}, from_attributes=True)
