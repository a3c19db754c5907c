from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.core.exceptions import NotFoundError
from app.models.user import User
from app.schemas.schedule import ClassScheduleOut, ScheduleEntryOut
from app.services.schedule_store import ScheduleStore

router = APIRouter()


@router.get("/classes/{class_id}/schedule", response_model=ClassScheduleOut)
def get_class_schedule(
    class_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ClassScheduleOut:
    store = ScheduleStore(db)
    school_class = store.get_class(class_id)
    if school_class is None:
        raise NotFoundError("Class", class_id)
    return ClassScheduleOut(
        class_id=school_class.id,
        name=school_class.name,
        hod_id=school_class.hod_id,
        entries=[ScheduleEntryOut.model_validate(item) for item in store.get_schedule_for_class(class_id)],
    )
