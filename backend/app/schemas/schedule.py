from pydantic import BaseModel


class ScheduleEntryOut(BaseModel):
    id: str
    day: str
    start_time: str
    end_time: str
    teacher_id: str
    substitute_teacher_id: str | None = None

    model_config = {"from_attributes": True}


class ClassScheduleOut(BaseModel):
    class_id: str
    name: str
    hod_id: str | None = None
    entries: list[ScheduleEntryOut]
