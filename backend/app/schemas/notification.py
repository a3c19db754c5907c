from datetime import datetime

from pydantic import BaseModel

from app.models.notification import NotificationEvent


class NotificationOut(BaseModel):
    id: str
    user_id: str
    event_type: NotificationEvent
    absence_id: str
    title: str
    message: str
    payload: dict
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}
