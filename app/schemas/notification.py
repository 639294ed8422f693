from datetime import datetime

from pydantic import BaseModel


class NotificationOut(BaseModel):
    id: str
    type: str
    title: str
    message: str
    related_entity_id: str | None
    related_entity_type: str | None
    priority: str
    is_read: bool
    read_at: datetime | None
    created_at: datetime
