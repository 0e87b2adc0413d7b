"""Notification models"""
from pydantic import BaseModel, Field
from typing import Any, Dict, Literal, Optional
from datetime import datetime
from taskflow.models.common import id_str

TITLE_MAX_LENGTH = 200

NotificationType = Literal["reminder", "item_due", "item_overdue", "comment", "like", "system"]


class NotificationCreate(BaseModel):
    """Notification creation model"""
    user_id: str
    type: NotificationType = "system"
    title: str = Field(..., max_length=TITLE_MAX_LENGTH)
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)


class NotificationResponse(BaseModel):
    """Notification response model"""
    id: str
    user_id: str
    type: str
    title: str
    message: str
    data: Dict[str, Any] = {}
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "NotificationResponse":
        return cls(
            id=id_str(doc["_id"]),
            user_id=id_str(doc["user_id"]),
            type=doc.get("type", "system"),
            title=doc["title"],
            message=doc["message"],
            data=doc.get("data") or {},
            is_read=doc.get("is_read", False),
            read_at=doc.get("read_at"),
            created_at=doc["created_at"],
        )
