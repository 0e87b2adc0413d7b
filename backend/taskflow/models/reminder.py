"""Reminder models"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from taskflow.models.common import id_str, to_naive_utc, utcnow

ReminderType = Literal["once", "recurring"]
ReminderStatus = Literal["active", "snoozed", "completed", "cancelled"]
Frequency = Literal["daily", "weekly", "monthly", "yearly"]
NotificationMethod = Literal["in_app", "email"]


class Recurrence(BaseModel):
    """How a recurring reminder repeats"""
    frequency: Frequency
    interval: int = Field(1, ge=1, le=365)
    end_date: Optional[datetime] = None

    @field_validator("end_date")
    @classmethod
    def end_date_utc(cls, value):
        return to_naive_utc(value)


def _unique_methods(value):
    if value is None:
        return value
    methods = []
    for method in value:
        if method not in methods:
            methods.append(method)
    return methods


class ReminderCreate(BaseModel):
    """Reminder creation model"""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    remind_at: datetime
    type: ReminderType = "once"
    recurrence: Optional[Recurrence] = None
    item_id: Optional[str] = None
    notification_methods: List[NotificationMethod] = Field(default_factory=lambda: ["in_app"], min_length=1)

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("remind_at")
    @classmethod
    def remind_at_in_future(cls, value: datetime) -> datetime:
        value = to_naive_utc(value)
        if value <= utcnow():
            raise ValueError("remind_at must be in the future")
        return value

    @field_validator("notification_methods")
    @classmethod
    def dedupe_methods(cls, value):
        return _unique_methods(value)

    @model_validator(mode="after")
    def check_recurrence(self):
        if self.type == "recurring" and self.recurrence is None:
            raise ValueError("recurrence is required for recurring reminders")
        if self.type == "once":
            self.recurrence = None
        return self


class ReminderUpdate(BaseModel):
    """Reminder update model - only provided fields change"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    remind_at: Optional[datetime] = None
    type: Optional[ReminderType] = None
    recurrence: Optional[Recurrence] = None
    item_id: Optional[str] = None
    notification_methods: Optional[List[NotificationMethod]] = Field(None, min_length=1)

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("remind_at")
    @classmethod
    def remind_at_in_future(cls, value: Optional[datetime]) -> Optional[datetime]:
        value = to_naive_utc(value)
        if value is not None and value <= utcnow():
            raise ValueError("remind_at must be in the future")
        return value

    @field_validator("notification_methods")
    @classmethod
    def dedupe_methods(cls, value):
        return _unique_methods(value)


class SnoozeRequest(BaseModel):
    minutes: int = Field(10, ge=1, le=1440)


class ReminderResponse(BaseModel):
    """Reminder response model"""
    id: str
    user_id: str
    item_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    remind_at: datetime
    type: str
    recurrence: Optional[Recurrence] = None
    notification_methods: List[str] = []
    status: str
    snoozed_until: Optional[datetime] = None
    is_sent: bool = False
    trigger_count: int = 0
    last_triggered_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "ReminderResponse":
        recurrence = doc.get("recurrence")
        return cls(
            id=id_str(doc["_id"]),
            user_id=id_str(doc["user_id"]),
            item_id=id_str(doc.get("item_id")),
            title=doc["title"],
            description=doc.get("description"),
            remind_at=doc["remind_at"],
            type=doc.get("type", "once"),
            recurrence=Recurrence(**recurrence) if recurrence else None,
            notification_methods=doc.get("notification_methods", ["in_app"]),
            status=doc.get("status", "active"),
            snoozed_until=doc.get("snoozed_until"),
            is_sent=doc.get("is_sent", False),
            trigger_count=doc.get("trigger_count", 0),
            last_triggered_at=doc.get("last_triggered_at"),
            created_at=doc["created_at"],
            updated_at=doc.get("updated_at"),
        )
