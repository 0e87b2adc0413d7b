"""Data models for TaskFlow"""
from taskflow.models.item import ItemCreate, ItemResponse, ItemUpdate
from taskflow.models.notification import NotificationCreate, NotificationResponse
from taskflow.models.reminder import ReminderCreate, ReminderResponse, ReminderUpdate
from taskflow.models.user import UserResponse

__all__ = [
    "ItemCreate",
    "ItemResponse",
    "ItemUpdate",
    "NotificationCreate",
    "NotificationResponse",
    "ReminderCreate",
    "ReminderResponse",
    "ReminderUpdate",
    "UserResponse",
]
