"""User models"""
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Any, Dict, Literal, Optional
from datetime import datetime
from taskflow.models.common import id_str


class NotificationSettings(BaseModel):
    """Which channels a user wants notifications on"""
    email: bool = True
    in_app: bool = True


class NotificationSettingsUpdate(BaseModel):
    email: Optional[bool] = None
    in_app: Optional[bool] = None


class RegisterRequest(BaseModel):
    """User registration model"""
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        return value.lower()


class ProfileUpdate(BaseModel):
    """Profile update model - only provided fields change"""
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    avatar: Optional[str] = Field(None, max_length=500)
    notification_settings: Optional[NotificationSettingsUpdate] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return value.strip() if isinstance(value, str) else value


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class UserResponse(BaseModel):
    """User response model - never includes the password hash"""
    id: str
    name: str
    email: str
    role: Literal["user", "admin"] = "user"
    avatar: Optional[str] = None
    is_active: bool = True
    notification_settings: NotificationSettings = NotificationSettings()
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "UserResponse":
        return cls(
            id=id_str(doc["_id"]),
            name=doc["name"],
            email=doc["email"],
            role=doc.get("role", "user"),
            avatar=doc.get("avatar"),
            is_active=doc.get("is_active", True),
            notification_settings=NotificationSettings(**(doc.get("notification_settings") or {})),
            last_login=doc.get("last_login"),
            created_at=doc["created_at"],
            updated_at=doc.get("updated_at"),
        )
