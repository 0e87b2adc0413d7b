"""Item (task) models"""
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime
from taskflow.models.common import id_str, to_naive_utc, utcnow

Category = Literal["work", "personal", "shopping", "health", "education", "finance", "other"]
Priority = Literal["low", "medium", "high", "urgent"]
ItemStatus = Literal["pending", "in_progress", "completed", "cancelled"]

PRIORITY_RANK = {"low": 1, "medium": 2, "high": 3, "urgent": 4}
FINISHED_STATUSES = ("completed", "cancelled")


def normalize_tags(tags: Optional[List[str]]) -> Optional[List[str]]:
    """Lower-case, trim and deduplicate tags keeping their first order"""
    if tags is None:
        return None
    normalized = []
    for tag in tags:
        tag = tag.strip().lower()
        if tag and tag not in normalized:
            normalized.append(tag)
    return normalized


class _ItemFields(BaseModel):
    @field_validator("title", "description", mode="before", check_fields=False)
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("tags", check_fields=False)
    @classmethod
    def clean_tags(cls, value):
        return normalize_tags(value)

    @field_validator("due_date", check_fields=False)
    @classmethod
    def due_date_utc(cls, value):
        return to_naive_utc(value)


class ItemCreate(_ItemFields):
    """Item creation model"""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    category: Category = "other"
    priority: Priority = "medium"
    status: ItemStatus = "pending"
    due_date: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list, max_length=20)
    progress: int = Field(0, ge=0, le=100)
    is_public: bool = False


class ItemUpdate(_ItemFields):
    """Item update model - only provided fields change"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[Category] = None
    priority: Optional[Priority] = None
    status: Optional[ItemStatus] = None
    due_date: Optional[datetime] = None
    tags: Optional[List[str]] = Field(None, max_length=20)
    progress: Optional[int] = Field(None, ge=0, le=100)
    is_public: Optional[bool] = None


class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=500)

    @field_validator("text", mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value


class CommentResponse(BaseModel):
    id: str
    user_id: str
    user_name: str
    text: str
    created_at: datetime

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "CommentResponse":
        return cls(
            id=id_str(doc["id"]),
            user_id=id_str(doc["user_id"]),
            user_name=doc.get("user_name", ""),
            text=doc["text"],
            created_at=doc["created_at"],
        )


class ItemResponse(BaseModel):
    """Item response model"""
    id: str
    title: str
    description: Optional[str] = None
    category: str
    priority: str
    status: str
    due_date: Optional[datetime] = None
    tags: List[str] = []
    progress: int = 0
    is_public: bool = False
    is_overdue: bool = False
    created_by: str
    comments: List[CommentResponse] = []
    likes: List[str] = []
    likes_count: int = 0
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "ItemResponse":
        likes = [id_str(user_id) for user_id in doc.get("likes", [])]
        due_date = doc.get("due_date")
        return cls(
            id=id_str(doc["_id"]),
            title=doc["title"],
            description=doc.get("description"),
            category=doc.get("category", "other"),
            priority=doc.get("priority", "medium"),
            status=doc.get("status", "pending"),
            due_date=due_date,
            tags=doc.get("tags", []),
            progress=doc.get("progress", 0),
            is_public=doc.get("is_public", False),
            is_overdue=bool(
                due_date
                and due_date < utcnow()
                and doc.get("status") not in FINISHED_STATUSES
            ),
            created_by=id_str(doc["created_by"]),
            comments=[CommentResponse.from_document(c) for c in doc.get("comments", [])],
            likes=likes,
            likes_count=len(likes),
            completed_at=doc.get("completed_at"),
            created_at=doc["created_at"],
            updated_at=doc.get("updated_at"),
        )
