"""Item (task) management API endpoints"""
import re
from fastapi import APIRouter, Depends, Query, status
from typing import Any, Dict, Literal, Optional
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from taskflow.api.deps import get_current_user, get_database, get_notification_service
from taskflow.database import Database
from taskflow.errors import AppError
from taskflow.models.common import Pagination, paginated, parse_object_id, utcnow
from taskflow.models.item import (
    FINISHED_STATUSES,
    PRIORITY_RANK,
    CommentCreate,
    CommentResponse,
    ItemCreate,
    ItemResponse,
    ItemUpdate,
)
from taskflow.models.notification import NotificationCreate
from taskflow.services.notification import NotificationService
from taskflow.utils.monitoring import StructuredLogger

router = APIRouter()


def visible_to(user_id: ObjectId) -> Dict[str, Any]:
    """Query fragment for items a user may read: their own or public ones"""
    return {"$or": [{"created_by": user_id}, {"is_public": True}]}


def get_visible_item(database: Database, item_id: str, user_id: ObjectId) -> Dict[str, Any]:
    oid = parse_object_id(item_id)
    item = database.items.find_one({"_id": oid, **visible_to(user_id)}) if oid else None
    if not item:
        raise AppError.not_found("Item not found")
    return item


def get_owned_item(database: Database, item_id: str, user_id: ObjectId) -> Dict[str, Any]:
    oid = parse_object_id(item_id)
    item = database.items.find_one({"_id": oid, "created_by": user_id}) if oid else None
    if not item:
        raise AppError.not_found("Item not found")
    return item


def apply_completion_rules(changes: Dict[str, Any], current: Dict[str, Any]) -> Dict[str, Any]:
    """
    Keep status, progress and completed_at consistent

    Completing an item forces progress to 100, reaching 100 progress
    completes it, and leaving the completed status clears completed_at.
    """
    if changes.get("progress") == 100:
        changes["status"] = "completed"

    if changes.get("status", current.get("status")) == "completed":
        changes["progress"] = 100
        if current.get("status") != "completed":
            changes["completed_at"] = utcnow()
    elif current.get("status") == "completed":
        changes["completed_at"] = None
        changes.setdefault("progress", 0)

    if "due_date" in changes:
        changes["due_soon_notified"] = False
        changes["overdue_notified"] = False
    return changes


@router.get("")
async def list_items(
    status_filter: Optional[Literal["pending", "in_progress", "completed", "cancelled"]] = Query(None, alias="status"),
    priority: Optional[Literal["low", "medium", "high", "urgent"]] = Query(None),
    category: Optional[str] = Query(None, max_length=50),
    tag: Optional[str] = Query(None, max_length=50),
    search: Optional[str] = Query(None, max_length=100, description="Case-insensitive match on title or description"),
    is_public: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: Literal["created_at", "updated_at", "due_date", "priority", "title"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Items visible to the user with filtering, search and pagination"""
    conditions = [visible_to(user["_id"])]
    if status_filter:
        conditions.append({"status": status_filter})
    if priority:
        conditions.append({"priority": priority})
    if category:
        conditions.append({"category": category})
    if tag:
        conditions.append({"tags": tag.strip().lower()})
    if is_public is not None:
        conditions.append({"is_public": is_public})
    if search:
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        conditions.append({"$or": [{"title": pattern}, {"description": pattern}]})

    query = {"$and": conditions}
    total = database.items.count_documents(query)
    skip = (page - 1) * limit
    direction = ASCENDING if sort_order == "asc" else DESCENDING

    if sort_by == "priority":
        # Stored priorities are words, so rank them in Python
        docs = list(database.items.find(query))
        docs.sort(
            key=lambda d: (PRIORITY_RANK.get(d.get("priority"), 0), d["created_at"]),
            reverse=direction == DESCENDING,
        )
        docs = docs[skip:skip + limit]
    else:
        docs = list(
            database.items.find(query)
            .sort([(sort_by, direction), ("_id", direction)])
            .skip(skip)
            .limit(limit)
        )

    return paginated(
        [ItemResponse.from_document(doc) for doc in docs],
        Pagination.build(page, limit, total),
    )


@router.get("/stats/overview")
async def get_stats_overview(
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Counts of the user's own items by status, priority and category"""
    owner = {"created_by": user["_id"]}

    def grouped(field: str) -> Dict[str, int]:
        pipeline = [
            {"$match": owner},
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
        ]
        return {row["_id"]: row["count"] for row in database.items.aggregate(pipeline) if row["_id"]}

    total = database.items.count_documents(owner)
    by_status = grouped("status")
    overdue = database.items.count_documents({
        **owner,
        "due_date": {"$lt": utcnow()},
        "status": {"$nin": list(FINISHED_STATUSES)},
    })
    completed = by_status.get("completed", 0)

    return {
        "success": True,
        "data": {
            "total": total,
            "by_status": by_status,
            "by_priority": grouped("priority"),
            "by_category": grouped("category"),
            "overdue": overdue,
            "completion_rate": round(completed / total * 100, 1) if total else 0.0,
        },
    }


@router.get("/{item_id}")
async def get_item(
    item_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Get a specific item by ID"""
    item = get_visible_item(database, item_id, user["_id"])
    return {"success": True, "data": ItemResponse.from_document(item)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_item(
    item: ItemCreate,
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Create a new item"""
    now = utcnow()
    doc = item.model_dump()
    doc = apply_completion_rules(doc, {})
    doc.update({
        "created_by": user["_id"],
        "comments": [],
        "likes": [],
        "completed_at": doc.get("completed_at"),
        "due_soon_notified": False,
        "overdue_notified": False,
        "created_at": now,
        "updated_at": now,
    })
    result = database.items.insert_one(doc)
    doc["_id"] = result.inserted_id

    StructuredLogger.log_event(
        "item_created",
        f"Item '{item.title}' created",
        user_id=str(user["_id"]),
        metadata={"item_id": str(result.inserted_id)},
    )
    return {
        "success": True,
        "message": "Item created successfully",
        "data": ItemResponse.from_document(doc),
    }


@router.put("/{item_id}")
async def update_item(
    item_id: str,
    update: ItemUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Update an item the user owns"""
    current = get_owned_item(database, item_id, user["_id"])

    changes = update.model_dump(exclude_unset=True)
    for required in ("title", "category", "priority", "status", "progress", "is_public", "tags"):
        if required in changes and changes[required] is None:
            raise AppError.validation([f"{required}: may not be null"])
    if not changes:
        raise AppError.bad_request("No fields provided to update")

    changes = apply_completion_rules(changes, current)
    changes["updated_at"] = utcnow()
    database.items.update_one({"_id": current["_id"]}, {"$set": changes})
    updated = database.items.find_one({"_id": current["_id"]})

    return {
        "success": True,
        "message": "Item updated successfully",
        "data": ItemResponse.from_document(updated),
    }


@router.delete("/{item_id}")
async def delete_item(
    item_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Delete an item the user owns together with its reminders"""
    item = get_owned_item(database, item_id, user["_id"])

    database.items.delete_one({"_id": item["_id"]})
    removed = database.reminders.delete_many({"item_id": item["_id"]}).deleted_count

    StructuredLogger.log_event(
        "item_deleted",
        f"Item '{item['title']}' deleted",
        user_id=str(user["_id"]),
        metadata={"item_id": item_id, "reminders_deleted": removed},
    )
    return {"success": True, "message": "Item deleted successfully"}


@router.post("/{item_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    item_id: str,
    comment: CommentCreate,
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """Add a comment to a visible item"""
    item = get_visible_item(database, item_id, user["_id"])

    doc = {
        "id": ObjectId(),
        "user_id": user["_id"],
        "user_name": user["name"],
        "text": comment.text,
        "created_at": utcnow(),
    }
    database.items.update_one(
        {"_id": item["_id"]},
        {"$push": {"comments": doc}, "$set": {"updated_at": doc["created_at"]}},
    )

    if item["created_by"] != user["_id"]:
        notification_service.create_notification(NotificationCreate(
            user_id=str(item["created_by"]),
            type="comment",
            title="New comment",
            message=f"{user['name']} commented on '{item['title']}'",
            data={"item_id": str(item["_id"]), "comment_id": str(doc["id"])},
        ))

    return {
        "success": True,
        "message": "Comment added successfully",
        "data": CommentResponse.from_document(doc),
    }


@router.post("/{item_id}/like")
async def toggle_like(
    item_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
    notification_service: NotificationService = Depends(get_notification_service),
):
    """Like or unlike a visible item"""
    item = get_visible_item(database, item_id, user["_id"])
    liked = user["_id"] not in item.get("likes", [])

    if liked:
        database.items.update_one({"_id": item["_id"]}, {"$addToSet": {"likes": user["_id"]}})
    else:
        database.items.update_one({"_id": item["_id"]}, {"$pull": {"likes": user["_id"]}})

    updated = database.items.find_one({"_id": item["_id"]}, {"likes": 1})
    likes_count = len(updated.get("likes", []))

    if liked and item["created_by"] != user["_id"]:
        notification_service.create_notification(NotificationCreate(
            user_id=str(item["created_by"]),
            type="like",
            title="New like",
            message=f"{user['name']} liked '{item['title']}'",
            data={"item_id": str(item["_id"])},
        ))

    return {
        "success": True,
        "message": "Item liked" if liked else "Item unliked",
        "data": {"liked": liked, "likes_count": likes_count},
    }
