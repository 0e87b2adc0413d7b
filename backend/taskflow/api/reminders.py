"""Reminders API endpoints"""
from fastapi import APIRouter, Depends, Query, status
from typing import Any, Dict, Literal, Optional
from datetime import timedelta
from bson import ObjectId
from pymongo import ASCENDING
from taskflow.api.deps import get_current_user, get_database
from taskflow.database import Database
from taskflow.errors import AppError
from taskflow.models.common import Pagination, paginated, parse_object_id, utcnow
from taskflow.models.reminder import ReminderCreate, ReminderResponse, ReminderUpdate, SnoozeRequest
from taskflow.utils.monitoring import StructuredLogger

router = APIRouter()


def get_owned_reminder(database: Database, reminder_id: str, user_id: ObjectId) -> Dict[str, Any]:
    oid = parse_object_id(reminder_id)
    reminder = database.reminders.find_one({"_id": oid, "user_id": user_id}) if oid else None
    if not reminder:
        raise AppError.not_found("Reminder not found")
    return reminder


def resolve_item_id(database: Database, item_id: Optional[str], user_id: ObjectId) -> Optional[ObjectId]:
    """Linked item id, checked to belong to the user"""
    if item_id is None:
        return None
    oid = parse_object_id(item_id)
    if oid is None or not database.items.find_one({"_id": oid, "created_by": user_id}, {"_id": 1}):
        raise AppError.validation(["item_id: item not found"])
    return oid


@router.get("")
async def get_reminders(
    status_filter: Optional[Literal["active", "snoozed", "completed", "cancelled"]] = Query(None, alias="status"),
    reminder_type: Optional[Literal["once", "recurring"]] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Get the user's reminders"""
    query: Dict[str, Any] = {"user_id": user["_id"]}
    if status_filter:
        query["status"] = status_filter
    if reminder_type:
        query["type"] = reminder_type

    total = database.reminders.count_documents(query)
    cursor = (
        database.reminders.find(query)
        .sort([("remind_at", ASCENDING), ("_id", ASCENDING)])
        .skip((page - 1) * limit)
        .limit(limit)
    )
    return paginated(
        [ReminderResponse.from_document(doc) for doc in cursor],
        Pagination.build(page, limit, total),
    )


@router.get("/upcoming")
async def get_upcoming_reminders(
    hours: int = Query(24, ge=1, le=168),
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Reminders that will fire within the next ``hours`` hours"""
    now = utcnow()
    until = now + timedelta(hours=hours)
    query = {
        "user_id": user["_id"],
        "$or": [
            {"status": "active", "is_sent": False, "remind_at": {"$lte": until}},
            {"status": "snoozed", "snoozed_until": {"$lte": until}},
        ],
    }

    reminders = [ReminderResponse.from_document(doc) for doc in database.reminders.find(query)]
    reminders.sort(key=lambda r: r.snoozed_until if r.status == "snoozed" and r.snoozed_until else r.remind_at)
    return {"success": True, "data": reminders, "count": len(reminders)}


@router.get("/active")
async def get_active_reminders(
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Reminders with status active"""
    cursor = database.reminders.find({"user_id": user["_id"], "status": "active"}).sort("remind_at", ASCENDING)
    reminders = [ReminderResponse.from_document(doc) for doc in cursor]
    return {"success": True, "data": reminders, "count": len(reminders)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_reminder(
    reminder: ReminderCreate,
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Create a new reminder"""
    now = utcnow()
    doc = {
        "user_id": user["_id"],
        "item_id": resolve_item_id(database, reminder.item_id, user["_id"]),
        "title": reminder.title,
        "description": reminder.description,
        "remind_at": reminder.remind_at,
        "type": reminder.type,
        "recurrence": reminder.recurrence.model_dump() if reminder.recurrence else None,
        "notification_methods": reminder.notification_methods,
        "status": "active",
        "snoozed_until": None,
        "is_sent": False,
        "trigger_count": 0,
        "last_triggered_at": None,
        "created_at": now,
        "updated_at": now,
    }
    result = database.reminders.insert_one(doc)
    doc["_id"] = result.inserted_id

    StructuredLogger.log_event(
        "reminder_created",
        f"Reminder '{reminder.title}' created",
        user_id=str(user["_id"]),
        metadata={"reminder_id": str(result.inserted_id), "remind_at": reminder.remind_at.isoformat()},
    )
    return {
        "success": True,
        "message": "Reminder created successfully",
        "data": ReminderResponse.from_document(doc),
    }


@router.put("/{reminder_id}")
async def update_reminder(
    reminder_id: str,
    update: ReminderUpdate,
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Update a reminder"""
    current = get_owned_reminder(database, reminder_id, user["_id"])

    changes = update.model_dump(exclude_unset=True)
    for required in ("title", "remind_at", "type", "notification_methods"):
        if required in changes and changes[required] is None:
            raise AppError.validation([f"{required}: may not be null"])
    if not changes:
        raise AppError.bad_request("No fields provided to update")

    if "item_id" in changes:
        changes["item_id"] = resolve_item_id(database, changes["item_id"], user["_id"])

    reminder_type = changes.get("type", current.get("type"))
    recurrence = changes["recurrence"] if "recurrence" in changes else current.get("recurrence")
    if reminder_type == "recurring" and not recurrence:
        raise AppError.validation(["recurrence: required for recurring reminders"])
    if reminder_type == "once":
        changes["recurrence"] = None

    if "remind_at" in changes:
        # A new time re-arms the reminder
        changes.update({"is_sent": False, "snoozed_until": None})
        if current.get("status") in ("snoozed", "completed"):
            changes["status"] = "active"

    changes["updated_at"] = utcnow()
    database.reminders.update_one({"_id": current["_id"]}, {"$set": changes})
    updated = database.reminders.find_one({"_id": current["_id"]})

    return {
        "success": True,
        "message": "Reminder updated successfully",
        "data": ReminderResponse.from_document(updated),
    }


@router.put("/{reminder_id}/complete")
async def complete_reminder(
    reminder_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Mark a reminder as completed"""
    current = get_owned_reminder(database, reminder_id, user["_id"])

    database.reminders.update_one(
        {"_id": current["_id"]},
        {"$set": {"status": "completed", "snoozed_until": None, "updated_at": utcnow()}},
    )
    updated = database.reminders.find_one({"_id": current["_id"]})

    return {
        "success": True,
        "message": "Reminder marked as completed",
        "data": ReminderResponse.from_document(updated),
    }


@router.put("/{reminder_id}/snooze")
async def snooze_reminder(
    reminder_id: str,
    request: Optional[SnoozeRequest] = None,
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Postpone a reminder by a number of minutes"""
    current = get_owned_reminder(database, reminder_id, user["_id"])
    if current.get("status") in ("completed", "cancelled"):
        raise AppError.bad_request(f"Cannot snooze a {current['status']} reminder")

    minutes = (request or SnoozeRequest()).minutes
    now = utcnow()
    database.reminders.update_one(
        {"_id": current["_id"]},
        {"$set": {
            "status": "snoozed",
            "snoozed_until": now + timedelta(minutes=minutes),
            "is_sent": False,
            "updated_at": now,
        }},
    )
    updated = database.reminders.find_one({"_id": current["_id"]})

    StructuredLogger.log_event(
        "reminder_snoozed",
        f"Reminder snoozed for {minutes} minutes",
        user_id=str(user["_id"]),
        metadata={"reminder_id": reminder_id, "minutes": minutes},
    )
    return {
        "success": True,
        "message": f"Reminder snoozed for {minutes} minutes",
        "data": ReminderResponse.from_document(updated),
    }


@router.delete("/{reminder_id}")
async def delete_reminder(
    reminder_id: str,
    user: Dict[str, Any] = Depends(get_current_user),
    database: Database = Depends(get_database),
):
    """Delete a reminder"""
    current = get_owned_reminder(database, reminder_id, user["_id"])
    database.reminders.delete_one({"_id": current["_id"]})
    return {"success": True, "message": "Reminder deleted successfully"}
