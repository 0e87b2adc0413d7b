"""Notification service: in-app notifications, reminder firing and item checks"""
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timedelta
from bson import ObjectId
from dateutil.relativedelta import relativedelta
from pymongo import DESCENDING
from taskflow.database import Database
from taskflow.models.common import parse_object_id, utcnow
from taskflow.models.item import FINISHED_STATUSES
from taskflow.models.notification import TITLE_MAX_LENGTH, NotificationCreate, NotificationResponse
from taskflow.services.email import EmailService
from taskflow.utils.monitoring import StructuredLogger

DUE_SOON_WINDOW = timedelta(hours=24)
READ_NOTIFICATION_RETENTION_DAYS = 30

_FREQUENCY_STEP = {
    "daily": lambda n: relativedelta(days=n),
    "weekly": lambda n: relativedelta(weeks=n),
    "monthly": lambda n: relativedelta(months=n),
    "yearly": lambda n: relativedelta(years=n),
}


def next_occurrence(remind_at: datetime, recurrence: Dict[str, Any], now: datetime) -> Optional[datetime]:
    """
    Next firing time of a recurring reminder strictly after ``now``

    Args:
        remind_at: The occurrence that just fired
        recurrence: {"frequency", "interval", "end_date"}
        now: Current time (naive UTC)

    Returns:
        The next occurrence, or None when it would fall after end_date
    """
    step = _FREQUENCY_STEP[recurrence["frequency"]]
    interval = recurrence.get("interval") or 1

    occurrences = 1
    candidate = remind_at + step(interval)
    while candidate <= now:
        occurrences += 1
        # Step from the anchor so month-end dates do not drift
        candidate = remind_at + step(interval * occurrences)

    end_date = recurrence.get("end_date")
    if end_date and candidate > end_date:
        return None
    return candidate


def notification_title(prefix: str, title: str) -> str:
    """``prefix`` + ``title``, cut with an ellipsis to fit a notification title"""
    composed = f"{prefix}{title}"
    if len(composed) <= TITLE_MAX_LENGTH:
        return composed
    return composed[:TITLE_MAX_LENGTH - 1] + "…"


class NotificationService:
    """Service for managing notifications and the jobs that produce them"""

    def __init__(self, database: Database, email_service: EmailService):
        self.database = database
        self.email_service = email_service

    # ------------------------------------------------------------------
    # In-app notifications
    # ------------------------------------------------------------------

    def create_notification(self, notification: NotificationCreate) -> NotificationResponse:
        """
        Create a new notification record

        Args:
            notification: Notification creation data

        Returns:
            Created notification response
        """
        doc = {
            "user_id": ObjectId(notification.user_id),
            "type": notification.type,
            "title": notification.title,
            "message": notification.message,
            "data": notification.data,
            "is_read": False,
            "read_at": None,
            "created_at": utcnow(),
        }
        result = self.database.notifications.insert_one(doc)
        doc["_id"] = result.inserted_id

        StructuredLogger.log_event(
            "notification_created",
            f"Notification '{notification.title}' created",
            user_id=notification.user_id,
            metadata={"notification_id": str(result.inserted_id), "type": notification.type},
        )
        return NotificationResponse.from_document(doc)

    def get_notifications_for_user(
        self,
        user_id: ObjectId,
        is_read: Optional[bool] = None,
        notification_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[NotificationResponse], int]:
        """Notifications for a user, newest first, with the total match count"""
        query: Dict[str, Any] = {"user_id": user_id}
        if is_read is not None:
            query["is_read"] = is_read
        if notification_type:
            query["type"] = notification_type

        total = self.database.notifications.count_documents(query)
        cursor = (
            self.database.notifications.find(query)
            .sort("created_at", DESCENDING)
            .skip(skip)
            .limit(limit)
        )
        return [NotificationResponse.from_document(doc) for doc in cursor], total

    def unread_count(self, user_id: ObjectId) -> int:
        return self.database.notifications.count_documents({"user_id": user_id, "is_read": False})

    def mark_as_read(self, notification_id: str, user_id: ObjectId) -> Optional[NotificationResponse]:
        """Mark one notification read; None when it does not exist or is not the user's"""
        oid = parse_object_id(notification_id)
        if oid is None:
            return None

        doc = self.database.notifications.find_one({"_id": oid, "user_id": user_id})
        if not doc:
            return None

        if not doc.get("is_read"):
            now = utcnow()
            self.database.notifications.update_one(
                {"_id": oid},
                {"$set": {"is_read": True, "read_at": now}},
            )
            doc.update({"is_read": True, "read_at": now})
        return NotificationResponse.from_document(doc)

    def mark_all_as_read(self, user_id: ObjectId) -> int:
        result = self.database.notifications.update_many(
            {"user_id": user_id, "is_read": False},
            {"$set": {"is_read": True, "read_at": utcnow()}},
        )
        return result.modified_count

    def delete_notification(self, notification_id: str, user_id: ObjectId) -> bool:
        oid = parse_object_id(notification_id)
        if oid is None:
            return False
        result = self.database.notifications.delete_one({"_id": oid, "user_id": user_id})
        return result.deleted_count == 1

    # ------------------------------------------------------------------
    # Background jobs
    # ------------------------------------------------------------------

    def process_due_reminders(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Fire every reminder whose time has come

        Active reminders that have not been sent fire at remind_at, snoozed
        reminders fire at snoozed_until. A failure on one reminder is logged
        and does not stop the others.

        Returns:
            Counts of fired and failed reminders
        """
        now = now or utcnow()
        query = {
            "$or": [
                {"status": "active", "is_sent": False, "remind_at": {"$lte": now}},
                {"status": "snoozed", "snoozed_until": {"$lte": now}},
            ]
        }

        fired = 0
        failed = 0
        for reminder in self.database.reminders.find(query):
            try:
                self._fire_reminder(reminder, now)
                fired += 1
            except Exception as e:
                failed += 1
                StructuredLogger.log_error(
                    e,
                    context={"function": "process_due_reminders", "reminder_id": str(reminder["_id"])},
                )

        if fired or failed:
            StructuredLogger.log_event(
                "reminders_processed",
                f"Fired {fired} reminders",
                metadata={"fired": fired, "failed": failed},
            )
        return {"fired": fired, "failed": failed}

    def _fire_reminder(self, reminder: Dict[str, Any], now: datetime):
        user = self.database.users.find_one({"_id": reminder["user_id"]})
        methods = reminder.get("notification_methods") or ["in_app"]

        if user and user.get("is_active", True):
            preferences = user.get("notification_settings") or {}
            data = {"reminder_id": str(reminder["_id"])}
            if reminder.get("item_id"):
                data["item_id"] = str(reminder["item_id"])

            if "in_app" in methods and preferences.get("in_app", True):
                self.create_notification(NotificationCreate(
                    user_id=str(user["_id"]),
                    type="reminder",
                    title=notification_title("Reminder: ", reminder["title"]),
                    message=reminder.get("description") or reminder["title"],
                    data=data,
                ))

            if "email" in methods and preferences.get("email", True):
                self.email_service.send_reminder_email(
                    user_email=user["email"],
                    user_name=user.get("name", ""),
                    title=reminder["title"],
                    description=reminder.get("description"),
                    remind_at=reminder["remind_at"],
                )

        update: Dict[str, Any] = {
            "last_triggered_at": now,
            "snoozed_until": None,
            "updated_at": now,
        }
        recurrence = reminder.get("recurrence")
        if reminder.get("type") == "recurring" and recurrence:
            following = next_occurrence(reminder["remind_at"], recurrence, now)
            if following is None:
                update.update({"status": "completed", "is_sent": True})
            else:
                update.update({"status": "active", "is_sent": False, "remind_at": following})
        else:
            update.update({"status": "active", "is_sent": True})

        self.database.reminders.update_one(
            {"_id": reminder["_id"]},
            {"$set": update, "$inc": {"trigger_count": 1}},
        )

    def check_due_soon_items(self, now: Optional[datetime] = None) -> int:
        """Notify owners once about unfinished items due within the next 24 hours"""
        now = now or utcnow()
        query = {
            "due_date": {"$gt": now, "$lte": now + DUE_SOON_WINDOW},
            "status": {"$nin": list(FINISHED_STATUSES)},
            "due_soon_notified": {"$ne": True},
        }

        notified = 0
        for item in self.database.items.find(query):
            try:
                owner = self.database.users.find_one({"_id": item["created_by"]})
                preferences = (owner or {}).get("notification_settings") or {}

                if owner and preferences.get("in_app", True):
                    self.create_notification(NotificationCreate(
                        user_id=str(owner["_id"]),
                        type="item_due",
                        title=notification_title("Due soon: ", item["title"]),
                        message=f"'{item['title']}' is due on {item['due_date'].strftime('%Y-%m-%d %H:%M')} UTC",
                        data={"item_id": str(item["_id"])},
                    ))
                self.database.items.update_one({"_id": item["_id"]}, {"$set": {"due_soon_notified": True}})
                notified += 1
            except Exception as e:
                StructuredLogger.log_error(
                    e,
                    context={"function": "check_due_soon_items", "item_id": str(item["_id"])},
                )
        return notified

    def check_overdue_items(self, now: Optional[datetime] = None) -> int:
        """Notify owners once about unfinished items past their due date"""
        now = now or utcnow()
        query = {
            "due_date": {"$lt": now},
            "status": {"$nin": list(FINISHED_STATUSES)},
            "overdue_notified": {"$ne": True},
        }

        notified = 0
        for item in self.database.items.find(query):
            try:
                self._notify_overdue(item)
                notified += 1
            except Exception as e:
                StructuredLogger.log_error(
                    e,
                    context={"function": "check_overdue_items", "item_id": str(item["_id"])},
                )

        if notified:
            StructuredLogger.log_event(
                "overdue_items_notified",
                f"Notified owners of {notified} overdue items",
                metadata={"count": notified},
            )
        return notified

    def _notify_overdue(self, item: Dict[str, Any]):
        owner = self.database.users.find_one({"_id": item["created_by"]})
        preferences = (owner or {}).get("notification_settings") or {}

        if owner and preferences.get("in_app", True):
            self.create_notification(NotificationCreate(
                user_id=str(owner["_id"]),
                type="item_overdue",
                title=notification_title("Overdue: ", item["title"]),
                message=f"'{item['title']}' is past its due date",
                data={"item_id": str(item["_id"])},
            ))
        if owner and preferences.get("email", True):
            self.email_service.send_item_overdue_email(
                user_email=owner["email"],
                user_name=owner.get("name", ""),
                title=item["title"],
                due_date=item["due_date"],
            )

        self.database.items.update_one({"_id": item["_id"]}, {"$set": {"overdue_notified": True}})

    def cleanup_old_notifications(
        self,
        days: int = READ_NOTIFICATION_RETENTION_DAYS,
        now: Optional[datetime] = None,
    ) -> int:
        """Delete read notifications older than ``days``"""
        now = now or utcnow()
        result = self.database.notifications.delete_many({
            "is_read": True,
            "created_at": {"$lt": now - timedelta(days=days)},
        })
        if result.deleted_count:
            StructuredLogger.log_event(
                "notifications_cleaned",
                f"Deleted {result.deleted_count} old notifications",
                metadata={"deleted": result.deleted_count, "retention_days": days},
            )
        return result.deleted_count
