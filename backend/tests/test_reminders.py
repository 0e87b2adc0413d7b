"""Tests for reminder endpoints"""
from datetime import timedelta

from taskflow.models.common import utcnow


def at(**delta) -> str:
    return (utcnow() + timedelta(**delta)).isoformat()


def create_reminder(client, headers, **fields):
    payload = {"title": "Call mom", "remind_at": at(hours=2)}
    payload.update(fields)
    response = client.post("/api/reminders", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_create_once_reminder(client, alice):
    user, headers = alice
    reminder = create_reminder(client, headers, notification_methods=["in_app", "email", "in_app"])

    assert reminder["user_id"] == str(user["_id"])
    assert reminder["type"] == "once"
    assert reminder["status"] == "active"
    assert reminder["is_sent"] is False
    assert reminder["recurrence"] is None
    assert reminder["notification_methods"] == ["in_app", "email"]


def test_create_reminder_in_the_past(client, alice):
    _, headers = alice
    response = client.post("/api/reminders", json={"title": "Late", "remind_at": at(hours=-1)}, headers=headers)

    assert response.status_code == 400
    assert any("remind_at" in error for error in response.json()["errors"])


def test_recurring_reminder_requires_recurrence(client, alice):
    _, headers = alice
    response = client.post(
        "/api/reminders",
        json={"title": "Standup", "remind_at": at(hours=1), "type": "recurring"},
        headers=headers,
    )
    assert response.status_code == 400


def test_create_recurring_reminder(client, alice):
    _, headers = alice
    reminder = create_reminder(
        client,
        headers,
        type="recurring",
        recurrence={"frequency": "weekly", "interval": 2},
    )
    assert reminder["recurrence"]["frequency"] == "weekly"
    assert reminder["recurrence"]["interval"] == 2


def test_reminder_linked_to_item(client, alice, bob):
    _, alice_headers = alice
    _, bob_headers = bob
    item = client.post("/api/items", json={"title": "Taxes", "is_public": True}, headers=alice_headers).json()["data"]

    reminder = create_reminder(client, alice_headers, item_id=item["id"])
    assert reminder["item_id"] == item["id"]

    response = client.post(
        "/api/reminders",
        json={"title": "Not mine", "remind_at": at(hours=1), "item_id": item["id"]},
        headers=bob_headers,
    )
    assert response.status_code == 400


def test_list_reminders_sorted_and_filtered(client, alice, bob):
    _, headers = alice
    _, bob_headers = bob
    create_reminder(client, headers, title="later", remind_at=at(hours=5))
    create_reminder(client, headers, title="sooner", remind_at=at(hours=1))
    create_reminder(client, headers, title="daily", type="recurring", recurrence={"frequency": "daily"})
    create_reminder(client, bob_headers, title="bob's")

    body = client.get("/api/reminders", headers=headers).json()
    assert [r["title"] for r in body["data"]] == ["sooner", "daily", "later"]
    assert body["pagination"]["total"] == 3

    recurring = client.get("/api/reminders", params={"type": "recurring"}, headers=headers).json()["data"]
    assert [r["title"] for r in recurring] == ["daily"]


def test_upcoming_and_active(client, alice):
    _, headers = alice
    create_reminder(client, headers, title="soon", remind_at=at(hours=3))
    create_reminder(client, headers, title="far", remind_at=at(days=3))

    upcoming = client.get("/api/reminders/upcoming", params={"hours": 24}, headers=headers).json()
    assert [r["title"] for r in upcoming["data"]] == ["soon"]
    assert upcoming["count"] == 1

    active = client.get("/api/reminders/active", headers=headers).json()
    assert active["count"] == 2


def test_update_reminder(client, alice):
    _, headers = alice
    reminder = create_reminder(client, headers)

    response = client.put(f"/api/reminders/{reminder['id']}", json={"title": "Call dad"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["title"] == "Call dad"


def test_update_to_recurring_without_recurrence(client, alice):
    _, headers = alice
    reminder = create_reminder(client, headers)
    response = client.put(f"/api/reminders/{reminder['id']}", json={"type": "recurring"}, headers=headers)
    assert response.status_code == 400


def test_new_time_rearms_completed_reminder(client, alice):
    _, headers = alice
    reminder = create_reminder(client, headers)
    client.put(f"/api/reminders/{reminder['id']}/complete", headers=headers)

    data = client.put(
        f"/api/reminders/{reminder['id']}",
        json={"remind_at": at(days=1)},
        headers=headers,
    ).json()["data"]

    assert data["status"] == "active"
    assert data["is_sent"] is False


def test_complete_reminder(client, alice):
    _, headers = alice
    reminder = create_reminder(client, headers)

    response = client.put(f"/api/reminders/{reminder['id']}/complete", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "completed"


def test_snooze_reminder(client, alice):
    _, headers = alice
    reminder = create_reminder(client, headers)

    response = client.put(f"/api/reminders/{reminder['id']}/snooze", json={"minutes": 30}, headers=headers)
    data = response.json()["data"]

    assert response.status_code == 200
    assert data["status"] == "snoozed"
    assert data["snoozed_until"] is not None
    assert data["is_sent"] is False


def test_snooze_defaults_to_ten_minutes(client, alice):
    _, headers = alice
    reminder = create_reminder(client, headers)

    response = client.put(f"/api/reminders/{reminder['id']}/snooze", headers=headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Reminder snoozed for 10 minutes"


def test_snooze_completed_reminder(client, alice):
    _, headers = alice
    reminder = create_reminder(client, headers)
    client.put(f"/api/reminders/{reminder['id']}/complete", headers=headers)

    response = client.put(f"/api/reminders/{reminder['id']}/snooze", json={"minutes": 5}, headers=headers)
    assert response.status_code == 400


def test_snooze_minutes_out_of_range(client, alice):
    _, headers = alice
    reminder = create_reminder(client, headers)
    response = client.put(f"/api/reminders/{reminder['id']}/snooze", json={"minutes": 5000}, headers=headers)
    assert response.status_code == 400


def test_delete_reminder(client, alice, bob, database):
    _, headers = alice
    _, bob_headers = bob
    reminder = create_reminder(client, headers)

    assert client.delete(f"/api/reminders/{reminder['id']}", headers=bob_headers).status_code == 404
    assert client.delete(f"/api/reminders/{reminder['id']}", headers=headers).status_code == 200
    assert database.reminders.count_documents({}) == 0
