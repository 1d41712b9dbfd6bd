from conftest import auth_headers
from notifications.models import Notification
from notifications.services import NotificationService


def test_anonymous_ticket_needs_valid_email(client, tiers):
    response = client.post("/support/tickets", json={"subject": "Help", "message": "Cannot log in"})
    assert response.status_code == 400
    assert response.json() == {"detail": "Email is required for anonymous requests"}

    response = client.post("/support/tickets", json={"subject": "Help", "message": "Hi", "email": "not-an-email"})
    assert response.status_code == 400

    response = client.post("/support/tickets", json={"subject": " Help ", "message": "Hi", "email": "visitor@example.com"})
    assert response.status_code == 200
    body = response.json()
    assert body["user_id"] is None
    assert body["subject"] == "Help"
    assert body["priority"] == "medium"
    assert body["status"] == "open"
    assert [m["message"] for m in body["messages"]] == ["Hi"]


def test_ticket_requires_subject_and_message(client, make_user):
    headers = auth_headers(make_user("user@example.com"))
    assert client.post("/support/tickets", json={"subject": "  ", "message": "x"}, headers=headers).status_code == 400
    assert client.post("/support/tickets", json={"subject": "x"}, headers=headers).status_code == 400
    assert client.post("/support/tickets", json={"subject": "x", "message": "y", "priority": "urgent"}, headers=headers).status_code == 400


def test_conversation_between_user_and_support(client, db, make_user):
    user = make_user("user@example.com")
    admin = make_user("admin@example.com", is_admin=True)
    headers = auth_headers(user)

    ticket = client.post("/support/tickets", json={"subject": "Invoice", "message": "Where is it?", "priority": "high"}, headers=headers).json()
    assert ticket["user_id"] == user.id

    reply = client.post(f"/support/admin/tickets/{ticket['id']}/reply", json={"message": "Sent again"}, headers=auth_headers(admin))
    assert reply.status_code == 200
    assert reply.json()["status"] == "in_progress"
    assert reply.json()["messages"][-1]["is_from_support"] is True
    assert db.query(Notification).filter(Notification.user_id == user.id, Notification.type == "support").count() == 1

    follow_up = client.post(f"/support/tickets/{ticket['id']}/messages", json={"message": "Thanks"}, headers=headers)
    assert len(follow_up.json()["messages"]) == 3

    mine = client.get("/support/tickets", headers=headers).json()
    assert [(t["id"], t["message_count"]) for t in mine] == [(ticket["id"], 3)]


def test_tickets_are_private(client, make_user):
    owner = make_user("owner@example.com")
    other = make_user("other@example.com")
    ticket = client.post("/support/tickets", json={"subject": "Mine", "message": "x"}, headers=auth_headers(owner)).json()

    assert client.get(f"/support/tickets/{ticket['id']}", headers=auth_headers(other)).status_code == 403
    assert client.get("/support/tickets/missing", headers=auth_headers(owner)).status_code == 404
    assert client.get("/support/admin/tickets", headers=auth_headers(owner)).status_code == 403


def test_status_changes(client, make_user):
    owner = make_user("owner@example.com")
    admin_headers = auth_headers(make_user("admin@example.com", is_admin=True))
    ticket = client.post("/support/tickets", json={"subject": "Bug", "message": "x"}, headers=auth_headers(owner)).json()

    response = client.patch(f"/support/admin/tickets/{ticket['id']}/status", json={"status": "closed"}, headers=admin_headers)
    assert response.json()["status"] == "closed"
    assert client.patch(f"/support/admin/tickets/{ticket['id']}/status", json={"status": "gone"}, headers=admin_headers).status_code == 400

    response = client.post(f"/support/tickets/{ticket['id']}/messages", json={"message": "Still broken"}, headers=auth_headers(owner))
    assert response.status_code == 400

    closed = client.get("/support/admin/tickets?status=closed", headers=admin_headers).json()
    assert [t["id"] for t in closed] == [ticket["id"]]


def test_notifications_read_flow(client, db, make_user):
    user = make_user("user@example.com")
    headers = auth_headers(user)
    first = NotificationService.notify(user.id, "purchase", "Purchase confirmed", "Enjoy", db)
    NotificationService.notify(user.id, "subscription", "Subscription confirmed", "Enjoy", db)

    assert client.get("/notifications/unread-count", headers=headers).json() == {"count": 2}
    response = client.post(f"/notifications/{first.id}/read", headers=headers)
    assert response.json()["is_read"] is True
    assert len(client.get("/notifications?unread_only=true", headers=headers).json()) == 1

    assert client.post("/notifications/read-all", headers=headers).json() == {"success": True, "updated": 1}
    assert client.get("/notifications/unread-count", headers=headers).json() == {"count": 0}

    other = make_user("other@example.com")
    assert client.post(f"/notifications/{first.id}/read", headers=auth_headers(other)).status_code == 404
