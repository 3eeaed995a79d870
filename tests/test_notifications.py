# JUAKALI/backend/tests/test_notifications.py

from juakali.models import models


def notification(lender_id, **overrides):
    payload = {
        "lender_id": lender_id,
        "type": "payment",
        "priority": "high",
        "title": "Repayment received",
        "message": "Mwangi Duka paid KSh 1,500",
        "retailer_name": "Mwangi Duka",
        "amount": 1500,
    }
    payload.update(overrides)
    return payload


class TestNotifications:
    def test_admin_creates_for_lender(self, client, login_as):
        _, admin_headers = login_as("admin")
        lender, lender_headers = login_as("lender")

        response = client.post("/api/notifications", json=notification(lender.id), headers=admin_headers)
        assert response.status_code == 201
        assert response.json()["success"] is True

        items = client.get("/api/notifications", headers=lender_headers).json()["notifications"]
        assert len(items) == 1
        assert items[0]["title"] == "Repayment received"
        assert items[0]["is_read"] is False

    def test_target_must_be_a_lender(self, client, login_as, make_user):
        _, admin_headers = login_as("admin")
        retailer = make_user("retailer")
        response = client.post("/api/notifications", json=notification(retailer.id), headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Lender not found"

    def test_only_admins_create(self, client, login_as):
        lender, headers = login_as("lender")
        assert client.post("/api/notifications", json=notification(lender.id), headers=headers).status_code == 403

    def test_unknown_type_is_rejected(self, client, login_as):
        _, admin_headers = login_as("admin")
        lender, _ = login_as("lender")
        response = client.post("/api/notifications", json=notification(lender.id, type="promo"), headers=admin_headers)
        assert response.status_code == 400

    def test_unread_filter_and_read_all(self, client, db, login_as):
        lender, headers = login_as("lender")
        db.add_all([
            models.Notification(lender_id=lender.id, type="risk", priority="high", title="A", message="a"),
            models.Notification(lender_id=lender.id, type="system", priority="low", title="B", message="b",
                                is_read=True),
            models.Notification(lender_id=lender.id, type="opportunity", priority="medium", title="C", message="c"),
        ])
        db.commit()

        unread = client.get("/api/notifications?unread_only=true", headers=headers).json()["notifications"]
        assert {n["title"] for n in unread} == {"A", "C"}

        response = client.patch("/api/notifications/read-all", headers=headers)
        assert response.json() == {"success": True, "updated": 2}
        assert client.get("/api/notifications?unread_only=true", headers=headers).json()["notifications"] == []

    def test_mark_read_is_owner_only(self, client, db, login_as):
        owner, headers = login_as("lender")
        _, other_headers = login_as("lender")
        item = models.Notification(lender_id=owner.id, type="risk", priority="high", title="A", message="a")
        db.add(item)
        db.commit()

        response = client.patch(f"/api/notifications/{item.id}/read", json={"isRead": True}, headers=other_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Not allowed to modify this notification"

        response = client.patch(f"/api/notifications/{item.id}/read", json={"isRead": True}, headers=headers)
        assert response.status_code == 200
        db.refresh(item)
        assert item.is_read is True

    def test_delete(self, client, db, login_as):
        owner, headers = login_as("lender")
        _, other_headers = login_as("lender")
        item = models.Notification(lender_id=owner.id, type="risk", priority="high", title="A", message="a")
        db.add(item)
        db.commit()
        item_id = item.id

        assert client.delete(f"/api/notifications/{item_id}", headers=other_headers).status_code == 403
        assert client.delete(f"/api/notifications/{item_id}", headers=headers).status_code == 200
        response = client.delete(f"/api/notifications/{item_id}", headers=headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Notification not found"
