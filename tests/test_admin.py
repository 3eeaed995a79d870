# JUAKALI/backend/tests/test_admin.py : admin back office

from datetime import date

from juakali import constants
from juakali.models import models


def new_user(**overrides):
    payload = {
        "email": "mwangi@juakali.co.ke",
        "full_name": "Peter Mwangi",
        "phone": "0711000111",
        "role": "retailer",
        "region": "Nairobi",
    }
    payload.update(overrides)
    return payload


class TestAdminUsers:
    def test_non_admin_is_rejected(self, client, login_as):
        _, headers = login_as("lender")
        response = client.get("/api/admin/users", headers=headers)
        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Admin access required"}

    def test_create_user(self, client, db, login_as):
        _, headers = login_as("admin")
        response = client.post("/api/admin/users", json=new_user(), headers=headers)
        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "User created successfully"

        user = db.query(models.User).filter(models.User.id == body["id"]).first()
        assert user.first_name == "Peter"
        assert user.last_name == "Mwangi"
        assert user.region == "Nairobi"
        assert user.credit_profile.credit_score == constants.DEFAULT_CREDIT_SCORE

    def test_create_duplicate_user(self, client, login_as):
        _, headers = login_as("admin")
        client.post("/api/admin/users", json=new_user(), headers=headers)
        response = client.post("/api/admin/users", json=new_user(full_name="Someone Else"), headers=headers)
        assert response.status_code == 400
        assert response.json()["error"] == "User already exists with this email"

    def test_list_users_filters_and_paginates(self, client, login_as):
        _, headers = login_as("admin")
        for i in range(3):
            client.post("/api/admin/users", json=new_user(email=f"shop{i}@juakali.co.ke"), headers=headers)
        client.post("/api/admin/users", json=new_user(email="lender@juakali.co.ke", role="lender"), headers=headers)

        response = client.get("/api/admin/users?role=retailer&limit=2", headers=headers)
        assert response.status_code == 200
        body = response.json()
        assert body["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
        assert len(body["users"]) == 2
        assert all(u["role"] == "retailer" for u in body["users"])
        assert body["users"][0]["credit_score"] == constants.DEFAULT_CREDIT_SCORE
        assert body["users"][0]["full_name"] == "Peter Mwangi"

        second_page = client.get("/api/admin/users?role=retailer&limit=2&page=2", headers=headers).json()
        assert len(second_page["users"]) == 1

    def test_search_users(self, client, login_as, make_user):
        _, headers = login_as("admin")
        make_user("lender", first_name="Brian", last_name="Kamau")
        make_user("lender", first_name="Jane", last_name="Akinyi")

        body = client.get("/api/admin/users?search=kamau", headers=headers).json()
        assert [u["last_name"] for u in body["users"]] == ["Kamau"]
        assert body["users"][0]["credit_score"] is None

    def test_deactivate_user(self, client, db, login_as, make_user):
        _, headers = login_as("admin")
        target = make_user("retailer")

        response = client.patch(f"/api/admin/users/{target.id}", json={"is_active": False, "status": "suspended"},
                                headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is False

        db.expire_all()
        assert db.get(models.User, target.id).status == "suspended"

    def test_activating_pending_admin_updates_status(self, client, db, login_as, make_user):
        _, headers = login_as("admin")
        pending = make_user("admin", is_active=False, status="pending")

        response = client.patch(f"/api/admin/users/{pending.id}", json={"is_active": True}, headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "active"

        db.expire_all()
        user = db.get(models.User, pending.id)
        assert user.is_active is True
        assert user.status == "active"

    def test_status_alone_drives_activation(self, client, db, login_as, make_user):
        _, headers = login_as("admin")
        target = make_user("retailer", is_active=True, status="active")

        response = client.patch(f"/api/admin/users/{target.id}", json={"status": "suspended"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is False

        response = client.patch(f"/api/admin/users/{target.id}", json={"is_active": False}, headers=headers)
        assert response.json()["data"]["status"] == "inactive"

    def test_role_is_not_accepted_on_update(self, client, login_as, make_user):
        _, headers = login_as("admin")
        target = make_user("retailer")

        response = client.patch(f"/api/admin/users/{target.id}", json={"role": "admin"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["details"][0]["field"] == "role"

    def test_update_missing_user(self, client, login_as):
        _, headers = login_as("admin")
        response = client.patch("/api/admin/users/9999", json={"is_active": True}, headers=headers)
        assert response.status_code == 404
        assert response.json()["error"] == "User not found"


class TestAccessLogs:
    def test_every_admin_call_is_logged(self, client, login_as):
        admin, headers = login_as("admin", first_name="Amina")
        client.get("/api/admin/users", headers=headers)
        client.post("/api/admin/users", json=new_user(), headers=headers)

        response = client.get("/api/admin/access-logs", headers={**headers, "X-Forwarded-For": "41.90.1.2, 10.0.0.1"})
        assert response.status_code == 200
        logs = response.json()["data"]

        actions = [log["action"] for log in logs]
        assert actions[0] == "VIEW_ACCESS_LOGS"
        assert "LIST_USERS" in actions
        assert "CREATE_USER" in actions
        assert logs[0]["ip_address"] == "41.90.1.2"
        assert logs[0]["first_name"] == "Amina"
        assert all(log["user_id"] == admin.id for log in logs)

    def test_failed_creation_is_logged_as_failure(self, client, db, login_as):
        _, headers = login_as("admin")
        client.post("/api/admin/users", json=new_user(), headers=headers)
        client.post("/api/admin/users", json=new_user(), headers=headers)

        failed = db.query(models.AdminAccessLog).filter(models.AdminAccessLog.success.is_(False)).all()
        assert len(failed) == 1
        assert failed[0].failure_reason == "duplicate email"


class TestDashboardStats:
    def test_stats_and_chart(self, client, db, login_as, make_user):
        _, headers = login_as("admin")
        borrower = make_user("retailer")
        defaulter = make_user("retailer", status="suspended")

        db.add_all([
            models.CreditProfile(user_id=borrower.id, total_borrowed=1000, total_repaid=1000, risk_category="low"),
            models.CreditProfile(user_id=defaulter.id, total_borrowed=1000, total_repaid=500, risk_category="high"),
            models.Transaction(user_id=borrower.id, amount=1500, status="completed"),
            models.Transaction(user_id=borrower.id, amount=500, status="completed"),
            models.Transaction(user_id=borrower.id, amount=900, status="pending"),
            models.KYCDocument(user_id=borrower.id, document_type="national_id"),
            models.KYCDocument(user_id=defaulter.id, document_type="national_id", verification_status="verified"),
        ])
        db.commit()

        response = client.get("/api/admin/dashboard/stats", headers=headers)
        assert response.status_code == 200
        body = response.json()

        assert body["stats"] == {
            "totalUsers": 3,
            "activeUsers": 2,
            "totalTransactions": 2,
            "transactionVolume": 2000.0,
            "pendingKYC": 1,
            "verifiedKYC": 1,
            "defaultRate": 50.0,
            "collectionRate": 75.0,
        }

        chart = body["chartData"]
        assert len(chart) == 6
        current = chart[-1]
        assert current["name"] == constants.MONTHS_SHORT[date.today().month - 1]
        assert current["transactions"] == 2
        assert current["volume"] == 2000.0
        assert current["users"] == 3
        assert sum(point["transactions"] for point in chart[:-1]) == 0

    def test_stats_are_admin_only(self, client, login_as):
        _, headers = login_as("supplier")
        assert client.get("/api/admin/dashboard/stats", headers=headers).status_code == 403
