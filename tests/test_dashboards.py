# JUAKALI/backend/tests/test_dashboards.py : role dashboards and their redirects

from juakali.models import models


class TestDashboardGuard:
    def test_visitor_is_sent_to_login(self, client):
        for path in ("/admin", "/lender", "/supplier", "/retailer", "/dashboard"):
            response = client.get(path, follow_redirects=False)
            assert response.status_code == 302
            assert response.headers["location"] == "/login"

    def test_wrong_role_falls_back_to_dashboard(self, client, login_as):
        _, headers = login_as("retailer")
        response = client.get("/admin", headers=headers, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/dashboard"

    def test_inactive_user_is_sent_to_login(self, client, login_as):
        _, headers = login_as("lender", is_active=False)
        response = client.get("/lender", headers=headers, follow_redirects=False)
        assert response.headers["location"] == "/login"

    def test_customers_share_the_retailer_dashboard(self, client, login_as):
        _, headers = login_as("customer")
        response = client.get("/retailer", headers=headers, follow_redirects=False)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["credit"]["creditLimit"] == 0
        assert data["kycStatus"] is None

    def test_home_points_at_the_role_dashboard(self, client, login_as):
        _, headers = login_as("lender")
        assert client.get("/dashboard", headers=headers).json() == {"success": True, "role": "lender", "home": "/lender"}

        _, headers = login_as("customer")
        assert client.get("/dashboard", headers=headers).json()["home"] == "/retailer"


class TestDashboardData:
    def test_admin_dashboard(self, client, login_as):
        _, headers = login_as("admin")
        body = client.get("/admin", headers=headers).json()
        assert body["stats"]["totalUsers"] == 1
        assert len(body["chartData"]) == 6

    def test_lender_summary(self, client, db, login_as):
        lender, headers = login_as("lender")
        db.add_all([
            models.Notification(lender_id=lender.id, type="payment", priority="high",
                                title="Payment received", message="KSh 1,500 from Njeri Duka"),
            models.Notification(lender_id=lender.id, type="alert", priority="low",
                                title="Old", message="Seen", is_read=True),
        ])
        db.commit()

        data = client.get("/lender", headers=headers).json()["data"]
        assert data["unreadNotifications"] == 1
        assert data["preferredSuppliers"] == 0
        assert "cashflow" in data

    def test_supplier_summary(self, client, db, login_as):
        supplier, headers = login_as("supplier")
        db.add_all([
            models.Product(supplier_id=supplier.id, name="Sugar 1kg", price=150, stock_quantity=4),
            models.Product(supplier_id=supplier.id, name="Rice 2kg", price=300, stock_quantity=20),
        ])
        db.commit()

        data = client.get("/supplier", headers=headers).json()["data"]
        assert data == {"products": 2, "stockValue": 6600.0, "lowStock": 1, "movements": 0}
