# JUAKALI/backend/tests/test_inventory.py

from juakali.models import models


def create_product(client, headers, **overrides):
    payload = {"name": "Maize flour 2kg", "category": "Groceries", "price": 180, "stock_quantity": 20}
    payload.update(overrides)
    return client.post("/api/inventory/products", json=payload, headers=headers)


class TestProducts:
    def test_supplier_creates_product(self, client, login_as):
        supplier, headers = login_as("supplier")
        response = create_product(client, headers)
        assert response.status_code == 201
        data = response.json()
        assert data["supplier_id"] == supplier.id
        assert data["stock_quantity"] == 20
        assert data["is_active"] is True

    def test_only_suppliers_create_products(self, client, login_as):
        _, headers = login_as("admin")
        response = create_product(client, headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Supplier access required"

    def test_suppliers_see_their_own_products(self, client, login_as):
        _, headers = login_as("supplier")
        _, other_headers = login_as("supplier")
        _, admin_headers = login_as("admin")
        create_product(client, headers, name="Sugar 1kg")
        create_product(client, other_headers, name="Cooking oil 1L")

        own = client.get("/api/inventory/products", headers=headers).json()["products"]
        assert [p["name"] for p in own] == ["Sugar 1kg"]
        assert len(client.get("/api/inventory/products", headers=admin_headers).json()["products"]) == 2

    def test_retailers_are_rejected(self, client, login_as):
        _, headers = login_as("retailer")
        response = client.get("/api/inventory/products", headers=headers)
        assert response.status_code == 403
        assert response.json()["error"] == "Supplier/Admin access required"


class TestMovements:
    def test_stock_in_and_out(self, client, db, login_as):
        _, headers = login_as("supplier")
        product_id = create_product(client, headers).json()["id"]

        response = client.post("/api/inventory/movement", json={
            "product_id": product_id, "movement_type": "in", "quantity_change": 30,
            "reason": "Restock", "unit_cost": 150,
        }, headers=headers)
        assert response.status_code == 200
        assert response.json() == {"message": "Inventory updated successfully", "old_stock": 20, "new_stock": 50}

        response = client.post("/api/inventory/movement", json={
            "product_id": product_id, "movement_type": "out", "quantity_change": -45, "reason": "Order #12",
        }, headers=headers)
        assert response.json()["new_stock"] == 5

        movement = db.query(models.InventoryMovement).order_by(models.InventoryMovement.id).first()
        assert (movement.quantity_before, movement.quantity_after) == (20, 50)
        assert movement.total_value == 4500

        history = client.get(f"/api/inventory/movements?product_id={product_id}", headers=headers).json()
        assert history["pagination"]["total"] == 2
        assert [m["movement_type"] for m in history["movements"]] == ["out", "in"]

    def test_stock_never_goes_negative(self, client, db, login_as):
        _, headers = login_as("supplier")
        product_id = create_product(client, headers, stock_quantity=5).json()["id"]

        response = client.post("/api/inventory/movement", json={
            "product_id": product_id, "movement_type": "out", "quantity_change": -6, "reason": "Order",
        }, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Insufficient stock"
        assert db.get(models.Product, product_id).stock_quantity == 5
        assert db.query(models.InventoryMovement).count() == 0

    def test_foreign_product_is_not_found(self, client, login_as):
        _, headers = login_as("supplier")
        _, other_headers = login_as("supplier")
        product_id = create_product(client, headers).json()["id"]

        response = client.post("/api/inventory/movement", json={
            "product_id": product_id, "movement_type": "adjustment", "quantity_change": 1, "reason": "Count",
        }, headers=other_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Product not found"
