from datetime import date

from ordermanager.models import Order

from .conftest import create_order


def test_create_sale_order(auth_client):
    order = create_order(
        auth_client,
        items=[{"name": "MS Angle", "quantity": 2, "price": 100, "commission": 10, "unit": "ton"}],
    )

    assert order["id"].startswith(f"SO-{date.today():%Y%m%d}-")
    assert order["type"] == "sale"
    assert order["customer"] == "Sharma Steels"
    assert order["supplier"] is None
    assert order["total_quantity"] == 2
    assert order["remaining_quantity"] == 2
    assert order["status"] == "pending"
    assert order["payment_status"] == "pending"
    assert order["total_amount"] == 220
    assert order["items"][0]["unit"] == "ton"
    assert order["dispatches"] == []


def test_purchase_order_keeps_only_supplier(auth_client):
    order = create_order(auth_client, type="purchase", customer="Ignored")

    assert order["id"].startswith("PO-")
    assert order["supplier"] == "Jindal Supply"
    assert order["customer"] is None


def test_order_ids_increment_per_type(auth_client):
    first = create_order(auth_client)
    second = create_order(auth_client)
    purchase = create_order(auth_client, type="purchase")

    assert first["id"].endswith("-001")
    assert second["id"].endswith("-002")
    assert purchase["id"].endswith("-001")


def test_total_quantity_sums_items(auth_client):
    order = create_order(
        auth_client,
        items=[
            {"name": "40x3", "quantity": 4, "price": 50},
            {"name": "65x8", "quantity": 6.5, "price": 60},
        ],
    )
    assert order["total_quantity"] == 10.5
    assert order["remaining_quantity"] == 10.5


def test_create_order_requires_login(client):
    response = client.post(
        "/orders/",
        json={"type": "sale", "customer": "A", "items": [{"name": "x", "quantity": 1}]},
    )
    assert response.status_code == 401


def test_create_order_validation(auth_client):
    bad_quantity = {"type": "sale", "customer": "A", "items": [{"name": "x", "quantity": 0}]}
    response = auth_client.post("/orders/", json=bad_quantity)
    assert response.status_code == 400
    assert response.json()["detail"] == "Quantity must be greater than 0"

    no_customer = {"type": "sale", "items": [{"name": "x", "quantity": 1}]}
    response = auth_client.post("/orders/", json=no_customer)
    assert response.status_code == 400
    assert "Customer is required" in response.json()["detail"]

    no_items = {"type": "purchase", "supplier": "B", "items": []}
    assert auth_client.post("/orders/", json=no_items).status_code == 400

    bad_type = {"type": "rental", "customer": "A", "items": [{"name": "x", "quantity": 1}]}
    assert auth_client.post("/orders/", json=bad_type).status_code == 422


def test_get_order(auth_client):
    created = create_order(auth_client)
    response = auth_client.get(f"/orders/{created['id']}")

    assert response.status_code == 200
    assert response.json()["id"] == created["id"]


def test_get_missing_order(client):
    response = client.get("/orders/SO-19990101-001")
    assert response.status_code == 404
    assert response.json()["detail"] == "Order not found"


def test_list_orders_by_type(auth_client):
    create_order(auth_client)
    create_order(auth_client, type="purchase")

    all_orders = auth_client.get("/orders/").json()
    sales = auth_client.get("/orders/", params={"type": "sale"}).json()

    assert len(all_orders) == 2
    assert [o["type"] for o in sales] == ["sale"]


def test_search_orders_is_case_insensitive(auth_client):
    create_order(auth_client, customer="Gupta Traders")
    create_order(auth_client, type="purchase", supplier="Tata Steel")

    results = auth_client.get("/orders/", params={"q": "gupta"}).json()
    assert [o["customer"] for o in results] == ["Gupta Traders"]

    results = auth_client.get("/orders/", params={"q": "PO-"}).json()
    assert [o["supplier"] for o in results] == ["Tata Steel"]


def test_filter_orders_by_date_range(auth_client):
    create_order(auth_client, date="2024-01-05")
    create_order(auth_client, date="2024-02-10")
    create_order(auth_client, date="2024-03-15")

    results = auth_client.get(
        "/orders/", params={"start_date": "2024-02-01", "end_date": "2024-03-31"}
    ).json()

    assert [o["date"] for o in results] == ["2024-03-15", "2024-02-10"]


def test_update_order(auth_client):
    created = create_order(auth_client)
    response = auth_client.put(
        f"/orders/{created['id']}",
        json={"status": "cancelled", "notes": "Customer withdrew", "supplier": "Ignored"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "cancelled"
    assert body["notes"] == "Customer withdrew"
    assert body["supplier"] is None


def test_update_rejects_empty_required_fields(auth_client):
    created = create_order(auth_client)
    url = f"/orders/{created['id']}"

    response = auth_client.put(url, json={"date": None})
    assert response.status_code == 400
    assert response.json()["detail"] == "Date cannot be empty"

    response = auth_client.put(url, json={"status": None})
    assert response.status_code == 400
    assert response.json()["detail"] == "Status cannot be empty"

    response = auth_client.put(url, json={"customer": None})
    assert response.status_code == 400
    assert response.json()["detail"] == "Customer is required for a sale order"

    response = auth_client.put(url, json={"customer": "   "})
    assert response.status_code == 400

    stored = auth_client.get(url).json()
    assert stored["customer"] == "Sharma Steels"
    assert stored["status"] == "pending"


def test_update_purchase_supplier(auth_client):
    created = create_order(auth_client, type="purchase")
    url = f"/orders/{created['id']}"

    response = auth_client.put(url, json={"supplier": "  Tata Steel ", "customer": "Ignored"})
    assert response.status_code == 200
    assert response.json()["supplier"] == "Tata Steel"
    assert response.json()["customer"] is None

    response = auth_client.put(url, json={"supplier": None})
    assert response.status_code == 400
    assert response.json()["detail"] == "Supplier is required for a purchase order"


def test_new_order_timestamps_are_utc():
    order = Order(id="SO-20240101-001", type="sale")
    assert order.created_at.tzinfo is not None
    assert order.created_at.utcoffset().total_seconds() == 0


def test_update_rejects_unknown_status(auth_client):
    created = create_order(auth_client)
    response = auth_client.put(f"/orders/{created['id']}", json={"status": "shipped"})
    assert response.status_code == 422


def test_delete_order_removes_children(auth_client):
    created = create_order(auth_client)
    order_id = created["id"]
    auth_client.post(f"/orders/{order_id}/dispatches", json={"quantity": 2})
    auth_client.post(f"/orders/{order_id}/payments", json={"amount": 500})

    response = auth_client.delete(f"/orders/{order_id}")

    assert response.status_code == 200
    assert auth_client.get(f"/orders/{order_id}").status_code == 404
    assert auth_client.get("/payments/", params={"order_id": order_id}).json() == []
