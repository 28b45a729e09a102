from .conftest import create_order


def test_record_payment(auth_client):
    order = create_order(auth_client)
    response = auth_client.post(
        f"/orders/{order['id']}/payments",
        json={
            "amount": 5000,
            "payment_date": "2024-04-02",
            "payment_mode": "cheque",
            "payment_status": "partial",
            "reference_number": "CHQ-118",
        },
    )

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["order_id"] == order["id"]
    assert body["payment_mode"] == "cheque"
    assert body["reference_number"] == "CHQ-118"

    stored = auth_client.get(f"/orders/{order['id']}").json()
    assert stored["payment_status"] == "partial"
    assert len(stored["payments"]) == 1


def test_latest_payment_sets_order_status(auth_client):
    order = create_order(auth_client)
    url = f"/orders/{order['id']}/payments"
    auth_client.post(url, json={"amount": 400, "payment_status": "partial"})
    auth_client.post(url, json={"amount": 700, "payment_mode": "upi", "payment_status": "completed"})

    stored = auth_client.get(f"/orders/{order['id']}").json()
    assert stored["payment_status"] == "completed"

    payments = auth_client.get(url).json()
    assert [p["amount"] for p in payments] == [700, 400]


def test_payment_validation(auth_client):
    order = create_order(auth_client)
    url = f"/orders/{order['id']}/payments"

    response = auth_client.post(url, json={"amount": 0})
    assert response.status_code == 400
    assert response.json()["detail"] == "Amount must be greater than 0"

    response = auth_client.post(url, json={"amount": 10, "payment_mode": "barter"})
    assert response.status_code == 422


def test_payment_on_missing_order(auth_client):
    response = auth_client.post("/orders/PO-19990101-001/payments", json={"amount": 10})
    assert response.status_code == 404


def test_list_all_payments(auth_client):
    first = create_order(auth_client)
    second = create_order(auth_client, type="purchase")
    auth_client.post(f"/orders/{first['id']}/payments", json={"amount": 100})
    auth_client.post(f"/orders/{second['id']}/payments", json={"amount": 200})

    assert len(auth_client.get("/payments/").json()) == 2
    filtered = auth_client.get("/payments/", params={"order_id": second["id"]}).json()
    assert [p["amount"] for p in filtered] == [200]
