from bson import ObjectId


def place_order(client, auth_headers, buyer, product, **extra):
    payload = {"order_type": "product", "product": product, "quantity": 2, "delivery_type": "delivery"}
    payload.update(extra)
    return client.post("/v1/orders", json=payload, headers=auth_headers(buyer))


def test_create_order(client, auth_headers, buyer, seller, product):
    response = place_order(client, auth_headers, buyer, product)

    assert response.status_code == 201
    body = response.json()
    assert body["buyer_id"] == buyer.id
    assert body["seller_id"] == seller.id
    assert body["subtotal"] == 200
    assert body["total_amount"] == 210
    assert body["status"] == "pending"
    assert body["order_number"].startswith("ORD-")
    assert body["total_items"] == 2
    assert body["is_active"] is True
    assert body["is_terminal"] is False
    assert body["can_be_cancelled"] is True
    assert body["can_be_rated"] is False


def test_create_order_with_percentage_discount_via_pricing(client, auth_headers, buyer, seller, product):
    order_id = place_order(client, auth_headers, buyer, product).json()["id"]

    response = client.put(f"/v1/orders/{order_id}/pricing",
                          json={"discount": {"type": "percentage", "amount": 50}},
                          headers=auth_headers(seller))

    assert response.status_code == 200
    assert response.json()["total_amount"] == 105


def test_requires_authentication(client, product):
    response = client.post("/v1/orders", json={"order_type": "product", "product": product})

    assert response.status_code == 401
    assert "message" in response.json()


def test_rejects_tampered_token(client, auth_headers, buyer, product):
    headers = auth_headers(buyer)
    headers["Authorization"] += "x"

    response = client.get("/v1/orders/my-orders", headers=headers)

    assert response.status_code == 401


def test_cannot_order_own_product(client, auth_headers, seller, product):
    response = place_order(client, auth_headers, seller, product)

    assert response.status_code == 400
    assert response.json()["message"] == "You cannot order your own items"


def test_unknown_product(client, auth_headers, buyer):
    response = place_order(client, auth_headers, buyer, str(ObjectId()))

    assert response.status_code == 404
    assert response.json() == {"message": "Product not found"}


def test_status_flow(client, auth_headers, buyer, seller, product):
    order_id = place_order(client, auth_headers, buyer, product).json()["id"]

    forbidden = client.put(f"/v1/orders/{order_id}/status", json={"status": "confirmed"},
                           headers=auth_headers(buyer))
    assert forbidden.status_code == 403

    confirmed = client.put(f"/v1/orders/{order_id}/status", json={"status": "confirmed", "note": "Packing now"},
                           headers=auth_headers(seller))
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"
    assert len(confirmed.json()["status_history"]) == 2

    again = client.put(f"/v1/orders/{order_id}/status", json={"status": "confirmed"},
                       headers=auth_headers(buyer))
    assert again.status_code == 400
    assert again.json()["current_status"] == "confirmed"
    assert again.json()["requested_status"] == "confirmed"


def test_unknown_status_value_is_an_invalid_transition(client, auth_headers, buyer, seller, product):
    order_id = place_order(client, auth_headers, buyer, product).json()["id"]

    response = client.put(f"/v1/orders/{order_id}/status", json={"status": "bogus"},
                          headers=auth_headers(seller))

    assert response.status_code == 400
    assert response.json() == {
        "message": "Cannot change status from pending to bogus",
        "current_status": "pending",
        "requested_status": "bogus",
    }
    assert client.get(f"/v1/orders/{order_id}", headers=auth_headers(buyer)).json()["status"] == "pending"


def test_cancel_refused_from_processing(client, auth_headers, buyer, seller, product):
    order_id = place_order(client, auth_headers, buyer, product).json()["id"]
    for status in ("confirmed", "processing"):
        client.put(f"/v1/orders/{order_id}/status", json={"status": status}, headers=auth_headers(seller))

    response = client.post(f"/v1/orders/{order_id}/cancel", json={"reason": "Too slow"},
                           headers=auth_headers(buyer))

    assert response.status_code == 400
    assert response.json()["current_status"] == "processing"


def test_cancel_pending_order(client, auth_headers, buyer, product):
    order_id = place_order(client, auth_headers, buyer, product).json()["id"]

    response = client.post(f"/v1/orders/{order_id}/cancel", json={"reason": "Changed my mind"},
                           headers=auth_headers(buyer))

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancellation"]["reason"] == "Changed my mind"


def test_get_order_visibility(client, auth_headers, buyer, stranger, product):
    order_id = place_order(client, auth_headers, buyer, product).json()["id"]

    assert client.get(f"/v1/orders/{order_id}", headers=auth_headers(buyer)).status_code == 200
    assert client.get(f"/v1/orders/{order_id}", headers=auth_headers(stranger)).status_code == 403
    assert client.get(f"/v1/orders/{ObjectId()}", headers=auth_headers(buyer)).status_code == 404
    assert client.get("/v1/orders/not-an-id", headers=auth_headers(buyer)).status_code == 400


def test_my_orders_and_admin_listing(client, auth_headers, buyer, seller, admin, product):
    place_order(client, auth_headers, buyer, product)
    place_order(client, auth_headers, buyer, product, delivery_type="pickup")

    mine = client.get("/v1/orders/my-orders", params={"role": "seller"}, headers=auth_headers(seller))
    assert mine.status_code == 200
    assert mine.json()["total"] == 2
    assert mine.json()["total_pages"] == 1

    assert client.get("/v1/orders", headers=auth_headers(buyer)).status_code == 403
    everything = client.get("/v1/orders", params={"page_size": 1}, headers=auth_headers(admin))
    assert everything.status_code == 200
    assert len(everything.json()["data"]) == 1
    assert everything.json()["total_pages"] == 2


def test_stats(client, auth_headers, buyer, product):
    place_order(client, auth_headers, buyer, product)

    response = client.get("/v1/orders/stats", headers=auth_headers(buyer))

    assert response.status_code == 200
    assert response.json()["summary"]["total_orders"] == 1
    assert response.json()["orders_by_status"] == {"pending": 1}


def test_payment_and_rating(client, auth_headers, buyer, seller, product):
    order_id = place_order(client, auth_headers, buyer, product, payment_method="card").json()["id"]
    for actor, status in ((seller, "confirmed"), (seller, "processing"), (seller, "shipped"),
                          (buyer, "delivered"), (buyer, "completed")):
        assert client.put(f"/v1/orders/{order_id}/status", json={"status": status},
                          headers=auth_headers(actor)).status_code == 200

    paid = client.put(f"/v1/orders/{order_id}/payment", json={"payment_status": "paid", "transaction_id": "tx-9"},
                      headers=auth_headers(buyer))
    assert paid.status_code == 200
    assert paid.json()["payment"]["status"] == "paid"

    rated = client.post(f"/v1/orders/{order_id}/rating/customer", json={"rating": 5, "review": "Lovely"},
                        headers=auth_headers(buyer))
    assert rated.status_code == 200
    assert rated.json()["customer_rating"]["rating"] == 5
    assert rated.json()["is_terminal"] is True
    assert rated.json()["is_active"] is False
    assert rated.json()["can_be_rated"] is False

    twice = client.post(f"/v1/orders/{order_id}/rating/customer", json={"rating": 4},
                        headers=auth_headers(buyer))
    assert twice.status_code == 400
    assert twice.json()["message"] == "Order already rated"

    seller_rating = client.post(f"/v1/orders/{order_id}/rating/seller", json={"rating": 3},
                                headers=auth_headers(seller))
    assert seller_rating.status_code == 200
