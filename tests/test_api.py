"""HTTP-level tests: authentication, role checks and the JSON contract of each blueprint."""
from backoffice.models import ProductStatus, Role


def test_welcome_and_health(client):
    assert "Welcome" in client.get("/").get_json()["message"]

    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["components"]["database"]["status"] == "UP"
    assert response.headers["X-Request-ID"]


def test_unknown_route_returns_json_404(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.get_json() == {"error": "Route not found"}


def test_request_id_is_propagated(client):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


# ---------------------------
# Auth
# ---------------------------


def test_register_login_and_me(client):
    response = client.post("/api/auth/register", json={"name": "Jo", "email": "jo@example.com", "password": "secret1"})
    assert response.status_code == 201
    assert response.get_json()["user"]["role"] == "customer"

    assert client.post("/api/auth/register", json={
        "name": "Jo", "email": "jo@example.com", "password": "secret1",
    }).get_json() == {"error": "Email already exists"}

    bad = client.post("/api/auth/login", json={"email": "jo@example.com", "password": "nope"})
    assert bad.status_code == 401

    token = client.post("/api/auth/login", json={"email": "jo@example.com", "password": "secret1"}).get_json()["token"]
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.get_json()["email"] == "jo@example.com"


def test_missing_and_invalid_tokens(client):
    assert client.get("/api/auth/me").get_json() == {"error": "Authentication required"}

    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.get_json() == {"error": "Invalid token"}


def test_update_me(client, sales_team, login):
    headers = login(sales_team["customer"])

    response = client.put("/api/auth/me", json={"name": "Renamed"}, headers=headers)

    assert response.status_code == 200
    assert response.get_json()["name"] == "Renamed"


# ---------------------------
# Users
# ---------------------------


def test_user_admin_endpoints_require_admin(client, sales_team, login):
    response = client.get("/api/users", headers=login(sales_team["staff"]))

    assert response.status_code == 403
    assert response.get_json() == {"error": "Forbidden"}


def test_admin_manages_users(client, sales_team, make_user, login):
    headers = login(sales_team["admin"])
    new_staff = make_user(Role.STAFF)

    listed = client.get("/api/users?role=salesman", headers=headers).get_json()
    assert [u["id"] for u in listed] == [sales_team["salesman"].userID]
    assert client.get("/api/users?role=pilot", headers=headers).status_code == 400

    response = client.post("/api/users/assign-salesman", json={
        "salesmanId": sales_team["salesman"].userID,
        "staffId": new_staff.userID,
    }, headers=headers)
    assert response.status_code == 200
    assert response.get_json()["salesman"]["assignedStaff"]["id"] == new_staff.userID

    response = client.put(f"/api/users/{sales_team['customer'].userID}", json={"role": "salesman"}, headers=headers)
    assert response.status_code == 400
    assert response.get_json() == {"error": "Staff ID is required for salesman role"}

    assert client.get("/api/users/missing", headers=headers).status_code == 404
    assert client.delete(f"/api/users/{sales_team['customer'].userID}", headers=headers).status_code == 200


def test_staff_lists_own_salesmen(client, sales_team, login):
    response = client.get("/api/users/staff/salesmen", headers=login(sales_team["staff"]))

    assert response.status_code == 200
    assert [s["id"] for s in response.get_json()] == [sales_team["salesman"].userID]


# ---------------------------
# Products
# ---------------------------


def test_product_catalog_flow(client, sales_team, login):
    staff_headers = login(sales_team["staff"])

    created = client.post("/api/products", json={
        "name": "Headphones", "price": 120, "category": "Electronics", "stock": 2, "tags": ["audio"],
    }, headers=staff_headers)
    assert created.status_code == 201
    product = created.get_json()["product"]
    assert product["price"] == 120.0
    assert product["sku"].startswith("ELE-")

    listing = client.get("/api/products?tags=audio", headers=login(sales_team["customer"])).get_json()
    assert [p["id"] for p in listing["products"]] == [product["id"]]
    assert listing["pagination"] == {"total": 1, "page": 1, "totalPages": 1}

    stock = client.put(f"/api/products/{product['id']}/stock", json={"quantity": -2}, headers=staff_headers)
    assert stock.status_code == 200
    assert stock.get_json()["product"] == {
        "id": product["id"], "name": "Headphones", "stock": 0, "status": ProductStatus.INACTIVE.value,
    }

    short = client.put(f"/api/products/{product['id']}/stock", json={"quantity": -1}, headers=staff_headers)
    assert short.status_code == 400
    assert short.get_json() == {"error": "Insufficient stock", "currentStock": 0}

    assert client.delete(f"/api/products/{product['id']}", headers=staff_headers).status_code == 403
    assert client.delete(f"/api/products/{product['id']}", headers=login(sales_team["admin"])).status_code == 200
    assert client.get(f"/api/products/{product['id']}", headers=staff_headers).status_code == 404


def test_customers_cannot_create_products(client, sales_team, login):
    response = client.post("/api/products", json={"name": "x", "price": 1, "category": "y"},
                           headers=login(sales_team["customer"]))

    assert response.status_code == 403


def test_invalid_product_filter_is_a_bad_request(client, sales_team, login):
    response = client.get("/api/products?minPrice=cheap", headers=login(sales_team["customer"]))

    assert response.status_code == 400
    assert response.get_json() == {"error": "minPrice must be a number"}


# ---------------------------
# Orders
# ---------------------------


def _setup_order(make_product, make_city, make_delivery_service):
    city = make_city("Springfield")
    return city, make_delivery_service(base_price="10.00", price_per_km="0.50", cities=[city]), make_product(
        price="20.00", stock=5
    )


def test_salesman_places_order_over_http(client, sales_team, login, make_product, make_city,
                                         make_delivery_service, order_payload):
    city, carrier, product = _setup_order(make_product, make_city, make_delivery_service)
    headers = login(sales_team["salesman"])

    response = client.post("/api/orders", json=order_payload(sales_team["customer"], carrier, city, (product, 3)),
                           headers=headers)

    assert response.status_code == 201
    body = response.get_json()
    assert body["orderNumber"].startswith("ORD-")
    assert body["status"] == "pending"
    assert body["totalAmount"] == 60.0
    assert body["deliveryFee"] == 35.0
    assert body["salesmanCommission"] == 6.0
    assert body["OrderItems"][0]["Product"]["stock"] == 2
    assert body["DeliveryService"]["id"] == carrier.deliveryServiceID
    assert body["customer"]["id"] == sales_team["customer"].userID

    listing = client.get("/api/orders", headers=headers).get_json()
    assert listing["totalCount"] == 1
    assert listing["hasMore"] is False

    fetched = client.get(f"/api/orders/{body['id']}", headers=login(sales_team["staff"]))
    assert fetched.status_code == 200


def test_order_errors_over_http(client, sales_team, login, make_user, make_product, make_city,
                                make_delivery_service, order_payload):
    city, carrier, product = _setup_order(make_product, make_city, make_delivery_service)
    salesman_headers = login(sales_team["salesman"])

    too_many = client.post("/api/orders", json=order_payload(sales_team["customer"], carrier, city, (product, 9)),
                           headers=salesman_headers)
    assert too_many.status_code == 400
    assert "Insufficient stock" in too_many.get_json()["error"]

    assert client.post("/api/orders", json=order_payload(sales_team["customer"], carrier, city, (product, 1)),
                       headers=login(sales_team["admin"])).status_code == 403

    order_id = client.post("/api/orders", json=order_payload(sales_team["customer"], carrier, city, (product, 1)),
                           headers=salesman_headers).get_json()["id"]
    outsider = make_user(Role.SALESMAN, staff=make_user(Role.STAFF))
    denied = client.get(f"/api/orders/{order_id}", headers=login(outsider))
    assert denied.status_code == 403
    assert denied.get_json() == {"error": "Access denied"}
    assert client.get("/api/orders/missing", headers=salesman_headers).status_code == 404
    assert client.get("/api/orders?status=lost", headers=salesman_headers).status_code == 400


def test_status_update_and_commission_summary(client, sales_team, login, make_product, make_city,
                                              make_delivery_service, order_payload):
    city, carrier, product = _setup_order(make_product, make_city, make_delivery_service)
    order_id = client.post(
        "/api/orders",
        json=order_payload(sales_team["customer"], carrier, city, (product, 2)),
        headers=login(sales_team["salesman"]),
    ).get_json()["id"]
    staff_headers = login(sales_team["staff"])

    assert client.put(f"/api/orders/{order_id}/status", json={"status": "shipped"},
                      headers=login(sales_team["salesman"])).status_code == 403
    invalid = client.put(f"/api/orders/{order_id}/status", json={"status": "lost"}, headers=staff_headers)
    assert invalid.get_json() == {"error": "Invalid status: lost"}

    cancelled = client.put(f"/api/orders/{order_id}/status", json={"status": "cancelled"}, headers=staff_headers)
    assert cancelled.status_code == 200
    assert cancelled.get_json()["OrderItems"][0]["Product"]["stock"] == 5

    summary = client.get("/api/orders/commissions/summary", headers=login(sales_team["admin"])).get_json()
    assert summary["summary"]["totalOrders"] == 1
    assert summary["summary"]["totalCommission"] == 4.0
    assert summary["summary"]["salesmen"][0]["name"] == sales_team["salesman"].name


# ---------------------------
# Delivery catalog
# ---------------------------


def test_delivery_catalog_endpoints(client, sales_team, login, make_city):
    admin_headers = login(sales_team["admin"])
    north = make_city("North")

    created = client.post("/api/delivery-services", json={
        "name": "Rapid", "basePrice": 4, "pricePerKm": 1.5, "estimatedDays": 2,
    }, headers=admin_headers)
    assert created.status_code == 201
    service_id = created.get_json()["deliveryService"]["id"]

    assigned = client.put(f"/api/delivery-services/{service_id}/cities", json={"cityIds": [north.cityID]},
                          headers=admin_headers)
    assert [c["name"] for c in assigned.get_json()["deliveryService"]["cities"]] == ["North"]

    customer_headers = login(sales_team["customer"])
    services = client.get("/api/delivery-services", headers=customer_headers).get_json()
    assert [s["name"] for s in services] == ["Rapid"]
    cities = client.get(f"/api/cities?deliveryServiceId={service_id}", headers=customer_headers).get_json()
    assert [c["id"] for c in cities] == [north.cityID]

    assert client.post("/api/cities", json={"name": "South"}, headers=customer_headers).status_code == 403
    assert client.post("/api/cities", json={"name": "South"}, headers=admin_headers).status_code == 201
    assert client.put("/api/cities/missing", json={"name": "x"}, headers=admin_headers).status_code == 404


def test_inactive_entries_only_for_back_office(client, sales_team, login, make_delivery_service):
    make_delivery_service(is_active=False)

    customer_view = client.get("/api/delivery-services?includeInactive=true", headers=login(sales_team["customer"]))
    staff_view = client.get("/api/delivery-services?includeInactive=true", headers=login(sales_team["staff"]))

    assert customer_view.get_json() == []
    assert len(staff_view.get_json()) == 1


def test_admin_metrics_endpoint(client, sales_team, login):
    client.get("/health")

    assert client.get("/api/admin/metrics", headers=login(sales_team["staff"])).status_code == 403
    snapshot = client.get("/api/admin/metrics", headers=login(sales_team["admin"])).get_json()
    assert "http_requests_total" in snapshot["counters"]
