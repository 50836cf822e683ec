from nebula.models.user import User, UserRole


def test_statistics(client, admin_user, sales_user, scanner_user, auth_headers, make_ticket):
    active = make_ticket(sales_user, price=20.0)
    used = make_ticket(sales_user, price=30.0, buyer_email="used@example.com")
    cancelled = make_ticket(sales_user, price=50.0, buyer_email="gone@example.com")
    client.put(f"/api/tickets/{used.id}/mark-used", headers=auth_headers(scanner_user))
    client.delete(f"/api/tickets/{cancelled.id}", headers=auth_headers(sales_user))

    response = client.get("/api/admin/statistics", headers=auth_headers(admin_user))

    assert response.status_code == 200
    stats = response.json()["data"]
    assert stats["totalTickets"] == 3
    assert stats["activeTickets"] == 1
    assert stats["usedTickets"] == 1
    assert stats["cancelledTickets"] == 1
    assert stats["totalRevenue"] == 50.0
    assert stats["monthlyRevenue"] == 50.0
    assert stats["todaysSales"] == 3
    assert [t["id"] for t in stats["recentTickets"]] == [cancelled.id, used.id, active.id]


def test_statistics_require_admin(client, sales_user, auth_headers):
    response = client.get("/api/admin/statistics", headers=auth_headers(sales_user))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"


def test_list_users(client, admin_user, sales_user, scanner_user, auth_headers):
    response = client.get("/api/admin/users", params={"limit": 2}, headers=auth_headers(admin_user))

    body = response.json()
    assert response.status_code == 200
    assert [u["email"] for u in body["data"]] == [scanner_user.email, sales_user.email]
    assert body["meta"]["pagination"]["total"] == 3
    assert body["meta"]["pagination"]["hasNext"] is True


def test_create_user(client, admin_user, auth_headers):
    payload = {"email": "Door@Example.com", "name": "Door Staff", "password": "door-pass", "role": "scanner"}

    response = client.post("/api/admin/users", json=payload, headers=auth_headers(admin_user))

    assert response.status_code == 201
    assert response.json()["data"]["email"] == "door@example.com"
    assert response.json()["data"]["role"] == "scanner"

    duplicate = client.post("/api/admin/users", json=payload, headers=auth_headers(admin_user))
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "EMAIL_EXISTS"


def test_create_user_invalid_role(client, admin_user, auth_headers):
    payload = {"email": "boss@example.com", "name": "Boss", "password": "boss-pass", "role": "owner"}

    response = client.post("/api/admin/users", json=payload, headers=auth_headers(admin_user))

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_update_user(client, admin_user, sales_user, auth_headers):
    response = client.put(
        f"/api/admin/users/{sales_user.id}",
        json={"role": "scanner", "name": "Renamed"},
        headers=auth_headers(admin_user)
    )

    assert response.status_code == 200
    assert response.json()["data"]["role"] == "scanner"
    assert response.json()["data"]["name"] == "Renamed"

    empty = client.put(f"/api/admin/users/{sales_user.id}", json={}, headers=auth_headers(admin_user))
    assert empty.status_code == 400
    assert empty.json()["error"]["code"] == "NO_UPDATES"


def test_delete_user_is_soft(client, admin_user, sales_user, auth_headers, db):
    headers = auth_headers(sales_user)

    response = client.delete(f"/api/admin/users/{sales_user.id}", headers=auth_headers(admin_user))

    assert response.status_code == 200
    db.expire_all()
    stored = db.get(User, sales_user.id)
    assert stored is not None
    assert stored.is_active is False
    assert client.get("/api/auth/profile", headers=headers).status_code == 401


def test_delete_self(client, admin_user, auth_headers, db):
    response = client.delete(f"/api/admin/users/{admin_user.id}", headers=auth_headers(admin_user))

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "CANNOT_DELETE_SELF"
    db.expire_all()
    assert db.get(User, admin_user.id).role == UserRole.ADMIN


def test_cannot_deactivate_self_through_update(client, admin_user, auth_headers):
    headers = auth_headers(admin_user)

    response = client.put(f"/api/admin/users/{admin_user.id}", json={"isActive": False}, headers=headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "CANNOT_DELETE_SELF"
    assert client.get("/api/auth/profile", headers=headers).status_code == 200


def test_cannot_change_own_role(client, admin_user, auth_headers):
    response = client.put(
        f"/api/admin/users/{admin_user.id}", json={"role": "sales"}, headers=auth_headers(admin_user)
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "CANNOT_CHANGE_OWN_ROLE"


def test_deactivate_other_user_through_update(client, admin_user, sales_user, auth_headers):
    response = client.put(
        f"/api/admin/users/{sales_user.id}", json={"isActive": False}, headers=auth_headers(admin_user)
    )

    assert response.status_code == 200
    assert response.json()["data"]["isActive"] is False
