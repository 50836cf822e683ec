import json
from datetime import timedelta

from nebula.database import utcnow
from nebula.models.ticket import Ticket, TicketStatus


def ticket_payload(**overrides):
    payload = {
        "eventName": "Nebula Live",
        "eventDate": (utcnow() + timedelta(days=10)).replace(microsecond=0).isoformat() + "Z",
        "eventLocation": "Main Hall",
        "price": 30,
        "buyerName": "Ada Lovelace",
        "buyerEmail": "Ada@Example.com",
        "buyerPhone": "",
    }
    payload.update(overrides)
    return payload


def test_create_ticket(client, sales_user, auth_headers, notifier):
    response = client.post("/api/tickets", json=ticket_payload(), headers=auth_headers(sales_user))

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["status"] == "active"
    assert data["buyerEmail"] == "ada@example.com"
    assert data["buyerPhone"] is None
    assert data["usedAt"] is None
    assert data["emailSent"] is True
    assert data["qrImageUrl"] == f"/api/tickets/{data['id']}/qr"
    assert data["qrCode"].startswith("NEBULA-")
    assert data["ticketNumber"].startswith("NBL-")
    assert data["event"]["name"] == "Nebula Live"
    assert notifier.sent == [data["ticketNumber"]]


def test_create_ticket_email_failure_still_created(client, sales_user, auth_headers, notifier):
    notifier.deliver = False

    response = client.post("/api/tickets", json=ticket_payload(), headers=auth_headers(sales_user))

    assert response.status_code == 201
    assert response.json()["data"]["emailSent"] is False


def test_create_ticket_validation(client, sales_user, auth_headers):
    response = client.post(
        "/api/tickets",
        json=ticket_payload(eventName="ab", buyerEmail="not-an-email"),
        headers=auth_headers(sales_user)
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    fields = {detail["field"] for detail in error["details"]}
    assert {"eventName", "buyerEmail"} <= fields


def test_create_ticket_invalid_price(client, sales_user, auth_headers, db):
    response = client.post("/api/tickets", json=ticket_payload(price=0), headers=auth_headers(sales_user))

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_PRICE"
    assert db.query(Ticket).count() == 0


def test_create_ticket_past_date(client, sales_user, auth_headers):
    past = (utcnow() - timedelta(days=1)).isoformat()
    response = client.post("/api/tickets", json=ticket_payload(eventDate=past), headers=auth_headers(sales_user))

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_DATE"


def test_scanner_cannot_issue(client, scanner_user, auth_headers):
    response = client.post("/api/tickets", json=ticket_payload(), headers=auth_headers(scanner_user))

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"


def test_requires_token(client):
    response = client.get("/api/tickets")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "NO_TOKEN"


def test_invalid_token(client):
    response = client.get("/api/tickets", headers={"Authorization": "Bearer nonsense"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "INVALID_TOKEN"


def test_list_tickets(client, sales_user, auth_headers, make_ticket):
    for i in range(3):
        make_ticket(sales_user, buyer_email=f"buyer{i}@example.com")
    make_ticket(sales_user, event_name="Comet Talk")

    response = client.get(
        "/api/tickets", params={"limit": 2, "search": "nebula"}, headers=auth_headers(sales_user)
    )

    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 2
    assert body["meta"]["pagination"] == {
        "page": 1,
        "limit": 2,
        "total": 3,
        "totalPages": 2,
        "hasNext": True,
        "hasPrev": False,
    }


def test_list_tickets_status_filter(client, sales_user, scanner_user, auth_headers, make_ticket):
    used = make_ticket(sales_user)
    make_ticket(sales_user, buyer_email="other@example.com")
    client.put(f"/api/tickets/{used.id}/mark-used", headers=auth_headers(scanner_user))

    response = client.get("/api/tickets", params={"status": "used"}, headers=auth_headers(scanner_user))

    assert [t["id"] for t in response.json()["data"]] == [used.id]


def test_get_ticket(client, sales_user, auth_headers, make_ticket):
    ticket = make_ticket(sales_user)

    response = client.get(f"/api/tickets/{ticket.id}", headers=auth_headers(sales_user))
    assert response.status_code == 200
    assert response.json()["data"]["qrCode"] == ticket.qr_code

    missing = client.get("/api/tickets/999", headers=auth_headers(sales_user))
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "TICKET_NOT_FOUND"


def test_scan_is_read_only(client, sales_user, scanner_user, auth_headers, make_ticket, db):
    ticket = make_ticket(sales_user)

    response = client.post(
        "/api/tickets/scan", json={"qrData": ticket.qr_code}, headers=auth_headers(scanner_user)
    )

    data = response.json()["data"]
    assert response.status_code == 200
    assert data["isValid"] is True
    assert data["ticket"]["id"] == ticket.id
    db.expire_all()
    assert db.get(Ticket, ticket.id).status == TicketStatus.ACTIVE


def test_scan_unknown_code(client, scanner_user, auth_headers):
    response = client.post(
        "/api/tickets/scan", json={"qrData": "NEBULA-000-ZZZ"}, headers=auth_headers(scanner_user)
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["ticket"] is None
    assert data["isValid"] is False


def test_mark_used_then_scan(client, sales_user, scanner_user, auth_headers, make_ticket):
    ticket = make_ticket(sales_user)
    headers = auth_headers(scanner_user)

    first = client.put(f"/api/tickets/{ticket.id}/mark-used", headers=headers)
    assert first.status_code == 200
    assert first.json()["data"]["status"] == "used"
    assert first.json()["data"]["usedAt"] is not None

    second = client.put(f"/api/tickets/{ticket.id}/mark-used", headers=headers)
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "TICKET_NOT_ACTIVE"

    scan = client.post("/api/tickets/scan", json={"qrData": ticket.qr_code}, headers=headers)
    assert scan.json()["data"]["isValid"] is False
    assert "already used" in scan.json()["data"]["reason"]


def test_sales_cannot_mark_used(client, sales_user, auth_headers, make_ticket):
    ticket = make_ticket(sales_user)
    response = client.put(f"/api/tickets/{ticket.id}/mark-used", headers=auth_headers(sales_user))
    assert response.status_code == 403


def test_cancel_ticket(client, sales_user, auth_headers, make_ticket):
    ticket = make_ticket(sales_user)

    response = client.delete(f"/api/tickets/{ticket.id}", headers=auth_headers(sales_user))
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "cancelled"

    again = client.delete(f"/api/tickets/{ticket.id}", headers=auth_headers(sales_user))
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "TICKET_ALREADY_CANCELLED"


def test_cancel_used_ticket(client, sales_user, scanner_user, auth_headers, make_ticket, db):
    ticket = make_ticket(sales_user)
    client.put(f"/api/tickets/{ticket.id}/mark-used", headers=auth_headers(scanner_user))

    response = client.delete(f"/api/tickets/{ticket.id}", headers=auth_headers(sales_user))

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "TICKET_ALREADY_USED"
    db.expire_all()
    assert db.get(Ticket, ticket.id).status == TicketStatus.USED


def test_resend_ticket(client, sales_user, auth_headers, make_ticket, notifier):
    ticket = make_ticket(sales_user)

    response = client.post(
        f"/api/tickets/{ticket.id}/resend",
        json={"email": "new.owner@example.com"},
        headers=auth_headers(sales_user)
    )

    assert response.status_code == 200
    assert response.json()["data"]["buyerEmail"] == "new.owner@example.com"
    assert notifier.sent == [ticket.ticket_number]


def test_resend_failure(client, sales_user, auth_headers, make_ticket, notifier):
    ticket = make_ticket(sales_user)
    notifier.deliver = False

    response = client.post(
        f"/api/tickets/{ticket.id}/resend",
        json={"email": ticket.buyer_email},
        headers=auth_headers(sales_user)
    )

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "EMAIL_ERROR"


def test_qr_image_and_pdf(client, scanner_user, sales_user, auth_headers, make_ticket):
    ticket = make_ticket(sales_user)
    headers = auth_headers(scanner_user)

    image = client.get(f"/api/tickets/{ticket.id}/qr", headers=headers)
    assert image.status_code == 200
    assert image.headers["content-type"] == "image/png"
    assert image.content.startswith(b"\x89PNG")

    pdf = client.get(f"/api/tickets/{ticket.id}/pdf", headers=headers)
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert ticket.ticket_number in pdf.headers["content-disposition"]
    assert pdf.content.startswith(b"%PDF")


def test_create_ticket_nan_price(client, sales_user, auth_headers, db):
    body = json.dumps(ticket_payload()).replace('"price": 30', '"price": NaN')
    headers = {**auth_headers(sales_user), "Content-Type": "application/json"}

    response = client.post("/api/tickets", content=body, headers=headers)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
    assert db.query(Ticket).count() == 0
