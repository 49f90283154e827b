from datetime import timedelta
from decimal import Decimal

import pytest

from pharmacy_pos.core.clock import today_local


@pytest.fixture()
def catalogue(client):
    """One H1 medicine with two batches received through the API."""
    r = client.post("/api/medicines", json={
        "name": "Alprazolam 0.5mg",
        "brand_name": "Alprax",
        "manufacturer": "Torrent",
        "schedule_type": "H1",
        "gst": "12",
    })
    assert r.status_code == 201, r.text
    medicine = r.json()["data"]

    batches = []
    for number, days, stock in (("ALP-LATE", 300, 10), ("ALP-EARLY", 60, 5)):
        r = client.post(f"/api/medicines/{medicine['id']}/batches", json={
            "batch_number": number,
            "expiry_date": (today_local() + timedelta(days=days)).isoformat(),
            "mrp": "45",
            "selling_price": "42",
            "purchase_price": "35",
            "current_stock": stock,
            "min_stock": 10,
            "max_stock": 200,
        })
        assert r.status_code == 201, r.text
        batches.append(r.json()["data"])
    late, early = batches
    return medicine, early, late


def test_root(client):
    assert client.get("/").status_code == 200


def test_schedule_meta(client):
    body = client.get("/api/medicines/schedules").json()
    codes = {s["code"]: s for s in body["data"]}
    assert codes["H1"]["requires_register"] is True
    assert codes["GENERAL"]["requires_prescription"] is False


def test_allocate_then_checkout(client, catalogue):
    medicine, early, late = catalogue

    r = client.post("/api/sales/allocate", json={"medicine_id": medicine["id"], "quantity": 8})
    assert r.status_code == 200
    proposal = r.json()["data"]
    assert [(p["batch_id"], p["quantity"]) for p in proposal] == [(early["id"], 5),
                                                                  (late["id"], 3)]

    lines = [{
        "medicine_id": medicine["id"],
        "batch_id": p["batch_id"],
        "quantity": p["quantity"]
    } for p in proposal]
    r = client.post(
        "/api/sales",
        json={
            "lines": lines,
            "customer": {"customer_name": "Ravi"},
            "payment_method": "UPI",
            "discount_percent": "0",
        },
        headers={"X-Pharmacist-Id": "ph-9"},
    )
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    sale = data["sale"]
    assert sale["invoice_number"].startswith("INV-")
    assert sale["pharmacist_id"] == "ph-9"
    assert Decimal(sale["total_amount"]) == Decimal("376.32")
    assert data["restock_requests"] == [{
        "medicine_id": medicine["id"],
        "medicine_name": "Alprazolam 0.5mg",
        "quantity_sold": 8,
        "suggested_quantity": 50,
    }]

    batches = client.get(f"/api/medicines/{medicine['id']}/batches").json()["data"]
    assert {b["batch_number"]: b["current_stock"] for b in batches} == {
        "ALP-EARLY": 0,
        "ALP-LATE": 7,
    }

    today = today_local()
    register = client.get("/api/schedule-h1", params={"month": today.month, "year": today.year})
    entries = register.json()["data"]
    assert [(e["batch_number"], e["quantity_dispensed"]) for e in entries] == [("ALP-EARLY", 5),
                                                                                ("ALP-LATE", 3)]
    assert entries[0]["doctor_name"] == "Not specified"

    fetched = client.get(f"/api/sales/invoice/{sale['invoice_number']}").json()["data"]
    assert fetched["id"] == sale["id"]
    assert len(fetched["items"]) == 2


def test_insufficient_stock_keeps_error_kind(client, catalogue):
    medicine, _, _ = catalogue

    r = client.post("/api/sales/allocate", json={"medicine_id": medicine["id"], "quantity": 20})

    assert r.status_code == 409
    error = r.json()["error"]
    assert error["code"] == "INSUFFICIENT_STOCK"
    assert error["details"] == {"medicine_id": medicine["id"], "shortfall": 5}


def test_delete_with_stock_conflicts(client, catalogue):
    medicine, _, _ = catalogue

    r = client.delete(f"/api/medicines/{medicine['id']}")

    assert r.status_code == 409
    assert r.json()["error"]["code"] == "HAS_ACTIVE_STOCK"
    assert client.get(f"/api/medicines/{medicine['id']}").status_code == 200


def test_not_found_and_validation_envelopes(client):
    r = client.get("/api/medicines/999")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"

    r = client.post("/api/medicines", json={"name": "X", "schedule_type": "Z"})
    assert r.status_code == 422
    assert r.json()["ok"] is False

    r = client.get("/api/schedule-h1", params={"month": 13, "year": 2024})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


def test_quote_matches_checkout(client, catalogue):
    medicine, early, _ = catalogue
    payload = {
        "lines": [{"medicine_id": medicine["id"], "batch_id": early["id"], "quantity": 2}],
        "discount_percent": "10",
    }

    quote = client.post("/api/sales/quote", json=payload).json()["data"]
    sale = client.post("/api/sales", json=payload).json()["data"]["sale"]

    assert Decimal(quote["total"]) == Decimal(sale["total_amount"])


def test_stock_health_endpoints(client, catalogue):
    medicine, early, late = catalogue

    expiring = client.get("/api/stock/expiring", params={"days": 90}).json()
    assert [b["batch_id"] for b in expiring["data"]] == [early["id"]]
    assert expiring["meta"]["days"] == 90

    low = client.get("/api/stock/low-stock").json()["data"]
    assert [b["batch_id"] for b in low] == [early["id"], late["id"]]

    suggestions = client.get("/api/stock/restock-suggestions").json()["data"]
    assert [(s["priority"], s["suggested_quantity"]) for s in suggestions] == [("normal", 185)]

    dash = client.get("/api/stock/dashboard").json()["data"]
    assert dash["total_medicines"] == 1
    assert dash["total_batches"] == 2


def test_register_downloads(client):
    pdf = client.get("/api/schedule-h1/register.pdf", params={"month": 1, "year": 2025})
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    xlsx = client.get("/api/schedule-h1/register.xlsx", params={"month": 1, "year": 2025})
    assert xlsx.status_code == 200
    assert xlsx.content[:2] == b"PK"


def test_audit_trail_endpoint(client, catalogue):
    medicine, _, _ = catalogue

    trail = client.get(f"/api/audit-logs/{medicine['id']}",
                       params={"entity_type": "MEDICINE"}).json()["data"]
    assert [a["action"] for a in trail] == ["CREATE"]

    recent = client.get("/api/audit-logs", params={"limit": 2}).json()["data"]
    assert [a["action"] for a in recent] == ["PURCHASE", "PURCHASE"]


def test_allocate_rejects_negative_reservation(client, catalogue):
    medicine, early, _ = catalogue

    r = client.post("/api/sales/allocate", json={
        "medicine_id": medicine["id"],
        "quantity": 50,
        "reserved": {str(early["id"]): -45},
    })

    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"
