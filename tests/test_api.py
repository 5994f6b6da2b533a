"""
HTTP-level tests for the SheetBridge API.
"""
import inspect
import json
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from sheetbridge.db.models import IntegrationStatus
from sheetbridge.domain.delivery.webhook import shutdown_dispatcher
from sheetbridge.domain.ingestion.sources import build_export_url
from sheetbridge.domain.integrations.store import save_integration
from sheetbridge.main import app
from tests.utils.fakes import FakeResponse

USER = {"X-User-Id": "user-1"}
ORDERS_CSV = b"Order #,Buyer,Total\n1001,Ann,25.50\n1002,Bob,10\n"
ORDERS_MAPPING = {"order_number": "Order #", "customer_name": "Buyer", "total_amount": "Total"}


@pytest.fixture
def client():
    return TestClient(app)


def _submit(client, mapping=ORDERS_MAPPING, content=ORDERS_CSV, headers=USER):
    return client.post(
        "/ingest/submit",
        files={"file": ("orders.csv", content, "text/csv")},
        data={"data_type": "orders", "mapping": json.dumps(mapping)},
        headers=headers,
    )


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "SheetBridge API", "version": "1.0.0"}


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_list_target_schemas(client):
    response = client.get("/schemas")

    assert response.status_code == 200
    assert [schema["category"] for schema in response.json()] == ["orders", "inventory", "expenses", "customers"]


def test_get_target_schema(client):
    fields = client.get("/schemas/expenses").json()["fields"]

    assert fields[0] == {"key": "costName", "label": "Expense Name", "required": True}
    assert client.get("/schemas/payroll").status_code == 422


def test_requests_without_user_id_are_rejected(client):
    assert client.get("/uploads").status_code == 401
    assert client.get("/integrations", headers={"X-User-Id": "  "}).status_code == 401


def test_preview_suggests_mapping(client):
    response = client.post(
        "/ingest/preview",
        files={"file": ("stock.csv", b"SKU,Product Name,Stock Level\nA-1,Widget,3\n", "text/csv")},
        data={"data_type": "inventory"},
        headers=USER,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["headers"] == ["SKU", "Product Name", "Stock Level"]
    assert body["row_count"] == 1
    assert body["sample_rows"] == [["A-1", "Widget", "3"]]
    assert body["suggested_mapping"] == {"sku": "SKU", "name": "Product Name", "stock": "Stock Level"}
    assert body["ready"] is True
    assert body["missing_fields"] == []


def test_preview_reports_missing_fields(client):
    response = client.post(
        "/ingest/preview",
        files={"file": ("orders.csv", ORDERS_CSV, "text/csv")},
        data={"data_type": "orders"},
        headers=USER,
    )

    body = response.json()
    assert body["ready"] is False
    assert body["missing_fields"] == ["Order Number", "Customer Name", "Total Amount"]


def test_preview_of_empty_file_is_bad_request(client):
    response = client.post(
        "/ingest/preview",
        files={"file": ("orders.csv", b"", "text/csv")},
        data={"data_type": "orders"},
        headers=USER,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "File is empty"


def test_google_sheet_preview(client, fake_sheet_export):
    fake_sheet_export.responses[build_export_url("abc")] = FakeResponse(200, b"Name,City\nAnn,Oslo\n")

    response = client.post(
        "/ingest/google-sheet/preview",
        json={"sheet_url": "https://docs.google.com/spreadsheets/d/abc/edit", "data_type": "customers"},
        headers=USER,
    )

    assert response.status_code == 200
    assert response.json()["file_name"] == "imported_sheet.csv"
    assert response.json()["suggested_mapping"] == {"name": "Name", "city": "City"}


def test_google_sheet_preview_rejects_other_urls(client):
    response = client.post(
        "/ingest/google-sheet/preview",
        json={"sheet_url": "https://example.com/sheet", "data_type": "customers"},
        headers=USER,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Please enter a valid Google Sheets URL"


def test_submit_then_track_upload(client, fake_storage, fake_webhook):
    response = _submit(client)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["error"] is None
    upload_id = body["upload_id"]

    # Wait for the background dispatch to record its outcome
    shutdown_dispatcher(wait=True)

    upload = client.get(f"/uploads/{upload_id}", headers=USER).json()
    assert upload["status"] == "completed"
    assert upload["file_url"] == body["file_url"]

    listing = client.get("/uploads", params={"status": "completed"}, headers=USER).json()
    assert [u["id"] for u in listing["uploads"]] == [upload_id]


def test_uploads_of_other_users_are_hidden(client, fake_storage, fake_webhook):
    upload_id = _submit(client).json()["upload_id"]

    response = client.get(f"/uploads/{upload_id}", headers={"X-User-Id": "user-2"})

    assert response.status_code == 404


def test_submit_with_incomplete_mapping(client, fake_storage):
    response = _submit(client, mapping={"order_number": "Order #"})

    assert response.status_code == 422
    assert response.json()["detail"] == "Missing required fields: Customer Name, Total Amount"
    assert fake_storage == {}


def test_submit_with_unknown_header_or_field(client, fake_storage):
    assert _submit(client, mapping={**ORDERS_MAPPING, "status": "State"}).status_code == 422
    assert _submit(client, mapping={**ORDERS_MAPPING, "sku": "Order #"}).status_code == 422


def test_submit_requires_exactly_one_source(client):
    response = client.post(
        "/ingest/submit",
        data={"data_type": "orders", "mapping": json.dumps(ORDERS_MAPPING)},
        headers=USER,
    )

    assert response.status_code == 422


def test_submit_storage_failure_is_reported(client, monkeypatch):
    monkeypatch.setattr(
        "sheetbridge.domain.delivery.service.upload_to_storage",
        lambda content, user_id, file_name, content_type: None,
    )

    body = _submit(client).json()

    assert body["success"] is False
    assert body["error"] == "Failed to upload file to storage"


def test_integration_lifecycle(client):
    saved = client.put(
        "/integrations/shopify",
        json={"status": "connected", "permissions": ["Orders", "Revenue"]},
        headers=USER,
    )
    assert saved.status_code == 200
    assert saved.json()["status"] == "connected"

    assert client.post(
        "/integrations/shopify/sync-status", json={"status": "syncing"}, headers=USER
    ).status_code == 200
    assert client.get("/integrations/status", headers=USER).json() == {"status": "syncing"}

    assert client.post("/integrations/shopify/disconnect", headers=USER).status_code == 200
    assert client.get("/integrations/shopify", headers=USER).json()["status"] == "disconnected"
    assert client.get("/integrations/status", headers=USER).json() == {"status": "synced"}


def test_integration_errors(client):
    assert client.put("/integrations/myspace", json={"status": "connected"}, headers=USER).status_code == 404
    assert client.get("/integrations/shopify", headers=USER).status_code == 404
    assert client.post("/integrations/shopify/disconnect", headers=USER).status_code == 404
    assert client.post(
        "/integrations/shopify/sync-status", json={"status": "syncing"}, headers=USER
    ).status_code == 404
    assert client.post(
        "/integrations/shopify/sync-status", json={"status": "disconnected"}, headers=USER
    ).status_code == 422


def test_platform_catalog_flags_connected_platforms(client):
    save_integration("user-1", "google_sheets", IntegrationStatus.CONNECTED)

    platforms = client.get("/integrations/platforms", headers=USER).json()

    assert len(platforms) == 8
    connected = {p["id"] for p in platforms if p["connected"]}
    assert connected == {"google_sheets"}


def test_shopify_oauth_state_round_trip(client):
    response = client.post(
        "/integrations/shopify/authorize",
        json={"shop_domain": "my-store.myshopify.com", "return_url": "https://app.test/done"},
        headers=USER,
    )
    assert response.status_code == 200
    state = parse_qs(urlparse(response.json()["authorize_url"]).query)["state"][0]

    verified = client.post("/integrations/oauth/verify-state", json={"state": state}).json()
    assert verified == {"valid": True, "user_id": "user-1", "platform": "shopify"}

    replayed = client.post("/integrations/oauth/verify-state", json={"state": state}).json()
    assert replayed["valid"] is False


def test_shopify_authorize_rejects_bad_domain_and_connected_store(client):
    bad = client.post(
        "/integrations/shopify/authorize",
        json={"shop_domain": "example.com", "return_url": "/"},
        headers=USER,
    )
    assert bad.status_code == 400

    save_integration("user-1", "shopify", IntegrationStatus.CONNECTED)
    again = client.post(
        "/integrations/shopify/authorize",
        json={"shop_domain": "my-store.myshopify.com", "return_url": "/"},
        headers=USER,
    )
    assert again.status_code == 409


def test_google_sheets_authorize(client):
    response = client.get("/integrations/google_sheets/authorize", headers=USER)

    assert response.status_code == 200
    assert "state=user-1" in response.json()["authorize_url"]


@pytest.mark.parametrize(
    "path,method",
    [
        ("/ingest/preview", "POST"),
        ("/ingest/google-sheet/preview", "POST"),
        ("/ingest/submit", "POST"),
        ("/uploads", "GET"),
        ("/uploads/{upload_id}", "GET"),
        ("/integrations", "GET"),
        ("/integrations/status", "GET"),
        ("/integrations/{platform}", "PUT"),
        ("/integrations/{platform}/disconnect", "POST"),
        ("/integrations/{platform}/sync-status", "POST"),
    ],
)
def test_blocking_endpoints_run_in_threadpool(path, method):
    # Handlers that parse files or hit the database must not block the event loop
    [route] = [
        route
        for route in app.routes
        if isinstance(route, APIRoute) and route.path == path and method in route.methods
    ]

    assert not inspect.iscoroutinefunction(route.endpoint)
