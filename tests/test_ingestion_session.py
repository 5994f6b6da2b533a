"""
Tests for the ingestion flow from category selection to delivery.
"""
import pytest

from sheetbridge.core.errors import EmptyFileError, MappingIncompleteError, SheetNotAccessibleError
from sheetbridge.db.models import UploadStatus
from sheetbridge.domain.delivery.service import DeliveryResult
from sheetbridge.domain.ingestion.schemas import DataCategory, InventoryField, OrderField
from sheetbridge.domain.ingestion.session import IngestionSession, IngestionStep
from sheetbridge.domain.ingestion.sources import build_export_url
from tests.utils.fakes import FakeResponse

ORDERS_CSV = b"Order #,Buyer,Total\n1001,Ann,25.50\n1002,Bob,10\n"


@pytest.fixture
def session() -> IngestionSession:
    return IngestionSession("user-1", workspace_id="ws-1")


def test_new_session_starts_at_type_selection(session):
    assert session.step is IngestionStep.TYPE_SELECTION
    assert session.schema is None
    assert session.missing_fields() == []


def test_source_requires_a_category(session):
    with pytest.raises(ValueError):
        session.load_file(ORDERS_CSV, "orders.csv")


def test_loading_a_file_seeds_the_suggested_mapping(session):
    session.select_category(DataCategory.INVENTORY)
    assert session.step is IngestionStep.SOURCE_SELECTION

    table = session.load_file(b"SKU,Product Name,Stock Level\nA-1,Widget,3\n", "stock.csv")

    assert table.headers == ("SKU", "Product Name", "Stock Level")
    assert session.step is IngestionStep.MAPPING
    assert session.is_ready()
    assert session.mapping.get(InventoryField.SKU) == "SKU"


def test_empty_file_moves_session_to_error(session):
    session.select_category("orders")

    with pytest.raises(EmptyFileError):
        session.load_file(b"", "orders.csv")

    assert session.step is IngestionStep.ERROR
    assert session.error == "File is empty"


def test_changing_category_discards_the_mapping(session):
    session.select_category(DataCategory.INVENTORY)
    session.load_file(b"SKU,Product Name,Stock Level\nA-1,Widget,3\n", "stock.csv")

    session.select_category(DataCategory.ORDERS)

    assert session.step is IngestionStep.MAPPING
    assert len(session.mapping) == 0
    assert [f.label for f in session.missing_fields()] == ["Order Number", "Customer Name", "Total Amount"]


def test_mapping_only_accepts_parsed_headers(session):
    session.select_category(DataCategory.ORDERS)
    session.load_file(ORDERS_CSV, "orders.csv")

    with pytest.raises(ValueError):
        session.set_mapping(OrderField.ORDER_NUMBER, "Invoice")
    with pytest.raises(KeyError):
        session.set_mapping(InventoryField.SKU, "Order #")


def test_submit_with_missing_fields_stays_on_mapping(session, fake_storage):
    session.select_category(DataCategory.ORDERS)
    session.load_file(ORDERS_CSV, "orders.csv")
    session.set_mapping(OrderField.ORDER_NUMBER, "Order #")

    with pytest.raises(MappingIncompleteError) as exc_info:
        session.submit()

    assert exc_info.value.missing_fields == ["Customer Name", "Total Amount"]
    assert session.step is IngestionStep.MAPPING
    assert fake_storage == {}


def test_submit_delivers_normalized_records(session, fake_storage, fake_webhook):
    session.select_category(DataCategory.ORDERS)
    session.load_file(ORDERS_CSV, "orders.csv")
    session.set_mapping(OrderField.ORDER_NUMBER, "Order #")
    session.set_mapping(OrderField.CUSTOMER_NAME, "Buyer")
    session.set_mapping(OrderField.TOTAL_AMOUNT, "Total")

    result = session.submit()

    assert result.success is True
    assert session.step is IngestionStep.SUCCESS
    assert result.dispatch.result(timeout=5) is UploadStatus.COMPLETED
    [blob] = fake_storage.values()
    assert blob.decode("utf-8") == (
        "order_number,customer_name,total_amount\n"
        "1001,Ann,25.50\n"
        "1002,Bob,10\n"
    )


def test_failed_delivery_moves_session_to_error(session, monkeypatch):
    def failing_deliver(records, **kwargs):
        return DeliveryResult(success=False, error="Failed to upload file to storage")

    monkeypatch.setattr("sheetbridge.domain.ingestion.session.deliver", failing_deliver)
    session.select_category(DataCategory.ORDERS)
    session.load_file(b"order_number,customer_name,total_amount\n1,Ann,2\n", "orders.csv")

    result = session.submit()

    assert result.success is False
    assert session.step is IngestionStep.ERROR
    assert session.error == "Failed to upload file to storage"


def test_google_sheet_source(session, fake_sheet_export):
    url = "https://docs.google.com/spreadsheets/d/sheet-1/edit"
    fake_sheet_export.responses[build_export_url("sheet-1")] = FakeResponse(
        200, b"Name,Email\nAnn,ann@example.com\n"
    )
    session.select_category(DataCategory.CUSTOMERS)

    session.load_google_sheet(url)

    assert session.step is IngestionStep.MAPPING
    assert session.source.file_name == "imported_sheet.csv"
    assert session.normalized_records() == [{"name": "Ann", "email": "ann@example.com"}]


def test_inaccessible_google_sheet_moves_session_to_error(session, fake_sheet_export):
    session.select_category(DataCategory.CUSTOMERS)

    with pytest.raises(SheetNotAccessibleError):
        session.load_google_sheet("https://docs.google.com/spreadsheets/d/private/edit")

    assert session.step is IngestionStep.ERROR


def test_reset_returns_to_type_selection(session):
    session.select_category(DataCategory.ORDERS)
    session.load_file(ORDERS_CSV, "orders.csv")

    session.reset()

    assert session.step is IngestionStep.TYPE_SELECTION
    assert session.table is None
    assert session.mapping is None


def test_header_only_source_delivers_column_line(session, fake_storage, fake_webhook):
    session.select_category(DataCategory.ORDERS)
    session.load_file(b"order_number,customer_name,total_amount\n", "orders.csv")

    result = session.submit()

    assert result.success is True
    [blob] = fake_storage.values()
    assert blob == b"order_number,customer_name,total_amount\n"
