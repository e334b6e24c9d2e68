import json
import pytest
from unittest.mock import MagicMock
from urllib.parse import unquote_plus

from dinkassa_sync.core.enums import EventKind, HttpMethod
from dinkassa_sync.core.exceptions import DispatchError, LocalStoreError
from dinkassa_sync.integrations.triggers import CatalogEvents, encode_payload

QUANTITY = "wh_meta_quantity_change"


@pytest.fixture
def mock_dispatcher(reconciler):
    dispatcher = MagicMock()
    dispatcher.reconciler = reconciler
    return dispatcher


@pytest.fixture
def catalog(mock_dispatcher, product_meta, settings):
    return CatalogEvents(mock_dispatcher, product_meta, settings)


def test_encode_payload():
    encoded = encode_payload({"Description": "Red shoe"})

    assert " " not in encoded
    assert json.loads(unquote_plus(encoded)) == {"Description": "Red shoe"}
    assert encode_payload(None) is None


def test_product_created_is_queued(catalog, mock_dispatcher):
    event = catalog.product_created(7, {"Description": "Red shoe"}, secure=True)

    mock_dispatcher.enqueue.assert_called_once_with(event)
    assert event.kind == EventKind.PRODUCT_CREATED
    assert event.method == HttpMethod.POST
    assert event.resource_path == "inventoryitem"
    assert event.remote_id is None
    assert event.secure is True


def test_category_deleted_targets_remote_id(catalog, mock_dispatcher):
    event = catalog.category_deleted(3, "C42")

    assert event.method == HttpMethod.DELETE
    assert event.resource_path == "category"
    assert event.remote_id == "C42"
    assert event.body is None


def test_updates_use_put(catalog):
    assert catalog.product_updated(7, "R1", {"Price": 10}).method == HttpMethod.PUT
    assert catalog.category_updated(3, "C42", {"Name": "Shoes"}).method == HttpMethod.PUT


@pytest.mark.asyncio
async def test_stock_change_accumulates_delta(catalog, mock_dispatcher, product_meta, stock_lock):
    product_meta.fields[(7, QUANTITY)] = -2

    event = await catalog.stock_quantity_changed(7, "R1", -1)

    assert product_meta.fields[(7, QUANTITY)] == -3
    assert json.loads(unquote_plus(event.body)) == {"Id": "R1", "QuantityChange": -3}
    assert event.kind == EventKind.STOCK_QUANTITY_UPDATED
    mock_dispatcher.enqueue.assert_called_once_with(event)
    # Held until reconciliation releases it
    assert stock_lock.locked()


@pytest.mark.asyncio
async def test_stock_change_then_reconcile_releases_lock(catalog, reconciler, product_meta, stock_lock):
    event = await catalog.stock_quantity_changed(7, "R1", 4)

    await reconciler.reconcile(event.kind, 200, None, event.local_id, event.remote_id)

    assert product_meta.fields[(7, QUANTITY)] == 0
    assert not stock_lock.locked()


@pytest.mark.asyncio
async def test_stock_change_enqueue_failure_releases_lock(catalog, mock_dispatcher, stock_lock):
    mock_dispatcher.enqueue.side_effect = DispatchError("queue full")

    with pytest.raises(DispatchError):
        await catalog.stock_quantity_changed(7, "R1", 1)

    assert not stock_lock.locked()


@pytest.mark.asyncio
async def test_stock_change_store_failure_releases_lock(catalog, product_meta, stock_lock):
    product_meta.should_fail = True

    with pytest.raises(LocalStoreError):
        await catalog.stock_quantity_changed(7, "R1", 1)

    assert not stock_lock.locked()


@pytest.mark.asyncio
async def test_stock_change_lock_busy(catalog, mock_dispatcher, stock_lock):
    await stock_lock.acquire()

    with pytest.raises(DispatchError):
        await catalog.stock_quantity_changed(7, "R1", 1, lock_timeout=0.05)

    mock_dispatcher.enqueue.assert_not_called()
