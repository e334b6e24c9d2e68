# tests/test_routes/test_event_routes.py
import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi import HTTPException, Request
from fastapi.testclient import TestClient
from starlette.datastructures import FormData

from dinkassa_sync.core.config import Settings
from dinkassa_sync.core.enums import EventKind, HttpMethod
from dinkassa_sync.core.exceptions import DispatchError
from dinkassa_sync.integrations.dispatcher import EventDispatcher
from dinkassa_sync.integrations.events import EventDescriptor
from dinkassa_sync.main import app
from dinkassa_sync.routes.events import async_request, get_dispatcher
from dinkassa_sync.services.dinkassa.client import RemoteResponse


@pytest.fixture
def mock_dispatcher():
    dispatcher = MagicMock()
    dispatcher.get_stats.return_value = {"queued": 0, "workers": 1, "running": True, "processed": 3, "failed": 0}
    return dispatcher


@pytest.fixture
def test_client(mock_dispatcher):
    """Client without lifespan so no real dispatcher or database is started"""
    app.dependency_overrides[get_dispatcher] = lambda: mock_dispatcher
    app.state.dispatcher = mock_dispatcher
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
    del app.state.dispatcher


@pytest.fixture
def trigger_form():
    return {
        "event": "category-created",
        "controller": "category",
        "request": "POST",
        "data": "%7B%22Name%22%3A%22Shoes%22%7D",
        "post_id": "3",
    }


def queued_event(mock_dispatcher) -> EventDescriptor:
    (event,), _ = mock_dispatcher.enqueue.call_args
    return event


def test_trigger_is_queued(test_client, mock_dispatcher, trigger_form):
    response = test_client.post("/async-request", data=trigger_form)

    assert response.status_code == 202
    assert response.json() == {"status": "queued", "event": "category-created", "post_id": 3}
    event = queued_event(mock_dispatcher)
    assert event.kind == EventKind.CATEGORY_CREATED
    assert event.method == HttpMethod.POST
    assert event.body == trigger_form["data"]
    assert event.secure is False


def test_forwarded_https_marks_trigger_secure(test_client, mock_dispatcher, trigger_form):
    response = test_client.post("/async-request", data=trigger_form, headers={"X-Forwarded-Proto": "https"})

    assert response.status_code == 202
    assert queued_event(mock_dispatcher).secure is True


def test_https_trigger_is_secure(mock_dispatcher, trigger_form):
    app.dependency_overrides[get_dispatcher] = lambda: mock_dispatcher
    try:
        client = TestClient(app, base_url="https://testserver")
        response = client.post("/async-request", data=trigger_form)
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 202
    assert queued_event(mock_dispatcher).secure is True


def test_opt_headers_forwarded(test_client, mock_dispatcher, trigger_form):
    trigger_form["opt_headers[Content-Type]"] = "application/json"

    test_client.post("/async-request", data=trigger_form)

    assert queued_event(mock_dispatcher).extra_headers == {"Content-Type": "application/json"}


def test_invalid_trigger_rejected(test_client, mock_dispatcher, trigger_form):
    trigger_form["event"] = "product-purchased"

    response = test_client.post("/async-request", data=trigger_form)

    assert response.status_code == 422
    mock_dispatcher.enqueue.assert_not_called()


def test_full_queue_returns_503(test_client, mock_dispatcher, trigger_form):
    mock_dispatcher.enqueue.side_effect = DispatchError("Dispatch queue is full (100 events)")

    response = test_client.post("/async-request", data=trigger_form)

    assert response.status_code == 503


def test_dispatcher_missing_returns_503(trigger_form):
    client = TestClient(app)

    response = client.post("/async-request", data=trigger_form)

    assert response.status_code == 503


def test_health(test_client):
    response = test_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_dispatcher_health(test_client):
    response = test_client.get("/health/dispatcher")

    assert response.status_code == 200
    assert response.json()["dispatcher"]["processed"] == 3

"""
Stock triggers and the stock lock
"""

def make_request(form: dict):
    request = MagicMock(spec=Request)
    request.form = AsyncMock(return_value=FormData(list(form.items())))
    request.url.scheme = "http"
    return request


@pytest.fixture
def stock_form():
    return {
        "event": "stock-quantity-updated",
        "controller": "inventoryitem",
        "request": "PUT",
        "dinkassa_id": "R1",
        "data": "%7B%22Id%22%3A%22R1%22%2C%22QuantityChange%22%3A-1%7D",
        "post_id": "7",
    }


@pytest.fixture
def dinkassa_client():
    client = MagicMock()
    client.execute = AsyncMock(return_value=RemoteResponse(status_code=200, body=None))
    return client


@pytest.fixture
async def live_dispatcher(dinkassa_client, reconciler, settings):
    dispatcher = EventDispatcher(client=dinkassa_client, reconciler=reconciler, settings=settings)
    yield dispatcher
    await dispatcher.stop(drain_timeout=None)


@pytest.mark.asyncio
async def test_stock_trigger_holds_lock_until_reconciled(live_dispatcher, settings, stock_lock, stock_form):
    result = await async_request(make_request(stock_form), dispatcher=live_dispatcher, settings=settings)

    assert result["status"] == "queued"
    assert stock_lock.locked()

    await live_dispatcher.start()
    await asyncio.wait_for(live_dispatcher.drain(), timeout=5.0)

    assert not stock_lock.locked()


@pytest.mark.asyncio
async def test_stock_trigger_does_not_release_another_holders_lock(
    live_dispatcher, dinkassa_client, stock_lock, stock_form
):
    # Another stock change is in flight and owns the lock
    await stock_lock.acquire()
    settings = Settings(STOCK_LOCK_TIMEOUT=0.05)
    await live_dispatcher.start()

    with pytest.raises(HTTPException) as exc_info:
        await async_request(make_request(stock_form), dispatcher=live_dispatcher, settings=settings)
    await asyncio.wait_for(live_dispatcher.drain(), timeout=5.0)

    assert exc_info.value.status_code == 503
    assert stock_lock.locked()
    dinkassa_client.execute.assert_not_called()


@pytest.mark.asyncio
async def test_stock_trigger_waits_for_lock(live_dispatcher, settings, stock_lock, stock_form):
    await stock_lock.acquire()
    pending = asyncio.create_task(
        async_request(make_request(stock_form), dispatcher=live_dispatcher, settings=settings)
    )
    await asyncio.sleep(0.01)
    assert not pending.done()
    assert live_dispatcher.update_queue.qsize() == 0

    # Reconciliation of the earlier stock change
    stock_lock.release()

    result = await asyncio.wait_for(pending, timeout=1.0)
    assert result["status"] == "queued"
    assert stock_lock.locked()
    assert live_dispatcher.update_queue.qsize() == 1


@pytest.mark.asyncio
async def test_stock_trigger_enqueue_failure_releases_lock(settings, stock_lock, stock_form, reconciler):
    dispatcher = MagicMock()
    dispatcher.reconciler = reconciler
    dispatcher.enqueue.side_effect = DispatchError("Dispatch queue is full (1 events)")

    with pytest.raises(HTTPException) as exc_info:
        await async_request(make_request(stock_form), dispatcher=dispatcher, settings=settings)

    assert exc_info.value.status_code == 503
    assert not stock_lock.locked()
