import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.datastructures import FormData

from dinkassa_sync.core.config import Settings, get_settings
from dinkassa_sync.core.enums import EventKind
from dinkassa_sync.core.exceptions import DispatchError, EventValidationError
from dinkassa_sync.integrations.dispatcher import EventDispatcher
from dinkassa_sync.integrations.events import EventDescriptor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


def get_dispatcher(request: Request) -> EventDispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Dispatcher not running")
    return dispatcher


def form_to_payload(form: FormData) -> Dict[str, Any]:
    """
    Flatten the trigger form. Extra headers arrive either as repeated
    opt_headers[] lines ('Name: value') or as opt_headers[Name]=value.
    """
    payload: Dict[str, Any] = {}
    header_lines = []
    header_map = {}
    for key, value in form.multi_items():
        if key in ("opt_headers[]", "opt_headers"):
            header_lines.append(value)
        elif key.startswith("opt_headers[") and key.endswith("]"):
            header_map[key[len("opt_headers["):-1]] = value
        else:
            payload[key] = value
    if header_map:
        payload["opt_headers"] = header_map
    elif header_lines:
        payload["opt_headers"] = header_lines
    return payload


@router.post("/async-request", status_code=status.HTTP_202_ACCEPTED)
async def async_request(
    request: Request,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_settings),
):
    """Queue a catalog event for Dinkassa.se; the outcome is never reported back to the caller"""
    form = await request.form()
    secure = request.url.scheme == "https"
    try:
        event = EventDescriptor.from_form(form_to_payload(form), secure=secure)
    except EventValidationError as e:
        logger.warning(f"Rejected trigger: {str(e)}")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    # Stock events are released by their reconciliation, so they must hold the lock first
    stock_lock = None
    if event.kind == EventKind.STOCK_QUANTITY_UPDATED:
        stock_lock = dispatcher.reconciler.stock_lock
        if not await stock_lock.acquire(timeout=settings.STOCK_LOCK_TIMEOUT):
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Stock lock '{stock_lock.name}' busy",
            )

    try:
        dispatcher.enqueue(event)
    except DispatchError as e:
        if stock_lock is not None:
            stock_lock.release()
        logger.error(f"Could not queue {event.kind.value} for entity {event.local_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return {"status": "queued", "event": event.kind.value, "post_id": event.local_id}
