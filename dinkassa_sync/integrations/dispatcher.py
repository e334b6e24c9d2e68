import asyncio
import logging
from typing import List, Optional

from dinkassa_sync.core.config import Settings, get_settings
from dinkassa_sync.core.enums import EventKind, TRANSPORT_FAILURE_STATUS
from dinkassa_sync.core.exceptions import DispatchError, TransportError
from dinkassa_sync.integrations.events import EventDescriptor
from dinkassa_sync.services.activity_logger import ActivityLogger
from dinkassa_sync.services.dinkassa.client import DinkassaClient, RemoteResponse
from dinkassa_sync.services.reconciliation import ResponseReconciler

logger = logging.getLogger(__name__)


class EventDispatcher:
    """
    Queues catalog events and sends them to Dinkassa.se off the request path.

    enqueue() only puts the descriptor on an asyncio queue. Worker tasks
    started by start() take events off the queue one at a time, call
    Dinkassa.se, optionally audit the result and hand it to the reconciler.
    A failing event is logged and never stops a worker. There is no ordering
    guarantee between workers, no priority and no deduplication.
    """

    def __init__(
        self,
        client: DinkassaClient,
        reconciler: ResponseReconciler,
        activity_logger: Optional[ActivityLogger] = None,
        settings: Optional[Settings] = None,
        workers: Optional[int] = None,
        max_queue_size: int = 0,
    ):
        self.settings = settings or get_settings()
        self.client = client
        self.reconciler = reconciler
        self.activity_logger = activity_logger
        self.log_events = self.settings.LOG_WC_EVENTS and activity_logger is not None
        self.mark_pending_on_error = self.settings.MARK_PENDING_ON_ERROR
        self.worker_count = max(1, workers or self.settings.DISPATCH_WORKERS)
        self.update_queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self._workers: List[asyncio.Task] = []
        self.processed = 0
        self.failed = 0

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._workers)

    def get_stats(self) -> dict:
        return {
            "queued": self.update_queue.qsize(),
            "workers": self.worker_count,
            "running": self.running,
            "processed": self.processed,
            "failed": self.failed,
        }

    def enqueue(self, event: EventDescriptor) -> None:
        """Queue an event and return immediately"""
        if not isinstance(event, EventDescriptor):
            raise DispatchError(f"Expected an EventDescriptor, got {type(event).__name__}")
        try:
            self.update_queue.put_nowait(event)
        except asyncio.QueueFull as e:
            raise DispatchError(f"Dispatch queue is full ({self.update_queue.maxsize} events)") from e
        logger.debug(f"Queued {event.kind.value} for entity {event.local_id} (queue size {self.update_queue.qsize()})")

    async def start(self) -> None:
        if self.running:
            return
        logger.info(f"Starting {self.worker_count} dispatch worker(s)")
        self._workers = [
            asyncio.create_task(self.start_sync_monitor(), name=f"dinkassa-dispatch-{i}")
            for i in range(self.worker_count)
        ]

    async def stop(self, drain_timeout: Optional[float] = 30.0) -> None:
        """Let queued events finish (up to drain_timeout), then stop the workers"""
        if self._workers and drain_timeout:
            try:
                await asyncio.wait_for(self.update_queue.join(), timeout=drain_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Stopping with {self.update_queue.qsize()} event(s) still queued")
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        # Whatever never ran is reconciled as a failed attempt so it gets retried
        abandoned = 0
        while not self.update_queue.empty():
            event = self.update_queue.get_nowait()
            await self._abandon(event, "dispatcher stopped before it was sent")
            self.update_queue.task_done()
            abandoned += 1
        if abandoned:
            logger.warning(f"{abandoned} queued event(s) marked pending at shutdown")
        logger.info("Dispatch workers stopped")

    async def drain(self) -> None:
        """Wait until every queued event has been processed"""
        await self.update_queue.join()

    async def start_sync_monitor(self):
        """Monitor and process the dispatch queue"""
        while True:
            try:
                event = await self.update_queue.get()
            except asyncio.CancelledError:
                # Clean shutdown when task is cancelled
                break
            try:
                await self._process_event(event)
                self.processed += 1
            except asyncio.CancelledError:
                await self._abandon(event, "cancelled while in flight")
                self.update_queue.task_done()
                break
            except Exception:
                # Log error but continue processing
                self.failed += 1
                logger.exception(f"Error processing {event.kind.value} for entity {event.local_id}")
            self.update_queue.task_done()

    async def _process_event(self, event: EventDescriptor) -> None:
        try:
            response = await self._send(event)
        except Exception as e:
            await self._handle_dispatch_failure(event, e)
            return

        if self.log_events:
            await self.activity_logger.log_event(
                event.kind.value,
                response.status_code,
                event.log_context if event.log_context is not None else response.body,
                entity_id=event.local_id,
                dinkassa_id=event.remote_id,
            )

        await self.reconciler.reconcile(
            event.kind, response.status_code, response.body, event.local_id, event.remote_id
        )

    async def _send(self, event: EventDescriptor) -> RemoteResponse:
        try:
            return await self.client.execute(
                event.method.value,
                event.resource_path,
                dinkassa_id=event.remote_id,
                body=event.body,
                headers=event.extra_headers,
                verify=event.secure,
            )
        except TransportError as e:
            # No response at all counts as a failed attempt
            logger.warning(f"{event.kind.value} for entity {event.local_id} not delivered: {str(e)}")
            return RemoteResponse(status_code=TRANSPORT_FAILURE_STATUS, body=None)

    async def _abandon(self, event: EventDescriptor, reason: str) -> None:
        """Run the failure path for an event that will not be sent"""
        self.failed += 1
        try:
            await self._handle_dispatch_failure(event, DispatchError(reason))
        except Exception:
            logger.exception(f"Could not record abandoned {event.kind.value} for entity {event.local_id}")

    async def _handle_dispatch_failure(self, event: EventDescriptor, error: Exception) -> None:
        logger.error(
            f"Dispatch of {event.kind.value} for entity {event.local_id} failed before reconciliation: {error!r}"
        )
        if self.mark_pending_on_error:
            await self.reconciler.reconcile(
                event.kind, TRANSPORT_FAILURE_STATUS, None, event.local_id, event.remote_id
            )
            return

        logger.error(f"{event.kind.value} for entity {event.local_id} will not be retried")
        if event.kind == EventKind.STOCK_QUANTITY_UPDATED:
            self.reconciler.stock_lock.release()
