"""Notification dispatcher — pushes order changes from the API to the hub.

Learn: delivery is best-effort and never part of the mutation. The store
write has already committed by the time a broadcast_* method is called;
whatever happens afterwards (hub down, timeouts, 500s) is logged and
swallowed. Clients that miss an update catch up on their next query.

Routing:
- OrderCreated / OrderDeleted → global destination only
- OrderUpdated → `order-{id}` group AND the global destination, so detail
  views and list views both stay live

Retry: transient transport failures and 5xx responses are retried up to
`retries` times, waiting backoff ** n seconds before retry n (2s, 4s, 8s
with the defaults). Anything else fails immediately.
"""

import asyncio
from typing import Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from orderhub.config import Settings
from orderhub.db.models import Order
from orderhub.events.types import (
    ORDER_CREATED,
    ORDER_DELETED,
    ORDER_UPDATED,
    ChangeEvent,
    order_group,
)
from orderhub.schemas.notification import OrderDeletedSnapshot, OrderSnapshot

logger = structlog.get_logger()

INTERNAL_API_KEY_HEADER = "X-Internal-Api-Key"
BROADCAST_PATH = "/api/broadcast"


class NotificationDispatcher:
    """Builds ChangeEvents and hands them to `deliver`.

    Subclasses implement `deliver`. With background=True every event is
    sent from its own task so the mutation response is never held up.
    """

    def __init__(self, *, background: bool = True):
        self.background = background
        self._tasks: set[asyncio.Task] = set()

    # ─── Broadcast API ──────────────────────────────────

    async def broadcast_created(self, order: Order) -> None:
        snapshot = OrderSnapshot.from_model(order).to_wire()
        await self.publish(ChangeEvent(ORDER_CREATED, snapshot))

    async def broadcast_updated(self, order: Order) -> None:
        snapshot = OrderSnapshot.from_model(order).to_wire()
        await self.publish(ChangeEvent(ORDER_UPDATED, snapshot, group=order_group(order.id)))
        await self.publish(ChangeEvent(ORDER_UPDATED, snapshot))

    async def broadcast_deleted(self, order_id: str) -> None:
        snapshot = OrderDeletedSnapshot(order_id=order_id).to_wire()
        await self.publish(ChangeEvent(ORDER_DELETED, snapshot))

    # ─── Delivery ───────────────────────────────────────

    async def publish(self, event: ChangeEvent) -> None:
        if not self.background:
            await self._deliver_safely(event)
            return
        task = asyncio.create_task(self._deliver_safely(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def deliver(self, event: ChangeEvent) -> None:
        raise NotImplementedError

    async def _deliver_safely(self, event: ChangeEvent) -> None:
        try:
            await self.deliver(event)
        except Exception as e:
            logger.error(
                "notifications.delivery_failed",
                method=event.method,
                group=event.group or "all",
                error=str(e),
            )

    async def drain(self) -> None:
        """Wait for in-flight background deliveries to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def aclose(self) -> None:
        await self.drain()


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Used when notifications are disabled — events are only logged."""

    async def deliver(self, event: ChangeEvent) -> None:
        logger.info(
            "notifications.skipped",
            method=event.method,
            group=event.group or "all",
        )


def is_transient(exc: BaseException) -> bool:
    """Connection problems, timeouts and 5xx replies are worth retrying."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


class HttpNotificationDispatcher(NotificationDispatcher):
    """POSTs events to the hub's /api/broadcast endpoint."""

    def __init__(
        self,
        hub_url: str,
        *,
        internal_api_key: Optional[str] = None,
        retries: int = 3,
        backoff_seconds: float = 2.0,
        timeout_seconds: float = 10.0,
        background: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(background=background)
        self.hub_url = hub_url.rstrip("/")
        self.internal_api_key = internal_api_key
        self.retries = retries
        self.backoff_seconds = backoff_seconds
        self._client = client or httpx.AsyncClient(
            base_url=self.hub_url, timeout=timeout_seconds
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpNotificationDispatcher":
        return cls(
            settings.hub_url,
            internal_api_key=settings.internal_api_key,
            retries=settings.broadcast_retries,
            backoff_seconds=settings.broadcast_backoff_seconds,
            timeout_seconds=settings.broadcast_timeout_seconds,
            background=settings.broadcast_in_background,
        )

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.backoff_seconds ** retry_state.attempt_number

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "notifications.retrying",
            retry=retry_state.attempt_number,
            delay=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(exc),
        )

    async def deliver(self, event: ChangeEvent) -> None:
        headers = {}
        if self.internal_api_key:
            headers[INTERNAL_API_KEY_HEADER] = self.internal_api_key

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=self._wait,
            retry=retry_if_exception(is_transient),
            before_sleep=self._log_retry,
            reraise=True,
        ):
            with attempt:
                resp = await self._client.post(
                    BROADCAST_PATH, json=event.to_wire(), headers=headers
                )
                resp.raise_for_status()

        logger.info(
            "notifications.broadcasted",
            method=event.method,
            group=event.group or "all",
        )

    async def aclose(self) -> None:
        await super().aclose()
        await self._client.aclose()


def build_dispatcher(settings: Settings) -> NotificationDispatcher:
    if settings.notification_mode == "disabled":
        return LoggingNotificationDispatcher(background=settings.broadcast_in_background)
    return HttpNotificationDispatcher.from_settings(settings)
