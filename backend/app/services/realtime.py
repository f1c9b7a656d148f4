"""
In-process change feed.

Mutations publish a ChangeEvent per written row; WebSocket handlers hold a
Subscription for one (table, company) pair and forward the events to the
client. Subscriptions must be closed when the client goes away.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from fastapi.encoders import jsonable_encoder

logger = logging.getLogger("hse.realtime")

EVENT_INSERT = "INSERT"
EVENT_UPDATE = "UPDATE"
EVENT_DELETE = "DELETE"

_CLOSED = object()


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    company_id: str
    event_type: str
    record: dict[str, Any]

    def to_message(self) -> dict[str, Any]:
        return jsonable_encoder({"table": self.table, "type": self.event_type, "record": self.record})


class Subscription:
    """
    Queue of change events for one subscriber.

    ``prime(ids)`` registers records the client already got from its initial
    fetch, so an insert of the same record arriving afterwards is not
    delivered a second time.
    """

    def __init__(
        self,
        broadcaster: "ChangeBroadcaster",
        table: str,
        company_id: str,
        where: Optional[dict[str, Any]] = None,
        max_queue: int = 1000,
    ):
        self._broadcaster = broadcaster
        self.table = table
        self.company_id = company_id
        self.where = dict(where or {})
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self._seen_ids: set[str] = set()
        self.closed = False

    def prime(self, ids: Iterable[str]) -> None:
        ids = {i for i in ids if i}
        self._seen_ids.update(ids)
        # Inserts queued between subscribing and the initial fetch are already known too
        pending = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is _CLOSED or event.event_type != EVENT_INSERT or event.record.get("id") not in ids:
                pending.append(event)
        for event in pending:
            self._queue.put_nowait(event)

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table or event.company_id != self.company_id:
            return False
        return all(event.record.get(k) == v for k, v in self.where.items())

    def deliver(self, event: ChangeEvent) -> bool:
        """Queue ``event``. Returns False when it was suppressed or dropped."""
        if self.closed:
            return False
        if event.event_type == EVENT_INSERT:
            record_id = event.record.get("id")
            if record_id in self._seen_ids:
                return False
            if record_id:
                self._seen_ids.add(record_id)
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("Dropping %s event on %s: subscriber queue full", event.event_type, self.table)
            return False
        return True

    async def get(self) -> Optional[ChangeEvent]:
        """Next event, or None once the subscription is closed."""
        if self.closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._broadcaster._remove(self)
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # get() returns None once the backlog is drained
            pass


class ChangeBroadcaster:
    def __init__(self):
        self._subscriptions: dict[tuple[str, str], set[Subscription]] = defaultdict(set)

    def subscribe(self, table: str, company_id: str, where: Optional[dict[str, Any]] = None) -> Subscription:
        subscription = Subscription(self, table, company_id, where=where)
        self._subscriptions[(table, company_id)].add(subscription)
        logger.debug("Subscribed to %s for company %s", table, company_id)
        return subscription

    def publish(self, event: ChangeEvent) -> int:
        """Fan ``event`` out to matching subscribers. Returns the number that received it."""
        delivered = 0
        for subscription in list(self._subscriptions.get((event.table, event.company_id), ())):
            if subscription.matches(event) and subscription.deliver(event):
                delivered += 1
        return delivered

    def subscriber_count(self, table: str, company_id: str) -> int:
        return len(self._subscriptions.get((table, company_id), ()))

    def close_all(self) -> None:
        for subscriptions in list(self._subscriptions.values()):
            for subscription in list(subscriptions):
                subscription.close()

    def _remove(self, subscription: Subscription) -> None:
        key = (subscription.table, subscription.company_id)
        subscriptions = self._subscriptions.get(key)
        if subscriptions is None:
            return
        subscriptions.discard(subscription)
        if not subscriptions:
            del self._subscriptions[key]


broadcaster = ChangeBroadcaster()


def get_broadcaster() -> ChangeBroadcaster:
    return broadcaster
