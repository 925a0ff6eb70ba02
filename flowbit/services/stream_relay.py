"""
Live Stream Relay

Pushes execution status to a subscriber until the execution reaches a
terminal status or the subscriber goes away.

Each subscriber gets its own StreamSubscription handle that owns its
wake-up event, poll interval and closed flag. It registers with the broker
only once events() starts, and the connection handler must call close()
(normally from a finally block) when the client disconnects.

Change detection:
- ExecutionEventBroker maps execution_id -> subscriptions. The recorder
  publishes to it after every committed write, which wakes subscribers
  immediately.
- Subscribers also re-check the store every poll interval, so writes made
  by another process are still picked up.

Event order per subscription:
    init -> update* -> end     (error replaces init or an update on fetch failure)
Nothing is emitted after end or error.
"""

import asyncio
import json
import logging
import threading
from typing import Any, AsyncIterator, Callable, Dict, Optional, Set
from uuid import uuid4

from flowbit.core.exceptions import StoreError, StreamLimitExceeded
from flowbit.schemas.execution import is_terminal
from flowbit.utils.timezone import isoformat

logger = logging.getLogger(__name__)


# Returns {"status", "duration", "error", "timestamp"} or None when missing
StatusFetcher = Callable[[str], Optional[Dict[str, Any]]]


def format_sse(event: Dict[str, Any]) -> str:
    """Encode one event as a Server-Sent Events data frame."""
    return f"data: {json.dumps(event, default=str)}\n\n"


class ExecutionEventBroker:
    """
    In-process publish/subscribe keyed by execution id.

    Subscriptions are added and removed explicitly; publish() only wakes
    them up, the subscription re-reads the store itself.
    """

    def __init__(self, max_subscribers_per_execution: int = 50):
        self.max_subscribers_per_execution = max_subscribers_per_execution
        self._subscribers: Dict[str, Set["StreamSubscription"]] = {}
        self._lock = threading.Lock()

    def check_capacity(self, execution_id: str) -> None:
        """
        Raises:
            StreamLimitExceeded: execution already has the max subscribers
        """
        with self._lock:
            count = len(self._subscribers.get(execution_id, ()))
        if count >= self.max_subscribers_per_execution:
            raise self._limit_error()

    def add(self, subscription: "StreamSubscription") -> None:
        """
        Register a subscription.

        Raises:
            StreamLimitExceeded: execution already has the max subscribers
        """
        with self._lock:
            subscribers = self._subscribers.get(subscription.execution_id, set())
            if len(subscribers) >= self.max_subscribers_per_execution:
                raise self._limit_error()
            subscribers.add(subscription)
            self._subscribers[subscription.execution_id] = subscribers

        logger.debug(f"Stream {subscription.id} registered for execution {subscription.execution_id}")

    def remove(self, subscription: "StreamSubscription") -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.execution_id)
            if not subscribers:
                return
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.execution_id]

    def publish(self, execution_id: str, status: Optional[str] = None) -> int:
        """
        Wake every subscription of an execution.

        Returns:
            Number of subscriptions notified
        """
        with self._lock:
            subscribers = list(self._subscribers.get(execution_id, ()))

        for subscription in subscribers:
            subscription.notify()

        if subscribers:
            logger.debug(f"Published status {status} of {execution_id} to {len(subscribers)} stream(s)")
        return len(subscribers)

    def _limit_error(self) -> StreamLimitExceeded:
        return StreamLimitExceeded(
            f"Max stream connections reached for this execution ({self.max_subscribers_per_execution})"
        )

    def subscriber_count(self, execution_id: Optional[str] = None) -> int:
        with self._lock:
            if execution_id is not None:
                return len(self._subscribers.get(execution_id, ()))
            return sum(len(subs) for subs in self._subscribers.values())

    def stats(self) -> Dict[str, Any]:
        """Connection statistics for monitoring."""
        with self._lock:
            return {
                "total_connections": sum(len(subs) for subs in self._subscribers.values()),
                "total_executions": len(self._subscribers),
                "connections_per_execution": {
                    execution_id: len(subs) for execution_id, subs in self._subscribers.items()
                },
                "max_connections_per_execution": self.max_subscribers_per_execution,
            }


class StreamSubscription:
    """
    One live stream of a single execution.

    Usage:
        broker.check_capacity(execution_id)   # may raise StreamLimitExceeded
        subscription = StreamSubscription(execution_id, fetch_status, broker)
        try:
            async for event in subscription.events():
                ...
        finally:
            subscription.close()
    """

    def __init__(
        self,
        execution_id: str,
        fetch_status: StatusFetcher,
        broker: Optional[ExecutionEventBroker] = None,
        poll_interval: float = 2.0,
    ):
        self.id = str(uuid4())
        self.execution_id = execution_id
        self.poll_interval = poll_interval
        self.fetch_count = 0

        self._fetch_status = fetch_status
        self._broker = broker
        self._wakeup = asyncio.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._registered = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> "StreamSubscription":
        """Register with the broker before the first fetch so no write is missed."""
        if self._broker is not None and not self._registered and not self._closed:
            self._broker.add(self)
            self._registered = True
        return self

    def notify(self) -> None:
        """Called by the broker, possibly from another thread."""
        if self._closed:
            return
        self._set_wakeup()

    def close(self) -> None:
        """Stop polling and unregister. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._broker is not None and self._registered:
            self._broker.remove(self)
            self._registered = False
        # Unblock a pending wait so events() can exit promptly
        self._set_wakeup()
        logger.info(f"Stream {self.id} closed for execution {self.execution_id}")

    def _set_wakeup(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._wakeup.set()
        else:
            loop.call_soon_threadsafe(self._wakeup.set)

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        """Yield init, updates and the final end/error event, then close."""
        self._loop = asyncio.get_running_loop()

        try:
            try:
                self.open()
            except StreamLimitExceeded as e:
                yield {"type": "error", "execution_id": self.execution_id, "error": e.message}
                return

            snapshot = self._fetch()
            if isinstance(snapshot, StoreError) or snapshot is None:
                yield self._error_event(snapshot)
                return

            yield {
                "type": "init",
                "execution_id": self.execution_id,
                "status": snapshot["status"],
                "timestamp": isoformat(snapshot.get("timestamp")),
            }

            if is_terminal(snapshot["status"]):
                yield self._end_event(snapshot)
                return

            while not self._closed:
                await self._wait()
                if self._closed:
                    break

                snapshot = self._fetch()
                if isinstance(snapshot, StoreError) or snapshot is None:
                    yield self._error_event(snapshot)
                    return

                if is_terminal(snapshot["status"]):
                    yield self._end_event(snapshot)
                    return

                yield {
                    "type": "update",
                    "execution_id": self.execution_id,
                    "status": snapshot["status"],
                }

        finally:
            self.close()

    # --- Internal ----------------------------------------------------------------

    def _fetch(self):
        self.fetch_count += 1
        try:
            return self._fetch_status(self.execution_id)
        except StoreError as e:
            logger.error(f"Stream {self.id} failed to fetch execution {self.execution_id}: {e}")
            return e

    async def _wait(self) -> None:
        try:
            await asyncio.wait_for(self._wakeup.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass
        self._wakeup.clear()

    def _end_event(self, snapshot: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "type": "end",
            "execution_id": self.execution_id,
            "status": snapshot["status"],
            "duration": snapshot.get("duration"),
            "error": snapshot.get("error"),
        }

    def _error_event(self, failure: Optional[StoreError]) -> Dict[str, Any]:
        if failure is None:
            logger.warning(f"Execution {self.execution_id} not found for stream {self.id}")
            message = f"Execution {self.execution_id} not found"
        else:
            message = failure.message
        return {
            "type": "error",
            "execution_id": self.execution_id,
            "error": message,
        }
