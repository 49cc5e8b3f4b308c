"""Per-job fan-out of state snapshots to live subscribers."""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator, Dict, Optional, Tuple

from .. import logging_manager as log_mgr

if TYPE_CHECKING:  # pragma: no cover - for static analysis only
    from ..services.job_manager.job import JobSnapshot

logger = log_mgr.get_logger().getChild("notifications.hub")

TASK_UPDATE = "task_update"
HEARTBEAT = "heartbeat"


@dataclass(frozen=True)
class HubEvent:
    """One item delivered on a channel: a job snapshot or a keep-alive."""

    kind: str
    snapshot: Optional["JobSnapshot"] = None

    @property
    def is_terminal(self) -> bool:
        return self.snapshot is not None and self.snapshot.is_terminal


_HEARTBEAT_EVENT = HubEvent(kind=HEARTBEAT)


class JobChannel:
    """Asynchronous iterator over the events of one job for one subscriber.

    Producers run on worker threads; items cross into the subscriber's event
    loop with :meth:`asyncio.AbstractEventLoop.call_soon_threadsafe`. Once a
    terminal snapshot has been accepted nothing else is delivered, and a
    snapshot with lower progress than the last accepted one is dropped.
    """

    _SENTINEL = object()

    def __init__(
        self,
        hub: "NotificationHub",
        job_id: str,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._hub = hub
        self._job_id = job_id
        self._loop = loop
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._finished = False
        self._last_progress = -1

    @property
    def job_id(self) -> str:
        return self._job_id

    @property
    def closed(self) -> bool:
        return self._closed

    def note_delivered(self, snapshot: "JobSnapshot") -> None:
        """Record ``snapshot`` as already seen by the subscriber."""

        with self._lock:
            self._last_progress = max(self._last_progress, snapshot.progress)
            if snapshot.is_terminal:
                self._finished = True

    def _enqueue(self, item: object) -> bool:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            self._closed = True
            return False
        return True

    def deliver(self, snapshot: "JobSnapshot") -> bool:
        """Queue ``snapshot``. Returns ``False`` when the channel is broken."""

        with self._lock:
            if self._closed:
                return False
            if self._finished or snapshot.progress < self._last_progress:
                return True
            self._last_progress = snapshot.progress
            if snapshot.is_terminal:
                self._finished = True
            return self._enqueue(HubEvent(kind=TASK_UPDATE, snapshot=snapshot))

    def heartbeat(self) -> bool:
        with self._lock:
            if self._closed:
                return False
            if self._finished:
                return True
            return self._enqueue(_HEARTBEAT_EVENT)

    def complete(self) -> None:
        """End the stream after anything already queued."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._loop.call_soon_threadsafe(self._queue.put_nowait, self._SENTINEL)
            except RuntimeError:
                pass

    def close(self) -> None:
        """Detach from the hub and end the stream."""

        self.complete()
        self._hub.unsubscribe(self)

    async def aclose(self) -> None:
        self.close()

    async def next_event(self, timeout: Optional[float] = None) -> Optional[HubEvent]:
        """Return the next event, ``None`` once the stream has ended.

        Raises :class:`asyncio.TimeoutError` when ``timeout`` elapses first.
        """

        item = await asyncio.wait_for(self._queue.get(), timeout)
        if item is self._SENTINEL:
            return None
        return item  # type: ignore[return-value]

    def __aiter__(self) -> AsyncIterator[HubEvent]:
        return self

    async def __anext__(self) -> HubEvent:
        event = await self.next_event()
        if event is None:
            raise StopAsyncIteration
        return event


class NotificationHub:
    """Registry of live channels per job id.

    Channel sets are stored as tuples and replaced on every change, so
    publishers iterate a stable copy while subscribers come and go.
    """

    def __init__(self, *, heartbeat_interval: float = 25.0) -> None:
        self._lock = threading.Lock()
        self._channels: Dict[str, Tuple[JobChannel, ...]] = {}
        self._heartbeat_interval = heartbeat_interval
        self._keepalive_stop = threading.Event()
        self._keepalive_thread: Optional[threading.Thread] = None

    @property
    def heartbeat_interval(self) -> float:
        return self._heartbeat_interval

    def subscribe(
        self,
        job_id: str,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> JobChannel:
        """Open a channel for ``job_id``; the id does not need to exist yet."""

        channel = JobChannel(self, job_id, loop or asyncio.get_running_loop())
        with self._lock:
            self._channels[job_id] = self._channels.get(job_id, ()) + (channel,)
        logger.debug(
            "Subscriber added",
            extra={"event": "transcriber.hub.subscribed", "job_id": job_id, "console_suppress": True},
        )
        return channel

    def unsubscribe(self, channel: JobChannel) -> None:
        """Detach ``channel``; an emptied job entry is pruned on the next sweep."""

        with self._lock:
            current = self._channels.get(channel.job_id)
            if current is None:
                return
            self._channels[channel.job_id] = tuple(item for item in current if item is not channel)

    def _discard(self, job_id: str, broken: Tuple[JobChannel, ...]) -> None:
        if not broken:
            return
        with self._lock:
            current = self._channels.get(job_id)
            if current is None:
                return
            remaining = tuple(item for item in current if item not in broken)
            if remaining:
                self._channels[job_id] = remaining
            else:
                del self._channels[job_id]
        logger.debug(
            "Dropped broken subscribers",
            extra={
                "event": "transcriber.hub.pruned",
                "job_id": job_id,
                "attributes": {"count": len(broken)},
                "console_suppress": True,
            },
        )

    def publish(self, job_id: str, snapshot: "JobSnapshot") -> int:
        """Deliver ``snapshot`` to every channel of ``job_id``; returns the delivery count."""

        with self._lock:
            channels = self._channels.get(job_id, ())
        delivered = 0
        broken = []
        for channel in channels:
            if channel.deliver(snapshot):
                delivered += 1
            else:
                broken.append(channel)
        self._discard(job_id, tuple(broken))
        return delivered

    def close_all(self, job_id: str) -> int:
        """Complete and remove every channel of ``job_id``."""

        with self._lock:
            channels = self._channels.pop(job_id, ())
        for channel in channels:
            channel.complete()
        if channels:
            logger.debug(
                "Closed subscribers",
                extra={
                    "event": "transcriber.hub.closed",
                    "job_id": job_id,
                    "attributes": {"count": len(channels)},
                    "console_suppress": True,
                },
            )
        return len(channels)

    def send_heartbeats(self) -> int:
        """Emit a keep-alive to all live channels and prune empty job entries."""

        with self._lock:
            for job_id in [key for key, value in self._channels.items() if not value]:
                del self._channels[job_id]
            targets = list(self._channels.items())
        sent = 0
        for job_id, channels in targets:
            broken = []
            for channel in channels:
                if channel.heartbeat():
                    sent += 1
                else:
                    broken.append(channel)
            self._discard(job_id, tuple(broken))
        return sent

    def subscriber_count(self, job_id: str) -> int:
        with self._lock:
            return len(self._channels.get(job_id, ()))

    def active_jobs(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._channels)

    def start_keepalive(self) -> None:
        """Start the background thread that emits heartbeats at a fixed interval."""

        if self._keepalive_thread is not None and self._keepalive_thread.is_alive():
            return
        self._keepalive_stop.clear()
        thread = threading.Thread(
            target=self._keepalive_loop, name="notification-keepalive", daemon=True
        )
        self._keepalive_thread = thread
        thread.start()

    def stop_keepalive(self, timeout: Optional[float] = 5.0) -> None:
        self._keepalive_stop.set()
        thread = self._keepalive_thread
        if thread is not None:
            thread.join(timeout)
        self._keepalive_thread = None

    def _keepalive_loop(self) -> None:
        while not self._keepalive_stop.wait(self._heartbeat_interval):
            try:
                self.send_heartbeats()
            except Exception:  # pragma: no cover - keep the loop alive
                logger.exception(
                    "Heartbeat sweep failed",
                    extra={"event": "transcriber.hub.heartbeat_failed"},
                )


__all__ = ["HEARTBEAT", "HubEvent", "JobChannel", "NotificationHub", "TASK_UPDATE"]
