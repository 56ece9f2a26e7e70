"""Serialised delivery of bridge events to a single registered consumer."""
from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional, Union

from .config import DEFAULT_EVENT_QUEUE_SIZE
from .protocol.events import Event

LOGGER = logging.getLogger(__name__)

EventSink = Callable[[Event], None]

_STOP = object()


class _Barrier:
    __slots__ = ("reached",)

    def __init__(self) -> None:
        self.reached = threading.Event()


class NotificationBridge:
    """Hand events from worker threads to one consumer, in emission order.

    Workers call :meth:`emit`, which only enqueues and never blocks.  A
    single delivery thread pops events and invokes whichever sink is
    registered *at delivery time*; with no sink registered the event is
    dropped.  Nothing is buffered on behalf of a future subscriber.  At most
    ``max_queue`` events wait for delivery (0 means unbounded); beyond that
    the newest event is dropped with a warning.
    """

    def __init__(self, *, max_queue: int = DEFAULT_EVENT_QUEUE_SIZE) -> None:
        self._sink: Optional[EventSink] = None
        self._sink_lock = threading.Lock()
        self._queue: "queue.Queue[Union[Event, _Barrier, object]]" = queue.Queue(maxsize=max_queue)
        self._thread: threading.Thread | None = None
        self._thread_lock = threading.Lock()
        self._closed = False

    # Subscription -----------------------------------------------------------
    def register(self, sink: EventSink) -> None:
        """Make ``sink`` the only consumer, replacing any previous one."""

        with self._sink_lock:
            replaced = self._sink is not None and self._sink is not sink
            self._sink = sink
        if replaced:
            LOGGER.info("event subscriber replaced")
        else:
            LOGGER.debug("event subscriber registered")

    def unregister(self, sink: Optional[EventSink] = None) -> bool:
        """Clear the registered sink.

        When ``sink`` is given the registration is only cleared if it still
        belongs to that sink, so a stale subscriber cannot remove its
        replacement.
        """

        with self._sink_lock:
            if self._sink is None:
                return False
            if sink is not None and self._sink is not sink:
                return False
            self._sink = None
        LOGGER.debug("event subscriber unregistered")
        return True

    @property
    def has_sink(self) -> bool:
        with self._sink_lock:
            return self._sink is not None

    @property
    def pending(self) -> int:
        """Approximate number of queued items not yet delivered."""

        return self._queue.qsize()

    # Emission ---------------------------------------------------------------
    def emit(self, event: Event) -> None:
        if not self._ensure_dispatcher():
            LOGGER.debug("bridge closed; dropping %s", event.type.value)
            return
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            LOGGER.warning("event queue full; dropping %s", event.type.value)

    def drain(self, timeout: float | None = None) -> bool:
        """Block until every event emitted so far has been delivered."""

        with self._thread_lock:
            thread = self._thread
        if thread is None or not thread.is_alive():
            return self._queue.empty()
        barrier = _Barrier()
        try:
            self._queue.put(barrier, timeout=timeout)
        except queue.Full:
            return False
        return barrier.reached.wait(timeout)

    def close(self, timeout: float | None = 2.0) -> None:
        """Flush pending events and stop the delivery thread."""

        with self._thread_lock:
            if self._closed:
                return
            self._closed = True
            thread = self._thread
        if thread is None:
            return
        self._queue.put(_STOP)
        thread.join(timeout=timeout)

    # Delivery ---------------------------------------------------------------
    def _ensure_dispatcher(self) -> bool:
        with self._thread_lock:
            if self._closed:
                return False
            if self._thread is not None and self._thread.is_alive():
                return True
            thread = threading.Thread(target=self._run, name="spp-events", daemon=True)
            self._thread = thread
            thread.start()
        return True

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            if isinstance(item, _Barrier):
                item.reached.set()
                continue
            self._deliver(item)  # type: ignore[arg-type]

    def _deliver(self, event: Event) -> None:
        with self._sink_lock:
            sink = self._sink
        if sink is None:
            LOGGER.debug("no subscriber; dropping %s", event.type.value)
            return
        try:
            sink(event)
        except Exception:
            LOGGER.exception("event subscriber failed on %s", event.type.value)


__all__ = ["EventSink", "NotificationBridge"]
