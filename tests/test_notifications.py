import threading

from conftest import RecordingSink

from spp_bridge.config import DEFAULT_EVENT_QUEUE_SIZE
from spp_bridge.notifications import NotificationBridge
from spp_bridge.protocol.events import connected_event, data_event, disconnected_event


def test_events_are_delivered_in_emission_order(bridge, sink):
    bridge.emit(connected_event())
    for index in range(50):
        bridge.emit(data_event(bytes([index])))
    bridge.emit(disconnected_event())

    assert bridge.drain(timeout=2.0)
    assert sink.events[0] == connected_event()
    assert sink.data() == bytes(range(50))
    assert sink.events[-1] == disconnected_event()


def test_events_without_subscriber_are_dropped():
    bridge = NotificationBridge()
    try:
        bridge.emit(connected_event())
        assert bridge.drain(timeout=2.0)

        late = RecordingSink()
        bridge.register(late)
        bridge.emit(disconnected_event())
        assert bridge.drain(timeout=2.0)

        assert late.events == [disconnected_event()]
    finally:
        bridge.close()


def test_register_replaces_previous_subscriber(bridge, sink):
    replacement = RecordingSink()
    bridge.register(replacement)
    bridge.emit(connected_event())
    bridge.drain(timeout=2.0)

    assert sink.events == []
    assert replacement.events == [connected_event()]


def test_stale_subscriber_cannot_unregister_replacement(bridge, sink):
    replacement = RecordingSink()
    bridge.register(replacement)

    assert bridge.unregister(sink) is False
    assert bridge.has_sink
    assert bridge.unregister(replacement) is True
    assert not bridge.has_sink
    assert bridge.unregister() is False


def test_failing_subscriber_does_not_stop_delivery():
    received = []

    def flaky(event):
        received.append(event)
        if len(received) == 1:
            raise RuntimeError("consumer blew up")

    bridge = NotificationBridge()
    bridge.register(flaky)
    try:
        bridge.emit(connected_event())
        bridge.emit(disconnected_event())
        assert bridge.drain(timeout=2.0)
    finally:
        bridge.close()

    assert received == [connected_event(), disconnected_event()]


def test_full_queue_drops_instead_of_blocking():
    entered = threading.Event()
    release = threading.Event()
    received = []

    def slow(event):
        received.append(event)
        entered.set()
        release.wait(2.0)

    bridge = NotificationBridge(max_queue=1)
    bridge.register(slow)
    try:
        bridge.emit(data_event(b"1"))
        assert entered.wait(2.0)
        bridge.emit(data_event(b"2"))
        bridge.emit(data_event(b"3"))
        release.set()
        assert bridge.drain(timeout=2.0)
    finally:
        bridge.close()

    assert [event.data for event in received] == [b"1", b"2"]


def test_close_flushes_pending_events():
    sink = RecordingSink()
    bridge = NotificationBridge()
    bridge.register(sink)
    bridge.emit(connected_event())
    bridge.close()

    assert sink.events == [connected_event()]

    bridge.emit(disconnected_event())
    assert sink.events == [connected_event()]


def test_drain_without_activity_returns_immediately():
    bridge = NotificationBridge()
    assert bridge.drain(timeout=0.1) is True


def test_stalled_subscriber_keeps_queue_within_limit():
    entered = threading.Event()
    release = threading.Event()

    def stalled(event):
        entered.set()
        release.wait(5.0)

    bridge = NotificationBridge(max_queue=8)
    bridge.register(stalled)
    try:
        bridge.emit(data_event(b"first"))
        assert entered.wait(2.0)
        for _ in range(500):
            bridge.emit(data_event(b"x" * 1024))
        assert bridge.pending <= 8
    finally:
        release.set()
        bridge.close()


def test_default_queue_is_bounded():
    bridge = NotificationBridge()
    assert bridge._queue.maxsize == DEFAULT_EVENT_QUEUE_SIZE > 0


def test_emit_after_close_starts_no_delivery_thread():
    bridge = NotificationBridge()
    bridge.emit(connected_event())
    bridge.close()
    dispatcher = bridge._thread

    assert bridge._ensure_dispatcher() is False
    bridge.emit(disconnected_event())

    assert bridge._thread is dispatcher
    assert not dispatcher.is_alive()
    assert bridge.pending == 0
