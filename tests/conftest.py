import socket
import threading
import time

import pytest

from spp_bridge.config import BridgeConfig
from spp_bridge.manager import ConnectionManager
from spp_bridge.notifications import NotificationBridge
from spp_bridge.protocol.events import EventType
from spp_bridge.transport.base import close_quietly


def wait_until(predicate, timeout=3.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class RecordingSink:
    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def __call__(self, event):
        with self._lock:
            self.events.append(event)

    @property
    def types(self):
        with self._lock:
            return [event.type for event in self.events]

    def of_type(self, event_type):
        with self._lock:
            return [event for event in self.events if event.type is event_type]

    def data(self):
        return b"".join(event.data for event in self.of_type(EventType.DATA))


class LoopbackEndpoint:
    """Listening endpoint backed by a loopback TCP socket instead of RFCOMM."""

    def __init__(self, fail_with=None):
        self.fail_with = fail_with
        self.opens = 0
        self.released = 0
        self.address = None
        self.opened = threading.Event()
        self._live = []

    def describe(self):
        return f"loopback {self.address}"

    def open(self):
        self.opens += 1
        if self.fail_with is not None:
            raise self.fail_with
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.bind(("127.0.0.1", 0))
        server.listen(1)
        self.address = server.getsockname()
        self._live.append(server)
        self.opened.set()
        return server

    def release(self, server):
        self.released += 1
        if server in self._live:
            self._live.remove(server)
        close_quietly(server)

    @property
    def live_sockets(self):
        return len(self._live)

    def connect_peer(self, timeout=3.0):
        assert self.opened.wait(timeout), "listener never acquired its socket"
        peer = socket.create_connection(self.address, timeout=timeout)
        return peer


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def bridge(sink):
    notification_bridge = NotificationBridge()
    notification_bridge.register(sink)
    yield notification_bridge
    notification_bridge.close()


@pytest.fixture
def endpoint():
    return LoopbackEndpoint()


@pytest.fixture
def config():
    return BridgeConfig(join_timeout_s=2.0, control_port=0)


@pytest.fixture
def manager(config, bridge, endpoint):
    connection_manager = ConnectionManager(config, bridge=bridge, endpoint=endpoint)
    yield connection_manager
    connection_manager.stop()
