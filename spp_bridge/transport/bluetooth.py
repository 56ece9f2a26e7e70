"""Bluetooth RFCOMM listening side of the bridge."""
from __future__ import annotations

import errno
import logging
import threading
from typing import Callable, Optional

try:  # pragma: no cover - optional dependency
    import bluetooth
    BLUETOOTH_AVAILABLE = True
except ImportError:  # pragma: no cover - optional dependency
    bluetooth = None  # type: ignore[assignment]
    BLUETOOTH_AVAILABLE = False

from .base import close_quietly
from ..config import BridgeConfig
from ..protocol.events import ErrorKind, Event, error_event

LOGGER = logging.getLogger(__name__)

_PERMISSION_ERRNOS = {errno.EACCES, errno.EPERM}


class BluetoothUnavailableError(PermissionError):
    """Raised when no usable Bluetooth stack is present on this host."""


class RfcommEndpoint:
    """Opens and withdraws the advertised serial-port RFCOMM socket."""

    def __init__(self, config: BridgeConfig) -> None:
        self.config = config

    def describe(self) -> str:
        return f"RFCOMM channel {self.config.bluetooth_channel}"

    def open(self):  # pragma: no cover - hardware interaction
        if not BLUETOOTH_AVAILABLE:
            raise BluetoothUnavailableError("PyBluez not available")

        server = bluetooth.BluetoothSocket(bluetooth.RFCOMM)
        try:
            server.bind(("", self.config.bluetooth_channel))
            server.listen(1)
        except Exception:
            close_quietly(server)
            raise
        LOGGER.info("RFCOMM listening on channel %s", self.config.bluetooth_channel)

        service_uuid = self.config.service_uuid
        try:
            bluetooth.advertise_service(
                server,
                self.config.service_name,
                service_id=service_uuid,
                service_classes=[service_uuid, bluetooth.SERIAL_PORT_CLASS],
                profiles=[bluetooth.SERIAL_PORT_PROFILE],
            )
            LOGGER.info("SDP service advertised as %s", self.config.service_name)
        except bluetooth.BluetoothError as exc:
            LOGGER.warning("SDP advertise failed: %s", exc)
        return server

    def release(self, server) -> None:  # pragma: no cover - hardware interaction
        if BLUETOOTH_AVAILABLE:
            try:
                bluetooth.stop_advertising(server)
            except bluetooth.BluetoothError:
                pass
        close_quietly(server)


def is_permission_error(exc: BaseException) -> bool:
    if isinstance(exc, PermissionError):
        return True
    return getattr(exc, "errno", None) in _PERMISSION_ERRNOS


def format_peer(address) -> str:
    if isinstance(address, (list, tuple)) and address:
        return f"bt:{address[0]}"
    return f"bt:{address}"


class ConnectionListener(threading.Thread):
    """Accept exactly one inbound connection and hand it over.

    The listening socket is acquired lazily when the thread starts, not at
    construction.  :meth:`cancel` closes that socket, which is also how a
    blocked ``accept`` gets interrupted; the resulting failure is treated
    as cancellation and reported to nobody.
    """

    def __init__(
        self,
        *,
        endpoint,
        emit: Callable[[Event], None],
        on_accepted: Callable[["ConnectionListener", object, str], None],
        on_finished: Optional[Callable[["ConnectionListener"], None]] = None,
    ) -> None:
        super().__init__(name="spp-listener", daemon=True)
        self.endpoint = endpoint
        self._emit = emit
        self._on_accepted = on_accepted
        self._on_finished = on_finished
        self._server = None
        self._server_lock = threading.Lock()
        self._acquired = False
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self) -> None:
        try:
            server = self._server_socket()
            if server is None:
                return
            try:
                conn, address = server.accept()
            except OSError as exc:
                if self.cancelled:
                    LOGGER.debug("accept cancelled")
                else:
                    LOGGER.warning("accept failed: %s", exc)
                return
            # Single peer only: stop advertising before the session starts.
            self._close_server()
            peer = format_peer(address)
            LOGGER.info("accepted connection from %s", peer)
            self._on_accepted(self, conn, peer)
        finally:
            self._close_server()
            LOGGER.debug("listener finished")
            if self._on_finished is not None:
                self._on_finished(self)

    def cancel(self) -> None:
        self._cancelled.set()
        self._close_server()

    # Helpers ----------------------------------------------------------------
    def _server_socket(self):
        with self._server_lock:
            if self._acquired:
                return self._server
            self._acquired = True
            if self.cancelled:
                return None
            try:
                server = self.endpoint.open()
            except OSError as exc:
                self._report_acquire_failure(exc)
                return None
            self._server = server
        LOGGER.info("waiting for connection on %s", self._describe_endpoint())
        return server

    def _report_acquire_failure(self, exc: OSError) -> None:
        if is_permission_error(exc):
            LOGGER.error("bluetooth permission denied: %s", exc)
            self._emit(error_event("Permission missing", kind=ErrorKind.PERMISSION_DENIED))
        else:
            LOGGER.error("listen failed: %s", exc)
            self._emit(error_event(f"Listen failed {exc}", kind=ErrorKind.LISTEN_FAILED))

    def _close_server(self) -> None:
        with self._server_lock:
            server = self._server
            self._server = None
        if server is not None:
            self.endpoint.release(server)

    def _describe_endpoint(self) -> str:
        describe = getattr(self.endpoint, "describe", None)
        return describe() if callable(describe) else repr(self.endpoint)


__all__ = [
    "BLUETOOTH_AVAILABLE",
    "BluetoothUnavailableError",
    "ConnectionListener",
    "RfcommEndpoint",
    "format_peer",
    "is_permission_error",
]
