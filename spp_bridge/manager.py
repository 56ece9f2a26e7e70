"""Coordinator owning the listener and the active session."""
from __future__ import annotations

import logging
import threading
from typing import Optional, Union

from .config import BridgeConfig
from .notifications import NotificationBridge
from .protocol.events import ErrorKind, connected_event, error_event
from .state import ServerState, StateSnapshot
from .transport.base import StreamSession, close_quietly
from .transport.bluetooth import ConnectionListener, RfcommEndpoint

LOGGER = logging.getLogger(__name__)


class ConnectionManager:
    """Single-peer server lifecycle: ``IDLE`` -> ``LISTENING`` -> ``CONNECTED``.

    The manager is the only place where the current listener and session
    are swapped, always under ``_lock``.  Worker threads report back via
    callbacks and the manager ignores reports from handles it no longer
    owns, so a stale accept can never surface as a late ``CONNECTED``.
    Events themselves come from the workers and go through ``bridge``.
    """

    def __init__(
        self,
        config: BridgeConfig | None = None,
        *,
        bridge: NotificationBridge | None = None,
        endpoint=None,
    ) -> None:
        self.config = config or BridgeConfig()
        self.bridge = bridge or NotificationBridge(max_queue=self.config.event_queue_size)
        self.endpoint = endpoint or RfcommEndpoint(self.config)
        self._lock = threading.Lock()
        self._changed = threading.Condition(self._lock)
        self._listener: Optional[ConnectionListener] = None
        self._session: Optional[StreamSession] = None
        self._peer: Optional[str] = None

    # Public API ---------------------------------------------------------
    @property
    def state(self) -> ServerState:
        with self._lock:
            return self._current_state()

    def snapshot(self) -> StateSnapshot:
        with self._lock:
            return StateSnapshot(state=self._current_state(), peer=self._peer)

    def start(self) -> bool:
        """Begin listening; returns ``False`` when not idle."""

        with self._lock:
            if self._listener is not None or self._session is not None:
                LOGGER.debug("start ignored while %s", self._current_state().value)
                return False
            listener = ConnectionListener(
                endpoint=self.endpoint,
                emit=self.bridge.emit,
                on_accepted=self._on_accepted,
                on_finished=self._on_listener_finished,
            )
            self._listener = listener
            listener.start()
            self._changed.notify_all()
        LOGGER.info("server started")
        return True

    def send(self, payload: Union[bytes, bytearray, memoryview]) -> bool:
        with self._lock:
            session = self._session
        if session is None:
            LOGGER.warning("send requested while not connected")
            self.bridge.emit(error_event("Not connected", kind=ErrorKind.NOT_CONNECTED))
            return False
        return session.write(bytes(payload))

    def stop(self, join_timeout: float | None = None) -> None:
        """Release the listener and/or session and return to ``IDLE``."""

        with self._lock:
            listener, self._listener = self._listener, None
            session, self._session = self._session, None
            self._peer = None
            self._changed.notify_all()
        if listener is None and session is None:
            LOGGER.debug("stop ignored; already idle")
            return

        if listener is not None:
            listener.cancel()
        if session is not None:
            session.cancel()

        timeout = self.config.join_timeout_s if join_timeout is None else join_timeout
        current = threading.current_thread()
        for worker in (listener, session):
            if worker is not None and worker is not current:
                worker.join(timeout=timeout)
                if worker.is_alive():
                    LOGGER.warning("%s did not finish within %.1fs", worker.name, timeout)
        LOGGER.info("server stopped")

    def wait_for_state(self, state: ServerState, timeout: float | None = None) -> bool:
        with self._changed:
            return self._changed.wait_for(lambda: self._current_state() is state, timeout)

    def close(self) -> None:
        self.stop()
        self.bridge.close()

    # Worker callbacks ---------------------------------------------------
    def _on_accepted(self, listener: ConnectionListener, conn, peer: str) -> None:
        with self._lock:
            if self._listener is not listener or listener.cancelled:
                session = None
            else:
                self._listener = None
                # Queued before the session thread exists, so it precedes any DATA.
                self.bridge.emit(connected_event())
                session = StreamSession(
                    conn=conn,
                    peer=peer,
                    emit=self.bridge.emit,
                    buffer_size=self.config.read_buffer_size,
                    on_finished=self._on_session_finished,
                )
                self._session = session
                self._peer = peer
                session.start()
                self._changed.notify_all()
        if session is None:
            LOGGER.info("dropping stale connection from %s", peer)
            close_quietly(conn)
            return
        LOGGER.info("connected to %s", peer)

    def _on_listener_finished(self, listener: ConnectionListener) -> None:
        with self._lock:
            if self._listener is not listener:
                return
            self._listener = None
            self._changed.notify_all()
        LOGGER.info("listener stopped without a connection")

    def _on_session_finished(self, session: StreamSession) -> None:
        with self._lock:
            if self._session is not session:
                return
            self._session = None
            self._peer = None
            self._changed.notify_all()
        LOGGER.info("peer %s disconnected", session.peer)

    def _current_state(self) -> ServerState:
        if self._session is not None:
            return ServerState.CONNECTED
        if self._listener is not None:
            return ServerState.LISTENING
        return ServerState.IDLE


__all__ = ["ConnectionManager"]
