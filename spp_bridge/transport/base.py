"""Transport building blocks shared by the bridge's servers."""
from __future__ import annotations

import logging
import socket
import threading
from typing import Callable, Optional

from ..config import DEFAULT_READ_BUFFER_SIZE
from ..protocol.events import (
    ErrorKind,
    Event,
    data_event,
    disconnected_event,
    error_event,
)

LOGGER = logging.getLogger(__name__)


class TransportServer:
    """Base class for long-running servers owned by the service."""

    def __init__(self, name: str) -> None:
        self.name = name

    def start(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


def close_quietly(sock) -> None:
    """Shut down and close ``sock``, ignoring failures.

    A plain ``close()`` from another thread does not wake a thread blocked
    in ``recv``/``accept`` on Linux; ``shutdown`` does.
    """

    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    try:
        sock.close()
    except OSError:
        pass


class StreamSession(threading.Thread):
    """Thread relaying one connected peer socket to the event bridge.

    The read loop emits one ``DATA`` event per successful read and a single
    ``DISCONNECTED`` event when reading stops, whatever the reason.  Writes
    happen on the caller's thread; a failed write is reported as an
    ``ERROR`` event and leaves the read loop running.
    """

    def __init__(
        self,
        *,
        conn,
        peer: str,
        emit: Callable[[Event], None],
        buffer_size: int = DEFAULT_READ_BUFFER_SIZE,
        on_finished: Optional[Callable[["StreamSession"], None]] = None,
    ) -> None:
        super().__init__(name=f"{peer}-session", daemon=True)
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self.conn = conn
        self.peer = peer
        self.buffer_size = buffer_size
        self._emit = emit
        self._on_finished = on_finished
        self._write_lock = threading.Lock()
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self) -> None:
        LOGGER.info("session opened with %s", self.peer)
        try:
            while True:
                try:
                    chunk = self.conn.recv(self.buffer_size)
                except OSError as exc:
                    if self.cancelled:
                        LOGGER.debug("read from %s interrupted by cancel", self.peer)
                    else:
                        LOGGER.info("read from %s failed: %s", self.peer, exc)
                    break
                if not chunk:
                    # Orderly shutdown, from the peer or from cancel().
                    LOGGER.info("stream from %s closed", self.peer)
                    break
                self._emit(data_event(chunk))
        finally:
            self._emit(disconnected_event())
            close_quietly(self.conn)
            LOGGER.info("session with %s finished", self.peer)
            if self._on_finished is not None:
                self._on_finished(self)

    def write(self, payload: bytes) -> bool:
        """Write ``payload`` to the peer, blocking until it is handed off."""

        with self._write_lock:
            try:
                self.conn.sendall(payload)
            except OSError as exc:
                LOGGER.warning("write to %s failed: %s", self.peer, exc)
                self._emit(error_event("Write failed", kind=ErrorKind.WRITE_FAILED))
                return False
        LOGGER.debug("wrote %d bytes to %s", len(payload), self.peer)
        return True

    def cancel(self) -> None:
        self._cancelled.set()
        close_quietly(self.conn)


__all__ = ["TransportServer", "StreamSession", "close_quietly"]
