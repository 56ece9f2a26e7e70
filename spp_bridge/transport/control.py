"""Local TCP control channel carrying commands and the event stream."""
from __future__ import annotations

import base64
import binascii
import logging
import socket
import threading
from typing import Any, Dict, Optional, Set, Tuple

from .base import TransportServer, close_quietly
from ..commands import INVALID, CommandHandler, CommandResult
from ..config import BridgeConfig
from ..protocol.codec import LineCodec
from ..protocol.events import Event

LOGGER = logging.getLogger(__name__)

LISTEN = "listen"
CANCEL = "cancel"

MAX_LINE_BYTES = 64 * 1024


class ControlWorker(threading.Thread):
    """Serve one consumer connection on the control channel."""

    def __init__(
        self,
        *,
        conn: socket.socket,
        peer: str,
        handler: CommandHandler,
        send_timeout: Optional[float] = 5.0,
        max_line_bytes: int = MAX_LINE_BYTES,
    ) -> None:
        super().__init__(name=f"{peer}-control", daemon=True)
        self.conn = conn
        self.peer = peer
        self.handler = handler
        self.max_line_bytes = max_line_bytes
        # Bounds sendall to a stalled consumer; recv timeouts are simply retried.
        self.conn.settimeout(send_timeout)
        self._send_lock = threading.Lock()
        # Registered by identity, so keep a single bound method around.
        self._sink = self._push_event

    def run(self) -> None:
        LOGGER.info("control connection opened from %s", self.peer)
        try:
            self._serve()
        except OSError as exc:
            LOGGER.info("control reply to %s failed: %s", self.peer, exc)
        finally:
            self.handler.cancel(self._sink)
            close_quietly(self.conn)
            LOGGER.info("control connection closed from %s", self.peer)

    def close(self) -> None:
        close_quietly(self.conn)

    # Helpers ----------------------------------------------------------------
    def _serve(self) -> None:
        buffer = b""
        # Set after an oversized line was rejected; input is skipped up to the next newline.
        discarding = False
        while True:
            try:
                chunk = self.conn.recv(4096)
            except socket.timeout:
                continue
            except OSError:
                return
            if not chunk:
                return
            buffer += chunk
            while b"\n" in buffer:
                line, buffer = buffer.split(b"\n", 1)
                if discarding:
                    discarding = False
                    continue
                if not line.strip():
                    continue
                self._handle_line(line)
            if len(buffer) > self.max_line_bytes:
                buffer = b""
                if not discarding:
                    discarding = True
                    LOGGER.warning("control line from %s exceeds %d bytes", self.peer, self.max_line_bytes)
                    self._send_bad_json(f"line longer than {self.max_line_bytes} bytes")

    def _send_bad_json(self, details: str) -> None:
        self._send({"error": {"code": "bad_json", "message": "invalid message format", "details": details}})

    def _handle_line(self, line: bytes) -> None:
        try:
            request = LineCodec.decode(line)
        except ValueError as exc:
            LOGGER.warning("failed to decode control request from %s: %s", self.peer, exc)
            self._send_bad_json(str(exc))
            return
        reply = self.dispatch(request)
        reply["id"] = request.get("id")
        self._send(reply)

    def dispatch(self, request: Dict[str, Any]) -> Dict[str, Any]:
        method = request.get("method")
        if not isinstance(method, str) or not method:
            return CommandResult.error(INVALID, "missing method").to_dict()
        if method == LISTEN:
            self.handler.listen(self._sink)
            return {"result": True}
        if method == CANCEL:
            return {"result": self.handler.cancel(self._sink)}

        arguments = request.get("arguments") or {}
        if not isinstance(arguments, dict):
            return CommandResult.error(INVALID, "arguments must be an object").to_dict()
        if "message_b64" in arguments:
            try:
                arguments = dict(arguments, message=base64.b64decode(arguments["message_b64"], validate=True))
            except (binascii.Error, TypeError, ValueError):
                return CommandResult.error(INVALID, "invalid message_b64").to_dict()
        return self.handler.handle(method, arguments).to_dict()

    def _push_event(self, event: Event) -> None:
        try:
            self._send(event.to_dict())
        except OSError as exc:
            # A timed out sendall may have written part of a line; the stream is unusable.
            LOGGER.warning("could not push %s to %s, dropping consumer: %s", event.type.value, self.peer, exc)
            close_quietly(self.conn)

    def _send(self, document: Dict[str, Any]) -> None:
        with self._send_lock:
            self.conn.sendall(LineCodec.encode(document))


class ControlServer(TransportServer):
    def __init__(self, config: BridgeConfig, handler: CommandHandler) -> None:
        super().__init__("control")
        self.config = config
        self.handler = handler
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._server_socket: socket.socket | None = None
        self._workers: Set[ControlWorker] = set()
        self._workers_lock = threading.Lock()

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        server = self._server_socket
        if server is None:
            return None
        return server.getsockname()[:2]

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return

        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            server.bind((self.config.control_host, self.config.control_port))
            server.listen(5)
        except OSError:
            server.close()
            raise
        self._server_socket = server
        self._stop_event.clear()
        LOGGER.info("control channel listening on %s:%s", *self.address)

        thread = threading.Thread(target=self._run, args=(server,), name="control-server", daemon=True)
        self._thread = thread
        thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        server, self._server_socket = self._server_socket, None
        close_quietly(server)
        with self._workers_lock:
            workers = list(self._workers)
        for worker in workers:
            worker.close()
        for worker in workers:
            worker.join(timeout=self.config.join_timeout_s)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=self.config.join_timeout_s)
        self._thread = None
        LOGGER.info("control channel stopped")

    def _run(self, server: socket.socket) -> None:
        while not self._stop_event.is_set():
            try:
                conn, addr = server.accept()
            except OSError as exc:
                if not self._stop_event.is_set():
                    LOGGER.warning("control accept failed: %s", exc)
                break
            worker = ControlWorker(
                conn=conn,
                peer=f"tcp:{addr[0]}:{addr[1]}",
                handler=self.handler,
                send_timeout=self.config.control_send_timeout_s,
            )
            with self._workers_lock:
                self._workers.add(worker)
            worker.start()
            self._reap_workers()

    def _reap_workers(self) -> None:
        with self._workers_lock:
            self._workers = {worker for worker in self._workers if worker.is_alive()}


__all__ = ["ControlServer", "ControlWorker", "MAX_LINE_BYTES"]
