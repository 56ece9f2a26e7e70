"""Command surface exposed to the controlling application."""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from .manager import ConnectionManager
from .notifications import EventSink

LOGGER = logging.getLogger(__name__)

START_SERVER = "startServer"
SEND_MESSAGE = "sendMessage"
STOP_SERVER = "stopServer"
GET_STATUS = "getStatus"

INVALID = "INVALID"
NOT_IMPLEMENTED = "NOT_IMPLEMENTED"


@dataclass(frozen=True)
class CommandResult:
    ok: bool
    value: Any = None
    code: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "CommandResult":
        return cls(ok=True, value=value)

    @classmethod
    def error(cls, code: str, message: str) -> "CommandResult":
        return cls(ok=False, code=code, message=message)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"result": self.value}
        return {"error": {"code": self.code, "message": self.message}}


def coerce_payload(message: Any) -> bytes:
    """Turn a ``sendMessage`` argument into the bytes written to the peer."""

    if message is None:
        raise ValueError("Message is null")
    if isinstance(message, str):
        return message.encode("utf-8")
    if isinstance(message, (bytes, bytearray, memoryview)):
        return bytes(message)
    raise ValueError("Message must be text or bytes")


class CommandHandler:
    """Dispatch the three lifecycle commands to a :class:`ConnectionManager`.

    Only request validation fails synchronously; everything that happens on
    the connection afterwards is reported through the event stream.
    """

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager
        self._handlers: Dict[str, Callable[[Mapping[str, Any]], CommandResult]] = {
            START_SERVER: self._on_start_server,
            SEND_MESSAGE: self._on_send_message,
            STOP_SERVER: self._on_stop_server,
            GET_STATUS: self._on_get_status,
        }

    # Public API ---------------------------------------------------------
    def handle(self, method: str, arguments: Optional[Mapping[str, Any]] = None) -> CommandResult:
        LOGGER.debug("processing command %s", method)
        handler = self._handlers.get(method)
        if handler is None:
            LOGGER.info("no handler for command %s", method)
            return CommandResult.error(NOT_IMPLEMENTED, f"unsupported method: {method}")
        return handler(arguments or {})

    def listen(self, sink: EventSink) -> None:
        """Subscribe ``sink`` to the event stream, replacing any subscriber."""

        self.manager.bridge.register(sink)

    def cancel(self, sink: Optional[EventSink] = None) -> bool:
        return self.manager.bridge.unregister(sink)

    # Command handlers ---------------------------------------------------
    def _on_start_server(self, _: Mapping[str, Any]) -> CommandResult:
        self.manager.start()
        return CommandResult.success("Server Started")

    def _on_send_message(self, arguments: Mapping[str, Any]) -> CommandResult:
        try:
            payload = coerce_payload(arguments.get("message"))
        except ValueError as exc:
            LOGGER.warning("rejected sendMessage: %s", exc)
            return CommandResult.error(INVALID, str(exc))
        return CommandResult.success(self.manager.send(payload))

    def _on_stop_server(self, _: Mapping[str, Any]) -> CommandResult:
        self.manager.stop()
        return CommandResult.success("Server Stopped")

    def _on_get_status(self, _: Mapping[str, Any]) -> CommandResult:
        return CommandResult.success(self.manager.snapshot().to_dict())


__all__ = [
    "CommandHandler",
    "CommandResult",
    "GET_STATUS",
    "INVALID",
    "NOT_IMPLEMENTED",
    "SEND_MESSAGE",
    "START_SERVER",
    "STOP_SERVER",
    "coerce_payload",
]
