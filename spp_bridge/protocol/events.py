"""Notifications emitted by the bridge towards its consumer."""
from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
import sys
from typing import Any, Dict, Optional, Union


class EventType(str, Enum):
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    DATA = "DATA"
    ERROR = "ERROR"


class ErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"  # adapter unavailable or connect permission missing
    LISTEN_FAILED = "listen_failed"
    WRITE_FAILED = "write_failed"
    NOT_CONNECTED = "not_connected"


ERROR_PREFIX = "ERROR: "

# Legacy event channel values: status sentinels, error sentinels and raw bytes.
WireValue = Union[str, bytes]


# ``slots`` support for ``dataclasses`` arrived in Python 3.10. Prefer slots
# when available but remain compatible with Python 3.9.
_DATACLASS_KWARGS = {"slots": True} if sys.version_info >= (3, 10) else {}


@dataclass(frozen=True, **_DATACLASS_KWARGS)
class Event:
    type: EventType
    data: bytes = b""
    message: str = ""
    kind: Optional[ErrorKind] = None

    def to_wire(self) -> WireValue:
        """Render the event the way the untyped event channel carries it."""

        if self.type is EventType.DATA:
            return bytes(self.data)
        if self.type is EventType.ERROR:
            return f"{ERROR_PREFIX}{self.message}"
        return self.type.value

    @classmethod
    def from_wire(cls, value: WireValue) -> "Event":
        if isinstance(value, (bytes, bytearray, memoryview)):
            return data_event(value)
        if not isinstance(value, str):
            raise ValueError(f"unsupported event value: {value!r}")
        if value == EventType.CONNECTED.value:
            return connected_event()
        if value == EventType.DISCONNECTED.value:
            return disconnected_event()
        if value.startswith(ERROR_PREFIX):
            return error_event(value[len(ERROR_PREFIX):])
        raise ValueError(f"unknown event sentinel: {value!r}")

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"event": self.type.value}
        if self.type is EventType.DATA:
            payload["data_b64"] = base64.b64encode(self.data).decode("ascii")
        elif self.type is EventType.ERROR:
            payload["reason"] = self.message
            if self.kind is not None:
                payload["code"] = self.kind.value
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        try:
            event_type = EventType(data.get("event"))
        except Exception as exc:
            raise ValueError(f"unknown event: {data!r}") from exc
        if event_type is EventType.DATA:
            return data_event(base64.b64decode(data.get("data_b64") or ""))
        if event_type is EventType.ERROR:
            code = data.get("code")
            return error_event(
                str(data.get("reason", "")),
                kind=ErrorKind(code) if code else None,
            )
        return cls(type=event_type)


def connected_event() -> Event:
    return Event(type=EventType.CONNECTED)


def disconnected_event() -> Event:
    return Event(type=EventType.DISCONNECTED)


def data_event(payload: Union[bytes, bytearray, memoryview]) -> Event:
    # Always detach from the caller's buffer.
    return Event(type=EventType.DATA, data=bytes(payload))


def error_event(message: str, *, kind: Optional[ErrorKind] = None) -> Event:
    return Event(type=EventType.ERROR, message=message, kind=kind)


__all__ = [
    "ERROR_PREFIX",
    "ErrorKind",
    "Event",
    "EventType",
    "WireValue",
    "connected_event",
    "data_event",
    "disconnected_event",
    "error_event",
]
