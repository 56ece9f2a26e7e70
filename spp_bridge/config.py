"""Configuration model for the SPP bridge."""
from __future__ import annotations

from dataclasses import dataclass
import os
import sys

# Standard Serial Port Profile service class identifier.
SPP_UUID = "00001101-0000-1000-8000-00805F9B34FB"

DEFAULT_SERVICE_NAME = "BluetoothChat"
DEFAULT_READ_BUFFER_SIZE = 1024
DEFAULT_EVENT_QUEUE_SIZE = 1024


# ``slots`` support for ``dataclasses`` was added in Python 3.10. Keep using
# slots where available, but remain compatible with Python 3.9.
_DATACLASS_KWARGS = {"slots": True} if sys.version_info >= (3, 10) else {}

_FALSE_VALUES = {"0", "false", "False"}


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default) not in _FALSE_VALUES


@dataclass(**_DATACLASS_KWARGS)
class BridgeConfig:
    bluetooth_channel: int = 1
    service_name: str = DEFAULT_SERVICE_NAME
    service_uuid: str = SPP_UUID
    read_buffer_size: int = DEFAULT_READ_BUFFER_SIZE
    event_queue_size: int = DEFAULT_EVENT_QUEUE_SIZE
    join_timeout_s: float = 2.0
    enable_control: bool = True
    control_host: str = "127.0.0.1"
    control_port: int = 7878
    control_send_timeout_s: float = 5.0
    autostart: bool = False

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        return cls(
            bluetooth_channel=int(os.environ.get("SPP_BRIDGE_BT_CHANNEL", "1")),
            service_name=os.environ.get("SPP_BRIDGE_SERVICE_NAME", DEFAULT_SERVICE_NAME),
            service_uuid=os.environ.get("SPP_BRIDGE_SERVICE_UUID") or SPP_UUID,
            read_buffer_size=int(
                os.environ.get("SPP_BRIDGE_READ_BUFFER", str(DEFAULT_READ_BUFFER_SIZE))
            ),
            event_queue_size=int(
                os.environ.get("SPP_BRIDGE_EVENT_QUEUE", str(DEFAULT_EVENT_QUEUE_SIZE))
            ),
            join_timeout_s=float(os.environ.get("SPP_BRIDGE_JOIN_TIMEOUT", "2.0")),
            enable_control=_env_flag("SPP_BRIDGE_ENABLE_CONTROL", "1"),
            control_host=os.environ.get("SPP_BRIDGE_CONTROL_HOST", "127.0.0.1"),
            control_port=int(os.environ.get("SPP_BRIDGE_CONTROL_PORT", "7878")),
            control_send_timeout_s=float(os.environ.get("SPP_BRIDGE_CONTROL_SEND_TIMEOUT", "5.0")),
            autostart=_env_flag("SPP_BRIDGE_AUTOSTART", "0"),
        )


__all__ = [
    "BridgeConfig",
    "SPP_UUID",
    "DEFAULT_EVENT_QUEUE_SIZE",
    "DEFAULT_SERVICE_NAME",
    "DEFAULT_READ_BUFFER_SIZE",
]
