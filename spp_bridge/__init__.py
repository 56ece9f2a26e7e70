"""Single-peer Bluetooth serial port bridge."""
from __future__ import annotations

from typing import Any, Iterable

__all__ = ["BridgeConfig", "BridgeService", "CommandHandler", "ConnectionManager"]


def __getattr__(name: str) -> Any:  # pragma: no cover - simple import proxy
    if name == "BridgeConfig":
        from .config import BridgeConfig  # local import for lazy loading

        return BridgeConfig
    if name == "BridgeService":
        from .gateway import BridgeService  # local import for lazy loading

        return BridgeService
    if name == "CommandHandler":
        from .commands import CommandHandler  # local import for lazy loading

        return CommandHandler
    if name == "ConnectionManager":
        from .manager import ConnectionManager  # local import for lazy loading

        return ConnectionManager
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> Iterable[str]:  # pragma: no cover - introspection helper
    return sorted(set(globals()) | set(__all__))
