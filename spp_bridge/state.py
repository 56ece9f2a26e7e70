"""Connection lifecycle state of the bridge."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ServerState(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    CONNECTED = "CONNECTED"


@dataclass(frozen=True)
class StateSnapshot:
    """Point-in-time view of the connection manager."""

    state: ServerState
    peer: Optional[str] = None

    @property
    def listening(self) -> bool:
        return self.state is ServerState.LISTENING

    @property
    def connected(self) -> bool:
        return self.state is ServerState.CONNECTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "peer": self.peer,
            "listening": self.listening,
            "connected": self.connected,
        }


__all__ = ["ServerState", "StateSnapshot"]
