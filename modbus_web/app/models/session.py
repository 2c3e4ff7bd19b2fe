from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


@dataclass(frozen=True)
class SessionStatus:
    """Point-in-time snapshot of a session's health"""
    connected: bool
    mode: str
    last_alive: Optional[datetime] = None
    last_error: str = ""

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.CONNECTED if self.connected else ConnectionState.DISCONNECTED

    def to_dict(self) -> Dict[str, Any]:
        """Status payload; last_alive and last_error are left out when unset"""
        payload: Dict[str, Any] = {
            "connected": self.connected,
            "mode": self.mode,
        }
        if self.last_alive is not None:
            payload["last_alive"] = self.last_alive.isoformat(timespec="seconds")
        if self.last_error:
            payload["last_error"] = self.last_error
        return payload
