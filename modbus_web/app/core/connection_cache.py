import threading
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from modbus_web.app.config import settings
from modbus_web.app.core.modbus_exceptions import SessionNotFoundError
from modbus_web.app.core.session import ModbusSession, close_session
from modbus_web.app.utilities.telemetry import logger

IDLE_EVICTION_THRESHOLD = settings.idle_eviction_threshold
SWEEP_INTERVAL = settings.sweep_interval


class ConnectionCache:
    """
    Registry of live Modbus sessions keyed by the caller's session key.

    One lock serializes every map access. Sessions leaving the map are
    detached under the lock and closed after it is released, so a close
    waiting on a slow request never stalls other callers.
    """

    def __init__(self):
        self._sessions: Dict[str, ModbusSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._sessions

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._sessions.keys())

    def save(self, key: str, session: ModbusSession) -> None:
        """Store `session`; an existing entry is replaced without being closed"""
        with self._lock:
            self._sessions[key] = session

        logger.debug("Session saved", extra={
            "component": "connection_cache",
            "session_key": key
        })

    def get(self, key: str) -> Tuple[Optional[ModbusSession], bool]:
        with self._lock:
            session = self._sessions.get(key)
        return session, session is not None

    def require(self, key: str) -> ModbusSession:
        session, found = self.get(key)
        if not found:
            raise SessionNotFoundError(session_key=key)
        return session

    def delete(self, key: str) -> None:
        """Close and forget the session for `key`; unknown keys are ignored"""
        with self._lock:
            session = self._sessions.pop(key, None)
        if session is None:
            return

        close_session(session)
        logger.info("Session deleted", extra={
            "component": "connection_cache",
            "session_key": key
        })

    def sweep(self, idle_threshold: float = IDLE_EVICTION_THRESHOLD) -> int:
        """Close and drop sessions not alive within `idle_threshold` seconds; returns how many"""
        now = datetime.now().astimezone()

        with self._lock:
            evicted = {
                key: session for key, session in self._sessions.items()
                if session.last_alive is None
                or (now - session.last_alive).total_seconds() > idle_threshold
            }
            for key in evicted:
                del self._sessions[key]

        # Best effort; the session is abandoned either way
        for key, session in evicted.items():
            try:
                session.close()
            except Exception as e:
                logger.warning("Error closing idle session", extra={
                    "component": "connection_cache",
                    "session_key": key,
                    "error": str(e)
                })

        if evicted:
            logger.info(f"Evicted {len(evicted)} idle sessions", extra={
                "component": "connection_cache",
                "evicted": len(evicted),
                "idle_threshold_seconds": idle_threshold
            })
        return len(evicted)

    def close_all(self) -> None:
        with self._lock:
            sessions, self._sessions = self._sessions, {}

        for key, session in sessions.items():
            try:
                session.close()
            except Exception as e:
                logger.warning("Error closing session during shutdown", extra={
                    "component": "connection_cache",
                    "session_key": key,
                    "error": str(e)
                })

        logger.info("All sessions closed", extra={
            "component": "connection_cache",
            "closed": len(sessions)
        })


class CacheSweeper(threading.Thread):
    """Background thread evicting idle sessions from a ConnectionCache"""

    def __init__(self, cache: ConnectionCache, interval: float = SWEEP_INTERVAL,
                 idle_threshold: float = IDLE_EVICTION_THRESHOLD):
        super().__init__(daemon=True, name="ModbusCacheSweeper")
        self.cache = cache
        self.interval = interval
        self.idle_threshold = idle_threshold
        self._stop_event = threading.Event()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the thread to stop and wait for it"""
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout)

    def run(self) -> None:
        logger.debug("Cache sweeper started", extra={
            "component": "connection_cache",
            "interval_seconds": self.interval
        })

        while not self._stop_event.wait(self.interval):
            try:
                self.cache.sweep(self.idle_threshold)
            except Exception as e:
                logger.error(f"Cache sweep failed: {e}", extra={
                    "component": "connection_cache",
                    "error": str(e)
                }, exc_info=True)

        logger.debug("Cache sweeper stopped", extra={
            "component": "connection_cache"
        })
