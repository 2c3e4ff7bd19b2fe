import threading
from datetime import datetime
from typing import Optional

from modbus_web.app.config import settings
from modbus_web.app.core.modbus_exceptions import (
    ReadOnlyRegisterError, RegisterValueError, TransportError
)
from modbus_web.app.core.transport import ModbusHandle, open_handle
from modbus_web.app.models.modbus_config import ModbusConfig
from modbus_web.app.models.register_type import COIL_OFF, COIL_ON, RegisterType
from modbus_web.app.models.session import SessionStatus
from modbus_web.app.utilities.telemetry import logger

RECONNECT_COOLDOWN = settings.reconnect_cooldown
REGISTER_QUANTITY = 1
MAX_REGISTER_VALUE = 0xFFFF


def _now() -> datetime:
    return datetime.now().astimezone()


class ModbusSession:
    """
    One client's Modbus link and its health.

    Two locks: `_handle_lock` serializes everything touching the link
    (reconnect, reads, writes, close); `_status_lock` guards the small status
    record so status reads never wait behind a slow request. The two are never
    held at the same time.
    """

    def __init__(self, handle: Optional[ModbusHandle], config: Optional[ModbusConfig] = None,
                 reconnect_cooldown: float = RECONNECT_COOLDOWN):
        self._handle_lock = threading.Lock()
        self._status_lock = threading.Lock()

        self._handle = handle
        self._closed = False
        self.config = config if config is not None else handle.config
        self.reconnect_cooldown = reconnect_cooldown

        self._mode = self.config.mode
        self._connected = False
        self._last_alive: Optional[datetime] = None
        self._last_error = ""
        self._last_reconnect_attempt: Optional[datetime] = None

    def __repr__(self):
        return f"<ModbusSession {self.config.describe()} connected={self._connected}>"

    # Status

    def mark_success(self) -> None:
        with self._status_lock:
            self._connected = True
            self._last_alive = _now()
            self._last_error = ""

    def mark_failure(self, error: Optional[BaseException] = None) -> None:
        with self._status_lock:
            self._connected = False
            if error is not None:
                self._last_error = str(error)

        logger.debug("Modbus session marked as failed", extra={
            "component": "session",
            "target": self.config.describe(),
            "error": str(error) if error is not None else None
        })

    def status(self) -> SessionStatus:
        with self._status_lock:
            return SessionStatus(
                connected=self._connected,
                mode=self._mode,
                last_alive=self._last_alive,
                last_error=self._last_error
            )

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_alive(self) -> Optional[datetime]:
        with self._status_lock:
            return self._last_alive

    # Lifecycle

    def reconnect(self) -> None:
        """Open a fresh link from the stored configuration and swap it in"""
        with self._handle_lock:
            if self._closed:
                raise TransportError("session closed")

            logger.info("Reconnecting Modbus session", extra={
                "component": "session",
                "target": self.config.describe()
            })

            try:
                new_handle = open_handle(self.config)
            except Exception as e:
                error = e
            else:
                error = None
                previous, self._handle = self._handle, new_handle
                if previous is not None and not previous.closed:
                    previous.close()
                self.config = new_handle.config

        # Status is updated once the handle lock is released
        with self._status_lock:
            self._last_reconnect_attempt = _now()
            if error is None:
                self._mode = new_handle.mode

        if error is not None:
            self.mark_failure(error)
            logger.warning("Modbus reconnect failed", extra={
                "component": "session",
                "target": self.config.describe(),
                "error": str(error)
            })
            raise error

        self.mark_success()

    def ensure_connection(self, max_idle: float = 0) -> bool:
        """
        Reconnect when the session is down or has been idle for `max_idle`
        seconds (0 disables the idle check). Attempts are rate limited by
        `reconnect_cooldown`. Returns True when a reconnect was attempted.
        """
        if self._closed:
            raise TransportError("session closed")

        with self._status_lock:
            connected = self._connected
            last_alive = self._last_alive
            last_attempt = self._last_reconnect_attempt

        now = _now()
        if connected and last_alive is not None and (
                max_idle <= 0 or (now - last_alive).total_seconds() < max_idle):
            return False

        if last_attempt is not None and (now - last_attempt).total_seconds() < self.reconnect_cooldown:
            logger.debug("Skipping reconnect, cooldown active", extra={
                "component": "session",
                "target": self.config.describe(),
                "cooldown_seconds": self.reconnect_cooldown
            })
            return False

        self.reconnect()
        return True

    def close(self) -> None:
        with self._handle_lock:
            self._closed = True
            handle, self._handle = self._handle, None
            if handle is not None:
                handle.close()
                logger.debug("Modbus session closed", extra={
                    "component": "session",
                    "target": self.config.describe()
                })

    # Register access

    def read_register(self, register_type, address: int) -> bytes:
        """Read one element of the given table and return its raw payload"""
        with self._handle_lock:
            handle = self._require_handle()
            kind = RegisterType.parse(register_type).effective
            logger.debug(f"Reading {kind.name.lower()} {address}", extra={
                "component": "session",
                "function_code": kind.read_function_code,
                "address": address
            })

            if kind.is_bit:
                if kind is RegisterType.COIL:
                    return handle.read_coils(address, REGISTER_QUANTITY)
                return handle.read_discrete_inputs(address, REGISTER_QUANTITY)
            if kind is RegisterType.INPUT_REGISTER:
                return handle.read_input_registers(address, REGISTER_QUANTITY)
            return handle.read_holding_registers(address, REGISTER_QUANTITY)

    def write_single(self, register_type, address: int, value: int) -> None:
        """Write one coil or holding register; the other tables are read-only"""
        kind = RegisterType.parse(register_type).effective
        if not kind.is_writable:
            raise ReadOnlyRegisterError(address=address)
        if not 0 <= value <= MAX_REGISTER_VALUE:
            raise RegisterValueError(f"value {value} does not fit in 16 bits", address=address)

        with self._handle_lock:
            handle = self._require_handle()
            logger.debug(f"Writing {kind.name.lower()} {address}", extra={
                "component": "session",
                "function_code": kind.write_function_code,
                "address": address
            })
            if kind is RegisterType.COIL:
                handle.write_single_coil(address, COIL_ON if value else COIL_OFF)
            else:
                handle.write_single_register(address, value)

    def _require_handle(self) -> ModbusHandle:
        if self._handle is None:
            raise TransportError("modbus client not initialized")
        return self._handle


def connect(config: ModbusConfig) -> ModbusSession:
    """Open the link described by `config` and return a connected session"""
    handle = open_handle(config)
    session = ModbusSession(handle)
    session.mark_success()
    return session


def close_session(session: Optional[ModbusSession]) -> None:
    if session is not None:
        session.close()
