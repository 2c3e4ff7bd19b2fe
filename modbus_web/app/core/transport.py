import struct
import time
from typing import Callable, Iterable

from pymodbus import FramerType
from pymodbus.client import ModbusSerialClient, ModbusTcpClient
from pymodbus.exceptions import ModbusException

from modbus_web.app.config import settings
from modbus_web.app.core.modbus_exceptions import (
    ConfigValidationError, RegisterValueError, TransportError
)
from modbus_web.app.models.modbus_config import (
    MODE_RTU, MODE_TCP, ModbusConfig, RTUConfig, TCPConfig
)
from modbus_web.app.models.register_type import COIL_OFF, COIL_ON
from modbus_web.app.utilities.telemetry import logger

CONNECT_TIMEOUT = settings.connect_timeout
TRANSPORT_IDLE_TIMEOUT = settings.transport_idle_timeout
MIN_SLAVE_ID = 0
MAX_SLAVE_ID = 255


def normalize_mode(mode: str) -> str:
    return (mode or "").strip().lower()


def infer_mode(config: ModbusConfig) -> str:
    """Explicit mode wins; otherwise TCP fields imply tcp, an RTU block implies rtu, tcp by default"""
    mode = normalize_mode(config.mode)
    if mode:
        return mode
    if config.tcp is not None or config.host or config.port:
        return MODE_TCP
    if config.rtu is not None:
        return MODE_RTU
    return MODE_TCP


def normalize_config(config: ModbusConfig) -> ModbusConfig:
    """
    Validate a client configuration and return its canonical form.

    The canonical form has an explicit mode, only the block for that mode,
    the legacy host/port folded into the TCP block and serial defaults filled in.
    """
    mode = infer_mode(config)

    slave_id = config.slave_id
    if isinstance(slave_id, bool) or not isinstance(slave_id, int) \
            or not MIN_SLAVE_ID <= slave_id <= MAX_SLAVE_ID:
        raise ConfigValidationError(f"slave_id must be between {MIN_SLAVE_ID} and {MAX_SLAVE_ID}")

    if mode == MODE_TCP:
        tcp = config.tcp if config.tcp is not None else TCPConfig(host=config.host, port=config.port)
        if not tcp.host:
            raise ConfigValidationError("host is required for TCP connections")
        if not tcp.port:
            raise ConfigValidationError("port is required for TCP connections")
        if not 1 <= tcp.port <= 65535:
            raise ConfigValidationError("port must be between 1 and 65535")
        return ModbusConfig(mode=MODE_TCP, slave_id=slave_id,
                            tcp=TCPConfig(host=tcp.host, port=tcp.port))

    if mode == MODE_RTU:
        if config.rtu is None:
            raise ConfigValidationError("rtu configuration is required for RTU connections")
        if not config.rtu.port:
            raise ConfigValidationError("serial port is required for RTU connections")
        return ModbusConfig(mode=MODE_RTU, slave_id=slave_id, rtu=config.rtu.with_defaults())

    raise ConfigValidationError(f"unsupported connection mode {mode!r}")


def pack_bits(bits: Iterable[bool]) -> bytes:
    """Pack coil/discrete states LSB-first, eight per byte, as they travel on the wire"""
    bits = list(bits)
    packed = bytearray((len(bits) + 7) // 8)
    for index, bit in enumerate(bits):
        if bit:
            packed[index // 8] |= 1 << (index % 8)
    return bytes(packed)


def pack_registers(registers: Iterable[int]) -> bytes:
    registers = list(registers)
    return struct.pack(f">{len(registers)}H", *registers)


class ModbusHandle:
    """
    One open Modbus link (TCP socket or serial port) plus the slave it talks to.

    Exposes the single-table primitives with raw byte payloads. Not thread safe;
    callers serialize access (see ModbusSession).
    """

    def __init__(self, client, config: ModbusConfig, idle_timeout: float = TRANSPORT_IDLE_TIMEOUT):
        self._client = client
        self.config = config
        self.idle_timeout = idle_timeout
        self._last_activity = time.monotonic()
        self._closed = False

    @property
    def mode(self) -> str:
        return self.config.mode

    @property
    def slave_id(self) -> int:
        return self.config.slave_id

    @property
    def target(self) -> str:
        return self.config.describe()

    @property
    def closed(self) -> bool:
        return self._closed

    def connect(self) -> None:
        """Open the link; raises TransportError when the device cannot be reached"""
        try:
            connected = self._client.connect()
        except (ModbusException, OSError) as e:
            raise TransportError(f"failed to connect to {self.target}: {e}") from e
        if not connected:
            raise TransportError(f"failed to connect to {self.target}")
        self._last_activity = time.monotonic()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._client.close()
        except (ModbusException, OSError) as e:
            logger.debug("Error while closing Modbus link", extra={
                "component": "transport",
                "target": self.target,
                "error": str(e)
            })

    def read_coils(self, address: int, quantity: int = 1) -> bytes:
        response = self._execute("read coils", self._client.read_coils, address, count=quantity)
        return pack_bits(response.bits[:quantity])

    def read_discrete_inputs(self, address: int, quantity: int = 1) -> bytes:
        response = self._execute("read discrete inputs", self._client.read_discrete_inputs, address, count=quantity)
        return pack_bits(response.bits[:quantity])

    def read_input_registers(self, address: int, quantity: int = 1) -> bytes:
        response = self._execute("read input registers", self._client.read_input_registers, address, count=quantity)
        return pack_registers(response.registers[:quantity])

    def read_holding_registers(self, address: int, quantity: int = 1) -> bytes:
        response = self._execute("read holding registers", self._client.read_holding_registers, address, count=quantity)
        return pack_registers(response.registers[:quantity])

    def write_single_coil(self, address: int, value: int) -> None:
        """Write one coil; `value` is the wire value, 0xFF00 for ON or 0x0000 for OFF"""
        if value not in (COIL_ON, COIL_OFF):
            raise RegisterValueError(f"coil value must be 0xFF00 or 0x0000, got {value:#06x}", address=address)
        self._execute("write single coil", self._client.write_coil, address, value == COIL_ON)

    def write_single_register(self, address: int, value: int) -> None:
        self._execute("write single register", self._client.write_register, address, value)

    def _execute(self, request: str, call: Callable, address: int, *args, **kwargs):
        if self._closed:
            raise TransportError("modbus client is closed", address=address)

        self._expire_idle_link()
        try:
            response = call(address, *args, device_id=self.slave_id, **kwargs)
        except (ModbusException, OSError) as e:
            raise TransportError(f"{request} at address {address} failed: {e}", address=address) from e
        finally:
            self._last_activity = time.monotonic()

        if response.isError():
            raise TransportError(f"{request} at address {address} failed: {response}", address=address)
        return response

    def _expire_idle_link(self) -> None:
        # pymodbus reopens a closed link on the next request
        if self.idle_timeout <= 0:
            return
        idle_for = time.monotonic() - self._last_activity
        if idle_for >= self.idle_timeout:
            logger.debug("Closing idle Modbus link", extra={
                "component": "transport",
                "target": self.target,
                "idle_seconds": round(idle_for, 1)
            })
            self._client.close()


def open_handle(config: ModbusConfig, connect_timeout: float = CONNECT_TIMEOUT,
                idle_timeout: float = TRANSPORT_IDLE_TIMEOUT) -> ModbusHandle:
    """Validate `config` and open the TCP or RTU link it describes"""
    canonical = normalize_config(config)

    if canonical.mode == MODE_TCP:
        handle = _open_tcp(canonical, connect_timeout, idle_timeout)
    else:
        handle = _open_rtu(canonical, connect_timeout, idle_timeout)

    logger.info("Modbus link established", extra={
        "component": "transport",
        "mode": canonical.mode,
        "target": handle.target,
        "slave_id": canonical.slave_id
    })
    return handle


def _open_tcp(config: ModbusConfig, connect_timeout: float, idle_timeout: float) -> ModbusHandle:
    tcp: TCPConfig = config.tcp
    logger.info(f"Connecting to Modbus TCP server at {tcp.address}", extra={
        "component": "transport",
        "host": tcp.host,
        "port": tcp.port,
        "timeout": connect_timeout
    })

    client = ModbusTcpClient(
        host=tcp.host,
        port=tcp.port,
        timeout=connect_timeout,
        retries=0
    )
    handle = ModbusHandle(client, config, idle_timeout)
    handle.connect()
    return handle


def _open_rtu(config: ModbusConfig, connect_timeout: float, idle_timeout: float) -> ModbusHandle:
    rtu: RTUConfig = config.rtu
    logger.info(f"Connecting to Modbus RTU server on {rtu.port}", extra={
        "component": "transport",
        "serial_port": rtu.port,
        "baud_rate": rtu.baud_rate,
        "data_bits": rtu.data_bits,
        "parity": rtu.parity,
        "stop_bits": rtu.stop_bits
    })

    client = ModbusSerialClient(
        port=rtu.port,
        framer=FramerType.RTU,
        baudrate=rtu.baud_rate,
        bytesize=rtu.data_bits,
        parity=rtu.parity,
        stopbits=rtu.stop_bits,
        timeout=connect_timeout,
        retries=0
    )
    handle = ModbusHandle(client, config, idle_timeout)
    handle.connect()
    return handle
