from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional

MODE_TCP = "tcp"
MODE_RTU = "rtu"

DEFAULT_BAUD_RATE = 9600
DEFAULT_DATA_BITS = 8
DEFAULT_PARITY = "N"
DEFAULT_STOP_BITS = 1


@dataclass()
class TCPConfig:
    """Modbus TCP endpoint"""
    host: str = ""
    port: int = 0

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass()
class RTUConfig:
    """Serial line settings for Modbus RTU"""
    port: str = ""  # device path, e.g. /dev/ttyUSB0 or COM3
    baud_rate: int = 0
    data_bits: int = 0
    parity: str = ""
    stop_bits: int = 0

    def with_defaults(self) -> 'RTUConfig':
        """Return a copy where zero/blank fields carry the standard serial defaults"""
        return RTUConfig(
            port=self.port,
            baud_rate=self.baud_rate or DEFAULT_BAUD_RATE,
            data_bits=self.data_bits or DEFAULT_DATA_BITS,
            parity=(self.parity or DEFAULT_PARITY).strip().upper() or DEFAULT_PARITY,
            stop_bits=self.stop_bits or DEFAULT_STOP_BITS,
        )


@dataclass()
class ModbusConfig:
    """
    Connection configuration as received from a client.

    `host`/`port` are the legacy flat TCP fields; they only apply when no
    nested `tcp` block is present. `normalize_config` turns this into the
    canonical form stored on a session.
    """
    mode: str = ""
    slave_id: int = 0
    tcp: Optional[TCPConfig] = None
    rtu: Optional[RTUConfig] = None
    host: str = ""  # legacy fallback
    port: int = 0  # legacy fallback

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ModbusConfig':
        """Build a configuration from a wire document (missing keys take defaults)"""
        tcp_data = data.get("tcp")
        rtu_data = data.get("rtu")
        return cls(
            mode=data.get("mode") or "",
            slave_id=data.get("slave_id", 0),
            tcp=TCPConfig(**tcp_data) if tcp_data is not None else None,
            rtu=RTUConfig(**rtu_data) if rtu_data is not None else None,
            host=data.get("host") or "",
            port=data.get("port") or 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def describe(self) -> str:
        """Short human readable target, used in log messages"""
        if self.mode == MODE_RTU and self.rtu is not None:
            return f"rtu://{self.rtu.port}"
        tcp = self.tcp or TCPConfig(host=self.host, port=self.port)
        return f"tcp://{tcp.address}"
