from pydantic import BaseModel, Field
from typing import List, Optional


class TCPConfigPayload(BaseModel):
    host: str = Field("", description="Hostname or IP address of the Modbus TCP server")
    port: int = Field(0, description="TCP port, usually 502")


class RTUConfigPayload(BaseModel):
    port: str = Field("", description="Serial device, e.g. /dev/ttyUSB0 or COM3")
    baud_rate: int = 9600
    data_bits: int = 8
    parity: str = "N"
    stop_bits: int = 1


class ConnectionRequest(BaseModel):
    mode: Optional[str] = Field("", description="'tcp' or 'rtu'; inferred from the blocks given when empty")
    slave_id: int = Field(0, description="Modbus unit identifier, 0-255")
    tcp: Optional[TCPConfigPayload] = None
    rtu: Optional[RTUConfigPayload] = None
    host: str = Field("", description="Legacy flat TCP host, used when no tcp block is given")
    port: int = Field(0, description="Legacy flat TCP port, used when no tcp block is given")


class AddressInfo(BaseModel):
    register_type: int = Field(0, description="0=default/holding, 1=coil, 2=discrete input, 3=input register, 4=holding register")
    address: int = Field(..., ge=0, le=0xFFFF)


class ReadRequest(BaseModel):
    ids: List[AddressInfo] = Field(..., description="Registers to read, one element each")


class ValueDetail(BaseModel):
    decimal: int
    bytes: List[str]


class WriteItem(BaseModel):
    register_type: int = 0
    address: int = Field(..., ge=0, le=0xFFFF)
    value: int = Field(..., ge=0, le=0xFFFF)


class WriteRequest(BaseModel):
    items: List[WriteItem] = Field(..., description="Single-element writes, executed in order")


class WriteResult(BaseModel):
    register_type: int
    address: int
    status: str  # "ok" or "error"
    error: Optional[str] = None


class WriteResponse(BaseModel):
    results: List[WriteResult]


class StatusResponse(BaseModel):
    connected: bool
    mode: Optional[str] = None
    last_alive: Optional[str] = None
    last_error: Optional[str] = None


class SerialPortsResponse(BaseModel):
    ports: List[str]
