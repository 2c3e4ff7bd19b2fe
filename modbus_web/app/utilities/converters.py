from modbus_web.app.core.register_io import bytes_to_hex_strings, decode_register_value
from modbus_web.app.models.session import SessionStatus

from modbus_web.app.schemas.connection import StatusResponse, ValueDetail, WriteResult


def convert_payload_to_value_detail(data: bytes) -> ValueDetail:
    """Convert a raw register payload to API response format"""
    return ValueDetail(
        decimal=decode_register_value(data),
        bytes=bytes_to_hex_strings(data)
    )


def convert_status_to_response(session_status: SessionStatus) -> StatusResponse:
    """Convert a SessionStatus snapshot to API response model"""
    return StatusResponse(**session_status.to_dict())


def convert_write_outcome_to_result(register_type: int, address: int, error: Exception = None) -> WriteResult:
    if error is None:
        return WriteResult(register_type=register_type, address=address, status="ok")
    return WriteResult(register_type=register_type, address=address, status="error", error=str(error))
