"""
Register reads and writes with a single reconnect-and-retry.

An operation is tried once. Failures that a new link cannot fix (read-only
tables, unknown register types, out of range values) are reported straight
away. Any other failure triggers exactly one reconnect; if that succeeds the
operation is retried exactly once more.
"""

from typing import Callable, List, TypeVar

from modbus_web.app.core.modbus_exceptions import (
    InvalidRegisterTypeError, ReadOnlyRegisterError, ReconnectFailedError, RegisterValueError
)
from modbus_web.app.core.session import ModbusSession
from modbus_web.app.utilities.telemetry import logger

T = TypeVar("T")

# Errors that come from the request itself rather than from the link
NON_RETRYABLE_ERRORS = (ReadOnlyRegisterError, InvalidRegisterTypeError, RegisterValueError)


def read_with_auto_reconnect(session: ModbusSession, register_type, address: int) -> bytes:
    return _with_auto_reconnect(
        session, "read", address,
        lambda: session.read_register(register_type, address)
    )


def write_with_auto_reconnect(session: ModbusSession, register_type, address: int, value: int) -> None:
    _with_auto_reconnect(
        session, "write", address,
        lambda: session.write_single(register_type, address, value)
    )


def _with_auto_reconnect(session: ModbusSession, operation: str, address: int, call: Callable[[], T]) -> T:
    try:
        result = call()
    except NON_RETRYABLE_ERRORS as e:
        session.mark_failure(e)
        raise
    except Exception as first_error:
        logger.warning(f"Modbus {operation} failed, reconnecting", extra={
            "component": "register_io",
            "operation": operation,
            "address": address,
            "error": str(first_error)
        })
        try:
            session.reconnect()
        except Exception as reconnect_error:
            session.mark_failure(reconnect_error)
            raise ReconnectFailedError(operation, first_error, reconnect_error, address=address) from reconnect_error

        try:
            result = call()
        except Exception as second_error:
            session.mark_failure(second_error)
            logger.error(f"Modbus {operation} failed after reconnect", extra={
                "component": "register_io",
                "operation": operation,
                "address": address,
                "error": str(second_error)
            })
            raise
    session.mark_success()
    return result


def decode_register_value(data: bytes) -> int:
    """Empty payload reads as 0, one byte is widened, otherwise the first two bytes are big-endian"""
    if len(data) == 0:
        return 0
    if len(data) == 1:
        return data[0]
    return int.from_bytes(data[:2], "big")


def bytes_to_hex_strings(data: bytes) -> List[str]:
    return [f"0x{byte:02x}" for byte in data]
