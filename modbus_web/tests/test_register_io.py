"""
Tests for the single reconnect-and-retry policy around register I/O
"""

import pytest

from modbus_web.app.core.connection_cache import ConnectionCache
from modbus_web.app.core.modbus_exceptions import (
    InvalidRegisterTypeError, ReadOnlyRegisterError, ReconnectFailedError, TransportError
)
from modbus_web.app.core.register_io import (
    bytes_to_hex_strings, decode_register_value, read_with_auto_reconnect, write_with_auto_reconnect
)
from modbus_web.app.models.register_type import RegisterType


class TestReadWithAutoReconnect:
    """Test the read side of the retry policy"""

    def test_success_marks_session_alive(self, session, fake_handle, handle_factory):
        fake_handle.tables["holding_registers"][1] = 0x0102
        session.mark_failure(TransportError("stale"))

        assert read_with_auto_reconnect(session, RegisterType.HOLDING_REGISTER, 1) == b"\x01\x02"

        assert session.status().connected
        assert handle_factory.open_count == 0

    def test_failure_reconnects_once_and_retries(self, session, fake_handle, handle_factory):
        fake_handle.fail_reads = 1
        handle_factory.tables["holding_registers"][5] = 42

        assert read_with_auto_reconnect(session, RegisterType.HOLDING_REGISTER, 5) == b"\x00\x2a"

        assert handle_factory.open_count == 1
        assert fake_handle.close_count == 1
        assert handle_factory.opened[0].calls == [("read_holding_registers", 5)]
        assert session.status().connected
        assert session.status().last_error == ""

    def test_reconnect_failure_reports_both_errors(self, session, fake_handle, handle_factory):
        fake_handle.fail_reads = 1
        handle_factory.failures = 1

        with pytest.raises(ReconnectFailedError) as exc_info:
            read_with_auto_reconnect(session, RegisterType.COIL, 3)

        message = str(exc_info.value)
        assert message.startswith("read failed (read_coils at address 3 failed: timeout)")
        assert "and reconnect failed: failed to connect" in message
        assert isinstance(exc_info.value, TransportError)

        status = session.status()
        assert not status.connected
        assert "connection refused" in status.last_error

    def test_retry_failure_is_not_retried_again(self, session, fake_handle, handle_factory):
        fake_handle.fail_reads = 1
        handle_factory.fail_reads_per_handle = 1

        with pytest.raises(TransportError, match="read_input_registers at address 2 failed") as exc_info:
            read_with_auto_reconnect(session, RegisterType.INPUT_REGISTER, 2)

        assert not isinstance(exc_info.value, ReconnectFailedError)
        assert handle_factory.open_count == 1
        assert len(handle_factory.opened[0].calls) == 1
        assert not session.status().connected

    def test_deleted_session_does_not_reopen_link(self, session, fake_handle, handle_factory):
        cache = ConnectionCache()
        cache.save("user-1", session)
        held = cache.require("user-1")

        cache.delete("user-1")

        with pytest.raises(TransportError, match="session closed"):
            read_with_auto_reconnect(held, RegisterType.HOLDING_REGISTER, 0)

        assert handle_factory.open_count == 0
        assert fake_handle.close_count == 1
        assert not held.status().connected

    def test_invalid_register_type_is_not_retried(self, session, handle_factory):
        with pytest.raises(InvalidRegisterTypeError):
            read_with_auto_reconnect(session, 7, 0)

        assert handle_factory.open_count == 0


class TestWriteWithAutoReconnect:
    """Test the write side of the retry policy"""

    def test_coil_write_sends_wire_sentinel(self, session, fake_handle):
        write_with_auto_reconnect(session, RegisterType.COIL, 12, 1)

        assert fake_handle.calls == [("write_single_coil", 12, 0xFF00)]
        assert fake_handle.tables["coils"][12] is True

    def test_coil_write_zero_is_off(self, session, fake_handle):
        write_with_auto_reconnect(session, RegisterType.COIL, 12, 0)

        assert fake_handle.calls == [("write_single_coil", 12, 0x0000)]

    @pytest.mark.parametrize("value", [1, 0])
    def test_coil_reads_back_written_value(self, session, value):
        write_with_auto_reconnect(session, RegisterType.COIL, 3, 1 - value)
        write_with_auto_reconnect(session, RegisterType.COIL, 3, value)

        assert decode_register_value(read_with_auto_reconnect(session, RegisterType.COIL, 3)) == value

    def test_holding_write(self, session, fake_handle):
        write_with_auto_reconnect(session, RegisterType.DEFAULT, 40, 0xFFFF)

        assert fake_handle.tables["holding_registers"][40] == 0xFFFF
        assert session.status().connected

    @pytest.mark.parametrize("register_type", [RegisterType.DISCRETE_INPUT, RegisterType.INPUT_REGISTER])
    def test_read_only_write_never_reconnects(self, session, fake_handle, handle_factory, register_type):
        with pytest.raises(ReadOnlyRegisterError):
            write_with_auto_reconnect(session, register_type, 0, 1)

        assert handle_factory.open_count == 0
        assert fake_handle.calls == []
        status = session.status()
        assert not status.connected
        assert status.last_error == "register type is read-only"

    def test_failed_write_is_retried_on_new_link(self, session, fake_handle, handle_factory):
        fake_handle.fail_writes = 1

        write_with_auto_reconnect(session, RegisterType.HOLDING_REGISTER, 7, 99)

        assert handle_factory.opened[0].calls == [("write_single_register", 7, 99)]
        assert handle_factory.tables["holding_registers"][7] == 99

    def test_write_reconnect_failure(self, session, fake_handle, handle_factory):
        fake_handle.fail_writes = 1
        handle_factory.failures = 1

        with pytest.raises(ReconnectFailedError, match="^write failed"):
            write_with_auto_reconnect(session, RegisterType.HOLDING_REGISTER, 7, 99)


class TestDecoding:
    """Test payload decoding helpers"""

    def test_decode_empty_payload(self):
        assert decode_register_value(b"") == 0

    def test_decode_single_byte(self):
        assert decode_register_value(b"\x01") == 1

    def test_decode_big_endian_word(self):
        assert decode_register_value(b"\x12\x34") == 0x1234

    def test_decode_uses_first_two_bytes(self):
        assert decode_register_value(b"\x00\x01\xff\xff") == 1

    def test_hex_strings(self):
        assert bytes_to_hex_strings(b"\x00\x0a\xff") == ["0x00", "0x0a", "0xff"]
        assert bytes_to_hex_strings(b"") == []
