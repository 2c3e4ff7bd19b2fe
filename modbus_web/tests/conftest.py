"""
Shared fixtures for the modbus_web test suite.

FakeHandle stands in for a live ModbusHandle: it serves reads from in-memory
tables, records every call and can be told to fail the next N requests.
"""
import pytest
from unittest.mock import patch

from modbus_web.app.core.modbus_exceptions import TransportError
from modbus_web.app.core.session import ModbusSession
from modbus_web.app.core.transport import pack_bits, pack_registers
from modbus_web.app.models.modbus_config import ModbusConfig, TCPConfig
from modbus_web.app.models.register_type import COIL_ON


def make_tcp_config(host="127.0.0.1", port=502, slave_id=1) -> ModbusConfig:
    return ModbusConfig(mode="tcp", slave_id=slave_id, tcp=TCPConfig(host=host, port=port))


class FakeHandle:
    """In-memory replacement for ModbusHandle"""

    def __init__(self, config=None, tables=None, fail_reads=0, fail_writes=0):
        self.config = config or make_tcp_config()
        self.tables = tables if tables is not None else new_tables()
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.calls = []
        self.close_count = 0

    @property
    def mode(self):
        return self.config.mode

    @property
    def closed(self):
        return self.close_count > 0

    def close(self):
        self.close_count += 1

    def read_coils(self, address, quantity=1):
        self._before("read_coils", address)
        return pack_bits([bool(self.tables["coils"].get(address, False))])

    def read_discrete_inputs(self, address, quantity=1):
        self._before("read_discrete_inputs", address)
        return pack_bits([bool(self.tables["discrete_inputs"].get(address, False))])

    def read_input_registers(self, address, quantity=1):
        self._before("read_input_registers", address)
        return pack_registers([self.tables["input_registers"].get(address, 0)])

    def read_holding_registers(self, address, quantity=1):
        self._before("read_holding_registers", address)
        return pack_registers([self.tables["holding_registers"].get(address, 0)])

    def write_single_coil(self, address, value):
        self._before("write_single_coil", address, value)
        self.tables["coils"][address] = value == COIL_ON

    def write_single_register(self, address, value):
        self._before("write_single_register", address, value)
        self.tables["holding_registers"][address] = value

    def _before(self, name, address, *args):
        self.calls.append((name, address) + args)
        if self.closed:
            raise TransportError("modbus client is closed", address=address)
        if name.startswith("read") and self.fail_reads:
            self.fail_reads -= 1
            raise TransportError(f"{name} at address {address} failed: timeout", address=address)
        if name.startswith("write") and self.fail_writes:
            self.fail_writes -= 1
            raise TransportError(f"{name} at address {address} failed: timeout", address=address)


def new_tables():
    return {
        "coils": {},
        "discrete_inputs": {},
        "input_registers": {},
        "holding_registers": {},
    }


class HandleFactory:
    """
    Replacement for open_handle. Every handle it opens shares one set of
    tables, like reconnecting to the same device.
    """

    def __init__(self):
        self.tables = new_tables()
        self.opened = []
        self.configs = []
        self.failures = 0
        self.fail_reads_per_handle = 0
        self.fail_writes_per_handle = 0

    def __call__(self, config):
        self.configs.append(config)
        if self.failures:
            self.failures -= 1
            raise TransportError("failed to connect to tcp://127.0.0.1:502: connection refused")
        handle = FakeHandle(
            config=config,
            tables=self.tables,
            fail_reads=self.fail_reads_per_handle,
            fail_writes=self.fail_writes_per_handle
        )
        self.opened.append(handle)
        return handle

    @property
    def open_count(self):
        return len(self.configs)


@pytest.fixture
def tcp_config():
    return make_tcp_config()


@pytest.fixture
def handle_factory():
    factory = HandleFactory()
    with patch("modbus_web.app.core.session.open_handle", new=factory):
        yield factory


@pytest.fixture
def fake_handle(handle_factory):
    return FakeHandle(tables=handle_factory.tables)


@pytest.fixture
def session(fake_handle):
    """A connected session over a FakeHandle; reconnects go through handle_factory"""
    modbus_session = ModbusSession(fake_handle)
    modbus_session.mark_success()
    return modbus_session
