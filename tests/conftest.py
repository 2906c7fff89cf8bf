"""Shared fixtures: a simulated device population behind a fake pymodbus client."""
import types

import pytest
from pymodbus.exceptions import ConnectionException, ModbusIOException

from modbus_sweep.config import validate_config
from modbus_sweep.constants import CONFIG_SCHEMA


def registers_response(*registers):
    return types.SimpleNamespace(registers=list(registers), isError=lambda: False)


def bits_response(*bits):
    # pymodbus pads bit responses to whole bytes
    padded = list(bits) + [False] * (-len(bits) % 8)
    return types.SimpleNamespace(bits=padded, isError=lambda: False)


def exception_response(code, function_code=0x81):
    return types.SimpleNamespace(exception_code=code, function_code=function_code, isError=lambda: True)


MAX_BITS = 2000
MAX_REGISTERS = 125


class FakeClient:
    """Stands in for AsyncModbusSerialClient / AsyncModbusTcpClient.

    ``devices`` maps a device id to a dict keyed by read kind ("coils",
    "discrete", "input", "holding"). A value is a response, or an exception
    to raise. A missing kind answers with an illegal function exception, a
    missing device never answers.
    """

    def __init__(self, devices, connect_ok=True):
        self.devices = devices
        self.connect_ok = connect_ok
        self.connected = False
        self.closed = 0
        self.calls = []

    async def connect(self):
        self.connected = self.connect_ok
        return self.connect_ok

    def close(self):
        self.connected = False
        self.closed += 1

    def _reply(self, kind, address, count, device_id):
        self.calls.append((kind, address, count, device_id))

        # pymodbus refuses to encode oversized requests before sending anything
        limit = MAX_BITS if kind in ("coils", "discrete") else MAX_REGISTERS
        if not 1 <= count <= limit:
            raise ValueError(f"1 <= count {count} <= {limit} !")

        if not self.connected:
            raise ConnectionException("Client not connected")

        device = self.devices.get(device_id)
        if device is None:
            raise ModbusIOException("No response received after 0 retries")

        reply = device.get(kind, exception_response(1))
        if isinstance(reply, Exception):
            raise reply

        return reply

    async def read_coils(self, address, count=1, device_id=1):
        return self._reply("coils", address, count, device_id)

    async def read_discrete_inputs(self, address, count=1, device_id=1):
        return self._reply("discrete", address, count, device_id)

    async def read_input_registers(self, address, count=1, device_id=1):
        return self._reply("input", address, count, device_id)

    async def read_holding_registers(self, address, count=1, device_id=1):
        return self._reply("holding", address, count, device_id)


class ClientRecorder:
    """Client factory keeping every client it built."""

    def __init__(self, devices, refuse=()):
        self.devices = devices
        self.refuse = set(refuse)
        self.clients: list[FakeClient] = []

    def __call__(self, config):
        # At most one link open at a time
        assert all(not c.connected for c in self.clients)

        index = len(self.clients)
        device_id = config.first_id + index
        client = FakeClient(self.devices, connect_ok=device_id not in self.refuse)
        self.clients.append(client)
        return client


@pytest.fixture
def make_config():
    """Build a validated configuration from the defaults plus overrides."""
    def _make(**overrides):
        settings = CONFIG_SCHEMA.copy()
        settings.update(overrides)
        return validate_config(settings)
    return _make


@pytest.fixture
def population():
    """Device 1 answers everything, device 2 only holding registers, device 3 is absent."""
    return {
        1: {
            "coils": bits_response(True, False, True),
            "discrete": bits_response(False, True),
            "input": registers_response(0x002A, 0x0001),
            "holding": registers_response(0xFFFE, 0x0000),
        },
        2: {
            "holding": registers_response(0x0007),
        },
    }
