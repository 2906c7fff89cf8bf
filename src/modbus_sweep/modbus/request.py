import asyncio
import struct
from abc import ABC, abstractmethod
from enum import Enum

from pymodbus.client import AsyncModbusSerialClient
from pymodbus.exceptions import ModbusException
from pymodbus.pdu import ModbusPDU

from modbus_sweep.constants import EXCEPTION_NAMES
from modbus_sweep.errors import ReadError


class Operation(Enum):
    """The four Modbus read functions, in sweep order"""
    READ_COILS = ("ReadCoils", 0x01, "0x")
    READ_DISCRETE_INPUTS = ("ReadDiscreteInputs", 0x02, "1x")
    READ_INPUT_REGISTERS = ("ReadInputRegisters", 0x04, "3x")
    READ_HOLDING_REGISTERS = ("ReadHoldingRegisters", 0x03, "4x")

    def __init__(self, label: str, function_code: int, table: str):
        self.label = label
        self.function_code = function_code
        self.table = table

    @property
    def heading(self) -> str:
        return f"{self.label} {self.table}"


def describe_exception(pdu: ModbusPDU) -> str:
    """Text of an exception response, e.g. exception '2' (illegal data address)"""
    code = getattr(pdu, "exception_code", None)
    name = EXCEPTION_NAMES.get(code, "unknown")
    function_code = getattr(pdu, "function_code", 0)

    return f"exception '{code}' ({name}), function '{function_code}'"


def pack_bits(bits: list[bool]) -> bytes:
    """Pack coil/input states 8 per byte, first state in the lowest bit."""
    return bytes(
        sum(1 << i for i, bit in enumerate(bits[n:n + 8]) if bit)
        for n in range(0, len(bits), 8)
    )


def pack_registers(registers: list[int]) -> bytes:
    """Registers as big-endian 16-bit words."""
    return struct.pack(f">{len(registers)}H", *registers)


class Request(ABC):
    """Base Modbus read request for one device.

    ``execute`` returns the payload of the response as raw bytes, or raises
    ReadError for anything that prevented a valid response.
    """
    OPERATION: Operation

    def __init__(self, device_id: int, address: int = 0, count: int = 1):
        self.device_id = device_id
        self.address = address
        self.count = count

    @property
    def operation(self) -> Operation:
        return self.OPERATION

    @abstractmethod
    async def on_execute(self, client: AsyncModbusSerialClient) -> ModbusPDU:  # pragma: no cover - interface
        """Execute the Modbus request and return the response PDU."""

    @abstractmethod
    def payload(self, pdu: ModbusPDU) -> bytes:  # pragma: no cover - interface
        """Extract the raw bytes of a valid response."""

    async def execute(self, client: AsyncModbusSerialClient) -> bytes:
        """Wraps the execution, turning any transport failure into a ReadError"""
        try:
            retval = await self.on_execute(client)
        except ModbusException as e:
            raise ReadError(str(e)) from e
        except (OSError, asyncio.TimeoutError) as e:
            raise ReadError(str(e) or type(e).__name__) from e
        except ValueError as e:
            # pymodbus refuses to encode a count beyond the function limit
            raise ReadError(str(e)) from e

        if retval is None:
            raise ReadError("no response")

        if retval.isError():
            raise ReadError(describe_exception(retval))

        return self.payload(retval)


class BitRequest(Request):
    def payload(self, pdu: ModbusPDU) -> bytes:
        return pack_bits(pdu.bits)


class RegisterRequest(Request):
    def payload(self, pdu: ModbusPDU) -> bytes:
        return pack_registers(pdu.registers)


class ReadCoils(BitRequest):
    """
    Modbus Function Code 1
    Read coils (digital outputs).
    """
    OPERATION = Operation.READ_COILS

    async def on_execute(self, client: AsyncModbusSerialClient):
        return await client.read_coils(
            self.address,
            count=self.count,
            device_id=self.device_id
        )


class ReadDiscreteInputs(BitRequest):
    """
    Modbus Function Code 2
    Read discrete inputs (digital inputs).
    """
    OPERATION = Operation.READ_DISCRETE_INPUTS

    async def on_execute(self, client: AsyncModbusSerialClient):
        return await client.read_discrete_inputs(
            self.address,
            count=self.count,
            device_id=self.device_id
        )


class ReadInputRegisters(RegisterRequest):
    """
    Modbus Function Code 4
    """
    OPERATION = Operation.READ_INPUT_REGISTERS

    async def on_execute(self, client: AsyncModbusSerialClient):
        return await client.read_input_registers(
            self.address,
            count=self.count,
            device_id=self.device_id
        )


class ReadHoldingRegisters(RegisterRequest):
    """
    Modbus Function Code 3
    """
    OPERATION = Operation.READ_HOLDING_REGISTERS

    async def on_execute(self, client: AsyncModbusSerialClient):
        return await client.read_holding_registers(
            self.address,
            count=self.count,
            device_id=self.device_id
        )


# Fixed order of a sweep
SWEEP_REQUESTS = (ReadCoils, ReadDiscreteInputs, ReadInputRegisters, ReadHoldingRegisters)
