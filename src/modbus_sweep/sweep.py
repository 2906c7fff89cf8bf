from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum

from modbus_sweep.constants import STATUS_FAIL_TEXT, STATUS_SUCCESS_TEXT
from modbus_sweep.decoder import DecodeType, decode
from modbus_sweep.errors import DecodeError, ReadError
from modbus_sweep.modbus.connection import Connection
from modbus_sweep.modbus.request import SWEEP_REQUESTS, Operation

logger = logging.getLogger(__name__)


class OutcomeStatus(Enum):
    SUCCESS = STATUS_SUCCESS_TEXT
    FAIL = STATUS_FAIL_TEXT


@dataclass(frozen=True)
class ReadOutcome:
    """Result of one read operation against one device id"""
    operation: Operation
    status: OutcomeStatus
    payload: bytes | None = None
    error: str | None = None
    value: str = ""
    decode_error: str | None = None

    @classmethod
    def success(cls, operation: Operation, payload: bytes) -> ReadOutcome:
        return cls(operation, OutcomeStatus.SUCCESS, payload=payload)

    @classmethod
    def fail(cls, operation: Operation, error: str) -> ReadOutcome:
        return cls(operation, OutcomeStatus.FAIL, error=error)

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.SUCCESS

    @property
    def text(self) -> str:
        """The value, or why there is none"""
        if not self.succeeded:
            return self.error or ""
        if self.decode_error is not None:
            return f"decode error: {self.decode_error}"
        return self.value

    def decoded(self, decode_type: DecodeType | str) -> ReadOutcome:
        """Copy of this outcome with the payload rendered as text.

        A failed read is returned as is. A payload too short for the type
        keeps its Success status and carries the decode error instead.
        """
        if not self.succeeded:
            return self

        try:
            return replace(self, value=decode(self.payload, decode_type))
        except DecodeError as e:
            return replace(self, decode_error=str(e))


async def sweep(connection: Connection, address: int, quantity: int) -> list[ReadOutcome]:
    """Attempt the four read operations in order, once each.

    A failed operation never prevents the next one from being attempted.
    """
    outcomes: list[ReadOutcome] = []

    for request_type in SWEEP_REQUESTS:
        operation = request_type.OPERATION

        try:
            payload = await connection.read(request_type, address, quantity)
        except ReadError as e:
            logger.error(f"Device {connection.device_id}: {operation.label} error: {e}")
            outcomes.append(ReadOutcome.fail(operation, str(e)))
        else:
            logger.debug(f"Device {connection.device_id}: {operation.label} returned {payload.hex()}")
            outcomes.append(ReadOutcome.success(operation, payload))

    return outcomes
