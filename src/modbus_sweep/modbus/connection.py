import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from pymodbus import FramerType, ModbusException
from pymodbus.client import AsyncModbusSerialClient, AsyncModbusTcpClient
from pymodbus.client.base import ModbusBaseClient

from modbus_sweep.config import ScanConfiguration
from modbus_sweep.errors import DeviceConnectionError
from modbus_sweep.modbus.request import Request

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ScanConfiguration], ModbusBaseClient]


def create_client(config: ScanConfiguration) -> ModbusBaseClient:
    """Build the pymodbus client for the configured transport. Nothing is retried."""
    if config.mode == "TCP":
        host, port = config.tcp_address

        return AsyncModbusTcpClient(
            host,
            port=port,
            timeout=config.timeout,
            retries=0,
        )

    return AsyncModbusSerialClient(
        port=config.endpoint,
        baudrate=config.baudrate,
        bytesize=config.bytesize,
        parity=config.parity,
        stopbits=config.stopbits,
        timeout=config.timeout,
        retries=0,
        framer=FramerType.RTU
    )


class Connection:
    """A link to the bus, bound to a single device id for its lifetime."""

    def __init__(self, client: ModbusBaseClient, device_id: int, endpoint: str = ""):
        self.client = client
        self.device_id = device_id
        self.endpoint = endpoint
        self.connect_error: str | None = None

    @property
    def connected(self):
        return self.client is not None and self.client.connected

    async def connect(self):
        """Open the link.

        :raises DeviceConnectionError: If the link cannot be established
        """
        try:
            connected = await self.client.connect()
        except (ModbusException, OSError, ValueError) as e:
            raise DeviceConnectionError(str(e)) from e

        if not connected:
            raise DeviceConnectionError(f"unable to connect to {self.endpoint}")

    def close(self):
        if self.client is not None:
            self.client.close()

    async def read(self, request_type: type[Request], address: int, count: int) -> bytes:
        """Issue one read request to this connection's device."""
        return await request_type(self.device_id, address, count).execute(self.client)


@asynccontextmanager
async def open_connection(
    config: ScanConfiguration,
    device_id: int,
    client_factory: ClientFactory = create_client
) -> AsyncIterator[Connection]:
    """Open a connection for one device id, and always close it on exit.

    A failed connect is logged and kept on the connection as connect_error.
    The connection is yielded regardless so the reads record their own failure.
    """
    connection = Connection(client_factory(config), device_id, config.endpoint)

    try:
        try:
            await connection.connect()
        except DeviceConnectionError as e:
            connection.connect_error = str(e)
            logger.error(f"Device {device_id}: connect error: {e}")
        else:
            logger.debug(f"Device {device_id}: connected to {config.endpoint}")

        yield connection
    finally:
        connection.close()
