import asyncio
import logging
import time
from typing import Callable

from modbus_sweep.config import ScanConfiguration
from modbus_sweep.modbus.connection import ClientFactory, create_client, open_connection
from modbus_sweep.report import DeviceProbeRow, ReportAggregator, ScanReport
from modbus_sweep.sweep import sweep

logger = logging.getLogger(__name__)


class ScanController:
    """ Probes every device id of the configured range, one after the other
    """
    def __init__(
        self,
        config: ScanConfiguration,
        *,
        client_factory: ClientFactory = create_client,
        should_stop: Callable[[], bool] | None = None,
        on_start: Callable[[int], None] | None = None,
        on_row: Callable[[DeviceProbeRow], None] | None = None,
    ):
        """ Initialize the controller
        :param config: A validated scan configuration
        :param client_factory: Builds the pymodbus client for each device id
        :param should_stop: Checked before each device id, stops the scan when True
        :param on_start: Called with each device id before it is probed
        :param on_row: Called with each row once its device id is probed
        """
        self.config = config
        self.client_factory = client_factory
        self.should_stop = should_stop
        self.on_start = on_start
        self.on_row = on_row

    async def probe(self, device_id: int) -> DeviceProbeRow:
        """Sweep a single device id on its own connection."""
        config = self.config

        async with open_connection(config, device_id, self.client_factory) as connection:
            outcomes = await sweep(connection, config.address, config.quantity)

        outcomes = [o.decoded(config.decode_type) for o in outcomes]

        for outcome in outcomes:
            if outcome.succeeded:
                logger.info(f"Device {device_id}: {outcome.operation.label} succeeded, value: {outcome.text}")

        return DeviceProbeRow(device_id, tuple(outcomes), connection.connect_error)

    async def run(self) -> ScanReport:
        """Probe the whole range and return the report.

        Every read may wait for the full timeout, so a range where nothing
        answers takes (ids x 4 x timeout) seconds. Cancellation through
        should_stop only happens between device ids.
        """
        config = self.config
        aggregator = ReportAggregator()
        cancelled = False
        start = time.monotonic()

        logger.info(
            f"Scanning device ids {config.first_id}..{config.last_id} over {config.mode} "
            f"{config.endpoint}, {config.quantity} from address {config.address}"
        )

        for device_id in config.device_ids:
            if self.should_stop is not None and self.should_stop():
                logger.warning(f"Scan cancelled before device {device_id}")
                cancelled = True
                break

            if self.on_start is not None:
                self.on_start(device_id)

            row = await self.probe(device_id)
            aggregator.add(row)

            if self.on_row is not None:
                self.on_row(row)

        report = aggregator.finish(time.monotonic() - start, cancelled)
        logger.info(f"Responsive devices: {report.responsive_text or 'none'}")

        return report


def run_scan(config: ScanConfiguration, **kwargs) -> ScanReport:
    """Blocking helper running a full scan in a new event loop."""
    return asyncio.run(ScanController(config, **kwargs).run())
