import pytest

from conftest import ClientRecorder
from modbus_sweep.modbus.request import Operation
from modbus_sweep.report import DeviceProbeRow
from modbus_sweep.sweep import ReadOutcome
from modbus_sweep.ui.scan_app import CellState, ScanApp, ScanMatrix, row_state


def failed_row(device_id, connect_error=None):
    return DeviceProbeRow(device_id, tuple(ReadOutcome.fail(op, "timeout") for op in Operation), connect_error)


def test_row_state():
    assert row_state(failed_row(1)) is CellState.NO_REPLY
    assert row_state(failed_row(1, "unable to connect")) is CellState.LINK_FAILED

    outcomes = (ReadOutcome.success(Operation.READ_COILS, b"\x01"),) + failed_row(1).outcomes[1:]
    assert row_state(DeviceProbeRow(1, outcomes)) is CellState.RESPONSIVE


@pytest.mark.asyncio
async def test_matrix_follows_the_scan(make_config, population):
    app = ScanApp(make_config(first_id=1, last_id=3), client_factory=ClientRecorder(population))

    async with app.run_test() as pilot:
        await app.workers.wait_for_complete()
        await pilot.pause()

        matrix = app.query_one(ScanMatrix)
        states = [matrix.rows[0][col].state for col in range(5)]

    assert app.report is not None
    assert app.report.responsive_ids == (1, 2)
    assert states == [
        CellState.OUT_OF_RANGE,
        CellState.RESPONSIVE,
        CellState.RESPONSIVE,
        CellState.NO_REPLY,
        CellState.OUT_OF_RANGE,
    ]
