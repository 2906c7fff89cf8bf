import pytest

from modbus_sweep.modbus.request import Operation
from modbus_sweep.report import (
    DeviceProbeRow,
    ReportAggregator,
    build_table,
    header_row,
    render_text,
    report_rows,
    summary_line,
)
from modbus_sweep.sweep import ReadOutcome


def make_row(device_id, succeeded=(False, False, False, False), value="42"):
    outcomes = []
    for operation, ok in zip(Operation, succeeded):
        if ok:
            outcomes.append(ReadOutcome.success(operation, b"\x00\x2a").decoded("uint16"))
        else:
            outcomes.append(ReadOutcome.fail(operation, "Modbus Error: [Input/Output] No response"))
    return DeviceProbeRow(device_id, tuple(outcomes))


def test_row_needs_four_outcomes_in_order():
    outcomes = tuple(ReadOutcome.fail(op, "x") for op in reversed(list(Operation)))
    with pytest.raises(ValueError):
        DeviceProbeRow(1, outcomes)

    with pytest.raises(ValueError):
        DeviceProbeRow(1, outcomes[:3])


def test_aggregator_keeps_order_and_responsive_ids():
    aggregator = ReportAggregator()
    aggregator.add(make_row(3, (False, False, True, False)))
    aggregator.add(make_row(4))
    aggregator.add(make_row(5, (True, True, True, True)))

    report = aggregator.finish(1.25)

    assert [row.device_id for row in report.rows] == [3, 4, 5]
    assert report.responsive_ids == (3, 5)
    assert report.elapsed == 1.25
    assert not report.cancelled


def test_aggregator_lists_a_device_once():
    aggregator = ReportAggregator()
    aggregator.add(make_row(7, (True, True, True, True)))
    aggregator.add(make_row(7, (True, False, False, False)))

    report = aggregator.finish(0)

    assert len(report.rows) == 2
    assert report.responsive_ids == (7,)


def test_report_rows_stack_status_and_value():
    aggregator = ReportAggregator()
    aggregator.add(make_row(1, (False, False, True, True)))

    rows = report_rows(aggregator.finish(0.5))

    assert rows[0] == header_row() == [
        "ADDRESS",
        "ReadCoils 0x",
        "ReadDiscreteInputs 1x",
        "ReadInputRegisters 3x",
        "ReadHoldingRegisters 4x",
    ]
    assert rows[1] == ["1", "Fail", "Fail", "Success", "Success"]
    assert rows[2] == ["1", "Modbus Error: [Input/Output] No response",
                       "Modbus Error: [Input/Output] No response", "42", "42"]


def test_summary_line():
    aggregator = ReportAggregator()
    aggregator.add(make_row(1, (True, False, False, False)))
    aggregator.add(make_row(2, (True, False, False, False)))

    assert summary_line(aggregator.finish(2)) == "Time-consuming: 2.000s  Responsive devices: 1,2"
    assert summary_line(ReportAggregator().finish(0, cancelled=True)).endswith(
        "Responsive devices: none  (scan cancelled)"
    )


def test_table_has_two_rows_per_device():
    aggregator = ReportAggregator()
    aggregator.add(make_row(1))
    aggregator.add(make_row(2))

    table = build_table(aggregator.finish(0))

    assert len(table.columns) == 5
    assert table.row_count == 4


def test_render_text_keeps_error_text_verbatim():
    aggregator = ReportAggregator()
    aggregator.add(make_row(9, (False, False, False, True)))

    text = render_text(aggregator.finish(0.1))

    assert "ReadHoldingRegisters 4x" in text
    assert "[Input/Output]" in text
    assert "Success" in text
    assert "Responsive devices: 9" in text
    assert "0.100s" in text
