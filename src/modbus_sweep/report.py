"""Aggregation and rendering of sweep results.

The rows of a report are kept in probe order, which is ascending device id.
Everything rendered here comes from the ScanReport alone, so two runs against
the same devices only differ by their elapsed time.
"""
from __future__ import annotations

import io
from dataclasses import dataclass, field

from rich.console import Console
from rich.table import Table
from rich.text import Text

from modbus_sweep.modbus.request import Operation
from modbus_sweep.sweep import ReadOutcome

ADDRESS_HEADING = "ADDRESS"
ELAPSED_HEADING = "Time-consuming"
STATUS_STYLES = {True: "green", False: "red"}


@dataclass(frozen=True)
class DeviceProbeRow:
    device_id: int
    outcomes: tuple[ReadOutcome, ...]
    connect_error: str | None = None

    def __post_init__(self):
        if [o.operation for o in self.outcomes] != list(Operation):
            raise ValueError("A probe row holds one outcome per operation, in sweep order")

    @property
    def responsive(self) -> bool:
        return any(o.succeeded for o in self.outcomes)


@dataclass(frozen=True)
class ScanReport:
    rows: tuple[DeviceProbeRow, ...]
    responsive_ids: tuple[int, ...]
    elapsed: float
    cancelled: bool = False

    @property
    def responsive_text(self) -> str:
        return ",".join(str(device_id) for device_id in self.responsive_ids)


@dataclass
class ReportAggregator:
    """Collects probe rows as the scan goes, then freezes them into a report."""
    rows: list[DeviceProbeRow] = field(default_factory=list)
    responsive_ids: list[int] = field(default_factory=list)

    def add(self, row: DeviceProbeRow):
        self.rows.append(row)

        if row.responsive and row.device_id not in self.responsive_ids:
            self.responsive_ids.append(row.device_id)

    def finish(self, elapsed: float, cancelled: bool = False) -> ScanReport:
        return ScanReport(
            rows=tuple(self.rows),
            responsive_ids=tuple(self.responsive_ids),
            elapsed=elapsed,
            cancelled=cancelled
        )


def format_elapsed(seconds: float) -> str:
    return f"{seconds:.3f}s"


def header_row() -> list[str]:
    return [ADDRESS_HEADING] + [operation.heading for operation in Operation]


def report_rows(report: ScanReport) -> list[list[str]]:
    """Header, then a status row and a value row per device id."""
    rows = [header_row()]

    for row in report.rows:
        rows.append([str(row.device_id)] + [o.status.value for o in row.outcomes])
        rows.append([str(row.device_id)] + [o.text for o in row.outcomes])

    return rows


def summary_line(report: ScanReport) -> str:
    line = (
        f"{ELAPSED_HEADING}: {format_elapsed(report.elapsed)}"
        f"  Responsive devices: {report.responsive_text or 'none'}"
    )

    if report.cancelled:
        line += "  (scan cancelled)"

    return line


def build_table(report: ScanReport) -> Table:
    table = Table(show_footer=True)

    footers = [ELAPSED_HEADING, format_elapsed(report.elapsed), "", ""]

    table.add_column(ADDRESS_HEADING, justify="right")
    for operation, footer in zip(Operation, footers):
        table.add_column(operation.heading, footer=footer)

    for row in report.rows:
        # Status above value, the address cell spans both
        status = [Text(o.status.value, style=STATUS_STYLES[o.succeeded]) for o in row.outcomes]
        values = [Text(o.text) for o in row.outcomes]
        table.add_row(str(row.device_id), *status)
        table.add_row("", *values, end_section=True)

    return table


def render_text(report: ScanReport, width: int = 240) -> str:
    """Plain text rendering of the table and the summary."""
    buffer = io.StringIO()
    console = Console(file=buffer, width=width, color_system=None, force_terminal=False)

    console.print(build_table(report))
    console.print(summary_line(report), markup=False, highlight=False)

    return buffer.getvalue()
