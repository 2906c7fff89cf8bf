from enum import Enum, auto

from textual.app import App
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.widgets import Footer, Header, Label, Static

from modbus_sweep.config import ScanConfiguration
from modbus_sweep.modbus.connection import ClientFactory, create_client
from modbus_sweep.report import DeviceProbeRow, ScanReport, summary_line
from modbus_sweep.scanner import ScanController


class CellState(Enum):
    OUT_OF_RANGE = auto()
    NOT_SCANNED = auto()
    SCANNING = auto()
    RESPONSIVE = auto()
    NO_REPLY = auto()
    LINK_FAILED = auto()


CELL_MARKUP = {
    CellState.OUT_OF_RANGE: " ",
    CellState.NOT_SCANNED: "[grey39]■[/grey39]",
    CellState.SCANNING: "[yellow]?[/yellow]",
    CellState.RESPONSIVE: "[green]✔[/green]",
    CellState.NO_REPLY: "[gray]·[/gray]",
    CellState.LINK_FAILED: "[red]✖[/red]",
}

LEGEND = """
    Not scanned: [grey39]■[/grey39]
    Probing    : [yellow]?[/yellow]
    Responsive : [green]✔[/green]
    No reply   : [gray]·[/gray]
    Link failed: [red]✖[/red]
"""


def row_state(row: DeviceProbeRow) -> CellState:
    if row.responsive:
        return CellState.RESPONSIVE
    if row.connect_error is not None:
        return CellState.LINK_FAILED
    return CellState.NO_REPLY


class ScanCell(Static):
    """A single cell in the scan matrix representing one device id."""
    DEFAULT_CSS = """
        ScanCell {
            width: 3;
            height: 1;
            padding: 0 0;
            margin-right: 1;
            background: black;
        }
    """

    state = reactive(CellState.NOT_SCANNED)

    def __init__(self, id_num: int, state: CellState = CellState.NOT_SCANNED):
        super().__init__(id=f"scan-cell-{id_num}")
        self.id_num = id_num
        self.state = state

    def render(self):
        return CELL_MARKUP[self.state]


class ScanMatrix(Vertical):
    """16x16 grid of all device ids, labelled in hex."""
    DEFAULT_CSS = """
        ScanMatrix {
            height: auto;
            width: auto;
        }
        ScanMatrix Horizontal {
            height: 1;
            width: auto;
        }
        ScanMatrix .row-label, ScanMatrix .col-label {
            width: 3;
            margin-right: 1;
            color: $text-muted;
        }
    """

    def __init__(self, first_id: int, last_id: int):
        super().__init__()
        self.rows: list[list[ScanCell]] = []

        for row in range(16):
            row_cells: list[ScanCell] = []

            for col in range(16):
                id_num = row * 16 + col
                in_range = first_id <= id_num <= last_id
                row_cells.append(ScanCell(id_num, CellState.NOT_SCANNED if in_range else CellState.OUT_OF_RANGE))

            self.rows.append(row_cells)

    def compose(self):
        # Add a column label for each column
        with Horizontal(classes="scan-header"):
            yield Static("", classes="row-label")
            for col in range(16):
                yield Static(f"{col:02X}", classes="col-label")

        for row_cells in self.rows:
            with Horizontal():
                yield Static(f"{row_cells[0].id_num:02X}", classes="row-label")
                yield from row_cells

    def update_cell(self, id_num: int, state: CellState):
        row, col = divmod(id_num, 16)
        self.rows[row][col].state = state  # Only that cell is redrawn


class ScanApp(App):
    """Runs a sweep while showing its progress as a device matrix."""
    TITLE = "Modbus sweep"

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("c", "cancel", "Cancel scan"),
        ("escape", "cancel", "Cancel scan"),
    ]

    DEFAULT_CSS = """
        #scan-legend {
            border: round $accent;
            width: auto;
            height: auto;
            margin-right: 2;
        }
        #scan-status {
            height: auto;
            margin-top: 1;
        }
    """

    def __init__(self, config: ScanConfiguration, client_factory: ClientFactory = create_client):
        super().__init__()
        self.config = config
        self.client_factory = client_factory
        self.report: ScanReport | None = None
        self._stop_requested = False

    def compose(self):
        yield Header()
        with Horizontal(id="scan-dialog"):
            yield Label(LEGEND, id="scan-legend")
            with Vertical():
                yield ScanMatrix(self.config.first_id, self.config.last_id)
                yield Static("", id="scan-status")
        yield Footer()

    def on_mount(self):
        self.sub_title = f"{self.config.mode} {self.config.endpoint}"
        self.query_one("#scan-legend").border_title = "Legend"

        # Start the worker to perform the scan
        self.run_worker(self.perform_scan(), name="sweep", exclusive=True)

    def set_status(self, text: str):
        self.query_one("#scan-status", Static).update(text)

    async def perform_scan(self):
        controller = ScanController(
            self.config,
            client_factory=self.client_factory,
            should_stop=lambda: self._stop_requested,
            on_start=self.on_probe_start,
            on_row=self.on_probe_row
        )

        self.report = await controller.run()
        self.set_status(summary_line(self.report))

    def on_probe_start(self, device_id: int):
        self.query_one(ScanMatrix).update_cell(device_id, CellState.SCANNING)
        self.set_status(f"Probing device {device_id}...")

    def on_probe_row(self, row: DeviceProbeRow):
        self.query_one(ScanMatrix).update_cell(row.device_id, row_state(row))

    def action_cancel(self):
        if self.report is None:
            self._stop_requested = True
            self.set_status("Cancelling after the current device...")
