import asyncio
import faulthandler
import logging
import os
import sys

from rich.console import Console
from textual.features import parse_features

from modbus_sweep.config import Config, validate_config
from modbus_sweep.errors import ConfigurationError
from modbus_sweep.logs import setup_logging, write_transcript
from modbus_sweep.optargs import build_parser
from modbus_sweep.report import build_table, render_text, summary_line
from modbus_sweep.scanner import ScanController

logger = logging.getLogger("modbus_sweep")


def setup_debug():
    os.environ["DEBUG"] = "1"

    features = set(parse_features(os.environ.get("TEXTUAL", "")))
    features.add("debug")
    features.add("devtools")
    os.environ["TEXTUAL"] = ",".join(sorted(features))

    faulthandler.enable()
    os.environ["PYTHONASYNCIODEBUG"] = "1"

    def hook(exc_type, exc, tb):
        logging.getLogger("modbus_sweep").error("Uncaught top-level", exc_info=(exc_type, exc, tb))
    sys.excepthook = hook


def main(argv=None) -> int:
    parser = build_parser()
    options, args = parser.parse_args(argv)

    if args:
        parser.error(f"Unexpected arguments: {' '.join(args)}")

    setup_logging(logging.DEBUG if options.debug else logging.INFO, options.log_file)

    if options.debug:
        setup_debug()

    if options.list_ports:
        for port in Config.list_comports():
            print(port)
        return 0

    config = Config()
    config.apply_command_line_overrides(options)

    try:
        scan_config = validate_config(config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        parser.error(str(e))

    if options.save:
        config.save()

    logger.info(
        f"Worst case duration: {scan_config.worst_case_duration:.1f}s "
        f"({len(scan_config.device_ids)} ids x 4 reads x {scan_config.timeout}s)"
    )

    if options.tui:
        from modbus_sweep.ui.scan_app import ScanApp

        app = ScanApp(scan_config)
        app.run()
        report = app.report
    else:
        report = asyncio.run(ScanController(scan_config).run(), debug=options.debug)

    if report is not None:
        console = Console()
        console.print(build_table(report))
        console.print(summary_line(report), markup=False, highlight=False)

        write_transcript(render_text(report))

    return 0


def run():
    sys.exit(main())


if __name__ == '__main__':
    run()
