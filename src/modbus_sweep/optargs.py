import optparse
import re

from modbus_sweep.decoder import DECODE_TAGS

DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d*)?|\.\d+)\s*(ms|s|m)?\s*$", re.IGNORECASE)
DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0}


def parse_duration(text: str) -> float:
    """Parse '2', '2s', '500ms' or '1m' into seconds."""
    match = DURATION_RE.match(text)

    if not match:
        raise ValueError(f"Invalid duration: {text}")

    value, unit = match.groups()
    return float(value) * DURATION_UNITS[(unit or "s").lower()]


def validate_timeout(option, opt_str, value, parser):
    try:
        setattr(parser.values, option.dest, parse_duration(value))
    except ValueError:
        parser.error(f"Invalid timeout: {value}. Use seconds (2, 1.5s) or milliseconds (500ms).")


def validate_serial(option, opt_str, value, parser):
    serial_opt = value.upper()

    if len(serial_opt) != 3 or not serial_opt[0].isdigit() or not serial_opt[2].isdigit():
        parser.error(f"Invalid serial configuration: {value}. Expected e.g. 8N1, 7E1, 8N2.")

    setattr(parser.values, option.dest, serial_opt)


def normalize_parity(option, opt_str, value, parser):
    setattr(parser.values, option.dest, value.upper())


def build_parser() -> optparse.OptionParser:
    """Build the command line parser. Unset options are left as None."""
    parser = optparse.OptionParser(prog="modbus-sweep")

    parser.set_usage("usage: %prog [options]")
    parser.set_description(
        "Probe every device id of a range with the four Modbus read functions "
        "(coils, discrete inputs, input registers, holding registers) and "
        "report which devices answer. Devices are probed one at a time: a "
        "scan where nothing answers takes (ids x 4 x timeout)."
    )

    parser.add_option("--debug", action="store_true", dest="debug", default=False,
        help="Enable debug mode")

    parser.add_option("-m", "--mode", dest="mode", default=None, choices=["RTU", "TCP", "rtu", "tcp"],
        help="Transport: RTU (serial) or TCP")

    parser.add_option("-c", "--comport", dest="comport", default=None,
        help="Serial port (COM1, /dev/ttyUSB0) or TCP endpoint (host:502)")

    parser.add_option("-b", "--baudrate", dest="baudrate", default=None, type="int",
        help="Baud rate (1200/2400/4800/9600...)")

    parser.add_option("-d", "--databits", dest="databits", default=None, type="int",
        help="Data bits: 5, 6, 7 or 8")

    parser.add_option("-p", "--parity", dest="parity", default=None, type="string",
        action="callback", callback=normalize_parity,
        help="Parity: N - None, E - Even, O - Odd")

    parser.add_option("-s", "--stopbits", dest="stopbits", default=None, type="int",
        help="Stop bits: 1 or 2")

    parser.add_option("--serial", dest="serial", default=None, type="string",
        action="callback", callback=validate_serial,
        help="Serial configuration shorthand, e.g. 8N1, 8E1, 8N2")

    parser.add_option("-t", "--timeout", dest="timeout", default=None, type="string",
        action="callback", callback=validate_timeout,
        help="Read timeout per operation (2s, 500ms...)")

    parser.add_option("-a", "--address", dest="address", default=None, type="int",
        help="Start address of the register window")

    parser.add_option("-q", "--quantity", dest="quantity", default=None, type="int",
        help="Number of coils/registers to read")

    parser.add_option("--first-id", dest="first_id", default=None, type="int",
        help="First device id of the range (0-255)")

    parser.add_option("--last-id", dest="last_id", default=None, type="int",
        help="Last device id of the range (0-255)")

    parser.add_option("--type", dest="decode_type", default=None,
        help=f"Decode type of the values: {', '.join(DECODE_TAGS)}")

    parser.add_option("--log-file", dest="log_file", default=None,
        help="Also write the log and the report to this file, rotated every 10 minutes")

    parser.add_option("--tui", dest="tui", default=False, action="store_true",
        help="Show the scan as an interactive device matrix")

    parser.add_option("--list-ports", dest="list_ports", default=False, action="store_true",
        help="List the serial ports and exit")

    parser.add_option("--save", dest="save", default=False, action="store_true",
        help="Save the link settings as the new defaults")

    return parser
