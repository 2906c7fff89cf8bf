import logging
import os
from dataclasses import dataclass

import serial.tools.list_ports
import toml
from appdirs import user_config_dir

from modbus_sweep.constants import (
    APP_NAME,
    CONFIG_FILENAME,
    CONFIG_SCHEMA,
    DEFAULT_TCP_PORT,
    MAX_ADDRESS,
    MAX_DEVICE_ID,
    MODES,
    PARITIES,
    PERSISTED_KEYS,
)
from modbus_sweep.decoder import DecodeType
from modbus_sweep.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanConfiguration:
    """Validated scan parameters. Only built by validate_config."""
    mode: str
    endpoint: str
    baudrate: int
    bytesize: int
    parity: str
    stopbits: int
    timeout: float
    first_id: int
    last_id: int
    address: int
    quantity: int
    decode_type: str

    @property
    def device_ids(self) -> range:
        return range(self.first_id, self.last_id + 1)

    @property
    def tcp_address(self) -> tuple[str, int]:
        return parse_tcp_endpoint(self.endpoint)

    @property
    def worst_case_duration(self) -> float:
        """Seconds taken if no device answers at all."""
        return len(self.device_ids) * 4 * self.timeout


def parse_tcp_endpoint(endpoint: str) -> tuple[str, int]:
    """Split 'host[:port]' into host and port. IPv6 hosts go in brackets."""
    endpoint = endpoint.strip()

    if endpoint.startswith("["):
        host, _, rest = endpoint[1:].partition("]")
        port = rest[1:] if rest.startswith(":") else ""
    elif endpoint.count(":") == 1:
        host, _, port = endpoint.partition(":")
    else:
        host, port = endpoint, ""

    if not host:
        raise ValueError(f"Missing host in '{endpoint}'")

    if not port:
        return host, DEFAULT_TCP_PORT

    if not port.isdigit() or not (0 < int(port) < 65536):
        raise ValueError(f"Invalid TCP port in '{endpoint}'")

    return host, int(port)


def _as_int(settings, key: str) -> int:
    value = settings[key]

    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigurationError(key, f"expected an integer, got {value!r}")

    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(key, f"expected an integer, got {value!r}") from None


def validate_config(settings) -> ScanConfiguration:
    """Check raw settings and build the immutable scan configuration.

    The serial framing and the device id bounds are checked first, in that
    order, then the remaining fields. The first failure aborts.

    :param settings: A mapping with the keys of CONFIG_SCHEMA
    :raises ConfigurationError: Naming the first offending field
    """
    databits = _as_int(settings, "databits")
    if not 5 <= databits <= 8:
        raise ConfigurationError("databits", f"data bits must be 5, 6, 7 or 8, got {databits}")

    parity = settings["parity"]
    if parity not in PARITIES:
        raise ConfigurationError("parity", f"parity must be N, E or O, got {settings['parity']!r}")

    stop = _as_int(settings, "stop")
    if stop not in (1, 2):
        raise ConfigurationError("stop", f"stop bits must be 1 or 2, got {stop}")

    first_id = _as_int(settings, "first_id")
    last_id = _as_int(settings, "last_id")
    if first_id > MAX_DEVICE_ID or last_id > MAX_DEVICE_ID:
        raise ConfigurationError(
            "first_id" if first_id > MAX_DEVICE_ID else "last_id",
            f"device ids must not exceed {MAX_DEVICE_ID}, got {first_id}..{last_id}"
        )

    mode = str(settings["mode"]).upper()
    if mode not in MODES:
        raise ConfigurationError("mode", f"mode must be RTU or TCP, got {settings['mode']!r}")

    if first_id < 0 or last_id < 0:
        raise ConfigurationError("first_id", f"device ids must not be negative, got {first_id}..{last_id}")

    if first_id > last_id:
        raise ConfigurationError("first_id", f"first id {first_id} is above last id {last_id}")

    quantity = _as_int(settings, "quantity")
    if quantity < 1:
        raise ConfigurationError("quantity", f"quantity must be at least 1, got {quantity}")

    address = _as_int(settings, "address")
    if not 0 <= address <= MAX_ADDRESS:
        raise ConfigurationError("address", f"address must be within 0..{MAX_ADDRESS}, got {address}")

    try:
        timeout = float(settings["timeout"])
    except (TypeError, ValueError):
        raise ConfigurationError("timeout", f"invalid timeout {settings['timeout']!r}") from None
    if not timeout > 0:
        raise ConfigurationError("timeout", f"timeout must be positive, got {timeout}")

    baud = _as_int(settings, "baud")
    if baud <= 0:
        raise ConfigurationError("baud", f"baud rate must be positive, got {baud}")

    endpoint = str(settings["com_port"] or "").strip()
    if not endpoint:
        raise ConfigurationError("com_port", "no serial port or TCP endpoint given")

    if mode == "TCP":
        try:
            parse_tcp_endpoint(endpoint)
        except ValueError as e:
            raise ConfigurationError("com_port", str(e)) from None

    decode_type = str(settings["decode_type"])
    if DecodeType.from_tag(decode_type) is None:
        logger.warning(f"Unknown decode type '{decode_type}', values will be left blank")

    return ScanConfiguration(
        mode=mode,
        endpoint=endpoint,
        baudrate=baud,
        bytesize=databits,
        parity=parity,
        stopbits=stop,
        timeout=timeout,
        first_id=first_id,
        last_id=last_id,
        address=address,
        quantity=quantity,
        decode_type=decode_type,
    )


class Config(dict):
    """Scan settings, behaves like a dict.

    Starts from CONFIG_SCHEMA, overlaid with the saved link settings and then
    with the command line.
    """

    def __init__(self, path: str | None = None):
        super().__init__(CONFIG_SCHEMA.copy())
        self._path = path
        self._has_unsaved_changes = False
        self._load()

    @property
    def path(self) -> str:
        return self._path or self._get_config_path()

    @property
    def has_unsaved_changes(self):
        return self._has_unsaved_changes

    @staticmethod
    def _get_config_path():
        config_dir = user_config_dir(APP_NAME)
        return os.path.join(config_dir, CONFIG_FILENAME)

    @staticmethod
    def list_comports():
        """List all sorted COM ports."""
        return sorted([p.device for p in serial.tools.list_ports.comports()],
                      key=lambda x: int(''.join(filter(str.isdigit, x)) or 0))

    def save(self):
        """Save the link settings to disk."""
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)

        with open(self.path, "w") as f:
            toml.dump({k: self[k] for k in PERSISTED_KEYS}, f)

        logger.info(f"Configuration saved to {self.path}")
        self._has_unsaved_changes = False

    def _load(self):
        """Load the saved settings, falling back to defaults if they are unusable."""
        config_path = self.path

        if not os.path.exists(config_path):
            return

        config_in_the_works = CONFIG_SCHEMA.copy()

        try:
            with open(config_path, "r") as f:
                loaded = toml.load(f)
        except toml.TomlDecodeError as e:
            logger.error(f"Error loading configuration: {e}")
            return
        except OSError as e:
            logger.error(f"Unexpected error loading configuration: {e}")
            return

        # Ignore anything which is not a saved link setting
        config_in_the_works.update({k: v for k, v in loaded.items() if k in PERSISTED_KEYS})

        try:
            validate_config(config_in_the_works)
        except ConfigurationError as e:
            logger.error(f"Configuration error in {config_path}: {e}")
            return

        self.clear()
        self.update(config_in_the_works)
        self._has_unsaved_changes = False

    def update(self, *args, **kwargs):
        # Make a copy to compare with later
        old = self.copy()

        super().update(*args, **kwargs)

        self._has_unsaved_changes = (old != self)

    def apply_command_line_overrides(self, options):
        """Apply options given on the command line. Unset options are None."""
        overrides = {
            "mode": options.mode,
            "com_port": options.comport,
            "baud": options.baudrate,
            "databits": options.databits,
            "parity": options.parity,
            "stop": options.stopbits,
            "timeout": options.timeout,
            "address": options.address,
            "quantity": options.quantity,
            "first_id": options.first_id,
            "last_id": options.last_id,
            "decode_type": options.decode_type,
        }

        if options.serial:
            # 8N1 style shorthand, individual options take precedence
            serial_opt = options.serial.upper()
            overrides["databits"] = overrides["databits"] or int(serial_opt[0])
            overrides["parity"] = overrides["parity"] or serial_opt[1]
            overrides["stop"] = overrides["stop"] or int(serial_opt[2])

        self.update({k: v for k, v in overrides.items() if v is not None})
