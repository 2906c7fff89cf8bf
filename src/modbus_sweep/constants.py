# constants.py

APP_NAME = "modbus_sweep"
CONFIG_FILENAME = "config.toml"

# Settings schema with defaults
CONFIG_SCHEMA = {
    "mode": "RTU",
    "com_port": "COM1",  # Serial port, or host[:port] in TCP mode
    "baud": 9600,
    "databits": 8,
    "parity": "N",
    "stop": 1,
    "timeout": 2.0,  # seconds
    "address": 0,
    "quantity": 8,
    "first_id": 1,
    "last_id": 3,
    "decode_type": "uint16",
}

# Settings persisted by --save. The register window and id range are per run.
PERSISTED_KEYS = ("mode", "com_port", "baud", "databits", "parity", "stop", "timeout")

#
# Modbus constants
#
MODES = ("RTU", "TCP")
PARITIES = ("N", "E", "O")
MAX_DEVICE_ID = 255
MAX_ADDRESS = 0xFFFF
DEFAULT_TCP_PORT = 502

# Standard exception codes returned by a device
EXCEPTION_NAMES = {
    0x01: "illegal function",
    0x02: "illegal data address",
    0x03: "illegal data value",
    0x04: "server device failure",
    0x05: "acknowledge",
    0x06: "server device busy",
    0x08: "memory parity error",
    0x0A: "gateway path unavailable",
    0x0B: "gateway target device failed to respond",
}

#
# Report
#
STATUS_SUCCESS_TEXT = "Success"
STATUS_FAIL_TEXT = "Fail"

#
# Logging
#
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
LOG_ROTATION_MINUTES = 10
LOG_BACKUP_COUNT = 3
