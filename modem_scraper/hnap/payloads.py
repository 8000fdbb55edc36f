"""Decoders for the S33 status payloads.

Channel tables arrive as one string per direction: entries separated by
``|+|``, fields within an entry separated by ``^``, each entry usually
closed by a trailing ``^``::

    1^Locked^QAM256^17^579000000^ 3.0^41^12^0^|+|2^Locked^QAM256^...

Downstream fields: index, lock status, modulation, channel id,
frequency (Hz), power (dBmV), SNR (dB), corrected, uncorrectables.
Upstream fields: index, lock status, modulation, channel id,
symbol width (Hz), frequency (Hz), power (dBmV).

A channel list decodes completely or not at all: every bad row is
reported in one ParseError and no records are returned.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone

from ..errors import ParseError

log = logging.getLogger("modem_scraper.hnap")

ENTRY_DELIMITER = "|+|"
FIELD_DELIMITER = "^"
LOG_ENTRY_DELIMITER = "}-{"

DOWNSTREAM = "downstream"
UPSTREAM = "upstream"

DS_FIELD_COUNT = 9
US_FIELD_COUNT = 7

_UPTIME_RE = re.compile(
    r"(?P<days>\d+)\s+days?\s+(?P<hours>\d+)h:(?P<minutes>\d+)m:(?P<seconds>\d+)s"
)

# Device syslog priority -> logging level name
_LOG_LEVELS = {
    3: "error",
    4: "warning",
    5: "info",
    6: "debug",
}


@dataclass(frozen=True)
class StatRecord:
    """One channel row. Fields the direction does not report are None."""

    direction: str
    channel_id: int
    frequency_hz: int
    power_dbmv: float
    snr_db: float | None
    modulation: str
    lock_status: str
    corrected: int | None = None
    uncorrectables: int | None = None
    width_hz: int | None = None

    @property
    def locked(self) -> bool:
        return self.lock_status.lower() == "locked"


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: str
    message: str


def _split_fields(entry: str) -> list[str]:
    if entry.endswith(FIELD_DELIMITER):
        entry = entry[: -len(FIELD_DELIMITER)]
    return [f.strip() for f in entry.split(FIELD_DELIMITER)]


def _int(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} {value!r} is not an integer") from None


def _float(value: str, name: str) -> float:
    try:
        result = float(value)
    except ValueError:
        raise ValueError(f"{name} {value!r} is not a number") from None
    if not math.isfinite(result):
        raise ValueError(f"{name} {value!r} is not a finite number")
    return result


def _downstream_row(fields: list[str]) -> StatRecord:
    return StatRecord(
        direction=DOWNSTREAM,
        lock_status=fields[1],
        modulation=fields[2],
        channel_id=_int(fields[3], "channel id"),
        frequency_hz=_int(fields[4], "frequency"),
        power_dbmv=_float(fields[5], "power"),
        snr_db=_float(fields[6], "snr"),
        corrected=_int(fields[7], "corrected"),
        uncorrectables=_int(fields[8], "uncorrectables"),
    )


def _upstream_row(fields: list[str]) -> StatRecord:
    return StatRecord(
        direction=UPSTREAM,
        lock_status=fields[1],
        modulation=fields[2],
        channel_id=_int(fields[3], "channel id"),
        width_hz=_int(fields[4], "width"),
        frequency_hz=_int(fields[5], "frequency"),
        power_dbmv=_float(fields[6], "power"),
        snr_db=None,
    )


_SCHEMAS = {
    DOWNSTREAM: (DS_FIELD_COUNT, _downstream_row),
    UPSTREAM: (US_FIELD_COUNT, _upstream_row),
}


def parse_channels(payload: str, direction: str) -> list[StatRecord]:
    """Decode a channel table into StatRecords in device order.

    Raises ParseError naming every failing entry index; extra trailing
    fields are ignored.
    """
    if direction not in _SCHEMAS:
        raise ValueError(f"Unknown channel direction '{direction}'")
    if not isinstance(payload, str):
        raise ParseError(f"{direction} channel payload is not a string")
    expected, build = _SCHEMAS[direction]

    payload = payload.strip()
    if not payload:
        return []

    records = []
    errors = []
    for index, entry in enumerate(payload.split(ENTRY_DELIMITER)):
        fields = _split_fields(entry)
        if len(fields) < expected:
            errors.append((index, f"expected {expected} fields, got {len(fields)}"))
            continue
        try:
            records.append(build(fields))
        except ValueError as e:
            errors.append((index, str(e)))

    if errors:
        detail = "; ".join(f"entry {i}: {reason}" for i, reason in errors)
        raise ParseError(f"Malformed {direction} channel list ({detail})", rows=errors)
    return records


def parse_uptime(value: str) -> int:
    """Parse ``"4 days 21h:04m:41s"`` into seconds."""
    m = _UPTIME_RE.search(value or "")
    if not m:
        raise ParseError(f"Unrecognised uptime {value!r}")
    return (
        int(m["days"]) * 86400
        + int(m["hours"]) * 3600
        + int(m["minutes"]) * 60
        + int(m["seconds"])
    )


def parse_system_time(value: str) -> datetime:
    """Parse the device clock (``"Sat Oct 17 19:15:00 2026"``), assumed UTC."""
    try:
        return datetime.strptime(value.strip(), "%a %b %d %H:%M:%S %Y").replace(
            tzinfo=timezone.utc
        )
    except (AttributeError, ValueError) as e:
        raise ParseError(f"Unrecognised system time {value!r}") from e


def _require(resp: dict, *keys: str) -> dict:
    missing = [k for k in keys if k not in resp]
    if missing:
        raise ParseError(f"Missing fields: {', '.join(missing)}")
    return {k: resp[k] for k in keys}


def parse_device_status(resp: dict) -> dict:
    """GetArrisDeviceStatus -> firmware and connection state."""
    f = _require(resp, "FirmwareVersion", "InternetConnection")
    return {
        "sw_version": f["FirmwareVersion"],
        "internet_connection": f["InternetConnection"],
    }


def parse_register_info(resp: dict) -> dict:
    """GetArrisRegisterInfo -> model, serial number and MAC."""
    f = _require(resp, "MacAddress", "SerialNumber", "ModelName")
    return {
        "manufacturer": "Arris",
        "model": f["ModelName"],
        "serial_number": f["SerialNumber"],
        "mac_address": f["MacAddress"],
    }


def parse_connection_info(resp: dict) -> dict:
    """GetCustomerStatusConnectionInfo -> uptime, clock, network access."""
    f = _require(
        resp,
        "CustomerConnSystemUpTime",
        "CustomerCurSystemTime",
        "CustomerConnNetworkAccess",
    )
    return {
        "uptime_seconds": parse_uptime(f["CustomerConnSystemUpTime"]),
        "system_time": parse_system_time(f["CustomerCurSystemTime"]),
        "network_access": f["CustomerConnNetworkAccess"],
    }


_STARTUP_STEPS = (
    ("downstream", "CustomerConnDSFreq", "CustomerConnDSComment"),
    ("connectivity", "CustomerConnConnectivityStatus", "CustomerConnConnectivityComment"),
    ("boot", "CustomerConnBootStatus", "CustomerConnBootComment"),
    ("configuration_file", "CustomerConnConfigurationFileStatus",
     "CustomerConnConfigurationFileComment"),
    ("security", "CustomerConnSecurityStatus", "CustomerConnSecurityComment"),
)


def parse_startup_sequence(resp: dict) -> dict:
    """GetCustomerStatusStartupSequence -> {step: {status, comment}}."""
    steps = {}
    for name, status_key, comment_key in _STARTUP_STEPS:
        f = _require(resp, status_key, comment_key)
        steps[name] = {"status": f[status_key], "comment": f[comment_key]}
    return steps


def parse_event_log(payload: str) -> list[LogEntry]:
    """Decode the device event log.

    Entries are separated by ``}-{`` and look like
    ``0^13:14:15^17/10/2026^5^message``. Unknown priorities map to error.
    """
    if not isinstance(payload, str):
        raise ParseError("Event log payload is not a string")
    payload = payload.strip()
    if not payload:
        return []

    entries = []
    errors = []
    for index, line in enumerate(payload.split(LOG_ENTRY_DELIMITER)):
        parts = line.split(FIELD_DELIMITER, 4)
        if len(parts) < 5:
            errors.append((index, f"expected 5 fields, got {len(parts)}"))
            continue
        _, clock, date, priority, message = parts
        try:
            ts = datetime.strptime(f"{date} {clock}", "%d/%m/%Y %H:%M:%S").replace(
                tzinfo=timezone.utc
            )
            level = _LOG_LEVELS.get(int(priority), "error")
        except ValueError as e:
            errors.append((index, str(e)))
            continue
        entries.append(LogEntry(timestamp=ts, level=level, message=message.strip()))

    if errors:
        detail = "; ".join(f"entry {i}: {reason}" for i, reason in errors)
        raise ParseError(f"Malformed event log ({detail})", rows=errors)
    return entries
