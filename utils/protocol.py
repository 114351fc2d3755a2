"""
Protocol definitions for the weather station relay.

This module converts the fowsr sensor reader's stdout protocol into readings
and defines the wire format used between the relay and its subscribers.

Message Types:
- fowsr stdout: whitespace-separated "<token> <value>" lines, one per field
- Subscriber stream: relay → subscriber (JSON Lines, one reading per line)
"""

import json
import logging
import math

logger = logging.getLogger(__name__)


# =============================================================================
# Readings
# =============================================================================

# Field name → numeric value, in the order the fields were decoded
Reading = dict[str, int | float]

FIELD_NAMES = (
    "time",
    "indoor_c",
    "indoor_f",
    "indoor_rh",
    "outdoor_c",
    "outdoor_f",
    "outdoor_rh",
    "pressure_mbar",
    "pressure_inhg",
    "wind_dir",
)

MBAR_TO_INHG = 0.0295299833


def c_to_f(c: float) -> float:
    return (c * 9.0 / 5.0) + 32


def mbar_to_inhg(mbar: float) -> float:
    return mbar * MBAR_TO_INHG


# =============================================================================
# fowsr Output Decoding
# =============================================================================


def _parse_float(token: str) -> float | None:
    try:
        value = float(token)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def _parse_int(token: str) -> int | None:
    """Parse an integer field, accepting integral floats like "270.0"."""
    try:
        return int(token)
    except ValueError:
        pass
    value = _parse_float(token)
    if value is None or not value.is_integer():
        return None
    return int(value)


def _decode_time(value: str) -> Reading | None:
    seconds = _parse_int(value)
    return None if seconds is None else {"time": seconds}


def _decode_indoor_rh(value: str) -> Reading | None:
    rh = _parse_float(value)
    return None if rh is None else {"indoor_rh": rh}


def _decode_outdoor_rh(value: str) -> Reading | None:
    rh = _parse_float(value)
    return None if rh is None else {"outdoor_rh": rh}


def _decode_indoor_temp(value: str) -> Reading | None:
    c = _parse_float(value)
    return None if c is None else {"indoor_c": c, "indoor_f": c_to_f(c)}


def _decode_outdoor_temp(value: str) -> Reading | None:
    c = _parse_float(value)
    return None if c is None else {"outdoor_c": c, "outdoor_f": c_to_f(c)}


def _decode_pressure(value: str) -> Reading | None:
    mbar = _parse_float(value)
    if mbar is None:
        return None
    return {"pressure_mbar": mbar, "pressure_inhg": mbar_to_inhg(mbar)}


def _decode_wind_dir(value: str) -> Reading | None:
    degrees = _parse_int(value)
    return None if degrees is None else {"wind_dir": degrees}


# Leading token of a fowsr output line → field decoder
LINE_DECODERS = {
    "ETime": _decode_time,
    "RHi": _decode_indoor_rh,
    "RHo": _decode_outdoor_rh,
    "Ti": _decode_indoor_temp,
    "To": _decode_outdoor_temp,
    "RP": _decode_pressure,
    "DIR": _decode_wind_dir,
}


def decode_line(line: str) -> Reading | None:
    """
    Decode a single fowsr output line.

    Args:
        line: One line of fowsr output, with or without trailing newline

    Returns:
        Dict of the fields the line produces, or None if the line is
        unrecognized or its value does not parse
    """
    parts = line.split()
    if len(parts) < 2:
        return None
    decoder = LINE_DECODERS.get(parts[0])
    if decoder is None:
        return None
    return decoder(parts[1])


def decode_block(block: str) -> Reading:
    """
    Decode a block of fowsr output into a reading.

    Unrecognized lines are skipped so newer fowsr builds that print extra
    fields keep working. A line whose value fails to parse is skipped the
    same way.

    Args:
        block: Zero or more newline-separated fowsr output lines

    Returns:
        Reading with every field found in the block (empty if none were)
    """
    reading: Reading = {}
    for line in block.splitlines():
        fields = decode_line(line)
        if fields is None:
            if line.strip():
                logger.debug(f"Ignoring fowsr line: {line.strip()!r}")
            continue
        reading.update(fields)
    return reading


# =============================================================================
# Subscriber Wire Format (Relay → Subscriber)
# =============================================================================

RECORD_DELIMITER = b"\n"
DEFAULT_MAX_RECORD_SIZE = 64 * 1024


class FrameError(Exception):
    """Error reassembling records from the subscriber stream."""
    pass


def encode_reading(reading: Reading) -> bytes:
    """
    Encode a reading as a single JSON Lines record.

    Args:
        reading: Non-empty reading

    Returns:
        UTF-8 encoded compact JSON object terminated by a newline

    Raises:
        ValueError: If the reading is empty
    """
    if not reading:
        raise ValueError("Cannot encode empty reading")
    return json.dumps(reading, separators=(",", ":")).encode("utf-8") + RECORD_DELIMITER


class RecordAssembler:
    """
    Reassembles JSON Lines records from a subscriber's byte stream.

    A single recv() may return part of a record, several records, or
    anything in between. Bytes are buffered until a delimiter arrives.
    """

    def __init__(self, max_record_size: int = DEFAULT_MAX_RECORD_SIZE):
        self._buffer = b""
        self._max_record_size = max_record_size

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet forming a complete record."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> list[dict]:
        """
        Add received bytes and return every record completed by them.

        Raises:
            FrameError: If a record is not a JSON object, or a partial
                record grows beyond max_record_size. The buffer is reset.
        """
        self._buffer += chunk
        records = []
        while RECORD_DELIMITER in self._buffer:
            line, self._buffer = self._buffer.split(RECORD_DELIMITER, 1)
            if not line.strip():
                continue
            try:
                record = json.loads(line.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                self._buffer = b""
                raise FrameError(f"Malformed record: {e}") from e
            if not isinstance(record, dict):
                self._buffer = b""
                raise FrameError(f"Record is not an object: {record!r}")
            records.append(record)

        if len(self._buffer) > self._max_record_size:
            size = len(self._buffer)
            self._buffer = b""
            raise FrameError(
                f"Partial record exceeds {self._max_record_size} bytes ({size})"
            )
        return records
