"""
Utility modules for the relay.

This package provides the fowsr protocol decoder and the subscriber wire
format, shared by the relay daemon and its clients.
"""

from .protocol import (
    FIELD_NAMES,
    FrameError,
    Reading,
    RecordAssembler,
    c_to_f,
    decode_block,
    decode_line,
    encode_reading,
    mbar_to_inhg,
)

__all__ = [
    # fowsr output decoding
    "FIELD_NAMES",
    "Reading",
    "decode_block",
    "decode_line",
    # Unit conversions
    "c_to_f",
    "mbar_to_inhg",
    # Subscriber wire format
    "FrameError",
    "RecordAssembler",
    "encode_reading",
]
