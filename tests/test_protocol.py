"""Tests for fowsr output decoding and the subscriber wire format."""

import json

import pytest

from utils.protocol import (
    FIELD_NAMES,
    FrameError,
    RecordAssembler,
    c_to_f,
    decode_block,
    decode_line,
    encode_reading,
    mbar_to_inhg,
)

SAMPLE_BLOCK = (
    "ETime 1416898363\n"
    "RHi 52.0\n"
    "Ti 16.3\n"
    "RHo 72.0\n"
    "To 0.7\n"
    "RP 1004.3\n"
    "DIR 270.0\n"
)


class TestConversions:
    """Tests for unit conversions."""

    def test_freezing_point(self):
        assert c_to_f(0.0) == 32.0

    def test_boiling_point(self):
        assert c_to_f(100.0) == pytest.approx(212.0)

    def test_negative_forty(self):
        """-40 is the same in both scales."""
        assert c_to_f(-40.0) == pytest.approx(-40.0)

    def test_standard_pressure(self):
        assert mbar_to_inhg(1013.25) == pytest.approx(29.92, abs=0.01)


class TestDecodeBlock:
    """Tests for decode_block."""

    def test_sample_block(self):
        """A full fowsr block decodes to every field."""
        reading = decode_block(SAMPLE_BLOCK)

        assert reading["time"] == 1416898363
        assert reading["indoor_rh"] == 52.0
        assert reading["indoor_c"] == 16.3
        assert reading["indoor_f"] == pytest.approx(61.34)
        assert reading["outdoor_rh"] == 72.0
        assert reading["outdoor_c"] == 0.7
        assert reading["outdoor_f"] == pytest.approx(33.26)
        assert reading["pressure_mbar"] == 1004.3
        assert reading["pressure_inhg"] == pytest.approx(mbar_to_inhg(1004.3))
        assert reading["pressure_inhg"] == pytest.approx(29.657, abs=1e-3)
        assert reading["wind_dir"] == 270
        assert set(reading) == set(FIELD_NAMES)

    def test_integer_fields_are_ints(self):
        reading = decode_block(SAMPLE_BLOCK)
        assert isinstance(reading["time"], int)
        assert isinstance(reading["wind_dir"], int)

    def test_fields_in_line_order(self):
        """Fields appear in the order their lines were read."""
        reading = decode_block("To 1.0\nETime 5\n")
        assert list(reading) == ["outdoor_c", "outdoor_f", "time"]

    def test_empty_block(self):
        assert decode_block("") == {}

    def test_no_recognized_lines(self):
        assert decode_block("hello world\nWS 3.2\n\n") == {}

    def test_unknown_lines_ignored(self):
        """Only fields from recognized lines are produced."""
        reading = decode_block("Gust 4.5\nTi 20.0\nRain 0.3\nmystery\n")
        assert reading == {"indoor_c": 20.0, "indoor_f": pytest.approx(68.0)}

    def test_unparsable_value_ignored(self):
        reading = decode_block("Ti abc\nRHo 80\n")
        assert reading == {"outdoor_rh": 80.0}

    def test_missing_value_ignored(self):
        assert decode_block("Ti\nDIR\n") == {}

    def test_non_finite_value_ignored(self):
        assert decode_block("Ti nan\nTo inf\n") == {}

    def test_fractional_integer_field_ignored(self):
        """ETime and DIR only accept whole numbers."""
        assert decode_block("DIR 22.5\nETime 12.7\n") == {}

    def test_prefix_must_match_whole_token(self):
        """'Tiny' is not 'Ti', and 'RHix' is not 'RHi'."""
        assert decode_block("Tiny 5\nRHix 40\n") == {}

    def test_extra_tokens_ignored(self):
        assert decode_block("RP 1000.0 hPa\n") == {
            "pressure_mbar": 1000.0,
            "pressure_inhg": pytest.approx(29.53, abs=0.01),
        }

    def test_crlf_and_surrounding_whitespace(self):
        reading = decode_block("  ETime 100\r\n\tRHi 40.5  \r\n")
        assert reading == {"time": 100, "indoor_rh": 40.5}

    def test_later_line_wins(self):
        """Repeated lines in one block keep the last value."""
        assert decode_block("RHi 40\nRHi 41\n") == {"indoor_rh": 41.0}

    def test_no_trailing_newline(self):
        assert decode_block("DIR 90") == {"wind_dir": 90}


class TestDecodeLine:
    """Tests for decode_line."""

    def test_known_line(self):
        assert decode_line("RHo 72.0\n") == {"outdoor_rh": 72.0}

    def test_unknown_line(self):
        assert decode_line("WSP 3.4") is None

    def test_blank_line(self):
        assert decode_line("   ") is None

    def test_negative_temperature(self):
        fields = decode_line("To -12.5")
        assert fields["outdoor_c"] == -12.5
        assert fields["outdoor_f"] == pytest.approx(9.5)


class TestEncodeReading:
    """Tests for encode_reading."""

    def test_single_line_json_object(self):
        record = encode_reading({"time": 1, "indoor_c": 20.5})
        assert record.endswith(b"\n")
        assert record.count(b"\n") == 1
        assert json.loads(record) == {"time": 1, "indoor_c": 20.5}

    def test_compact(self):
        assert encode_reading({"wind_dir": 90}) == b'{"wind_dir":90}\n'

    def test_empty_reading_rejected(self):
        with pytest.raises(ValueError):
            encode_reading({})


class TestRecordAssembler:
    """Tests for RecordAssembler."""

    def test_whole_record(self):
        assembler = RecordAssembler()
        assert assembler.feed(b'{"time":1}\n') == [{"time": 1}]
        assert assembler.pending == 0

    def test_split_record(self):
        """A record split across reads is returned once complete."""
        assembler = RecordAssembler()
        assert assembler.feed(b'{"time":') == []
        assert assembler.pending == 8
        assert assembler.feed(b'1}\n') == [{"time": 1}]

    def test_coalesced_records(self):
        """Several records in one read are all returned, in order."""
        assembler = RecordAssembler()
        data = encode_reading({"time": 1}) + encode_reading({"time": 2}) + b'{"ti'
        assert assembler.feed(data) == [{"time": 1}, {"time": 2}]
        assert assembler.feed(b'me":3}\n') == [{"time": 3}]

    def test_blank_lines_skipped(self):
        assert RecordAssembler().feed(b'\n\n{"time":1}\n') == [{"time": 1}]

    def test_decodes_relay_output(self):
        reading = decode_block(SAMPLE_BLOCK)
        records = RecordAssembler().feed(encode_reading(reading))
        assert records[0]["time"] == 1416898363
        assert records[0]["wind_dir"] == 270

    def test_malformed_record(self):
        assembler = RecordAssembler()
        with pytest.raises(FrameError):
            assembler.feed(b"not json\n")
        assert assembler.pending == 0

    def test_non_object_record(self):
        with pytest.raises(FrameError):
            RecordAssembler().feed(b"[1, 2]\n")

    def test_oversized_partial_record(self):
        assembler = RecordAssembler(max_record_size=16)
        with pytest.raises(FrameError):
            assembler.feed(b'{"time": 1234567890123')
        assert assembler.pending == 0
