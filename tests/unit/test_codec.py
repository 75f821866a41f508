"""Tests for the FIT codec boundary.

Decoding is tested against a mocked fitparse.FitFile so no fixture file is
needed; encoding runs through fit_tool, with the builder patched where a
test only cares about which messages reach it.
"""
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from inclinefit.fit import codec
from inclinefit.fit.codec import (
    FitDecodeError,
    FitEncodeError,
    decode_messages,
    encode_messages,
    failure_summary,
    write_messages,
)
from inclinefit.fit.messages import DeveloperFieldValue, FieldValue, Message
from inclinefit.fit.profile import MessageKind

from conftest import START, make_record


# ─── Helpers ──────────────────────────────────────────────────────────────────

def fd(name, def_num, value, units=None, raw_value=None, dev_index=None, parent=None):
    """Minimal stand-in for fitparse FieldData."""
    field_def = SimpleNamespace(def_num=def_num, dev_data_index=dev_index)
    return SimpleNamespace(
        name=name,
        def_num=def_num,
        value=value,
        units=units,
        raw_value=value if raw_value is None else raw_value,
        field_def=field_def,
        parent_field=parent,
    )


def expanded(name, value):
    """A component-expanded field: fitparse gives it no field_def."""
    return SimpleNamespace(
        name=name, def_num=None, value=value, units=None, raw_value=None,
        field_def=None, parent_field=None,
    )


def data_message(name, mesg_num, fields):
    return SimpleNamespace(name=name, mesg_num=mesg_num, fields=fields)


def patched_fitfile(messages):
    fit = MagicMock()
    fit.messages = messages
    return patch("inclinefit.fit.codec.fitparse.FitFile", return_value=fit)


def numeric_session():
    """Messages that fit_tool can encode without enum name lookups."""
    file_id = Message.create(MessageKind.FILE_ID)
    file_id.set("type", "activity", raw_value=4)
    file_id.set("manufacturer", "development", raw_value=255)
    file_id.set("product", 0)
    file_id.set("time_created", START)
    records = []
    for t in range(3):
        rec = make_record(t, t * 10.0, enhanced_speed=2.5, enhanced_altitude=100.0 + t)
        rec.set("position_lat", 500_000_000 + t, units="semicircles")
        rec.set("position_long", -1_000_000_000, units="semicircles")
        records.append(rec)
    return [file_id, *records]


# ─── Decode ───────────────────────────────────────────────────────────────────

class TestDecode:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FitDecodeError) as exc_info:
            decode_messages(tmp_path / "nope.fit")
        assert "nope.fit" in exc_info.value.source

    def test_parse_error_wrapped(self):
        with patch("inclinefit.fit.codec.fitparse.FitFile", side_effect=ValueError("bad header")):
            with pytest.raises(FitDecodeError, match="bad header"):
                decode_messages(b"\x00\x01")

    def test_garbage_bytes_rejected(self):
        with pytest.raises(FitDecodeError):
            decode_messages(b"definitely not a fit file")

    def test_maps_fields_and_kinds(self):
        rec = data_message("record", 20, [
            fd("timestamp", 253, datetime(2025, 1, 1)),
            fd("speed", 6, 2.5, units="m/s", raw_value=2500),
            expanded("enhanced_speed", 2.5),
        ])
        with patched_fitfile([rec]):
            msgs = decode_messages(b"...")
        assert len(msgs) == 1
        msg = msgs[0]
        assert msg.kind is MessageKind.RECORD
        assert msg.get("speed") == 2.5
        assert msg.get_field("speed").raw_value == 2500
        assert not msg.has("enhanced_speed")

    def test_developer_fields_separated(self):
        rec = data_message("record", 20, [
            fd("power", 0, 250, units="W", dev_index=1),
            fd("distance", 5, 10.0),
        ])
        with patched_fitfile([rec]):
            msg = decode_messages(b"...")[0]
        assert msg.developer_fields == [
            DeveloperFieldValue(developer_index=1, number=0, name="power", value=250, units="W")
        ]
        assert list(msg.fields) == [5]

    def test_subfield_stored_under_parent_name(self):
        product = SimpleNamespace(name="product")
        file_id = data_message("file_id", 0, [fd("garmin_product", 2, "fr945", raw_value=3113, parent=product)])
        with patched_fitfile([file_id]):
            msg = decode_messages(b"...")[0]
        assert msg.get("product") == "fr945"

    def test_unknown_message_kind(self):
        with patched_fitfile([data_message("unknown_233", 233, [])]):
            msg = decode_messages(b"...")[0]
        assert msg.kind is MessageKind.OTHER
        assert msg.mesg_num == 233


# ─── Encode ───────────────────────────────────────────────────────────────────

class TestEncode:
    def test_round_trip_keeps_gap_fields(self):
        result = encode_messages(numeric_session())
        assert result.failures == []
        assert result.written == 4
        decoded = decode_messages(result.data)
        records = [m for m in decoded if m.kind is MessageKind.RECORD]
        assert len(records) == 3
        assert records[0].kind is MessageKind.RECORD
        assert records[1].get("distance") == pytest.approx(10.0, abs=0.01)
        assert records[2].get("enhanced_altitude") == pytest.approx(102.0, abs=0.2)
        assert abs(records[0].get("position_lat") - 500_000_000) <= 1

    def test_file_id_written_first(self):
        msgs = numeric_session()
        msgs.append(msgs.pop(0))
        builder = MagicMock()
        with patch("inclinefit.fit.codec.FitFileBuilder", return_value=builder):
            encode_messages(msgs)
        first = builder.add.call_args_list[0].args[0]
        assert type(first).__name__ == "FileIdMessage"

    def test_hrv_messages_survive(self):
        hrv = [
            Message(kind=MessageKind.HRV, name="hrv", mesg_num=78,
                    fields={0: FieldValue("time", 0, (0.512, 0.498), units="s")}),
            Message(kind=MessageKind.HRV, name="hrv", mesg_num=78,
                    fields={0: FieldValue("time", 0, (0.505, 0.521), units="s")}),
        ]
        result = encode_messages(numeric_session() + hrv)
        assert result.unsupported == {}
        assert result.written == 6
        decoded = [m for m in decode_messages(result.data) if m.kind is MessageKind.HRV]
        assert len(decoded) == 2
        assert decoded[0].get_field("time").value[0] == pytest.approx(0.512)
        assert decoded[1].get_field("time").value[0] == pytest.approx(0.505)

    def test_sport_name_survives(self):
        sport = Message.create(MessageKind.SPORT, name="Run")
        sport.set("sport", "running", raw_value=1)
        result = encode_messages(numeric_session() + [sport])
        assert result.failures == []
        decoded = [m for m in decode_messages(result.data) if m.kind is MessageKind.SPORT]
        assert len(decoded) == 1
        assert decoded[0].get("name") == "Run"
        assert decoded[0].get("sport") == "running"

    def test_kinds_unknown_to_fit_tool_counted(self, caplog):
        vendor = Message(kind=MessageKind.OTHER, name="unknown_65280", mesg_num=65280)
        result = encode_messages(numeric_session() + [vendor, vendor])
        assert result.unsupported == {"unknown_65280": 2}
        assert "no encoder" in caplog.text

    def test_developer_fields_preserved(self):
        msgs = numeric_session()
        for i, rec in enumerate(msgs[1:]):
            rec.developer_fields.append(DeveloperFieldValue(0, 1, "doughnuts", 200 + i, units="doughnuts"))
        msgs[2].developer_fields.append(DeveloperFieldValue(0, 2, "label", "uphill"))
        result = encode_messages(msgs)
        assert result.failures == []
        decoded = decode_messages(result.data)
        names = [m.name for m in decoded]
        assert names.index("developer_data_id") < names.index("field_description") < names.index("record")
        records = [m for m in decoded if m.kind is MessageKind.RECORD]
        assert [r.developer_fields[0].value for r in records] == [200, 201, 202]
        first = records[0].developer_fields[0]
        assert first.key == (0, 1)
        assert first.name == "doughnuts"
        assert first.units == "doughnuts"
        label = [df for df in records[1].developer_fields if df.key == (0, 2)]
        assert label[0].value == "uphill"

    def test_source_field_descriptions_regenerated(self):
        msgs = numeric_session()
        dev_id = Message(kind=MessageKind.OTHER, name="developer_data_id", mesg_num=207, fields={
            3: FieldValue("developer_data_index", 3, 0, raw_value=0),
        })
        description = Message(kind=MessageKind.OTHER, name="field_description", mesg_num=206, fields={
            0: FieldValue("developer_data_index", 0, 0, raw_value=0),
            1: FieldValue("field_definition_number", 1, 1, raw_value=1),
            2: FieldValue("fit_base_type_id", 2, "uint8", raw_value=2),
            3: FieldValue("field_name", 3, "power"),
        })
        msgs[1:1] = [dev_id, description]
        msgs[-1].developer_fields.append(DeveloperFieldValue(0, 1, "power", 250.5, units="W"))
        result = encode_messages(msgs)
        decoded = decode_messages(result.data)
        assert [m.name for m in decoded].count("developer_data_id") == 1
        assert [m.name for m in decoded].count("field_description") == 1
        record = [m for m in decoded if m.kind is MessageKind.RECORD][-1]
        assert record.developer_fields[0].value == pytest.approx(250.5)

    def test_failing_message_skipped_and_reported(self, caplog):
        class Exploding:
            def to_bytes(self):
                raise ValueError("value out of range")

        msgs = numeric_session()
        real_to_fit_tool = codec._to_fit_tool

        def convert(message, cls):
            if message is msgs[2]:
                return Exploding()
            return real_to_fit_tool(message, cls)

        with patch.object(codec, "_to_fit_tool", side_effect=convert):
            result = encode_messages(msgs)
        assert len(result.failures) == 1
        failure = result.failures[0]
        assert failure.message_name == "record"
        assert "out of range" in failure.error
        assert any(line.startswith("distance") for line in failure.dump)
        assert result.written == 3
        assert failure_summary(result) == "record x1"
        assert "ERROR encoding message record" in caplog.text

    def test_build_failure_raises(self):
        builder = MagicMock()
        builder.build.side_effect = RuntimeError("boom")
        with patch("inclinefit.fit.codec.FitFileBuilder", return_value=builder):
            with pytest.raises(FitEncodeError, match="boom"):
                encode_messages(numeric_session())

    def test_write_messages(self, tmp_path):
        out = tmp_path / "out.fit"
        result = write_messages(numeric_session(), out)
        assert out.read_bytes() == result.data

    def test_failure_summary_none_when_clean(self):
        assert failure_summary(encode_messages(numeric_session())) is None
