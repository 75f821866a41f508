"""
FIT codec boundary: bytes ⇄ List[Message].

Decoding uses fitparse; encoding uses fit_tool (fitparse is read-only).

Decode mapping:
  fitparse DataMessage     → Message (kind from the global message number)
  FieldData                → FieldValue (number, name, value, units, raw value)
  developer FieldData      → DeveloperFieldValue ((dev_data_index, def_num))
Component-expanded fields (e.g. enhanced_speed derived from speed) are not
stored in the file and are skipped so presence analysis sees what is really
on disk.

Encode mapping (per field, by profile name onto the fit_tool message class):
  datetime                 → milliseconds since the Unix epoch
  units == "semicircles"   → degrees (fit_tool applies the semicircle scale)
  enum string              → its raw integer value
  sport.name               → sport_name (fit_tool's spelling)
Developer values are written with a base type picked from the Python value.
A message fit_tool cannot encode is skipped and reported as an
EncodeFailure; the rest of the file is still written.
"""
import io
import logging
import struct
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import fitparse
from fit_tool.base_type import BaseType
from fit_tool.developer_field import DeveloperField
from fit_tool.exceptions import FitEncodingError
from fit_tool.fit_file_builder import FitFileBuilder
from fit_tool.profile.messages.developer_data_id_message import DeveloperDataIdMessage
from fit_tool.profile.messages.field_description_message import FieldDescriptionMessage
from fit_tool.profile.messages.message_factory import _get_message_class

from inclinefit.fit.messages import (
    DeveloperFieldValue,
    FieldValue,
    Message,
    to_epoch_seconds,
)
from inclinefit.fit.profile import MESG_NUMS, SEMICIRCLES_PER_DEGREE, MessageKind, kind_for_mesg_num

logger = logging.getLogger(__name__)

Source = Union[str, Path, bytes]


class FitDecodeError(Exception):
    """Raised when a FIT file cannot be parsed."""

    def __init__(self, message: str, source: str = "<bytes>"):
        super().__init__(message)
        self.source = source


class FitEncodeError(Exception):
    """Raised when the output file as a whole cannot be built."""


@dataclass(frozen=True)
class EncodeFailure:
    """A message skipped during encoding, with its fields for diagnostics."""

    message_name: str
    error: str
    dump: List[str] = field(default_factory=list)


@dataclass
class EncodeResult:
    data: bytes
    written: int
    failures: List[EncodeFailure] = field(default_factory=list)
    unsupported: Dict[str, int] = field(default_factory=dict)


# ─── Decode ───────────────────────────────────────────────────────────────────


def decode_messages(source: Source) -> List[Message]:
    """
    Decode a FIT file (path or raw bytes) into an ordered list of Messages.

    Raises:
        FitDecodeError: if the file doesn't exist or cannot be parsed as a valid FIT file
    """
    if isinstance(source, (bytes, bytearray)):
        label = "<bytes>"
        fileish: Any = io.BytesIO(bytes(source))
    else:
        path = Path(source)
        label = str(path)
        if not path.exists():
            raise FitDecodeError(f"FIT file not found: {path}", source=label)
        fileish = str(path)

    try:
        fit = fitparse.FitFile(fileish)
        fit.parse()
        raw_messages = list(fit.messages)
    except Exception as exc:
        raise FitDecodeError(f"Failed to parse FIT file {label}: {exc}", source=label) from exc

    return [_from_fitparse(dm) for dm in raw_messages]


def _from_fitparse(data_message) -> Message:
    mesg_num = getattr(data_message, "mesg_num", None)
    msg = Message(
        kind=kind_for_mesg_num(mesg_num),
        name=data_message.name,
        mesg_num=mesg_num,
    )
    for fd in data_message.fields:
        field_def = fd.field_def
        if field_def is None:
            continue  # expanded component, not present in the file

        dev_index = getattr(field_def, "dev_data_index", None)
        if dev_index is not None:
            msg.developer_fields.append(DeveloperFieldValue(
                developer_index=dev_index,
                number=field_def.def_num,
                name=fd.name,
                value=fd.value,
                units=fd.units,
            ))
            continue

        num = fd.def_num
        existing = msg.fields.get(num)
        if existing is not None and existing.value is not None:
            continue
        # Subfields (e.g. garmin_product) are stored under their parent's name
        parent = getattr(fd, "parent_field", None)
        name = parent.name if parent is not None else fd.name
        msg.fields[num] = FieldValue(
            name=name,
            number=num,
            value=fd.value,
            units=fd.units,
            raw_value=fd.raw_value,
        )
    return msg


# ─── Encode ───────────────────────────────────────────────────────────────────

# Global message numbers of the developer-data bookkeeping messages
DEVELOPER_DATA_ID = 207
FIELD_DESCRIPTION = 206

# Profile names that fitparse and fit_tool spell differently
_FIELD_ALIASES: Dict[MessageKind, Dict[str, str]] = {
    MessageKind.SPORT: {"name": "sport_name"},
}

# Field description fields carried over from the source stream
_DESCRIPTION_PASSTHROUGH = ("native_mesg_num", "native_field_num")


def _encoder_for(message: Message):
    """fit_tool message class for the message's global number, or None."""
    mesg_num = message.mesg_num
    if mesg_num is None:
        mesg_num = MESG_NUMS.get(message.kind)
    if mesg_num is None:
        return None
    return _get_message_class(mesg_num)


def _encoded_value(fv: FieldValue) -> Any:
    value = fv.value
    if isinstance(value, datetime):
        return int(round(to_epoch_seconds(value) * 1000))
    if fv.units == "semicircles" and isinstance(value, (int, float)):
        return value / SEMICIRCLES_PER_DEGREE
    if isinstance(value, str) and isinstance(fv.raw_value, int):
        return fv.raw_value
    if isinstance(value, tuple):
        return list(value)
    return value


def _to_fit_tool(message: Message, cls):
    fit_message = cls()
    aliases = _FIELD_ALIASES.get(message.kind, {})
    for fv in message.fields.values():
        if fv.value is None:
            continue
        name = aliases.get(fv.name, fv.name)
        if not isinstance(getattr(cls, name, None), property):
            logger.debug("%s: no encoder for field %s, dropped", message.name, fv.name)
            continue
        setattr(fit_message, name, _encoded_value(fv))
    return fit_message


def _base_type_for(value: Any) -> Optional[BaseType]:
    if isinstance(value, (list, tuple)):
        sample = next((v for v in value if v is not None), 0)
        return _base_type_for(sample)
    if isinstance(value, (bytes, bytearray)):
        return BaseType.BYTE
    if isinstance(value, str):
        return BaseType.STRING
    if isinstance(value, float):
        return BaseType.FLOAT64
    if isinstance(value, int):
        if -(2**31) <= value < 2**31 - 1:
            return BaseType.SINT32
        return BaseType.SINT64
    return None


@dataclass
class _DeveloperLayout:
    """Base type, name and units chosen for each (developer_index, number)."""

    fields: Dict[Tuple[int, int], Tuple[BaseType, DeveloperFieldValue]]
    native: Dict[Tuple[int, int], Message]

    @classmethod
    def scan(cls, messages: Sequence[Message]) -> "_DeveloperLayout":
        fields: Dict[Tuple[int, int], Tuple[BaseType, DeveloperFieldValue]] = {}
        native: Dict[Tuple[int, int], Message] = {}
        for message in messages:
            if message.mesg_num == FIELD_DESCRIPTION:
                key = (_raw(message, "developer_data_index"), _raw(message, "field_definition_number"))
                native[key] = message
            for df in message.developer_fields:
                if df.value is None or df.key in fields:
                    continue
                base_type = _base_type_for(df.value)
                if base_type is None:
                    logger.warning("developer field %s: cannot encode %r, dropped", df.name or df.key, df.value)
                    continue
                fields[df.key] = (base_type, df)
        return cls(fields=fields, native=native)

    def descriptions(self) -> List[FieldDescriptionMessage]:
        out = []
        for key, (base_type, df) in sorted(self.fields.items()):
            desc = FieldDescriptionMessage()
            desc.developer_data_index = df.developer_index
            desc.field_definition_number = df.number
            desc.fit_base_type_id = base_type.value
            desc.field_name = df.name or f"field_{df.number}"
            if df.units:
                desc.units = df.units
            source = self.native.get(key)
            if source is not None:
                for name in _DESCRIPTION_PASSTHROUGH:
                    value = _raw(source, name)
                    if value is not None:
                        setattr(desc, name, value)
            out.append(desc)
        return out

    def attach(self, fit_message, message: Message) -> None:
        dev_fields = []
        for df in message.developer_fields:
            layout = self.fields.get(df.key)
            if layout is None:
                continue
            base_type, described = layout
            dev_field = DeveloperField(
                field_id=df.number,
                name=described.name or "",
                base_type=base_type,
                units=described.units or "",
                growable=True,
                developer_data_index=df.developer_index,
            )
            values = df.value if isinstance(df.value, (list, tuple, bytes, bytearray)) else [df.value]
            for index, value in enumerate(values):
                dev_field.set_value(index, value)
            dev_fields.append(dev_field)
        fit_message.developer_fields = dev_fields


def _raw(message: Message, name: str) -> Any:
    fv = message.get_field(name)
    if fv is None:
        return None
    return fv.raw_value if fv.raw_value is not None else fv.value


def _partition(messages: Sequence[Message]) -> Tuple[List[Message], List[Message]]:
    """
    Split into the head (FILE_ID, then developer data ids) and everything else.

    Field descriptions are dropped; they are regenerated to match the base
    types the developer values are written with.
    """
    file_ids = [m for m in messages if m.kind is MessageKind.FILE_ID]
    if not file_ids:
        logger.warning("No FILE_ID message; output may be rejected by some readers")
    dev_ids = [m for m in messages if m.mesg_num == DEVELOPER_DATA_ID]
    rest = [
        m for m in messages
        if m.kind is not MessageKind.FILE_ID and m.mesg_num not in (DEVELOPER_DATA_ID, FIELD_DESCRIPTION)
    ]
    return file_ids[:1] + dev_ids, rest


def _developer_definitions(messages: Sequence[Message], layout: _DeveloperLayout) -> list:
    declared = {_raw(m, "developer_data_index") for m in messages if m.mesg_num == DEVELOPER_DATA_ID}
    definitions: list = []
    for index in sorted({dev_index for dev_index, _ in layout.fields}):
        if index in declared:
            continue
        dev_id = DeveloperDataIdMessage()
        dev_id.developer_data_index = index
        definitions.append(dev_id)
    return definitions + layout.descriptions()


class _Encoder:
    """Feeds Messages into a FitFileBuilder, recording what was skipped."""

    def __init__(self, layout: _DeveloperLayout):
        self.builder = FitFileBuilder(auto_define=True, min_string_size=50)
        self.layout = layout
        self.failures: List[EncodeFailure] = []
        self.unsupported: Counter = Counter()
        self.written = 0

    def add_raw(self, fit_message) -> None:
        self.builder.add(fit_message)
        self.written += 1

    def add(self, message: Message) -> None:
        cls = _encoder_for(message)
        if cls is None:
            self.unsupported[message.name] += 1
            return
        try:
            fit_message = _to_fit_tool(message, cls)
            self.layout.attach(fit_message, message)
            fit_message.to_bytes()
        except (ValueError, TypeError, OverflowError, struct.error, FitEncodingError) as exc:
            dump = message.dump()
            logger.error("ERROR encoding message %s: %s", message.name, exc)
            for line in dump:
                logger.error("  %s", line)
            self.failures.append(EncodeFailure(message_name=message.name, error=str(exc), dump=dump))
            return
        self.add_raw(fit_message)


def encode_messages(messages: Sequence[Message]) -> EncodeResult:
    """
    Encode Messages into FIT bytes, FILE_ID first.

    Each message goes through fit_tool's class for its global message number,
    so every kind fit_tool's profile knows is written, not only the ones the
    pipeline rewrites. Developer fields are written back with one field
    description per (developer_index, number), ahead of the first data
    message.

    Raises:
        FitEncodeError: if the assembled file cannot be serialized.
    """
    layout = _DeveloperLayout.scan(messages)
    encoder = _Encoder(layout)
    head, rest = _partition(messages)

    for message in head:
        encoder.add(message)
    for definition in _developer_definitions(messages, layout):
        encoder.add_raw(definition)
    for message in rest:
        encoder.add(message)

    if encoder.unsupported:
        logger.warning(
            "Dropped %d message(s) with no encoder: %s",
            sum(encoder.unsupported.values()),
            ", ".join(f"{name} x{n}" for name, n in sorted(encoder.unsupported.items())),
        )

    try:
        data = encoder.builder.build().to_bytes()
    except Exception as exc:
        raise FitEncodeError(f"Failed to build FIT file: {exc}") from exc

    return EncodeResult(
        data=data,
        written=encoder.written,
        failures=encoder.failures,
        unsupported=dict(encoder.unsupported),
    )


def write_messages(messages: Sequence[Message], path: Union[str, Path]) -> EncodeResult:
    result = encode_messages(messages)
    Path(path).write_bytes(result.data)
    return result


def failure_summary(result: EncodeResult) -> Optional[str]:
    if not result.failures:
        return None
    names = Counter(f.message_name for f in result.failures)
    return ", ".join(f"{name} x{n}" for name, n in sorted(names.items()))
