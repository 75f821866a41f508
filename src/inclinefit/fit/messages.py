"""
In-memory message model shared by synthesis and analysis.

A Message is one decoded FIT data message: its kind, profile name, global
message number, a mapping from field number to FieldValue, and the
developer fields attached to it. The codec (fit.codec) builds these from
fitparse output and turns them back into fit_tool messages on encode.

has_value() / present_fields() are the field presence scanner: a field is
present when it exists on the message and holds a non-None value (for array
fields, at least one non-None element).
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from inclinefit.fit.profile import FIELD_NUMBERS, MESG_NUMS, MessageKind


@dataclass(frozen=True)
class FieldValue:
    """One profile field on a message."""

    name: str
    number: int
    value: Any
    units: Optional[str] = None
    raw_value: Any = None   # un-scaled / un-enumerated value, when the codec knows it


@dataclass(frozen=True)
class DeveloperFieldValue:
    """One developer-defined field, identified by (developer_index, number)."""

    developer_index: int
    number: int
    name: Optional[str]
    value: Any
    units: Optional[str] = None

    @property
    def key(self) -> Tuple[int, int]:
        return (self.developer_index, self.number)


def _holds_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple)):
        return any(v is not None for v in value)
    return True


@dataclass
class Message:
    """One decoded FIT data message."""

    kind: MessageKind
    name: str
    mesg_num: Optional[int] = None
    fields: Dict[int, FieldValue] = field(default_factory=dict)
    developer_fields: List[DeveloperFieldValue] = field(default_factory=list)

    @classmethod
    def create(cls, kind: MessageKind, **values: Any) -> "Message":
        """Build a message of a known kind from profile field names."""
        msg = cls(kind=kind, name=kind.value, mesg_num=MESG_NUMS.get(kind))
        for name, value in values.items():
            msg.set(name, value)
        return msg

    def field_number(self, name: str) -> Optional[int]:
        for num, fv in self.fields.items():
            if fv.name == name:
                return num
        return FIELD_NUMBERS.get(self.kind, {}).get(name)

    def get_field(self, name: str) -> Optional[FieldValue]:
        num = self.field_number(name)
        if num is None:
            return None
        return self.fields.get(num)

    def get(self, name: str, default: Any = None) -> Any:
        fv = self.get_field(name)
        if fv is None or fv.value is None:
            return default
        return fv.value

    def has(self, name: str) -> bool:
        fv = self.get_field(name)
        return fv is not None and _holds_value(fv.value)

    def set(
        self,
        name: str,
        value: Any,
        units: Optional[str] = None,
        raw_value: Any = None,
    ) -> None:
        """
        Set a field by profile name.

        Raises:
            KeyError: if the field has no known number on this message kind.
        """
        num = self.field_number(name)
        if num is None:
            raise KeyError(f"{self.name} has no field named {name!r}")
        existing = self.fields.get(num)
        if units is None and existing is not None:
            units = existing.units
        self.fields[num] = FieldValue(
            name=name, number=num, value=value, units=units, raw_value=raw_value
        )

    def remove(self, name: str) -> None:
        num = self.field_number(name)
        if num is not None:
            self.fields.pop(num, None)

    def copy(self) -> "Message":
        return Message(
            kind=self.kind,
            name=self.name,
            mesg_num=self.mesg_num,
            fields=dict(self.fields),
            developer_fields=list(self.developer_fields),
        )

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.get("timestamp")

    def dump(self) -> List[str]:
        """One line per field holding a value, for failure diagnostics."""
        lines = []
        for num in sorted(self.fields):
            fv = self.fields[num]
            if not _holds_value(fv.value):
                continue
            lines.append(f"{fv.name:<25} (num={num:3d}) → {fv.value!r}")
        for df in self.developer_fields:
            lines.append(
                f"dev[{df.developer_index}:{df.number}] {df.name or '?':<17} → {df.value!r}"
            )
        return lines


# ─── Field presence scanner ───────────────────────────────────────────────────


def has_value(message: Optional[Message], name: str) -> bool:
    if message is None:
        return False
    return message.has(name)


def present_fields(message: Message) -> FrozenSet[str]:
    """Names of all profile fields on the message that hold a value."""
    return frozenset(fv.name for fv in message.fields.values() if _holds_value(fv.value))


def has_developer_fields(message: Message) -> bool:
    return any(_holds_value(df.value) for df in message.developer_fields)


def messages_of(messages: Iterable[Message], kind: MessageKind) -> List[Message]:
    return [m for m in messages if m.kind is kind]


def first_of(messages: Iterable[Message], kind: MessageKind) -> Optional[Message]:
    for m in messages:
        if m.kind is kind:
            return m
    return None


def to_epoch_seconds(value: Any) -> Optional[float]:
    """
    Convert a FIT timestamp value to seconds.

    fitparse yields naive datetimes in UTC; plain numbers pass through.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    return float(value)
