"""Shared test fixtures."""
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

import pytest

from inclinefit.fit.messages import DeveloperFieldValue, Message
from inclinefit.fit.profile import MessageKind

FIXTURES_DIR = Path(__file__).parent / "fixtures"

START = datetime(2025, 1, 15, 7, 30)


def at(seconds: float) -> datetime:
    return START + timedelta(seconds=seconds)


def make_record(
    seconds: Optional[float],
    distance: Optional[float] = None,
    **values,
) -> Message:
    """A RECORD message `seconds` after START (None → no timestamp)."""
    msg = Message.create(MessageKind.RECORD, **values)
    if seconds is not None:
        msg.set("timestamp", at(seconds))
    if distance is not None:
        msg.set("distance", distance, units="m")
    return msg


def make_lap(start: float, end: float, total_distance: Optional[float], index: int = 0, **values) -> Message:
    msg = Message.create(
        MessageKind.LAP,
        message_index=index,
        start_time=at(start),
        timestamp=at(end),
        **values,
    )
    if total_distance is not None:
        msg.set("total_distance", total_distance, units="m")
    return msg


def make_session(total_distance: Optional[float] = 100.0, **values) -> Message:
    msg = Message.create(
        MessageKind.SESSION,
        timestamp=at(10),
        start_time=at(0),
        sport="running",
        sub_sport="treadmill",
        **values,
    )
    if total_distance is not None:
        msg.set("total_distance", total_distance, units="m")
    return msg


def gap_ready_record(seconds: float, distance: float) -> Message:
    return make_record(
        seconds,
        distance,
        position_lat=500_000_000,
        position_long=-1_090_000_000,
        enhanced_altitude=250.0,
        enhanced_speed=2.5,
    )


def treadmill_session() -> List[Message]:
    """
    A short indoor run: 11 records at 1 Hz covering 100 m at 10 m/s steps,
    legacy speed / altitude on every record, one lap, one session.
    """
    records = [
        make_record(t, t * 10.0, speed=2.5, altitude=200.0, heart_rate=140)
        for t in range(11)
    ]
    return [
        Message.create(
            MessageKind.FILE_ID,
            type="activity",
            manufacturer="garmin",
            product=3113,
            time_created=START,
        ),
        Message.create(MessageKind.DEVICE_INFO),
        Message.create(MessageKind.EVENT, timestamp=at(0), event="timer", event_type="start"),
        Message.create(MessageKind.SPORT, sport="running", sub_sport="treadmill", name="Treadmill"),
        Message.create(MessageKind.WORKOUT),
        *records,
        Message.create(MessageKind.EVENT, timestamp=at(10), event="timer", event_type="stop_all"),
        make_lap(0, 10, 100.0, avg_speed=2.5, max_speed=3.0, min_altitude=200.0, max_altitude=200.0),
        make_session(100.0, avg_speed=2.5, max_speed=3.0),
        Message.create(MessageKind.ACTIVITY, timestamp=at(10), event="activity", event_type="stop"),
    ]


@pytest.fixture(name="treadmill_messages")
def treadmill_messages_fixture() -> List[Message]:
    return treadmill_session()


@pytest.fixture(name="dev_field")
def dev_field_fixture() -> DeveloperFieldValue:
    return DeveloperFieldValue(developer_index=0, number=1, name="power", value=250, units="W")
