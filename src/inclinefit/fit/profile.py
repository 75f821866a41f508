"""
FIT profile constants used by the pipeline.

Only the slice of the Garmin FIT profile this project reads or writes is
listed here: global message numbers, the field numbers of the record / lap /
session / sport fields that synthesis touches, and the sub-sport capability
table.

Field numbers follow FIT SDK profile 21.x.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

# Garmin stores lat/lon as 32-bit signed integers in "semicircles"
SEMICIRCLES_PER_DEGREE = (2**31) / 180.0


class MessageKind(str, Enum):
    """Closed set of message categories the pipeline dispatches on."""

    FILE_ID = "file_id"
    FILE_CREATOR = "file_creator"
    DEVICE_INFO = "device_info"
    EVENT = "event"
    RECORD = "record"
    LAP = "lap"
    SESSION = "session"
    ACTIVITY = "activity"
    SPORT = "sport"
    USER_PROFILE = "user_profile"
    HRV = "hrv"
    WORKOUT = "workout"
    WORKOUT_STEP = "workout_step"
    OTHER = "other"


MESG_NUMS: Dict[MessageKind, int] = {
    MessageKind.FILE_ID: 0,
    MessageKind.USER_PROFILE: 3,
    MessageKind.SPORT: 12,
    MessageKind.SESSION: 18,
    MessageKind.LAP: 19,
    MessageKind.RECORD: 20,
    MessageKind.EVENT: 21,
    MessageKind.DEVICE_INFO: 23,
    MessageKind.WORKOUT: 26,
    MessageKind.WORKOUT_STEP: 27,
    MessageKind.ACTIVITY: 34,
    MessageKind.FILE_CREATOR: 49,
    MessageKind.HRV: 78,
}

_KIND_BY_NUM = {num: kind for kind, num in MESG_NUMS.items()}


def kind_for_mesg_num(mesg_num: Optional[int]) -> MessageKind:
    return _KIND_BY_NUM.get(mesg_num, MessageKind.OTHER)


TIMESTAMP = 253
MESSAGE_INDEX = 254

FIELD_NUMBERS: Dict[MessageKind, Dict[str, int]] = {
    MessageKind.RECORD: {
        "timestamp": TIMESTAMP,
        "position_lat": 0,
        "position_long": 1,
        "altitude": 2,
        "heart_rate": 3,
        "cadence": 4,
        "distance": 5,
        "speed": 6,
        "grade": 9,
        "enhanced_speed": 73,
        "enhanced_altitude": 78,
        "vertical_ratio": 83,
    },
    MessageKind.LAP: {
        "timestamp": TIMESTAMP,
        "message_index": MESSAGE_INDEX,
        "start_time": 2,
        "start_position_lat": 3,
        "start_position_long": 4,
        "end_position_lat": 5,
        "end_position_long": 6,
        "total_distance": 9,
        "avg_speed": 13,
        "max_speed": 14,
        "total_ascent": 21,
        "total_descent": 22,
        "sport": 25,
        "sub_sport": 39,
        "max_altitude": 43,
        "avg_grade": 45,
        "min_altitude": 62,
        "enhanced_avg_speed": 110,
        "enhanced_max_speed": 111,
        "enhanced_min_altitude": 113,
        "enhanced_max_altitude": 114,
        "avg_vertical_ratio": 118,
        "total_fractional_ascent": 156,
        "total_fractional_descent": 157,
    },
    MessageKind.SESSION: {
        "timestamp": TIMESTAMP,
        "start_time": 2,
        "start_position_lat": 3,
        "start_position_long": 4,
        "sport": 5,
        "sub_sport": 6,
        "total_distance": 9,
        "avg_speed": 14,
        "max_speed": 15,
        "total_ascent": 22,
        "total_descent": 23,
        "nec_lat": 29,
        "nec_long": 30,
        "swc_lat": 31,
        "swc_long": 32,
        "end_position_lat": 38,
        "end_position_long": 39,
        "max_altitude": 50,
        "avg_grade": 52,
        "min_altitude": 71,
        "sport_profile_name": 110,
        "enhanced_avg_speed": 124,
        "enhanced_max_speed": 125,
        "enhanced_min_altitude": 127,
        "enhanced_max_altitude": 128,
        "avg_vertical_ratio": 132,
        "total_fractional_ascent": 199,
        "total_fractional_descent": 200,
    },
    MessageKind.SPORT: {
        "sport": 0,
        "sub_sport": 1,
        "name": 3,
    },
    MessageKind.FILE_ID: {
        "type": 0,
        "manufacturer": 1,
        "product": 2,
        "serial_number": 3,
        "time_created": 4,
    },
    MessageKind.EVENT: {
        "timestamp": TIMESTAMP,
        "event": 0,
        "event_type": 1,
    },
    MessageKind.ACTIVITY: {
        "timestamp": TIMESTAMP,
        "total_timer_time": 0,
        "num_sessions": 1,
        "type": 2,
        "event": 3,
        "event_type": 4,
    },
}

# Legacy field → enhanced counterpart, per message kind
LEGACY_TO_ENHANCED: Dict[MessageKind, Dict[str, str]] = {
    MessageKind.RECORD: {
        "speed": "enhanced_speed",
        "altitude": "enhanced_altitude",
    },
    MessageKind.LAP: {
        "avg_speed": "enhanced_avg_speed",
        "max_speed": "enhanced_max_speed",
        "min_altitude": "enhanced_min_altitude",
        "max_altitude": "enhanced_max_altitude",
    },
    MessageKind.SESSION: {
        "avg_speed": "enhanced_avg_speed",
        "max_speed": "enhanced_max_speed",
        "min_altitude": "enhanced_min_altitude",
        "max_altitude": "enhanced_max_altitude",
    },
}

SPORT_RUNNING = ("running", 1)


@dataclass(frozen=True)
class SubSportTable:
    """
    Raw sub-sport values known to a given FIT profile version.

    The codec boundary owns this table; synthesis looks tags up by name
    instead of probing the codec at runtime. An absent name resolves to the
    caller's documented default.
    """

    profile_version: str
    values: Mapping[str, int] = field(default_factory=dict)

    def resolve(self, name: str, default: int) -> int:
        return self.values.get(name, default)


VIRTUAL_ACTIVITY = "virtual_activity"
GENERIC = "generic"

# virtual_activity has been 58 since profile 20.x; used when a table lacks it
DEFAULT_VIRTUAL_SUB_SPORT = 58
DEFAULT_GENERIC_SUB_SPORT = 0

FIT_PROFILE_21 = SubSportTable(
    profile_version="21.x",
    values={
        GENERIC: 0,
        "treadmill": 1,
        "street": 2,
        "trail": 3,
        "track": 4,
        "indoor_running": 45,
        VIRTUAL_ACTIVITY: 58,
    },
)


def sub_sport_for(virtual: bool, table: SubSportTable = FIT_PROFILE_21) -> Tuple[str, int]:
    """Return (name, raw value) of the sub-sport tag used for injected sessions."""
    if virtual:
        return VIRTUAL_ACTIVITY, table.resolve(VIRTUAL_ACTIVITY, DEFAULT_VIRTUAL_SUB_SPORT)
    return GENERIC, table.resolve(GENERIC, DEFAULT_GENERIC_SUB_SPORT)
