"""
Open Interface catalog: opcodes, sensor packets, sensor groups and baud codes.
All tables are built once at import and never mutated.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType
from typing import Tuple

from .errors import ValidationError

# Settling delay after every physical write. The robot drops or garbles
# bytes that arrive faster than this.
SERIAL_TRANSFER_DELAY = 0.025
# Time the robot needs to retune its receiver after a Baud command
BAUD_CHANGE_DELAY = 0.100
# Read timeout value meaning "block forever"
NEVER_READ_TIMEOUT = 0

MIN_DRIVE_VELOCITY = -500  # mm/s
MAX_DRIVE_VELOCITY = 500
MIN_DRIVE_RADIUS = -2000  # mm
MAX_DRIVE_RADIUS = 2000
STRAIGHT_RADIUS = 0x7FFF
TURN_CLOCKWISE_RADIUS = -1
TURN_COUNTER_CLOCKWISE_RADIUS = 1
MAX_DRIVE_PWM = 255
MAX_BRUSH_PWM = 127
MAX_VACUUM_PWM = 127
MAX_SONG_NUMBER = 4
MAX_SONG_LENGTH = 16
MIN_SONG_NOTE = 31
MAX_SONG_NOTE = 127


class OpCode(IntEnum):
    RESET = 7
    START = 128
    BAUD = 129
    CONTROL = 130
    SAFE = 131
    FULL = 132
    POWER = 133
    SPOT = 134
    CLEAN = 135
    MAX_CLEAN = 136
    DRIVE = 137
    MOTORS = 138
    LEDS = 139
    SONG = 140
    PLAY = 141
    QUERY = 142
    FORCE_SEEKING_DOCK = 143
    PWM_MOTORS = 144
    DRIVE_WHEELS = 145
    DRIVE_PWM = 146
    STREAM = 148
    QUERY_LIST = 149
    DO_STREAM = 150
    SCHEDULING_LEDS = 162
    DIGIT_LEDS_RAW = 163
    DIGIT_LEDS_ASCII = 164
    BUTTONS = 165
    SCHEDULE = 167
    SET_DAY_TIME = 168
    STOP = 173


class OpenInterfaceMode(IntEnum):
    OFF = 0
    PASSIVE = 1
    SAFE = 2
    FULL = 3


class ChargingState(IntEnum):
    NOT_CHARGING = 0
    RECONDITIONING = 1
    FULL_CHARGING = 2
    TRICKLE_CHARGING = 3
    WAITING = 4
    FAULT = 5


@dataclass(frozen=True)
class SensorPacket:
    id: int
    name: str
    size: int
    signed: bool = False
    unit: str = ""

    @property
    def fmt(self) -> str:
        """struct format character for this packet's wire width and signedness."""
        if self.size == 1:
            return "b" if self.signed else "B"
        return "h" if self.signed else "H"


@dataclass(frozen=True)
class SensorGroup:
    id: int
    name: str
    size: int
    packets: Tuple[SensorPacket, ...]


# (id, name, size, signed, unit)
_PACKET_TABLE = (
    (7, "bumps_wheel_drops", 1, False, ""),
    (8, "wall", 1, False, ""),
    (9, "cliff_left", 1, False, ""),
    (10, "cliff_front_left", 1, False, ""),
    (11, "cliff_front_right", 1, False, ""),
    (12, "cliff_right", 1, False, ""),
    (13, "virtual_wall", 1, False, ""),
    (14, "wheel_overcurrents", 1, False, ""),
    (15, "dirt_detect", 1, False, ""),
    (16, "unused_16", 1, False, ""),
    (17, "ir_char_omni", 1, False, ""),
    (18, "buttons", 1, False, ""),
    (19, "distance", 2, True, "mm"),
    (20, "angle", 2, True, "degrees"),
    (21, "charging_state", 1, False, ""),
    (22, "voltage", 2, False, "mV"),
    (23, "current", 2, True, "mA"),
    (24, "temperature", 1, True, "°C"),
    (25, "battery_charge", 2, False, "mAh"),
    (26, "battery_capacity", 2, False, "mAh"),
    (27, "wall_signal", 2, False, ""),
    (28, "cliff_left_signal", 2, False, ""),
    (29, "cliff_front_left_signal", 2, False, ""),
    (30, "cliff_front_right_signal", 2, False, ""),
    (31, "cliff_right_signal", 2, False, ""),
    (32, "unused_32", 1, False, ""),
    (33, "unused_33", 2, False, ""),
    (34, "charger_available", 1, False, ""),
    (35, "oi_mode", 1, False, ""),
    (36, "song_number", 1, False, ""),
    (37, "song_playing", 1, False, ""),
    (38, "stream_packets", 1, False, ""),
    (39, "requested_velocity", 2, True, "mm/s"),
    (40, "requested_radius", 2, True, "mm"),
    (41, "requested_right_velocity", 2, True, "mm/s"),
    (42, "requested_left_velocity", 2, True, "mm/s"),
    (43, "left_encoder_counts", 2, True, ""),
    (44, "right_encoder_counts", 2, True, ""),
    (45, "light_bumper", 1, False, ""),
    (46, "light_bump_left_signal", 2, False, ""),
    (47, "light_bump_front_left_signal", 2, False, ""),
    (48, "light_bump_center_left_signal", 2, False, ""),
    (49, "light_bump_center_right_signal", 2, False, ""),
    (50, "light_bump_front_right_signal", 2, False, ""),
    (51, "light_bump_right_signal", 2, False, ""),
    (52, "ir_char_left", 1, False, ""),
    (53, "ir_char_right", 1, False, ""),
    (54, "left_motor_current", 2, True, "mA"),
    (55, "right_motor_current", 2, True, "mA"),
    (56, "main_brush_motor_current", 2, True, "mA"),
    (57, "side_brush_motor_current", 2, True, "mA"),
    (58, "stasis", 1, False, ""),
)

PACKETS = MappingProxyType({
    pid: SensorPacket(pid, name, size, signed, unit)
    for pid, name, size, signed, unit in _PACKET_TABLE
})

# Named handles for the packets the driver itself uses
BUMPS_WHEEL_DROPS = PACKETS[7]
DISTANCE = PACKETS[19]
ANGLE = PACKETS[20]
CHARGING_STATE = PACKETS[21]
VOLTAGE = PACKETS[22]
CURRENT = PACKETS[23]
TEMPERATURE = PACKETS[24]
BATTERY_CHARGE = PACKETS[25]
BATTERY_CAPACITY = PACKETS[26]
CHARGER_AVAILABLE = PACKETS[34]
OI_MODE = PACKETS[35]
REQUESTED_VELOCITY = PACKETS[39]


def _group(gid: int, name: str, size: int, first: int, last: int) -> SensorGroup:
    return SensorGroup(gid, name, size, tuple(PACKETS[i] for i in range(first, last + 1)))


GROUPS = MappingProxyType({g.id: g for g in (
    _group(0, "basic", 26, 7, 26),
    _group(1, "bumps_cliffs", 10, 7, 16),
    _group(2, "buttons_odometry", 6, 17, 20),
    _group(3, "battery", 10, 21, 26),
    _group(4, "signals", 14, 27, 34),
    _group(5, "oi_state", 12, 35, 42),
    _group(6, "legacy_all", 52, 7, 42),
    _group(100, "all", 80, 7, 58),
    _group(101, "create2_extended", 28, 43, 58),
    _group(106, "light_bump_signals", 12, 46, 51),
    _group(107, "motor_currents", 9, 54, 58),
)})

BAUD_CODES = MappingProxyType({
    300: 0,
    600: 1,
    1200: 2,
    2400: 3,
    4800: 4,
    9600: 5,
    14400: 6,
    19200: 7,
    28800: 8,
    38400: 9,
    57600: 10,
    115200: 11,
})

# Battery request list; order defines the response layout
BATTERY_PACKETS = (
    CHARGING_STATE, VOLTAGE, CURRENT, BATTERY_CHARGE, BATTERY_CAPACITY, CHARGER_AVAILABLE,
)
# General info: OI mode followed by the battery list
INFO_PACKETS = (OI_MODE,) + BATTERY_PACKETS


def packet(pid: int) -> SensorPacket:
    return PACKETS[pid]


def group(gid: int) -> SensorGroup:
    return GROUPS[gid]


def baud_code(rate: int) -> int:
    """Return the one-byte code for a supported bit rate."""
    try:
        return BAUD_CODES[rate]
    except KeyError:
        raise ValidationError(f"unsupported baud rate: {rate}") from None
