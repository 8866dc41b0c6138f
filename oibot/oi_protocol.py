"""
Open Interface protocol engine: frame encoding, argument validation, the
query read loop and the public command/query surface.

One request is in flight at a time; the link carries no request ids, so a
response always belongs to the most recent query. The engine holds no lock:
callers sharing an instance across threads must serialize whole calls.
"""
from __future__ import annotations
import time
import struct
import logging
from typing import Optional, List, Sequence, Tuple, Dict, Union

from .errors import OIError, ValidationError, TransportError
from .oi_constants import (
    OpCode, OpenInterfaceMode, SensorPacket, SensorGroup, baud_code,
    SERIAL_TRANSFER_DELAY, BAUD_CHANGE_DELAY,
    MIN_DRIVE_VELOCITY, MAX_DRIVE_VELOCITY, MIN_DRIVE_RADIUS, MAX_DRIVE_RADIUS,
    STRAIGHT_RADIUS, MAX_DRIVE_PWM, MAX_BRUSH_PWM, MAX_VACUUM_PWM,
    MAX_SONG_NUMBER, MAX_SONG_LENGTH, MIN_SONG_NOTE, MAX_SONG_NOTE,
    OI_MODE, BATTERY_PACKETS, INFO_PACKETS, TEMPERATURE, DISTANCE, ANGLE, REQUESTED_VELOCITY,
)
from .oi_sensors import (decode_value, decode_list, decode_group, battery_status, info_status,
                         as_mode, BatteryStatus, InfoStatus)
from .oi_transport import Transport, SerialTransport

log = logging.getLogger(__name__)

# Values shown by the monitor; one QueryList round trip
SNAPSHOT_PACKETS = INFO_PACKETS + (TEMPERATURE, DISTANCE, ANGLE, REQUESTED_VELOCITY)


def _hex(data) -> str:
    return ' '.join(f'{x:02X}' for x in data)


def _check_int(name: str, value):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {value!r}")


def _check_range(name: str, value, lo: int, hi: int):
    _check_int(name, value)
    if value < lo or value > hi:
        raise ValidationError(f"invalid {name}: {value} (allowed {lo}..{hi})")


def pack(fmt: str, *values) -> bytes:
    """Concatenate values big-endian, no padding, per struct format `fmt`."""
    try:
        return struct.pack('>' + fmt, *values)
    except struct.error as e:
        raise ValidationError(f"failed to pack {values!r} as {fmt!r}: {e}") from e


def validate_drive(velocity: int, radius: int):
    _check_range("drive velocity", velocity, MIN_DRIVE_VELOCITY, MAX_DRIVE_VELOCITY)
    _check_int("drive radius", radius)
    if radius != STRAIGHT_RADIUS:
        _check_range("drive radius", radius, MIN_DRIVE_RADIUS, MAX_DRIVE_RADIUS)


def validate_drive_wheels(right: int, left: int):
    _check_range("right wheel velocity", right, MIN_DRIVE_VELOCITY, MAX_DRIVE_VELOCITY)
    _check_range("left wheel velocity", left, MIN_DRIVE_VELOCITY, MAX_DRIVE_VELOCITY)


class OIProtocol:
    """Driver for one robot on one transport.

    `logger` is the diagnostic sink; any logging.Logger works.
    """

    def __init__(self, transport: Transport, logger: Optional[logging.Logger] = None,
                 transfer_delay: float = SERIAL_TRANSFER_DELAY, baud_delay: float = BAUD_CHANGE_DELAY):
        self.transport = transport
        self.log = logger or log
        self.transfer_delay = transfer_delay
        self.baud_delay = baud_delay
        self._closed = False
        self._stats = {"writes": 0, "write_errors": 0, "reads": 0, "read_errors": 0}

    @classmethod
    def from_config(cls, config, logger: Optional[logging.Logger] = None) -> "OIProtocol":
        config.validate()
        transport = SerialTransport(config.port, config.baud, config.timeout)
        return cls(transport, logger=logger, transfer_delay=config.transfer_delay, baud_delay=config.baud_delay)

    # --- Connection ---
    def connect(self, init: bool = False):
        """Open the link and put the robot in Passive mode.

        With `init`, the transport's current rate is sent as a Baud command first.
        """
        self.transport.open()
        if init:
            self.baud(self.transport.baud)
        self.passive()
        return True

    def close(self):
        if self._closed:
            return
        self._closed = True
        self.transport.close()

    def flush(self):
        self.transport.flush()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    # --- Low level write ---
    def _write_raw(self, data: bytes, what: str):
        try:
            n = self.transport.write(data)
        except TransportError:
            self._stats["write_errors"] += 1
            raise
        if n != len(data):
            self._stats["write_errors"] += 1
            raise TransportError(f"failed to write {what}: wrote {n} of {len(data)} bytes")
        self._stats["writes"] += 1
        time.sleep(self.transfer_delay)

    def write_code(self, code: OpCode):
        self.log.debug("TX opcode %d", code)
        self._write_raw(bytes([int(code)]), f"opcode ({int(code)})")

    def write(self, code: OpCode, fmt: str = '', *values) -> int:
        """Send opcode then payload; returns the payload byte count."""
        payload = pack(fmt, *values)
        self.write_code(code)
        if not payload:
            return 0
        self.log.debug("TX opcode %d data %s", code, _hex(payload))
        self._write_raw(payload, f"opcode ({int(code)}) data")
        return len(payload)

    # --- Low level read ---
    def _read_exact(self, size: int, deadline: Optional[float] = None) -> bytes:
        buf = bytearray(size)
        view = memoryview(buf)
        got = 0
        while got < size:
            got += self.transport.read_into(view[got:], deadline)
            if got < size and deadline is not None and time.monotonic() >= deadline:
                raise TransportError(f"read timeout: got {got} of {size} bytes")
        return bytes(buf)

    def _read_response(self, sizes: Sequence[int], deadline: Optional[float]) -> Optional[List[bytes]]:
        """Read one chunk per size, or None when a bounded-timeout read fails."""
        try:
            chunks = [self._read_exact(size, deadline) for size in sizes]
        except TransportError as e:
            self._stats["read_errors"] += 1
            if not self.transport.bounded:
                raise
            self.log.warning("Query abandoned, no data: %s", e)
            self._drain()
            return None
        self._stats["reads"] += 1
        self.log.debug("RX %s", ' | '.join(_hex(c) for c in chunks))
        return chunks

    def _drain(self):
        # Realign framing: drop any late bytes of the abandoned response
        try:
            self.transport.flush()
        except TransportError as e:
            self.log.debug("Drain after failed query failed: %s", e)

    # --- Queries ---
    def sensor(self, packet: SensorPacket, deadline: Optional[float] = None) -> Optional[bytes]:
        """Query one packet (or group, via its id and size); raw bytes or None."""
        self.write(OpCode.QUERY, 'B', packet.id)
        chunks = self._read_response([packet.size], deadline)
        return None if chunks is None else chunks[0]

    def sensor_list(self, packets: Sequence[SensorPacket],
                    deadline: Optional[float] = None) -> Optional[List[bytes]]:
        """Query several packets at once; chunk N belongs to packets[N]."""
        if not packets:
            return []
        ids = [p.id for p in packets]
        self.write(OpCode.QUERY_LIST, 'B' * (len(ids) + 1), len(ids), *ids)
        return self._read_response([p.size for p in packets], deadline)

    def read_sensor(self, packet: SensorPacket, deadline: Optional[float] = None) -> Optional[int]:
        raw = self.sensor(packet, deadline)
        return None if raw is None else decode_value(packet, raw)

    def read_sensors(self, packets: Sequence[SensorPacket],
                     deadline: Optional[float] = None) -> Optional[List[int]]:
        chunks = self.sensor_list(packets, deadline)
        return None if chunks is None else decode_list(packets, chunks)

    def query_group(self, group: SensorGroup, deadline: Optional[float] = None) -> Optional[Dict[str, int]]:
        self.write(OpCode.QUERY, 'B', group.id)
        chunks = self._read_response([group.size], deadline)
        return None if chunks is None else decode_group(group, chunks[0])

    def mode(self, deadline: Optional[float] = None) -> Optional[Union[OpenInterfaceMode, int]]:
        """Current OI mode, always read from the robot (it may drop modes on its own)."""
        value = self.read_sensor(OI_MODE, deadline)
        return None if value is None else as_mode(value)

    def battery(self, deadline: Optional[float] = None) -> Optional[BatteryStatus]:
        values = self.read_sensors(BATTERY_PACKETS, deadline)
        return None if values is None else battery_status(values)

    def info(self, deadline: Optional[float] = None) -> Optional[InfoStatus]:
        values = self.read_sensors(INFO_PACKETS, deadline)
        return None if values is None else info_status(values)

    # --- Mode & housekeeping commands ---
    def start(self):
        self.write(OpCode.START)

    def passive(self):
        # Start doubles as the Passive mode command
        self.write(OpCode.START)

    def reset(self):
        self.write(OpCode.RESET)

    def stop(self):
        self.write(OpCode.STOP)

    def control(self):
        self.write(OpCode.CONTROL)

    def safe(self):
        self.write(OpCode.SAFE)

    def full(self):
        self.write(OpCode.FULL)

    def power(self):
        self.write(OpCode.POWER)

    def baud(self, rate: int):
        code = baud_code(rate)
        self.log.info("Changing baud rate to %d (code %d)", rate, code)
        self.write(OpCode.BAUD, 'B', code)
        time.sleep(self.baud_delay)
        self.transport.set_baud(rate)

    # --- Cleaning ---
    def clean(self):
        self.write(OpCode.CLEAN)

    def max_clean(self):
        self.write(OpCode.MAX_CLEAN)

    def spot(self):
        self.write(OpCode.SPOT)

    def seek_dock(self):
        self.write(OpCode.FORCE_SEEKING_DOCK)

    # --- Motion ---
    def drive(self, velocity: int, radius: int):
        """Drive at velocity (mm/s) along radius (mm); STRAIGHT_RADIUS drives straight."""
        validate_drive(velocity, radius)
        self.log.debug("CMD drive velocity=%d radius=%d", velocity, radius)
        self.write(OpCode.DRIVE, 'hh', velocity, radius)

    def drive_straight(self, velocity: int):
        self.drive(velocity, STRAIGHT_RADIUS)

    def drive_stop(self):
        self.drive(0, 0)

    def drive_wheels(self, right: int, left: int):
        validate_drive_wheels(right, left)
        self.log.debug("CMD drive_wheels right=%d left=%d", right, left)
        self.write(OpCode.DRIVE_WHEELS, 'hh', right, left)

    def drive_pwm(self, right: int, left: int):
        _check_range("right wheel pwm", right, -MAX_DRIVE_PWM, MAX_DRIVE_PWM)
        _check_range("left wheel pwm", left, -MAX_DRIVE_PWM, MAX_DRIVE_PWM)
        self.write(OpCode.DRIVE_PWM, 'hh', right, left)

    # --- Actuators ---
    def motors(self, main_brush: bool, side_brush: bool, vacuum: bool,
               main_brush_outward: bool = False, side_brush_clockwise: bool = False):
        bits = (int(bool(side_brush)) | int(bool(vacuum)) << 1 | int(bool(main_brush)) << 2
                | int(bool(side_brush_clockwise)) << 3 | int(bool(main_brush_outward)) << 4)
        self.write(OpCode.MOTORS, 'B', bits)

    def pwm_motors(self, main_brush: int, side_brush: int, vacuum: int):
        _check_range("main brush pwm", main_brush, -MAX_BRUSH_PWM, MAX_BRUSH_PWM)
        _check_range("side brush pwm", side_brush, -MAX_BRUSH_PWM, MAX_BRUSH_PWM)
        _check_range("vacuum pwm", vacuum, 0, MAX_VACUUM_PWM)
        self.write(OpCode.PWM_MOTORS, 'bbb', main_brush, side_brush, vacuum)

    def leds(self, check_robot: bool, dock: bool, spot: bool, debris: bool,
             power_color: int, power_intensity: int):
        _check_range("power colour", power_color, 0, 255)
        _check_range("power intensity", power_intensity, 0, 255)
        bits = 0
        for bit in (check_robot, dock, spot, debris):
            bits = (bits << 1) | int(bool(bit))
        self.write(OpCode.LEDS, 'BBB', bits, power_color, power_intensity)

    def song(self, number: int, notes: Sequence[Tuple[int, int]]):
        """Store a song: notes are (midi note, duration in 1/64 s) pairs."""
        _check_range("song number", number, 0, MAX_SONG_NUMBER)
        if not 1 <= len(notes) <= MAX_SONG_LENGTH:
            raise ValidationError(f"song needs 1..{MAX_SONG_LENGTH} notes, got {len(notes)}")
        flat = []
        for note, duration in notes:
            _check_range("song note", note, MIN_SONG_NOTE, MAX_SONG_NOTE)
            _check_range("note duration", duration, 0, 255)
            flat.extend((note, duration))
        self.write(OpCode.SONG, 'BB' + 'B' * len(flat), number, len(notes), *flat)

    def play(self, number: int):
        _check_range("song number", number, 0, MAX_SONG_NUMBER)
        self.write(OpCode.PLAY, 'B', number)

    def digit_leds_ascii(self, text: str):
        if len(text) > 4:
            raise ValidationError(f"digit LEDs show at most 4 characters, got {text!r}")
        codes = [ord(c) for c in text.ljust(4)]
        for c in codes:
            _check_range("digit LED character", c, 32, 126)
        self.write(OpCode.DIGIT_LEDS_ASCII, 'BBBB', *codes)

    # --- Diagnostics ---
    def snapshot(self) -> dict:
        """Batch read frequently displayed values.

        Distance and angle are deltas since the previous query of those packets.
        """
        snap = {}
        try:
            values = self.read_sensors(SNAPSHOT_PACKETS)
        except OIError as e:
            snap['snapshot_error'] = str(e)
            return snap
        if values is None:
            snap['no_data'] = True
            return snap
        info = info_status(values[:len(INFO_PACKETS)])
        temperature, distance, angle, velocity = values[len(INFO_PACKETS):]
        snap['mode'] = info.mode
        snap['battery'] = info.battery
        snap['temperature'] = temperature
        snap['distance'] = distance
        snap['angle'] = angle
        snap['requested_velocity'] = velocity
        return snap

    def get_stats(self):
        """Return protocol I/O statistics."""
        return dict(self._stats)
