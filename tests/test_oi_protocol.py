"""Unit tests for the OIProtocol engine against an in-memory transport."""

import struct
import time

import pytest

from oibot.errors import OIError, TransportError, ValidationError
from oibot.oi_constants import (OpenInterfaceMode, OpCode, STRAIGHT_RADIUS, SERIAL_TRANSFER_DELAY,
                                BAUD_CHANGE_DELAY, VOLTAGE, BATTERY_CHARGE, OI_MODE, TEMPERATURE,
                                CURRENT, group)
from oibot.oi_protocol import OIProtocol, pack
from oibot.oi_sensors import BatteryStatus

from conftest import FakeTransport

BATTERY_RESPONSE = bytes([2, 0x2B, 0x98, 0x00, 0x32, 0x01, 0x2C, 0x01, 0x90, 3])


# --- Frame encoding ---

@pytest.mark.parametrize("velocity, radius", [
    (-500, -2000), (500, 2000), (0, 0), (200, 500), (-1, 1), (100, STRAIGHT_RADIUS),
])
def test_drive_emits_opcode_and_four_payload_bytes(oi, transport, velocity, radius):
    oi.drive(velocity, radius)
    assert transport.written == bytes([137]) + struct.pack('>hh', velocity, radius)
    assert len(transport.written) == 5


def test_drive_payload_round_trip(oi, transport):
    oi.drive(200, 500)
    payload = transport.written[1:]
    assert payload == bytes([0x00, 0xC8, 0x01, 0xF4])
    assert struct.unpack('>hh', payload) == (200, 500)


@pytest.mark.parametrize("velocity, radius", [
    (600, 0), (-501, 0), (0, 2001), (0, -2001), (0, STRAIGHT_RADIUS - 1),
])
def test_drive_out_of_range_writes_nothing(oi, transport, velocity, radius):
    with pytest.raises(ValidationError):
        oi.drive(velocity, radius)
    assert transport.writes == []


@pytest.mark.parametrize("velocity, radius", [(1.5, 0), (True, 0), (0, "10")])
def test_drive_rejects_non_integers(oi, transport, velocity, radius):
    with pytest.raises(ValidationError):
        oi.drive(velocity, radius)
    assert transport.writes == []


def test_drive_straight_and_stop(oi, transport):
    oi.drive_straight(-300)
    oi.drive_stop()
    assert transport.written == (bytes([137]) + struct.pack('>hh', -300, 0x7FFF)
                                 + bytes([137, 0, 0, 0, 0]))


def test_drive_wheels(oi, transport):
    oi.drive_wheels(-100, 250)
    assert transport.written == bytes([145]) + struct.pack('>hh', -100, 250)


@pytest.mark.parametrize("right, left", [(501, 0), (0, -501)])
def test_drive_wheels_checks_each_wheel(oi, transport, right, left):
    with pytest.raises(ValidationError):
        oi.drive_wheels(right, left)
    assert transport.writes == []


def test_drive_pwm(oi, transport):
    oi.drive_pwm(255, -255)
    assert transport.written == bytes([146]) + struct.pack('>hh', 255, -255)
    with pytest.raises(ValidationError):
        oi.drive_pwm(256, 0)


@pytest.mark.parametrize("method, opcode", [
    ("start", 128), ("passive", 128), ("reset", 7), ("stop", 173), ("control", 130),
    ("safe", 131), ("full", 132), ("power", 133), ("spot", 134), ("clean", 135),
    ("max_clean", 136), ("seek_dock", 143),
])
def test_single_byte_commands(oi, transport, method, opcode):
    getattr(oi, method)()
    assert transport.writes == [bytes([opcode])]


def test_pack_is_big_endian_without_padding():
    assert pack('BhH', 1, -2, 0x0102) == bytes([0x01, 0xFF, 0xFE, 0x01, 0x02])
    assert pack('') == b''


def test_pack_overflow_is_validation_error():
    with pytest.raises(ValidationError):
        pack('B', 256)


def test_write_returns_payload_count(oi, transport):
    assert oi.write(OpCode.QUERY, 'B', 7) == 1
    assert oi.write(OpCode.START) == 0
    assert transport.writes == [bytes([142]), bytes([7]), bytes([128])]


def test_failed_pack_writes_nothing(oi, transport):
    with pytest.raises(ValidationError):
        oi.write(OpCode.DRIVE, 'hh', 40000, 0)
    assert transport.writes == []


# --- Actuators ---

def test_motors_bit_layout(oi, transport):
    oi.motors(main_brush=True, side_brush=True, vacuum=False)
    oi.motors(main_brush=False, side_brush=False, vacuum=True,
              main_brush_outward=True, side_brush_clockwise=True)
    assert transport.written == bytes([138, 0b00101, 138, 0b11010])


def test_pwm_motors(oi, transport):
    oi.pwm_motors(-127, 127, 127)
    assert transport.written == bytes([144]) + struct.pack('>bbb', -127, 127, 127)
    with pytest.raises(ValidationError):
        oi.pwm_motors(0, 0, -1)


def test_leds(oi, transport):
    oi.leds(check_robot=True, dock=False, spot=True, debris=False, power_color=128, power_intensity=255)
    assert transport.written == bytes([139, 0b1010, 128, 255])
    with pytest.raises(ValidationError):
        oi.leds(False, False, False, False, 256, 0)


def test_song_and_play(oi, transport):
    oi.song(0, [(60, 32), (62, 16)])
    oi.play(0)
    assert transport.written == bytes([140, 0, 2, 60, 32, 62, 16, 141, 0])


@pytest.mark.parametrize("number, notes", [
    (5, [(60, 32)]),
    (0, []),
    (0, [(60, 8)] * 17),
    (0, [(20, 8)]),
    (0, [(60, 256)]),
])
def test_song_rejects_bad_arguments(oi, transport, number, notes):
    with pytest.raises(ValidationError):
        oi.song(number, notes)
    assert transport.writes == []


def test_digit_leds_ascii_pads_to_four(oi, transport):
    oi.digit_leds_ascii("AB")
    assert transport.written == bytes([164, 65, 66, 32, 32])
    with pytest.raises(ValidationError):
        oi.digit_leds_ascii("TOOLONG")
    with pytest.raises(ValidationError):
        oi.digit_leds_ascii("\x01")


# --- Transport discipline ---

def test_settling_delay_after_every_physical_write(oi, sleeps):
    oi.start()
    oi.drive(100, 0)
    assert sleeps == [(1, SERIAL_TRANSFER_DELAY), (2, SERIAL_TRANSFER_DELAY), (3, SERIAL_TRANSFER_DELAY)]


def test_short_write_is_transport_error(oi, transport):
    transport.short_write = True
    with pytest.raises(TransportError):
        oi.start()
    assert oi.get_stats()["write_errors"] == 1


def test_write_failure_propagates(oi, transport):
    transport.fail_writes = True
    with pytest.raises(TransportError):
        oi.drive(0, 0)
    assert oi.get_stats()["write_errors"] == 1


def test_single_byte_reads_accumulate(sleeps):
    transport = FakeTransport(max_chunk=1)
    transport.open()
    oi = OIProtocol(transport)
    transport.feed(b'\x01\x2c')
    assert oi.read_sensor(BATTERY_CHARGE) == 300
    assert transport.read_calls == 2
    assert transport.written == bytes([142, 25])


def test_zero_byte_reads_do_not_shift_offsets(sleeps):
    transport = FakeTransport(chunk_plan=[0, 1, 0, 1])
    transport.open()
    oi = OIProtocol(transport)
    transport.feed(b'\x2b\x98')
    assert oi.read_sensor(VOLTAGE) == 11160
    assert transport.read_calls == 4


class StalledTransport(FakeTransport):
    """A link that keeps answering with zero bytes."""

    def read_into(self, buffer, deadline=None):
        self.read_calls += 1
        assert self.read_calls < 1000, "read loop ignored its deadline"
        return 0


def test_expired_deadline_stops_zero_byte_reads(sleeps):
    transport = StalledTransport()
    transport.open()
    oi = OIProtocol(transport)
    assert oi.read_sensor(VOLTAGE, deadline=time.monotonic() - 1) is None
    assert transport.read_calls == 1
    assert transport.flushes == 1
    assert oi.get_stats()["read_errors"] == 1


def test_expired_deadline_propagates_when_unbounded(sleeps):
    transport = StalledTransport(timeout=0)
    transport.open()
    oi = OIProtocol(transport)
    with pytest.raises(TransportError):
        oi.read_sensor(VOLTAGE, deadline=time.monotonic() - 1)


@pytest.mark.parametrize("query", ["mode", "battery", "info"])
def test_high_level_queries_honour_deadline(sleeps, query):
    transport = StalledTransport()
    transport.open()
    oi = OIProtocol(transport)
    assert getattr(oi, query)(deadline=time.monotonic() - 1) is None
    assert transport.read_calls == 1


def test_bounded_timeout_gives_no_data_and_drains(oi, transport):
    transport.feed(b'\x2b')  # half a packet
    assert oi.read_sensor(VOLTAGE) is None
    assert transport.flushes == 1
    assert oi.get_stats()["read_errors"] == 1

    transport.feed(b'\x2b\x98')
    assert oi.read_sensor(VOLTAGE) == 11160


def test_unbounded_timeout_propagates(sleeps):
    transport = FakeTransport(timeout=0)
    transport.open()
    oi = OIProtocol(transport)
    assert not transport.bounded
    with pytest.raises(TransportError):
        oi.read_sensor(VOLTAGE)
    assert transport.flushes == 0


def test_baud_change_sequence(oi, transport, sleeps):
    oi.baud(19200)
    assert transport.written == bytes([129, 7])
    assert transport.bauds == [19200]
    assert sleeps == [(1, SERIAL_TRANSFER_DELAY), (2, SERIAL_TRANSFER_DELAY), (2, BAUD_CHANGE_DELAY)]


def test_unsupported_baud_writes_nothing(oi, transport):
    with pytest.raises(ValidationError):
        oi.baud(12345)
    assert transport.writes == []
    assert transport.bauds == []


# --- Lifecycle ---

def test_connect_opens_and_enters_passive(sleeps):
    transport = FakeTransport()
    oi = OIProtocol(transport)
    oi.connect()
    assert transport.is_open
    assert transport.written == bytes([128])


def test_connect_with_init_resends_baud(sleeps):
    transport = FakeTransport(baud=57600)
    oi = OIProtocol(transport)
    oi.connect(init=True)
    assert transport.written == bytes([129, 10, 128])
    assert transport.bauds == [57600]


def test_close_releases_transport_once(oi, transport):
    oi.close()
    oi.close()
    assert transport.close_count == 1


def test_context_manager_closes(transport, sleeps):
    with OIProtocol(transport) as oi:
        oi.start()
    assert transport.close_count == 1


# --- Queries ---

def test_sensor_list_is_positional(oi, transport):
    transport.feed(b'\x02\x2b\x98\xf6')
    assert oi.read_sensors([OI_MODE, VOLTAGE, TEMPERATURE]) == [2, 11160, -10]
    assert transport.written == bytes([149, 3, 35, 22, 24])


def test_sensor_list_raw_chunks(oi, transport):
    transport.feed(b'\x03\xff\xce')
    assert oi.sensor_list([OI_MODE, CURRENT]) == [b'\x03', b'\xff\xce']


def test_empty_sensor_list_sends_nothing(oi, transport):
    assert oi.sensor_list([]) == []
    assert transport.writes == []


def test_mode_is_queried_every_time(oi, transport):
    transport.feed(b'\x03\x01')
    assert oi.mode() is OpenInterfaceMode.FULL
    assert oi.mode() is OpenInterfaceMode.PASSIVE
    assert transport.written == bytes([142, 35, 142, 35])


def test_mode_no_data(oi):
    assert oi.mode() is None


def test_battery(oi, transport):
    transport.feed(BATTERY_RESPONSE)
    assert oi.battery() == BatteryStatus(2, 11160, 50, 300, 400, 3)
    assert transport.written == bytes([149, 6, 21, 22, 23, 25, 26, 34])


def test_info(oi, transport):
    transport.feed(b'\x02' + BATTERY_RESPONSE)
    info = oi.info()
    assert info.mode is OpenInterfaceMode.SAFE
    assert info.battery.voltage_mv == 11160
    assert transport.written == bytes([149, 7, 35, 21, 22, 23, 25, 26, 34])


def test_query_group(oi, transport):
    # group 3 is the catalog block 21..26, so the same bytes land in different fields
    transport.feed(BATTERY_RESPONSE)
    values = oi.query_group(group(3))
    assert transport.written == bytes([142, 3])
    assert values == {
        "charging_state": 2, "voltage": 11160, "current": 50, "temperature": 0x01,
        "battery_charge": 0x2C01, "battery_capacity": 0x9003,
    }


def test_query_group_no_data(oi, transport):
    transport.feed(BATTERY_RESPONSE[:4])
    assert oi.query_group(group(3)) is None


# --- Snapshot ---

def test_snapshot(oi, transport):
    transport.feed(struct.pack('>BBHhHHBbhhh', 2, 2, 11160, 50, 300, 400, 3, 25, 120, -15, 200))
    snap = oi.snapshot()
    assert snap['mode'] is OpenInterfaceMode.SAFE
    assert snap['battery'] == BatteryStatus(2, 11160, 50, 300, 400, 3)
    assert snap['temperature'] == 25
    assert snap['distance'] == 120
    assert snap['angle'] == -15
    assert snap['requested_velocity'] == 200


def test_snapshot_no_data(oi):
    assert oi.snapshot() == {'no_data': True}


def test_snapshot_reports_errors(sleeps):
    transport = FakeTransport(timeout=0)
    transport.open()
    snap = OIProtocol(transport).snapshot()
    assert 'read timeout' in snap['snapshot_error']


def test_stats_count_traffic(oi, transport):
    transport.feed(b'\x01')
    oi.mode()
    stats = oi.get_stats()
    assert stats["writes"] == 2
    assert stats["reads"] == 1
    assert stats["read_errors"] == 0


def test_errors_share_a_base():
    assert issubclass(ValidationError, OIError)
    assert issubclass(TransportError, OIError)
    assert issubclass(ValidationError, ValueError)
