"""
Sensor decoding: raw response bytes -> typed telemetry.

Batched responses carry no tags; the Nth requested packet occupies the Nth
slot, so every helper here works positionally from the request list.
"""
from __future__ import annotations
import struct
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from .oi_constants import (SensorPacket, SensorGroup, OpenInterfaceMode, ChargingState,
                           BATTERY_PACKETS, INFO_PACKETS)


def decode_value(packet: SensorPacket, raw: bytes) -> int:
    """Decode one packet's bytes as big-endian, signed or unsigned per the catalog."""
    if len(raw) != packet.size:
        raise ValueError(f"packet {packet.id} ({packet.name}) needs {packet.size} bytes, got {len(raw)}")
    return struct.unpack('>' + packet.fmt, bytes(raw))[0]


def split(packets: Sequence[SensorPacket], data: bytes) -> List[bytes]:
    """Slice a contiguous response into one chunk per requested packet."""
    need = sum(p.size for p in packets)
    if len(data) < need:
        raise ValueError(f"response too short: need {need} bytes, got {len(data)}")
    chunks, offset = [], 0
    for p in packets:
        chunks.append(bytes(data[offset:offset + p.size]))
        offset += p.size
    return chunks


def decode_list(packets: Sequence[SensorPacket], chunks: Sequence[bytes]) -> List[int]:
    if len(chunks) != len(packets):
        raise ValueError(f"expected {len(packets)} chunks, got {len(chunks)}")
    return [decode_value(p, c) for p, c in zip(packets, chunks)]


def decode_packets(packets: Sequence[SensorPacket], data: bytes) -> List[int]:
    return decode_list(packets, split(packets, data))


def decode_group(group: SensorGroup, data: bytes) -> Dict[str, int]:
    """Decode a sensor group response into {packet name: value}, in member order."""
    values = decode_packets(group.packets, data)
    return {p.name: v for p, v in zip(group.packets, values)}


@dataclass(frozen=True)
class BatteryStatus:
    charging_state: int
    voltage_mv: int
    current_ma: int
    charge_mah: int
    capacity_mah: int
    charger_available: int

    @property
    def percent(self) -> Optional[float]:
        if self.capacity_mah == 0:
            return None
        return min(100.0, 100.0 * self.charge_mah / self.capacity_mah)

    @property
    def charging_state_name(self) -> str:
        try:
            return ChargingState(self.charging_state).name
        except ValueError:
            return f"UNKNOWN({self.charging_state})"


@dataclass(frozen=True)
class InfoStatus:
    mode: Union[OpenInterfaceMode, int]
    battery: BatteryStatus


def as_mode(value: int) -> Union[OpenInterfaceMode, int]:
    """Map a raw mode byte to OpenInterfaceMode, passing unknown values through."""
    try:
        return OpenInterfaceMode(value)
    except ValueError:
        return value


def battery_status(values: Sequence[int]) -> BatteryStatus:
    """Build a BatteryStatus from values decoded in BATTERY_PACKETS order."""
    if len(values) != len(BATTERY_PACKETS):
        raise ValueError(f"battery status needs {len(BATTERY_PACKETS)} values, got {len(values)}")
    return BatteryStatus(*values)


def info_status(values: Sequence[int]) -> InfoStatus:
    """Build an InfoStatus from values decoded in INFO_PACKETS order."""
    if len(values) != len(INFO_PACKETS):
        raise ValueError(f"info status needs {len(INFO_PACKETS)} values, got {len(values)}")
    return InfoStatus(mode=as_mode(values[0]), battery=battery_status(values[1:]))
