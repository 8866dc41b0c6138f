"""
Byte level transport for the Open Interface link.

The protocol engine only talks to the `Transport` interface; `SerialTransport`
is the pyserial implementation used against real hardware.
"""
from __future__ import annotations
import glob
import time
import logging
from typing import List, Optional

import serial

from .errors import TransportError
from .oi_constants import NEVER_READ_TIMEOUT

log = logging.getLogger(__name__)

PORT_PATTERNS = ['/dev/ttyUSB*', '/dev/ttyACM*', '/dev/ttyS*']


def available_ports() -> List[str]:
    """Serial device nodes that could host the robot's cable, sorted."""
    ports = []
    for pattern in PORT_PATTERNS:
        ports.extend(glob.glob(pattern))
    return sorted(ports)


class Transport:
    """Half-duplex byte link. Reads may return fewer bytes than requested."""

    baud: int = 115200
    timeout: float = NEVER_READ_TIMEOUT

    @property
    def is_open(self) -> bool:
        raise NotImplementedError

    @property
    def bounded(self) -> bool:
        """True when reads give up after `timeout` seconds."""
        return self.timeout > NEVER_READ_TIMEOUT

    def open(self):
        raise NotImplementedError

    def write(self, data: bytes) -> int:
        raise NotImplementedError

    def read_into(self, buffer, deadline: Optional[float] = None) -> int:
        """Read up to len(buffer) bytes into buffer, return the count read.

        `deadline` is an absolute time.monotonic() value bounding this call.
        """
        raise NotImplementedError

    def flush(self):
        raise NotImplementedError

    def set_baud(self, rate: int):
        raise NotImplementedError

    def close(self):
        raise NotImplementedError


class SerialTransport(Transport):
    def __init__(self, port: str, baud: int = 115200, timeout: float = NEVER_READ_TIMEOUT):
        self.port_path = port
        self.baud = baud
        self.timeout = timeout
        self._ser: Optional[serial.Serial] = None

    @property
    def is_open(self) -> bool:
        return bool(self._ser and self._ser.is_open)

    def _serial_timeout(self) -> Optional[float]:
        # pyserial: None blocks forever, 0 would mean non-blocking
        return self.timeout if self.bounded else None

    def open(self):
        if self.is_open:
            return
        try:
            self._ser = serial.Serial(
                self.port_path, self.baud, timeout=self._serial_timeout(),
                bytesize=serial.EIGHTBITS, parity=serial.PARITY_NONE, stopbits=serial.STOPBITS_ONE)
            self._ser.reset_input_buffer()
            self._ser.reset_output_buffer()
        except serial.SerialException as e:
            raise TransportError(f"failed to open serial port: {self.port_path} ({self.baud}): {e}") from e
        log.info("Opened %s at %d baud (timeout=%s)", self.port_path, self.baud, self._serial_timeout())

    def _require_open(self) -> serial.Serial:
        if not self.is_open:
            raise TransportError("Serial not open")
        return self._ser

    def write(self, data: bytes) -> int:
        ser = self._require_open()
        try:
            n = ser.write(data)
        except serial.SerialException as e:
            raise TransportError(f"failed to write to serial port: {e}") from e
        return len(data) if n is None else n

    def read_into(self, buffer, deadline: Optional[float] = None) -> int:
        ser = self._require_open()
        want = len(buffer)
        if want == 0:
            return 0
        timeout = self._serial_timeout()
        if deadline is not None:
            remaining = max(0.0, deadline - time.monotonic())
            timeout = remaining if timeout is None else min(timeout, remaining)
        try:
            if ser.timeout != timeout:
                ser.timeout = timeout
            chunk = ser.read(want)
        except serial.SerialException as e:
            raise TransportError(f"failed to read from serial port: {e}") from e
        if not chunk:
            raise TransportError("read timeout")
        n = len(chunk)
        buffer[:n] = chunk
        return n

    def flush(self):
        ser = self._require_open()
        try:
            ser.flush()
            ser.reset_input_buffer()
        except serial.SerialException as e:
            raise TransportError(f"failed to flush serial port: {e}") from e

    def set_baud(self, rate: int):
        ser = self._require_open()
        try:
            ser.baudrate = rate
        except (serial.SerialException, ValueError) as e:
            raise TransportError(f"failed to set baud rate {rate}: {e}") from e
        self.baud = rate

    def close(self):
        if not self.is_open:
            return
        try:
            self._ser.close()
        except serial.SerialException as e:
            raise TransportError(f"failed to close serial port: {e}") from e
        finally:
            self._ser = None
        log.info("Closed %s", self.port_path)
