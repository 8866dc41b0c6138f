# tests/conftest.py
import os
import sys

import pytest

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from oibot import oi_protocol
from oibot.errors import TransportError
from oibot.oi_protocol import OIProtocol
from oibot.oi_transport import Transport


class FakeTransport(Transport):
    """In-memory link: records every write and replays queued response bytes.

    `chunk_plan` caps successive read_into calls (0 is allowed); once it runs
    out, `max_chunk` caps every call. An empty receive queue behaves like a
    read timeout.
    """

    def __init__(self, timeout=0.5, baud=115200, max_chunk=None, chunk_plan=None):
        self.timeout = timeout
        self.baud = baud
        self.max_chunk = max_chunk
        self.chunk_plan = list(chunk_plan or [])
        self.rx = bytearray()
        self.writes = []
        self.read_calls = 0
        self.flushes = 0
        self.bauds = []
        self.open_count = 0
        self.close_count = 0
        self.short_write = False
        self.fail_writes = False
        self._open = False

    @property
    def is_open(self):
        return self._open

    @property
    def written(self) -> bytes:
        return b''.join(self.writes)

    def feed(self, data: bytes):
        self.rx.extend(data)

    def open(self):
        self._open = True
        self.open_count += 1

    def write(self, data):
        if self.fail_writes:
            raise TransportError("failed to write to serial port: device disconnected")
        data = bytes(data)
        if self.short_write:
            self.writes.append(data[:-1])
            return len(data) - 1
        self.writes.append(data)
        return len(data)

    def read_into(self, buffer, deadline=None):
        self.read_calls += 1
        n = min(len(buffer), len(self.rx))
        if self.chunk_plan:
            n = min(n, self.chunk_plan.pop(0))
        elif self.max_chunk is not None:
            n = min(n, self.max_chunk)
        if n == 0 and not self.rx and not self.chunk_plan:
            raise TransportError("read timeout")
        buffer[:n] = bytes(self.rx[:n])
        del self.rx[:n]
        return n

    def flush(self):
        self.flushes += 1
        self.rx.clear()

    def set_baud(self, rate):
        self.bauds.append(rate)
        self.baud = rate

    def close(self):
        self.close_count += 1
        self._open = False


@pytest.fixture
def transport():
    t = FakeTransport()
    t.open()
    return t


@pytest.fixture
def sleeps(monkeypatch, transport):
    """Record (writes so far, seconds) for every sleep the protocol module takes."""
    calls = []
    monkeypatch.setattr(oi_protocol.time, "sleep",
                        lambda seconds: calls.append((len(transport.writes), seconds)))
    return calls


@pytest.fixture
def oi(transport, sleeps):
    return OIProtocol(transport)
