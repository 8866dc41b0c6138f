"""
OIBot: driver and monitor for robots speaking the serial Open Interface
"""

__version__ = "1.0.0"
__author__ = "OIBot Tools"
__description__ = "Open Interface protocol driver with a desktop telemetry monitor"

from .errors import OIError, ValidationError, TransportError
from .oi_constants import OpCode, OpenInterfaceMode, SensorPacket, SensorGroup
from .oi_transport import Transport, SerialTransport
from .oi_protocol import OIProtocol
from .oi_sensors import BatteryStatus, InfoStatus
from .heading import Direction, classify
from .config import OIConfig

__all__ = [
    'OIProtocol', 'OIConfig', 'Transport', 'SerialTransport',
    'OIError', 'ValidationError', 'TransportError',
    'OpCode', 'OpenInterfaceMode', 'SensorPacket', 'SensorGroup',
    'BatteryStatus', 'InfoStatus', 'Direction', 'classify',
]
