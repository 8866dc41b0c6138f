"""
Exception types raised by the Open Interface driver.
"""


class OIError(Exception):
    pass


class ValidationError(OIError, ValueError):
    """Command argument out of range; raised before any byte is sent."""


class TransportError(OIError):
    """Byte level failure on the serial link (open, short write, read timeout, ...)."""
