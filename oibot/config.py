"""
Connection settings for the Open Interface driver.
"""
from __future__ import annotations
import os
import json
import logging
from dataclasses import dataclass, asdict, fields

from .errors import ValidationError
from .oi_constants import BAUD_CODES, SERIAL_TRANSFER_DELAY, BAUD_CHANGE_DELAY

logger = logging.getLogger(__name__)

ENV_PREFIX = "OIBOT_"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class OIConfig:
    port: str = "/dev/ttyUSB0"
    baud: int = 115200
    timeout: float = 0.5  # seconds; 0 blocks forever
    init_baud: bool = False
    transfer_delay: float = SERIAL_TRANSFER_DELAY
    baud_delay: float = BAUD_CHANGE_DELAY

    def validate(self) -> "OIConfig":
        if self.baud not in BAUD_CODES:
            raise ValidationError(f"unsupported baud rate: {self.baud}")
        if self.timeout < 0:
            raise ValidationError(f"timeout must be >= 0, got {self.timeout}")
        if self.transfer_delay < 0 or self.baud_delay < 0:
            raise ValidationError("delays must be >= 0")
        return self

    @classmethod
    def from_env(cls, environ=None) -> "OIConfig":
        """Defaults overridden by OIBOT_PORT, OIBOT_BAUD, OIBOT_TIMEOUT, OIBOT_INIT_BAUD."""
        env = os.environ if environ is None else environ
        cfg = cls()
        try:
            if ENV_PREFIX + "PORT" in env:
                cfg.port = env[ENV_PREFIX + "PORT"]
            if ENV_PREFIX + "BAUD" in env:
                cfg.baud = int(env[ENV_PREFIX + "BAUD"])
            if ENV_PREFIX + "TIMEOUT" in env:
                cfg.timeout = float(env[ENV_PREFIX + "TIMEOUT"])
        except ValueError as e:
            raise ValidationError(f"invalid {ENV_PREFIX}* setting: {e}") from e
        if ENV_PREFIX + "INIT_BAUD" in env:
            cfg.init_baud = _env_bool(env[ENV_PREFIX + "INIT_BAUD"])
        return cfg.validate()

    @classmethod
    def load(cls, path: str) -> "OIConfig":
        with open(path, 'r') as f:
            data = json.load(f)
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys in {path}: {sorted(unknown)}")
        cfg = cls(**{k: v for k, v in data.items() if k in known})
        logger.info(f"Configuration loaded from {path}")
        return cfg.validate()

    def save(self, path: str):
        with open(path, 'w') as f:
            json.dump(asdict(self), f, indent=2)
        logger.info(f"Configuration saved to {path}")
