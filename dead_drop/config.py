"""
Dead Drop — Configuration.

Settings come from the environment (optionally a .env file) so the CLI,
the web app and the tests can all build the same object.

Author: Ava Shakil
Date: 2026-10-17
"""

import os
import logging
from dataclasses import dataclass

from dotenv import load_dotenv

from .crypto import MAX_ITERATIONS, MIN_ITERATIONS


LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s - %(message)s'


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


@dataclass
class Settings:
    default_ttl: int = 86400
    bits_per_channel: int = 1
    kdf_iterations: int = 100_000
    burn_grace_seconds: float = 60.0
    sweep_interval: float = 300.0
    max_upload_bytes: int = 10 * 1024 * 1024
    host: str = '0.0.0.0'
    port: int = 8787
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Settings':
        load_dotenv()
        settings = cls(
            default_ttl=_env_int('DEAD_DROP_DEFAULT_TTL', cls.default_ttl),
            bits_per_channel=_env_int('DEAD_DROP_BITS_PER_CHANNEL', cls.bits_per_channel),
            kdf_iterations=_env_int('DEAD_DROP_KDF_ITERATIONS', cls.kdf_iterations),
            burn_grace_seconds=_env_float('DEAD_DROP_BURN_GRACE', cls.burn_grace_seconds),
            sweep_interval=_env_float('DEAD_DROP_SWEEP_INTERVAL', cls.sweep_interval),
            max_upload_bytes=_env_int('DEAD_DROP_MAX_UPLOAD', cls.max_upload_bytes),
            host=os.environ.get('DEAD_DROP_HOST', cls.host),
            port=_env_int('DEAD_DROP_PORT', cls.port),
            log_level=os.environ.get('DEAD_DROP_LOG_LEVEL', cls.log_level).upper(),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if not 1 <= self.bits_per_channel <= 4:
            raise ValueError(f"bits_per_channel must be 1-4, got {self.bits_per_channel}")
        if self.default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        if self.sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")
        if self.burn_grace_seconds < 0:
            raise ValueError("burn_grace_seconds must be >= 0")
        if not MIN_ITERATIONS <= self.kdf_iterations <= MAX_ITERATIONS:
            raise ValueError(f"kdf_iterations must be {MIN_ITERATIONS}-{MAX_ITERATIONS}, "
                             f"got {self.kdf_iterations}")


def configure_logging(level: str = 'INFO') -> None:
    """Apply the project log format to the root logger."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO),
                        format=LOG_FORMAT)
