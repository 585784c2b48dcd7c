"""Bridge configuration and host environment metadata.

Both are read from environment variables. The ``HOMEBRIDGE_*`` variables are
set by the host when it launches the plugin UI server process and are passed
through to application code untouched.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

ENV_PREFIX = "PLUGIN_UI_"

DEFAULT_LIVENESS_INTERVAL = 10.0
DEFAULT_HEIGHT_POLL_INTERVAL = 0.25
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_MAX_MESSAGE_SIZE = 1024 * 1024


def _float_env(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {raw!r}")
    return value


def _int_env(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class BridgeConfig:
    """Tunables for the bridge runtime."""

    # Seconds between transport liveness polls
    liveness_interval: float = DEFAULT_LIVENESS_INTERVAL

    # Seconds between scroll height polls when no resize observer exists
    height_poll_interval: float = DEFAULT_HEIGHT_POLL_INTERVAL

    log_level: str = DEFAULT_LOG_LEVEL

    # Largest accepted line on line-framed transports
    max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> BridgeConfig:
        """Load configuration from ``PLUGIN_UI_*`` environment variables."""
        env = os.environ if env is None else env
        return cls(
            liveness_interval=_float_env(
                env, f"{ENV_PREFIX}LIVENESS_INTERVAL", DEFAULT_LIVENESS_INTERVAL
            ),
            height_poll_interval=_float_env(
                env, f"{ENV_PREFIX}HEIGHT_POLL_INTERVAL", DEFAULT_HEIGHT_POLL_INTERVAL
            ),
            log_level=env.get(f"{ENV_PREFIX}LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
            max_message_size=_int_env(
                env, f"{ENV_PREFIX}MAX_MESSAGE_SIZE", DEFAULT_MAX_MESSAGE_SIZE
            ),
        )


@dataclass(frozen=True)
class ServerEnvironment:
    """Read-only metadata the host hands to the plugin UI server."""

    storage_path: str | None = None
    config_path: str | None = None
    ui_version: str | None = None

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ServerEnvironment:
        env = os.environ if env is None else env
        return cls(
            storage_path=env.get("HOMEBRIDGE_STORAGE_PATH"),
            config_path=env.get("HOMEBRIDGE_CONFIG_PATH"),
            ui_version=env.get("HOMEBRIDGE_UI_VERSION"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
