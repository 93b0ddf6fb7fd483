"""Inspector configuration for pysecurestorage."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pysecurestorage._constants import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_WARMUP_DELAY,
    SNAPSHOT_LOG_CAPACITY,
    UPDATE_LOG_CAPACITY,
)
from pysecurestorage.exceptions import InspectorConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Broker connection used by the MQTT debug channel.

    Parameters
    ----------
    host : str
        Broker host name.
    port : int
        Broker port.
    keepalive : int
        MQTT keepalive in seconds.
    topic_prefix : str
        Prefix for the ``events`` and ``commands`` topics.
    client_id : str
        Client identifier.  An empty string lets paho generate one.
    tls : bool
        Whether to wrap the connection in TLS.
    """

    host: str = "localhost"
    port: int = 1883
    keepalive: int = 60
    topic_prefix: str = "secure_storage_devtool"
    client_id: str = ""
    tls: bool = False


@dataclasses.dataclass(frozen=True)
class InspectorConfig:
    """Inspector configuration.

    Parameters
    ----------
    warmup_delay : float
        Seconds after (re)connect during which inbound events are dropped
        as presumed replays from a previous session.
    snapshot_capacity : int
        Maximum number of snapshots kept in the snapshot log.
    update_capacity : int
        Maximum number of update events kept in the update log.
    settings_path : str or None
        JSON file used to persist inspector preferences.  ``None`` keeps
        preferences in memory only.
    poll_interval : float
        Seconds between producer-side re-reads of the store when key
        discovery is poll-based.
    log_values : bool
        Include stored values in DEBUG logs.  Off by default because the
        inspected store holds secrets.
    mqtt : MqttSettings
        Broker settings for the MQTT channel.
    """

    warmup_delay: float = DEFAULT_WARMUP_DELAY
    snapshot_capacity: int = SNAPSHOT_LOG_CAPACITY
    update_capacity: int = UPDATE_LOG_CAPACITY
    settings_path: str | None = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    log_values: bool = False
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    def __post_init__(self) -> None:
        if self.warmup_delay < 0:
            raise InspectorConfigError(f"warmup_delay must be >= 0, got {self.warmup_delay}")
        if self.snapshot_capacity < 1:
            raise InspectorConfigError(f"snapshot_capacity must be >= 1, got {self.snapshot_capacity}")
        if self.update_capacity < 1:
            raise InspectorConfigError(f"update_capacity must be >= 1, got {self.update_capacity}")
        if self.poll_interval <= 0:
            raise InspectorConfigError(f"poll_interval must be > 0, got {self.poll_interval}")

    @classmethod
    def from_env(cls, **overrides: Any) -> InspectorConfig:
        """Create configuration from environment variables.

        Reads optional ``SECSTORE_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        InspectorConfig
            Populated configuration.
        """
        env = os.environ

        mqtt_kwargs: dict[str, Any] = {}
        _ENV_MQTT_MAP = {
            "SECSTORE_MQTT_HOST": ("host", str),
            "SECSTORE_MQTT_PORT": ("port", int),
            "SECSTORE_MQTT_KEEPALIVE": ("keepalive", int),
            "SECSTORE_MQTT_TOPIC_PREFIX": ("topic_prefix", str),
            "SECSTORE_MQTT_CLIENT_ID": ("client_id", str),
        }
        for env_key, (field_name, convert) in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                try:
                    mqtt_kwargs[field_name] = convert(val)
                except ValueError as exc:
                    raise InspectorConfigError(f"{env_key} is not a valid {convert.__name__}: {val!r}") from exc
        if "SECSTORE_MQTT_TLS" in env:
            mqtt_kwargs["tls"] = _env_bool(env.get("SECSTORE_MQTT_TLS"), False)

        # Allow overriding broker fields via a nested dict
        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)

        config_kwargs: dict[str, Any] = {"mqtt": MqttSettings(**mqtt_kwargs)}

        _ENV_NUMERIC_MAP = {
            "SECSTORE_WARMUP_DELAY": ("warmup_delay", float),
            "SECSTORE_SNAPSHOT_CAPACITY": ("snapshot_capacity", int),
            "SECSTORE_UPDATE_CAPACITY": ("update_capacity", int),
            "SECSTORE_POLL_INTERVAL": ("poll_interval", float),
        }
        for env_key, (field_name, convert) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = convert(val)
            except ValueError as exc:
                raise InspectorConfigError(f"{env_key} is not a valid {convert.__name__}: {val!r}") from exc

        settings_path = env.get("SECSTORE_SETTINGS_PATH")
        if settings_path:
            config_kwargs["settings_path"] = settings_path

        if "log_values" not in overrides:
            config_kwargs["log_values"] = _env_bool(env.get("SECSTORE_LOG_VALUES"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
