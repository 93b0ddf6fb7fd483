from __future__ import annotations

import pytest

from pysecurestorage.config import InspectorConfig, MqttSettings
from pysecurestorage.exceptions import InspectorConfigError


def test_defaults() -> None:
    config = InspectorConfig()
    assert config.warmup_delay == 0.5
    assert config.snapshot_capacity == 50
    assert config.update_capacity == 100
    assert config.poll_interval == 2.0
    assert config.log_values is False
    assert config.mqtt == MqttSettings()


def test_from_env_reads_secstore_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SECSTORE_MQTT_HOST", "broker.local")
    monkeypatch.setenv("SECSTORE_MQTT_PORT", "8883")
    monkeypatch.setenv("SECSTORE_MQTT_TLS", "yes")
    monkeypatch.setenv("SECSTORE_WARMUP_DELAY", "0.1")
    monkeypatch.setenv("SECSTORE_UPDATE_CAPACITY", "10")
    monkeypatch.setenv("SECSTORE_LOG_VALUES", "1")

    config = InspectorConfig.from_env()

    assert config.mqtt.host == "broker.local"
    assert config.mqtt.port == 8883
    assert config.mqtt.tls is True
    assert config.warmup_delay == 0.1
    assert config.update_capacity == 10
    assert config.log_values is True


def test_overrides_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SECSTORE_WARMUP_DELAY", "0.1")
    monkeypatch.setenv("SECSTORE_MQTT_HOST", "env-host")

    config = InspectorConfig.from_env(warmup_delay=0.3, mqtt={"host": "explicit"})

    assert config.warmup_delay == 0.3
    assert config.mqtt.host == "explicit"


def test_invalid_environment_value_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SECSTORE_SNAPSHOT_CAPACITY", "lots")
    with pytest.raises(InspectorConfigError):
        InspectorConfig.from_env()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"warmup_delay": -0.1},
        {"snapshot_capacity": 0},
        {"update_capacity": 0},
        {"poll_interval": 0},
    ],
)
def test_invalid_values_rejected(kwargs: dict[str, float]) -> None:
    with pytest.raises(InspectorConfigError):
        InspectorConfig(**kwargs)  # type: ignore[arg-type]
