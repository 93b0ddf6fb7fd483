from __future__ import annotations

from pysecurestorage._redact import redact_for_log


def test_redact_for_log_masks_stored_values_but_keeps_keys() -> None:
    payload = {
        "deviceId": "pixel-7",
        "entries": {"auth.token": "eyJhbGciOi", "pin": "1234"},
        "nested": {"storageData": {"refresh": "r"}},
    }

    redacted = redact_for_log(payload)

    assert redacted["deviceId"] == "pixel-7"
    assert redacted["entries"] == {"auth.token": "<redacted>", "pin": "<redacted>"}
    assert redacted["nested"]["storageData"] == {"refresh": "<redacted>"}


def test_redact_for_log_masks_update_and_command_values() -> None:
    redacted = redact_for_log({"operation": "edit", "key": "token", "value": "secret", "password": "pw"})

    assert redacted["operation"] == "edit"
    assert redacted["key"] == "token"
    assert redacted["value"] == "<redacted>"
    assert redacted["password"] == "<redacted>"


def test_redact_for_log_keeps_null_values_visible() -> None:
    assert redact_for_log({"value": None}) == {"value": None}


def test_reveal_values_skips_masking() -> None:
    redacted = redact_for_log({"value": "secret"}, reveal_values=True)
    assert redacted == {"value": "secret"}


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"key": long_value}, max_string=10)
    assert redacted["key"].startswith("x" * 10)
    assert "<truncated>" in redacted["key"]
