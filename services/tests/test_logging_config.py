"""
Tests for the structlog processors.
"""

from tfstate_resource.logging_config import (
    REDACTED,
    add_app_context,
    level_and_time_first,
    redact_secrets,
)


class TestRedactSecrets:
    def test_masks_credentials(self) -> None:
        event = redact_secrets(
            None, "info", {"event": "x", "token": "s.abc", "secret_access_key": "shh"}
        )
        assert event["token"] == REDACTED
        assert event["secret_access_key"] == REDACTED
        assert event["event"] == "x"

    def test_masks_nested_values_without_mutating_input(self) -> None:
        nested = {"access_key": "ASIA", "secret_key": "shh"}
        event = redact_secrets(None, "info", {"event": "x", "data": nested})
        assert event["data"] == {"access_key": "ASIA", "secret_key": REDACTED}
        assert nested["secret_key"] == "shh"

    def test_empty_values_left_alone(self) -> None:
        assert redact_secrets(None, "info", {"session_token": ""})["session_token"] == ""


class TestOrdering:
    def test_level_and_timestamp_first(self) -> None:
        event = level_and_time_first(
            None, "info", {"event": "x", "timestamp": "t", "app": "a", "level": "info"}
        )
        assert list(event) == ["level", "timestamp", "event", "app"]

    def test_app_context(self) -> None:
        assert add_app_context(None, "info", {})["app"] == "tfstate-resource"
