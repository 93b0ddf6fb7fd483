"""Inspector display preferences."""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from pysecurestorage._constants import CLEAR_ON_RELOAD_KEY, HIDE_NULL_VALUES_KEY, SHOW_NEWEST_ON_TOP_KEY


class InspectorSettings(BaseModel):
    """User-facing preferences, persisted on every change."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    show_newest_on_top: bool = False
    """Insert new log entries at the top and sort newest first."""

    clear_on_reload: bool = True
    """Drop replayed events (and accumulated logs) after reconnecting."""

    hide_null_values: bool = False
    """Display filter: hide entries whose value is ``None``."""

    @classmethod
    def from_preferences(cls, prefs: Mapping[str, str | None]) -> InspectorSettings:
        """Decode namespaced string preferences.

        A missing ``show_newest_on_top`` reads as off; a missing
        ``clear_on_reload`` or ``hide_null_values`` reads as on, so a fresh
        install hides null values.  An unreadable store should use the
        field defaults instead.
        """
        return cls(
            show_newest_on_top=prefs.get(SHOW_NEWEST_ON_TOP_KEY) == "true",
            clear_on_reload=prefs.get(CLEAR_ON_RELOAD_KEY) != "false",
            hide_null_values=prefs.get(HIDE_NULL_VALUES_KEY) != "false",
        )

    def to_preferences(self) -> dict[str, str]:
        return {
            SHOW_NEWEST_ON_TOP_KEY: _bool_text(self.show_newest_on_top),
            CLEAR_ON_RELOAD_KEY: _bool_text(self.clear_on_reload),
            HIDE_NULL_VALUES_KEY: _bool_text(self.hide_null_values),
        }


def _bool_text(value: bool) -> str:
    return "true" if value else "false"
