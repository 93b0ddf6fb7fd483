"""Base model and timestamp handling for debug channel payloads.

Every event model inherits from :class:`InspectorBaseModel` which
provides:

* ``alias_generator=to_camel`` so the camelCase wire keys
  (``deviceId``, ``storageData``) map to snake_case fields.
* A ``model_validator(mode="before")`` that drops explicit ``null``
  values so the field default is used, and stashes the original payload
  in ``raw``.

Timestamps on the wire are epoch milliseconds.  :data:`EventTimestamp`
accepts exactly that and falls back to *now* for anything else, so a bad
clock field never turns an otherwise valid event into a parse failure.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Annotated, Any, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_event_timestamp(value: Any) -> datetime:
    """Convert an epoch-milliseconds integer to an aware UTC datetime.

    Datetimes pass through (naive ones are assumed UTC).  Missing values,
    floats, strings and booleans are not valid wire timestamps and map to
    the current time.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, bool) or not isinstance(value, int):
        return utcnow()
    try:
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return utcnow()


def to_epoch_millis(value: datetime) -> int:
    """Inverse of :func:`parse_event_timestamp`."""
    return round(value.timestamp() * 1000)


EventTimestamp = Annotated[datetime, BeforeValidator(parse_event_timestamp)]
"""Annotated type that coerces epoch-millisecond ints to UTC datetimes."""


class InspectorBaseModel(BaseModel):
    """Base for debug channel payload models.

    Handles:
    * camelCase → snake_case via ``alias_generator=to_camel``
    * explicit ``null`` → dropped so the field default applies
    * stashes the original payload in ``raw``
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict, repr=False, exclude=True)
    """Payload the model was first built from."""

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, values: Any) -> Any:
        """Drop ``null`` values and stash the raw payload.

        A ``raw`` key on the wire is payload data, never the stash itself.
        """
        if not isinstance(values, dict):
            return values
        cleaned = {key: value for key, value in values.items() if value is not None}
        cleaned["raw"] = dict(values)
        return cleaned


ModelT = TypeVar("ModelT", bound=InspectorBaseModel)


def lenient_parse(
    model_cls: type[ModelT],
    raw: Any,
    placeholder: Callable[[], ModelT],
    on_error: Callable[[BaseException], None] | None = None,
) -> ModelT:
    """Validate *raw* into *model_cls*, returning ``placeholder()`` on any failure."""
    try:
        return model_cls.model_validate(raw)
    except Exception as exc:  # noqa: BLE001 - parse failures are recovered, never propagated
        if on_error is not None:
            on_error(exc)
        return placeholder()
