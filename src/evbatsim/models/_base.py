"""Base model for evbatsim wire records.

Every record inherits from :class:`SimBaseModel` which provides
``alias_generator=to_camel`` so snake_case fields serialize to the
camelCase keys consumers of the telemetry topics expect.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def _rounder(digits: int) -> AfterValidator:
    return AfterValidator(lambda value: round(value, digits))


Rounded2 = Annotated[float, _rounder(2)]
"""Float rounded to 2 decimal places on validation."""

Rounded4 = Annotated[float, _rounder(4)]
"""Float rounded to 4 decimal places on validation."""


class SimBaseModel(BaseModel):
    """Frozen camelCase-aliased record."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )
