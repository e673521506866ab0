"""
Shared base for API request/response models.

Stored documents use snake_case keys; the JSON API speaks camelCase. Every
API model accepts either spelling on input and emits camelCase on output.
"""

import re

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base model for everything that crosses the HTTP boundary."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_api(self) -> dict:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


def reject_null(value):
    """
    Field validator body for PATCH models: a field may be left out, but an
    explicit ``null`` is only allowed where clearing the value makes sense.
    """
    if value is None:
        raise ValueError("Field cannot be null")
    return value


def check_password_strength(value: str) -> str:
    """At least one letter and one number; length is checked by the field."""
    if not re.search(r'[A-Za-z]', value) or not re.search(r'\d', value):
        raise ValueError("Password must contain at least one letter and one number")
    return value
