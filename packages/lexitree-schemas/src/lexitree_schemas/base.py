"""Base schema configuration for lexitree Pydantic models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema with strict validation defaults.

    Note: extra="ignore" lets records written by newer clients (or by the
    shared store, which attaches relation data) load without failing
    validation. Required fields are still validated.
    """

    model_config = ConfigDict(
        extra="ignore",
        validate_assignment=True,
        validate_default=True,
        str_strip_whitespace=True,
        use_enum_values=True,
        strict=True,
    )


class DocumentSchema(BaseSchema):
    """Base schema for records that carry user-authored JSON documents.

    Translated text is stored verbatim, so whitespace stripping is disabled.
    """

    model_config = ConfigDict(str_strip_whitespace=False)
