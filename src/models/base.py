"""Shared Pydantic base model for Spottify records."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class SpottifyBase(BaseModel):
    """Base model for measurements and their values.

    Decoded records are immutable.  Stores derive the persisted copy with
    ``model_copy(update={"id": ..., "created_at": ...})``.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )
