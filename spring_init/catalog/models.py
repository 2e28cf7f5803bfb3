"""Pydantic v2 models for the dependency catalog."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CatalogEntry(BaseModel):
    """One buildable dependency known to the project generator."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Canonical id, e.g. 'data-jpa'")
    name: str = Field(..., description="Display name, e.g. 'Spring Data JPA'")
    description: str = Field(default="", description="What the dependency provides")
    category: str = Field(default="Other", description="Group shown by the generator UI")
