"""Translation completeness schemas."""

from __future__ import annotations

from pydantic import Field

from lexitree_schemas.base import BaseSchema
from lexitree_schemas.primitives import LanguageCode, ProjectId


class CompletenessStats(BaseSchema):
    """Completeness counts over the leaves of a key subtree."""

    total: int = Field(0, ge=0, description="Number of leaf keys")
    translated: int = Field(0, ge=0, description="Leaves translated in every language")
    partial: int = Field(0, ge=0, description="Leaves translated in some languages")
    missing: int = Field(0, ge=0, description="Leaves translated in no language")
    groups: int = Field(0, ge=0, description="Number of non-leaf nodes")
    progress: int = Field(0, ge=0, le=100, description="Rounded percent complete")


class LanguageProgress(BaseSchema):
    """Per-language translation progress."""

    language: LanguageCode = Field(..., description="Target language")
    done: int = Field(..., ge=0, description="Translated leaf keys")
    total: int = Field(..., ge=0, description="Leaf keys in the master document")
    percent: int = Field(..., ge=0, le=100, description="Rounded percent complete")


class ProjectStatsResult(BaseSchema):
    """Completeness report for a whole project."""

    project_id: ProjectId = Field(..., description="Project identifier")
    stats: CompletenessStats = Field(..., description="Counts over every leaf key")
    languages: list[LanguageProgress] = Field(
        default_factory=list, description="Progress per target language"
    )
