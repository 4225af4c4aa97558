"""Project records, key trees and editing session schemas."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from lexitree_schemas.base import BaseSchema, DocumentSchema
from lexitree_schemas.primitives import (
    JsonObject,
    LanguageCode,
    ProjectId,
    ProjectRefKind,
    ProjectRole,
    Timestamp,
    UserId,
)


def _normalize_language_list(value: object) -> object:
    if not isinstance(value, list):
        return value
    normalized: list[object] = []
    for item in value:
        code = item.strip().lower() if isinstance(item, str) else item
        if code not in normalized:
            normalized.append(code)
    return normalized


def _normalize_language(value: object) -> object:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _normalize_translation_keys(value: object) -> object:
    if not isinstance(value, dict):
        return value
    return {
        _normalize_language(language): document
        for language, document in value.items()
    }


class KeyNode(DocumentSchema):
    """Node of the key tree derived from a master document."""

    name: str = Field(..., description="Final path segment")
    path: str = Field(..., description="Dot-joined path from the root")
    is_leaf: bool = Field(..., description="Whether the master value is not an object")
    children: list[KeyNode] = Field(
        default_factory=list, description="Child nodes in first-seen order"
    )


class Project(DocumentSchema):
    """Unified project shape used by editing sessions and the local store."""

    id: ProjectId = Field(..., description="Project identifier")
    name: str = Field(..., min_length=1, description="Display name")
    master_language: LanguageCode = Field(
        "en", description="Language of the master document"
    )
    target_languages: list[LanguageCode] = Field(
        default_factory=list, description="Ordered target languages"
    )
    master_data: JsonObject = Field(
        default_factory=dict, description="Master key/value document"
    )
    translations: dict[str, JsonObject] = Field(
        default_factory=dict, description="Translation document per target language"
    )
    last_modified: Timestamp = Field(..., description="Last local save timestamp")

    @field_validator("master_language", mode="before")
    @classmethod
    def _coerce_master_language(cls, value: object) -> object:
        return _normalize_language(value)

    @field_validator("target_languages", mode="before")
    @classmethod
    def _coerce_target_languages(cls, value: object) -> object:
        return _normalize_language_list(value)

    @field_validator("translations", mode="before")
    @classmethod
    def _coerce_translation_keys(cls, value: object) -> object:
        return _normalize_translation_keys(value)

    @model_validator(mode="after")
    def ensure_translation_entries(self) -> Project:
        """Give every target language a translation document.

        Returns:
            Project: Project with a document for each target language.
        """
        for language in self.target_languages:
            if language not in self.translations:
                self.translations[language] = {}
        return self


class ProjectRef(BaseSchema):
    """Reference to a project in either store."""

    kind: ProjectRefKind = Field(..., description="Store holding the project")
    id: ProjectId = Field(..., description="Project identifier in that store")

    @field_validator("kind", mode="before")
    @classmethod
    def _coerce_kind(cls, value: object) -> ProjectRefKind:
        if isinstance(value, ProjectRefKind):
            return value
        if isinstance(value, str):
            return ProjectRefKind(value)
        return value  # type: ignore[return-value]


class MemberSummary(BaseSchema):
    """Membership entry embedded in a shared project."""

    user_id: UserId = Field(..., description="Member user identifier")
    role: ProjectRole = Field(..., description="Role granted to the member")
    email: str | None = Field(None, description="Member email if known")
    name: str | None = Field(None, description="Member display name if known")

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: object) -> ProjectRole:
        if isinstance(value, ProjectRole):
            return value
        if isinstance(value, str):
            return ProjectRole(value)
        return value  # type: ignore[return-value]


class SharedProject(DocumentSchema):
    """Project record held by the shared multi-user store."""

    id: ProjectId = Field(..., description="Shared project identifier")
    name: str = Field(..., min_length=1, description="Display name")
    master_language: LanguageCode = Field(
        "en", description="Language of the master document"
    )
    target_languages: list[LanguageCode] = Field(
        default_factory=list, description="Ordered target languages"
    )
    master_data: JsonObject = Field(
        default_factory=dict, description="Master key/value document"
    )
    translations: dict[str, JsonObject] = Field(
        default_factory=dict, description="Translation document per target language"
    )
    owner_id: UserId = Field(..., description="Owning user identifier")
    members: list[MemberSummary] = Field(
        default_factory=list, description="Non-owner members of the project"
    )
    created_at: Timestamp = Field(..., description="Creation timestamp")
    updated_at: Timestamp = Field(..., description="Last accepted write timestamp")
    version: int = Field(1, ge=1, description="Incremented on every accepted write")

    @field_validator("master_language", mode="before")
    @classmethod
    def _coerce_master_language(cls, value: object) -> object:
        return _normalize_language(value)

    @field_validator("target_languages", mode="before")
    @classmethod
    def _coerce_target_languages(cls, value: object) -> object:
        return _normalize_language_list(value)

    @field_validator("translations", mode="before")
    @classmethod
    def _coerce_translation_keys(cls, value: object) -> object:
        return _normalize_translation_keys(value)


class SharedProjectDraft(DocumentSchema):
    """Payload used to create a shared project."""

    id: ProjectId | None = Field(
        None, description="Identifier to reuse; the store assigns one when omitted"
    )
    name: str = Field(..., min_length=1, description="Display name")
    master_language: LanguageCode = Field(
        "en", description="Language of the master document"
    )
    target_languages: list[LanguageCode] = Field(
        default_factory=list, description="Ordered target languages"
    )
    master_data: JsonObject = Field(
        default_factory=dict, description="Master key/value document"
    )
    translations: dict[str, JsonObject] = Field(
        default_factory=dict, description="Translation document per target language"
    )

    @field_validator("target_languages", mode="before")
    @classmethod
    def _coerce_target_languages(cls, value: object) -> object:
        return _normalize_language_list(value)

    @field_validator("translations", mode="before")
    @classmethod
    def _coerce_translation_keys(cls, value: object) -> object:
        return _normalize_translation_keys(value)


class SharedProjectUpdate(DocumentSchema):
    """Partial update for a shared project; unset fields are left untouched."""

    name: str | None = Field(None, min_length=1, description="New display name")
    master_language: LanguageCode | None = Field(
        None, description="New master language"
    )
    target_languages: list[LanguageCode] | None = Field(
        None, description="Replacement target language list"
    )
    master_data: JsonObject | None = Field(
        None, description="Replacement master document"
    )
    translations: dict[str, JsonObject] | None = Field(
        None, description="Replacement translation documents"
    )

    @field_validator("target_languages", mode="before")
    @classmethod
    def _coerce_target_languages(cls, value: object) -> object:
        return _normalize_language_list(value)

    @field_validator("translations", mode="before")
    @classmethod
    def _coerce_translation_keys(cls, value: object) -> object:
        return _normalize_translation_keys(value)


class EditingSession(BaseSchema):
    """Project loaded for editing together with the caller's role."""

    project: Project = Field(..., description="Unified project being edited")
    role: ProjectRole = Field(..., description="Caller role on the project")
    shared_project_id: ProjectId | None = Field(
        None, description="Shared project identifier when promoted"
    )
    shared_version: int | None = Field(
        None, ge=1, description="Shared record version observed at load"
    )

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: object) -> ProjectRole:
        if isinstance(value, ProjectRole):
            return value
        if isinstance(value, str):
            return ProjectRole(value)
        return value  # type: ignore[return-value]


class PersistResult(BaseSchema):
    """Outcome of persisting a project through both stores."""

    project: Project = Field(..., description="Record stored locally")
    shared_written: bool = Field(..., description="Whether the shared copy was written")
    shared_version: int | None = Field(
        None, ge=1, description="Shared record version after the write"
    )
