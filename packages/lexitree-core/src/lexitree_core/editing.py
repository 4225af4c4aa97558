"""Copy-on-write project edits performed by an editing session."""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from pathlib import PurePath
from uuid import uuid4

from lexitree_core.keypath import InvalidDocumentError, set_value
from lexitree_schemas.primitives import JsonObject, JsonValue
from lexitree_schemas.project import Project

DEFAULT_MASTER_LANGUAGE = "en"
_LANGUAGE_FILENAME = re.compile(r"^([a-z]{2}(?:-[A-Z]{2})?)\.json$")


def now_timestamp() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


def master_language_from_filename(filename: str | None) -> str | None:
    """Detect a language code from a ``xx.json`` or ``xx-YY.json`` file name.

    Args:
        filename: File name or path of an uploaded master document.

    Returns:
        str | None: Lower-cased language code, or None when the name does not
        look like one.
    """
    if not filename:
        return None
    match = _LANGUAGE_FILENAME.match(PurePath(filename).name)
    if match is None:
        return None
    return match.group(1).lower()


def create_project(
    name: str,
    master_data: JsonObject,
    *,
    master_language: str | None = None,
    filename: str | None = None,
) -> Project:
    """Create a new local project from a master document.

    Args:
        name: Display name.
        master_data: Master key/value document.
        master_language: Explicit master language; detected from
            ``filename`` when omitted, falling back to ``en``.
        filename: Name of the uploaded master file.

    Returns:
        Project: New project with no target languages.

    Raises:
        InvalidDocumentError: If ``master_data`` is not an object.
        ValueError: If the name is blank.
    """
    if not isinstance(master_data, dict):
        raise InvalidDocumentError(
            f"Expected a JSON object, got {type(master_data).__name__}"
        )
    language = (
        master_language
        or master_language_from_filename(filename)
        or DEFAULT_MASTER_LANGUAGE
    )
    return Project(
        id=str(uuid4()),
        name=_clean_name(name),
        master_language=language,
        target_languages=[],
        master_data=master_data,
        translations={},
        last_modified=now_timestamp(),
    )


def add_target_language(project: Project, language: str) -> Project:
    """Return a project with ``language`` added as a target language.

    The code is trimmed and lower-cased; blank or already present codes
    leave the project unchanged.
    """
    code = language.strip().lower()
    if not code or code in project.target_languages:
        return project
    return project.model_copy(
        update={
            "target_languages": [*project.target_languages, code],
            "translations": {**project.translations, code: {}},
        }
    )


def remove_target_language(project: Project, language: str) -> Project:
    """Return a project without ``language`` and its translation document."""
    code = language.strip().lower()
    if code not in project.target_languages:
        return project
    return project.model_copy(
        update={
            "target_languages": [
                existing for existing in project.target_languages if existing != code
            ],
            "translations": {
                key: document
                for key, document in project.translations.items()
                if key != code
            },
        }
    )


def set_translation(
    project: Project, language: str, path: str, value: JsonValue
) -> Project:
    """Return a project with one translated value written.

    Args:
        project: Project being edited.
        language: Target language of the value.
        path: Dotted key path.
        value: Translated value.

    Returns:
        Project: New project sharing every untouched document.

    Raises:
        KeyError: If ``language`` is not a target language.
    """
    code = language.strip().lower()
    if code not in project.target_languages:
        raise KeyError(f"{code!r} is not a target language of this project")
    document = project.translations.get(code, {})
    return project.model_copy(
        update={
            "translations": {
                **project.translations,
                code: set_value(document, path, value),
            }
        }
    )


def set_master_value(project: Project, path: str, value: JsonValue) -> Project:
    """Return a project with one master value written."""
    return project.model_copy(
        update={"master_data": set_value(project.master_data, path, value)}
    )


def rename_project(project: Project, name: str) -> Project:
    """Return a renamed project.

    Raises:
        ValueError: If the trimmed name is blank.
    """
    return project.model_copy(update={"name": _clean_name(name)})


def export_translation(project: Project, language: str) -> str:
    """Serialize a language's document as pretty-printed JSON.

    The master language exports the master document. Key order is kept.

    Raises:
        KeyError: If the language is neither the master nor a target language.
    """
    code = language.strip().lower()
    if code == project.master_language:
        document = project.master_data
    elif code in project.target_languages:
        document = project.translations.get(code, {})
    else:
        raise KeyError(f"{code!r} is not a language of this project")
    return json.dumps(document, indent=2, ensure_ascii=False)


def _clean_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValueError("Project name must not be blank")
    return cleaned
