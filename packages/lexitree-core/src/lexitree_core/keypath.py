"""Dotted key-path addressing over nested JSON documents.

A key path joins object keys with ``.``. Only plain objects are walked:
arrays and scalars terminate a path and are never entered. Documents are
treated as immutable values; ``set_value`` returns a new document that shares
every untouched subtree with its input.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from enum import Enum
from typing import Final, Literal

from lexitree_schemas.primitives import JsonObject, JsonValue
from lexitree_schemas.project import KeyNode

PATH_SEPARATOR: Final = "."


class Missing(Enum):
    """Sentinel type for a key path that resolves to nothing.

    Distinct from a stored ``None`` (JSON ``null``).
    """

    MISSING = "MISSING"

    def __bool__(self) -> Literal[False]:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = Missing.MISSING


class InvalidDocumentError(ValueError):
    """Raised when a document operation receives something other than an object."""


def flatten_keys(document: JsonObject) -> list[str]:
    """List the leaf key paths of a document in depth-first order.

    Args:
        document: Nested JSON object.

    Returns:
        list[str]: Dotted paths to every non-object value. Empty nested
        objects contribute no paths.

    Raises:
        InvalidDocumentError: If ``document`` is not an object.
    """
    _require_object(document)
    paths: list[str] = []
    _collect_paths(document, None, paths)
    return paths


def _collect_paths(node: JsonObject, prefix: str | None, paths: list[str]) -> None:
    for key, value in node.items():
        path = key if prefix is None else f"{prefix}{PATH_SEPARATOR}{key}"
        if isinstance(value, dict):
            _collect_paths(value, path, paths)
        else:
            paths.append(path)


def build_key_tree(paths: Iterable[str]) -> list[KeyNode]:
    """Group dotted paths into a tree by shared prefixes.

    Nodes keep the order in which they were first seen. When a path is a
    leaf in one entry and a prefix of another, the node becomes a non-leaf
    and keeps its position.

    Args:
        paths: Dotted key paths, typically from ``flatten_keys``.

    Returns:
        list[KeyNode]: Root nodes of the tree.
    """
    roots: list[KeyNode] = []
    nodes_by_path: dict[str, KeyNode] = {}
    for path in paths:
        segments = path.split(PATH_SEPARATOR)
        last = len(segments) - 1
        level = roots
        current: str | None = None
        for position, segment in enumerate(segments):
            current = (
                segment if current is None else f"{current}{PATH_SEPARATOR}{segment}"
            )
            node = nodes_by_path.get(current)
            if node is None:
                node = KeyNode(
                    name=segment, path=current, is_leaf=position == last, children=[]
                )
                nodes_by_path[current] = node
                level.append(node)
            elif position < last and node.is_leaf:
                node.is_leaf = False
            level = node.children
    return roots


def iter_leaf_paths(nodes: Sequence[KeyNode]) -> Iterator[str]:
    """Yield the leaf paths of a key tree in depth-first order.

    Args:
        nodes: Root nodes (or any node list) of a key tree.

    Yields:
        str: Path of each leaf node.
    """
    for node in nodes:
        if node.is_leaf:
            yield node.path
        if node.children:
            yield from iter_leaf_paths(node.children)


def iter_nodes(nodes: Sequence[KeyNode]) -> Iterator[KeyNode]:
    """Yield every node of a key tree in depth-first order."""
    for node in nodes:
        yield node
        yield from iter_nodes(node.children)


def find_node(nodes: Sequence[KeyNode], path: str) -> KeyNode | None:
    """Find the node at ``path`` in a key tree, or None."""
    level = nodes
    found: KeyNode | None = None
    for segment in path.split(PATH_SEPARATOR):
        found = next((node for node in level if node.name == segment), None)
        if found is None:
            return None
        level = found.children
    return found


def get_value(document: JsonValue, path: str) -> JsonValue | Missing:
    """Read the value stored at a key path.

    Args:
        document: Nested JSON document.
        path: Dotted key path.

    Returns:
        JsonValue | Missing: The stored value, or ``MISSING`` when a segment
        is absent or an intermediate value is not an object.
    """
    current: JsonValue | Missing = document
    for segment in path.split(PATH_SEPARATOR):
        if not isinstance(current, dict):
            return MISSING
        current = current.get(segment, MISSING)
    return current


def set_value(document: JsonObject, path: str, value: JsonValue) -> JsonObject:
    """Return a copy of ``document`` with ``value`` stored at ``path``.

    Missing or non-object intermediates are replaced by fresh objects.
    Existing keys keep their position and new keys are appended. Only the
    objects along ``path`` are copied; the input is never mutated.

    Args:
        document: Nested JSON object.
        path: Dotted key path.
        value: Value to store.

    Returns:
        JsonObject: New document.

    Raises:
        InvalidDocumentError: If ``document`` is not an object.
    """
    _require_object(document)
    return _assign(document, path.split(PATH_SEPARATOR), value)


def _assign(node: JsonObject, segments: list[str], value: JsonValue) -> JsonObject:
    head, *rest = segments
    updated = dict(node)
    if rest:
        child = node.get(head)
        updated[head] = _assign(child if isinstance(child, dict) else {}, rest, value)
    else:
        updated[head] = value
    return updated


def _require_object(document: object) -> None:
    if not isinstance(document, dict):
        raise InvalidDocumentError(
            f"Expected a JSON object, got {type(document).__name__}"
        )
