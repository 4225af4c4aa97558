"""Translation completeness for leaf keys, subtrees and languages."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from lexitree_core.keypath import MISSING, get_value, iter_nodes
from lexitree_schemas.primitives import JsonObject, JsonValue, LeafStatus
from lexitree_schemas.project import KeyNode
from lexitree_schemas.stats import CompletenessStats, LanguageProgress

type Translations = Mapping[str, JsonObject]


def percent(done: int, total: int) -> int:
    """Return ``round(100 * done / total)`` with halves rounded up.

    Args:
        done: Completed count.
        total: Total count.

    Returns:
        int: Percentage in ``0..100``; 0 when total is 0.
    """
    if total <= 0:
        return 0
    return (200 * done + total) // (2 * total)


def is_translated(document: JsonValue | None, path: str) -> bool:
    """Return whether a translation document holds a usable value at ``path``.

    A value counts as translated unless it is absent, ``None`` or ``""``.
    """
    if document is None:
        return False
    value = get_value(document, path)
    return value is not MISSING and value is not None and value != ""


def classify_leaf(
    path: str, translations: Translations, languages: Sequence[str]
) -> LeafStatus:
    """Classify a leaf key by how many languages translate it.

    Args:
        path: Leaf key path.
        translations: Translation document per language.
        languages: Target languages to consider.

    Returns:
        LeafStatus: ``complete`` when every language (of a non-empty set)
        has a value, ``partial`` when some do and ``missing`` otherwise.
    """
    translated = sum(
        1 for language in languages if is_translated(translations.get(language), path)
    )
    if languages and translated == len(languages):
        return LeafStatus.COMPLETE
    if translated > 0:
        return LeafStatus.PARTIAL
    return LeafStatus.MISSING


def compute_stats(
    nodes: KeyNode | Sequence[KeyNode],
    translations: Translations,
    languages: Sequence[str],
) -> CompletenessStats:
    """Aggregate completeness over every leaf below a node or node list.

    Args:
        nodes: A single node (its subtree is counted) or a list of nodes.
        translations: Translation document per language.
        languages: Target languages to consider.

    Returns:
        CompletenessStats: Leaf counts by status, non-leaf count and
        rounded progress percentage.
    """
    if isinstance(nodes, KeyNode):
        nodes = [nodes]
    counts = {status: 0 for status in LeafStatus}
    total = 0
    groups = 0
    for node in iter_nodes(nodes):
        if not node.is_leaf:
            groups += 1
            continue
        total += 1
        counts[classify_leaf(node.path, translations, languages)] += 1
    translated = counts[LeafStatus.COMPLETE]
    return CompletenessStats(
        total=total,
        translated=translated,
        partial=counts[LeafStatus.PARTIAL],
        missing=counts[LeafStatus.MISSING],
        groups=groups,
        progress=percent(translated, total) if languages else 0,
    )


def language_progress(
    paths: Sequence[str], translations: Translations, language: str
) -> LanguageProgress:
    """Compute translation progress of one language over a set of leaf paths."""
    document = translations.get(language)
    done = sum(1 for path in paths if is_translated(document, path))
    return LanguageProgress(
        language=language,
        done=done,
        total=len(paths),
        percent=percent(done, len(paths)),
    )


def compute_language_progress(
    paths: Sequence[str], translations: Translations, languages: Sequence[str]
) -> list[LanguageProgress]:
    """Compute per-language progress for every target language.

    Args:
        paths: Leaf key paths of the master document.
        translations: Translation document per language.
        languages: Target languages in display order.

    Returns:
        list[LanguageProgress]: One entry per language.
    """
    return [language_progress(paths, translations, language) for language in languages]


class CompletenessCache:
    """Memoised completeness keyed on the identity of its inputs.

    Documents are replaced rather than mutated on every edit, so a new
    ``translations`` mapping or leaf-path list invalidates everything.
    """

    def __init__(self) -> None:
        """Initialize an empty cache."""
        self._paths: Sequence[str] | None = None
        self._translations: Translations | None = None
        self._progress: dict[str, LanguageProgress] = {}
        self._stats: dict[tuple[int, tuple[str, ...]], CompletenessStats] = {}
        self._stats_nodes: dict[int, KeyNode | Sequence[KeyNode]] = {}

    def _refresh(self, paths: Sequence[str] | None, translations: Translations) -> None:
        if translations is not self._translations or (
            paths is not None and paths is not self._paths
        ):
            self._translations = translations
            if paths is not None:
                self._paths = paths
            self._progress = {}
            self._stats = {}
            self._stats_nodes = {}

    def language_progress(
        self, paths: Sequence[str], translations: Translations, language: str
    ) -> LanguageProgress:
        """Return cached progress for one language, computing it on a miss."""
        self._refresh(paths, translations)
        cached = self._progress.get(language)
        if cached is None:
            cached = language_progress(paths, translations, language)
            self._progress[language] = cached
        return cached

    def stats(
        self,
        nodes: KeyNode | Sequence[KeyNode],
        translations: Translations,
        languages: Sequence[str],
    ) -> CompletenessStats:
        """Return cached subtree stats, computing them on a miss."""
        self._refresh(None, translations)
        key = (id(nodes), tuple(languages))
        cached = self._stats.get(key)
        if cached is None or self._stats_nodes.get(id(nodes)) is not nodes:
            cached = compute_stats(nodes, translations, languages)
            self._stats[key] = cached
            self._stats_nodes[id(nodes)] = nodes
        return cached

    def clear(self) -> None:
        """Drop every cached value."""
        self._paths = None
        self._translations = None
        self._progress = {}
        self._stats = {}
        self._stats_nodes = {}
