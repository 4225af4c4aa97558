"""Tolerant machine translation suggestions for the editor."""

from __future__ import annotations

import logging

from lexitree_core.ports.translation import TranslationError, TranslatorProtocol

logger = logging.getLogger(__name__)


async def suggest_translation(
    translator: TranslatorProtocol | None,
    text: str,
    source_language: str,
    target_language: str,
) -> str | None:
    """Ask the translator for a suggestion without letting failures escape.

    Args:
        translator: Configured translator, or None when unavailable.
        text: Source text.
        source_language: Language of ``text``.
        target_language: Language to translate into.

    Returns:
        str | None: Suggested translation, or None when no translator is
        configured or the request failed.
    """
    if translator is None:
        logger.debug("No translator configured; skipping suggestion")
        return None
    try:
        return await translator.translate(text, source_language, target_language)
    except TranslationError as exc:
        logger.warning(
            "Translation suggestion failed (%s): %s", exc.info.code, exc.info.message
        )
        return None
