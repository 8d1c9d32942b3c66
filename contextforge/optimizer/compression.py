"""Heuristic prompt-template compression.

Three tiers, selected by a compression level in ``[0, 1]``:

* always: collapse whitespace, drop filler phrases ("please", "kindly", ...)
* ``> 0.5``: rewrite circumlocutions ("in order to" → "to", ...)
* ``> 0.8``: strip articles and common auxiliaries.  Lossy: grammar and
  sometimes meaning suffer at this tier.

Every substitution replaces a match with something no longer than the
match, so output length never exceeds input length.  Substitutions are
repeated until nothing changes, which makes ``compress_text`` idempotent.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from langchain_text_splitters import RecursiveCharacterTextSplitter

from contextforge.config import settings
from contextforge.errors import InvalidOptimizationRequest

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

_FILLER_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(p, re.IGNORECASE), " ")
    for p in (
        r"\bplease\s+",
        r"\bkindly\s+",
        r"\byou\s+are\s+requested\s+to\s+",
        r"\bi\s+would\s+like\s+you\s+to\s+",
        r"\bcould\s+you\s+(?:please\s+)?",
        r"\s+and\s+also\s+",
        r"\s+as\s+well\s+as\s+",
        r"\s+in\s+addition\s+to\s+",
        r"\s+furthermore\s+",
        r"\s+moreover\s+",
        r"\s+additionally\s+",
    )
]

_CIRCUMLOCUTION_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(p, re.IGNORECASE), r)
    for p, r in (
        (r"\bin\s+order\s+to\s+", "to "),
        (r"\bfor\s+the\s+purpose\s+of\s+", "to "),
        (r"\bwith\s+regard\s+to\s+", "regarding "),
        (r"\bit\s+is\s+important\s+to\s+note\s+that\s+", ""),
        (r"\bplease\s+note\s+that\s+", ""),
        (r"\bit\s+should\s+be\s+noted\s+that\s+", ""),
        (r"\bone\s+must\s+consider\s+that\s+", ""),
    )
]

_AGGRESSIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(p, re.IGNORECASE), " ")
    for p in (
        r"\s+the\s+",
        r"\s+a\s+",
        r"\s+an\s+",
        r"\s+is\s+",
        r"\s+are\s+",
        r"\s+will\s+be\s+",
        r"\s+can\s+be\s+",
    )
]

# Paragraph → line → sentence → clause → word.
SPLITTER_SEPARATORS = ["\n\n", "\n", ". ", "! ", "? ", "; ", ", ", " "]


def _normalise(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _patterns_for(level: float) -> list[tuple[re.Pattern[str], str]]:
    patterns = list(_FILLER_PATTERNS)
    if level > 0.5:
        patterns += _CIRCUMLOCUTION_PATTERNS
    if level > 0.8:
        patterns += _AGGRESSIVE_PATTERNS
    return patterns


def compress_text(text: Any, level: float = 0.3) -> Any:
    """Apply the heuristic rewrite tiers allowed by *level*.

    Non-string and empty input is returned unchanged.
    """
    if not text or not isinstance(text, str):
        return text

    compressed = _normalise(text)
    patterns = _patterns_for(level)
    while True:
        before = compressed
        for pattern, replacement in patterns:
            compressed = pattern.sub(replacement, compressed)
        compressed = _normalise(compressed)
        if compressed == before:
            return compressed


def compress_text_advanced(text: Any, level: float = 0.3) -> Any:
    """Basic compression followed by a re-chunking pass.

    The compressed text is split with LangChain's recursive character
    splitter, fragments shorter than ``settings.min_fragment_length`` are
    dropped, and the rest is rejoined with single spaces.  Chunk overlap can
    repeat text across boundaries, so the rejoined form is only kept when it
    is not longer than the basic result.  Splitter failures fall back to the
    basic result.
    """
    compressed = compress_text(text, level)
    if not compressed or not isinstance(compressed, str):
        return compressed

    try:
        splitter = RecursiveCharacterTextSplitter(
            chunk_size=settings.compression_chunk_size,
            chunk_overlap=settings.compression_chunk_overlap,
            separators=SPLITTER_SEPARATORS,
        )
        chunks = splitter.split_text(compressed)
    except Exception as exc:
        logger.warning("[compress] advanced pass failed, using basic result: %s", exc)
        return compressed

    fragments = [c.strip() for c in chunks]
    rejoined = _normalise(
        " ".join(f for f in fragments if len(f) >= settings.min_fragment_length)
    )
    if rejoined and len(rejoined) <= len(compressed):
        return rejoined
    return compressed


def compress_template(text: Any, level: float) -> Any:
    """Pick the advanced pass for long templates, the basic one otherwise."""
    if isinstance(text, str) and len(text) > settings.advanced_compression_threshold:
        return compress_text_advanced(text, level)
    return compress_text(text, level)


def compression_level_for(optimization_type: str) -> float:
    """Map ``auto`` / ``aggressive`` / ``conservative`` to a compression level."""
    try:
        return settings.compression_levels[optimization_type]
    except KeyError:
        raise InvalidOptimizationRequest(
            f"Unknown optimization type {optimization_type!r}; "
            f"expected one of {sorted(settings.compression_levels)}"
        ) from None
