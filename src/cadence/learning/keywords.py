# src/cadence/learning/keywords.py

from __future__ import annotations

import re

MAX_KEYWORDS = 5
MIN_KEYWORD_LEN = 3

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
        "be", "have", "has", "had", "do", "does", "did", "will", "would",
        "could", "should", "may", "might", "must", "shall", "can", "need",
        "i", "you", "he", "she", "it", "we", "they", "my", "your", "his",
        "her", "its", "our", "their", "this", "that", "these", "those",
    }
)

_SPLIT_RE = re.compile(r"[\W_]+")


def extract_keywords(text: str | None) -> list[str]:
    """Lowercased, de-duplicated content words of a task title, first five in order of appearance."""
    if not text:
        return []

    out: list[str] = []
    for token in _SPLIT_RE.split(text.lower()):
        if len(token) < MIN_KEYWORD_LEN or token in STOP_WORDS or token in out:
            continue
        out.append(token)
        if len(out) >= MAX_KEYWORDS:
            break
    return out
