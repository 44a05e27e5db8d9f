"""Utility helpers (logging, small predicates) for the county GIS viewer."""
from __future__ import annotations

import re
import unicodedata
from typing import Any, Iterable, List


def log_progress(message: str) -> None:
    """Lightweight stdout logger with flush to surface discovery progress."""
    print(message, flush=True)


def has_data(data: Any) -> bool:
    """Return True if a GeoDataFrame-like has rows; tolerant of None.

    Args:
        data: Any object; will check for 'empty' attr if present.
    """
    return data is not None and getattr(data, 'empty', False) is False


def normalize_name(name: str) -> str:
    """Fold a display name for comparison.

    Diacritics, emoji and other symbols are dropped, whitespace collapsed and
    the result lower-cased: ``"🏠 Address Points"`` -> ``"address points"``.
    """
    decomposed = unicodedata.normalize('NFKD', name or '')
    kept = []
    for ch in decomposed:
        category = unicodedata.category(ch)
        if category.startswith('M'):  # combining marks
            continue
        if category.startswith('S') or category in ('Cf', 'Co', 'Cs'):
            kept.append(' ')
            continue
        kept.append(ch)
    text = ''.join(kept).replace('_', ' ')
    return re.sub(r'\s+', ' ', text).strip().lower()


def unique(items: Iterable[str]) -> List[str]:
    """Drop repeated items while preserving first-seen order."""
    seen = set()
    result = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result
