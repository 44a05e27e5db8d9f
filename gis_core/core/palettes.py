"""Palette loading for layer colouring, with caching."""
from __future__ import annotations

import json
import logging
import os
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# Default fallback palettes if file is missing or invalid
DEFAULT_PALETTES = {
    'Flat_8': ['#e74c3c', '#3498db', '#2ecc71', '#f39c12',
               '#9b59b6', '#1abc9c', '#34495e', '#e67e22'],
    'Set1_5': ['#e41a1c', '#377eb8', '#4daf4a', '#984ea3', '#ff7f00'],
}

# Global cache for loaded palettes
_PALETTES_CACHE: Optional[Dict[str, List[str]]] = None
_PALETTES_FILE_PATH: Optional[str] = None


def set_palettes_file_path(file_path: str) -> None:
    """Set the path to the palettes JSON file and reset the cache."""
    global _PALETTES_FILE_PATH
    _PALETTES_FILE_PATH = file_path
    reset_cache()


def get_palettes_file_path() -> str:
    """Get the current palettes file path (default ``config/palettes.json``)."""
    global _PALETTES_FILE_PATH
    if _PALETTES_FILE_PATH is None:
        _PALETTES_FILE_PATH = os.path.join(
            os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
            'config', 'palettes.json'
        )
    return _PALETTES_FILE_PATH


def reset_cache() -> None:
    """Reset the palettes cache, forcing reload on next access."""
    global _PALETTES_CACHE
    _PALETTES_CACHE = None


def load_palettes() -> Dict[str, List[str]]:
    """Load palettes from the configured JSON file with caching.

    Returns:
        Dict[str, List[str]]: Mapping of palette name to list of hex color strings.
    """
    global _PALETTES_CACHE

    if _PALETTES_CACHE is not None:
        return _PALETTES_CACHE

    palettes = _load_palettes_from_file()
    if palettes:
        _PALETTES_CACHE = {**DEFAULT_PALETTES, **palettes}
        return _PALETTES_CACHE

    _PALETTES_CACHE = DEFAULT_PALETTES.copy()
    return _PALETTES_CACHE


def _load_palettes_from_file() -> Optional[Dict[str, List[str]]]:
    file_path = get_palettes_file_path()

    if not os.path.exists(file_path):
        return None

    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Could not read palettes from {file_path}: {e}")
        return None

    if not isinstance(data, dict):
        return None
    return {name: colors for name, colors in data.items() if validate_palette_colors(colors)}


def get_palette(name: str) -> Optional[List[str]]:
    """Get a specific palette by name."""
    return load_palettes().get(name)


def color_for_index(index: int, palette_name: str = 'Flat_8') -> str:
    """Pick a colour for the ``index``-th layer, cycling through the palette."""
    colors = get_palette(palette_name) or DEFAULT_PALETTES['Flat_8']
    return colors[index % len(colors)]


def validate_palette_colors(colors: List[str]) -> bool:
    """Validate that all colors are valid hex color strings."""
    return (isinstance(colors, list) and bool(colors) and
            all(isinstance(color, str) and
                color.startswith('#') and
                len(color) == 7 and
                all(c in '0123456789abcdefABCDEF' for c in color[1:])
                for color in colors))
