"""
Ideal key-center paths for vocabulary words.

Every character maps to one key center; a word's ideal path is the list of
centers of its characters in order. Characters without a key are skipped,
so the path can be shorter than the word.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from loguru import logger

from .config import KEY_SIZE, KEYBOARD_ROWS, SPACE_KEY_COORD
from .pipeline_types import Point2D


def build_key_coords(
    rows: Sequence[str] = KEYBOARD_ROWS,
    key_size: float = KEY_SIZE,
    space: Optional[Point2D] = SPACE_KEY_COORD,
) -> Dict[str, Point2D]:
    """
    Lay out staggered rows, top row first.

    Row ``row_idx`` is shifted right by ``(0.5 * row_idx) % 1.5`` keys and sits
    ``key_size`` lower than the row above it.
    """
    coords: Dict[str, Point2D] = {}
    for row_idx, line in enumerate(rows):
        offset = (0.5 * row_idx) % 1.5
        y = 90.0 - key_size * row_idx
        for i, ch in enumerate(line):
            coords[ch] = ((1.0 * i + offset) * key_size, y)
    if space is not None:
        coords[" "] = (float(space[0]), float(space[1]))
    return coords


def load_key_coords(path: Path) -> Dict[str, Point2D]:
    """Read a JSON ``{char: [x, y]}`` table."""
    if not path.exists():
        raise FileNotFoundError(f"Keyboard table not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    coords: Dict[str, Point2D] = {}
    for key, xy in raw.items():
        if len(key) != 1 or not isinstance(xy, (list, tuple)) or len(xy) < 2:
            logger.warning("Skipping malformed keyboard entry {!r}: {!r}", key, xy)
            continue
        coords[key] = (float(xy[0]), float(xy[1]))
    logger.info("Loaded {} key coordinates from {}", len(coords), path)
    return coords


KEYBOARD_COORDS: Dict[str, Point2D] = build_key_coords()


def ideal_path(word: str, coords: Optional[Dict[str, Point2D]] = None) -> List[Point2D]:
    table = KEYBOARD_COORDS if coords is None else coords
    return [table[ch] for ch in word if ch in table]
