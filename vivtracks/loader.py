# Copyright (c) 2025 The vivtracks contributors
# Part of the vivtracks Project
# Released under the AGPLv3 or later

# Dataset loader
#
# The dataset is column oriented: a mapping of column name to a mapping
# of row index (as a string) to value, e.g.
#
#   {"id": {"0": "5vYA1mW9g2Coh1HUFUSmlb"}, "title": {"0": "3AM"}, ...}
#
# Only the shape is checked. Values are carried over as-is.

from typing import Any, Dict, List
import json
import logging
import os

from .errors import StartupError
from .records.track import Track
from .schema import COLUMNS_BY_NAME, DATASET_COLUMNS, UNRATED


def read_dataset(file_path: str) -> Any:
    if not os.path.exists(file_path):
        raise StartupError("The specified file does not exist.")
    if not os.path.isfile(file_path):
        raise StartupError("Invalid File data format.")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
        raise StartupError("Invalid File data format.") from e


def _is_index(key) -> bool:
    return isinstance(key, str) and key.isdecimal()


def validate_dataset(data: Any) -> bool:
    """Check that every column is present, shares the `id` column's row
    keys, and that every row key is a non-negative integer."""
    if not isinstance(data, dict) or not isinstance(data.get("id"), dict):
        return False

    row_keys = set(data["id"].keys())
    for name in DATASET_COLUMNS:
        column = data.get(name)
        if not isinstance(column, dict):
            return False
        if len(column) != len(row_keys) or set(column.keys()) != row_keys:
            return False
        if not all(_is_index(k) for k in column.keys()):
            return False

    return True


def build_tracks(data: Dict[str, Dict[str, Any]]) -> List[Track]:
    """Assemble one track per row key of the `id` column, in file order"""
    tracks = []
    for key in data["id"].keys():
        values = {
            COLUMNS_BY_NAME[name].attribute: data[name][key] for name in DATASET_COLUMNS
        }
        tracks.append(Track(idx=int(key), rating=UNRATED, **values))

    return tracks


def load_tracks(file_path: str) -> List[Track]:
    logger = logging.getLogger(__name__)

    data = read_dataset(file_path)
    if not validate_dataset(data):
        raise StartupError("Invalid File data format.")

    tracks = build_tracks(data)
    logger.info(f"Loaded {len(tracks)} tracks from {file_path}")
    return tracks
