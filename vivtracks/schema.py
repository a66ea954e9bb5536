# Copyright (c) 2025 The vivtracks contributors
# Part of the vivtracks Project
# Released under the AGPLv3 or later

# Static column schema for a track.
#
# Every place that needs to walk the fields of a track (the database
# mapping, the JSON wire format, the table and the CSV export) uses
# COLUMNS so they all agree on names, labels, types and order.

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Column:
    name: str
    label: str
    kind: type
    attr: Optional[str] = None

    @property
    def attribute(self) -> str:
        """Name of the python attribute on a Track"""
        return self.attr or self.name


# Display order
COLUMNS = (
    Column("idx", "Index", int),
    Column("title", "Title", str),
    Column("rating", "Rating", int),
    Column("duration_ms", "Duration", int),
    Column("id", "ID", str),
    Column("class", "Class", int, attr="track_class"),
    Column("acousticness", "Acousticness", float),
    Column("danceability", "Danceability", float),
    Column("energy", "Energy", float),
    Column("instrumentalness", "Instrumentalness", float),
    Column("key", "Key", int),
    Column("liveness", "Liveliness", float),
    Column("loudness", "Loudness", float),
    Column("mode", "Mode", int),
    Column("num_bars", "# of Bars", int),
    Column("num_sections", "# of Sections", int),
    Column("num_segments", "# of Segments", int),
    Column("tempo", "Tempo", float),
    Column("time_signature", "Signature", int),
    Column("valence", "Valence", float),
)

COLUMNS_BY_NAME = {c.name: c for c in COLUMNS}

KEY_COLUMNS = ("idx", "id")

# Columns a dataset file must provide. `idx` comes from the row keys and
#  `rating` starts out unrated.
DATASET_COLUMNS = tuple(c.name for c in COLUMNS if c.name not in ("idx", "rating"))

# Everything an update is allowed to overwrite
MUTABLE_COLUMNS = tuple(c for c in COLUMNS if c.name not in KEY_COLUMNS)

# The first columns of a table stay pinned on screen
STICKY_COLUMNS = 2

UNRATED = -1

# SQLite stores integers as signed 64 bit values
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def matches_kind(column: Column, value) -> bool:
    """Check that a value is of the semantic type of a column.

    bool is never accepted as a number, and an int is accepted where a
    float is expected.
    """
    if isinstance(value, bool):
        return False
    if column.kind is float:
        return isinstance(value, (int, float))
    return isinstance(value, column.kind)
