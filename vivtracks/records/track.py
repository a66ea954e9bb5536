from dataclasses import dataclass, fields
from typing import Any, Dict

from ..schema import COLUMNS, UNRATED


@dataclass
class Track:
    idx: int = 0
    id: str = ""
    title: str = ""
    rating: int = UNRATED
    danceability: float = 0.0
    energy: float = 0.0
    key: int = 0
    loudness: float = 0.0
    mode: int = 0
    acousticness: float = 0.0
    instrumentalness: float = 0.0
    liveness: float = 0.0
    valence: float = 0.0
    tempo: float = 0.0
    duration_ms: int = 0
    time_signature: int = 0
    num_bars: int = 0
    num_sections: int = 0
    num_segments: int = 0
    track_class: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation, keyed by column name in display order"""
        return {c.name: getattr(self, c.attribute) for c in COLUMNS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Track":
        return cls(**{c.attribute: data[c.name] for c in COLUMNS if c.name in data})

    @classmethod
    def from_model(cls, model) -> "Track":
        return cls(**{f.name: getattr(model, f.name) for f in fields(cls)})
