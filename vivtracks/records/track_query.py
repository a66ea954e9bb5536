from dataclasses import dataclass
from typing import Optional


@dataclass
class TrackQuery:
    title: Optional[str] = None
    offset: Optional[int] = None
    limit: Optional[int] = None
