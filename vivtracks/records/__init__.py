from .track import Track
from .track_query import TrackQuery
