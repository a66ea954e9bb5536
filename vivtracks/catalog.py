# Copyright (c) 2025 The vivtracks contributors
# Part of the vivtracks Project
# Released under the AGPLv3 or later

from typing import Any, Dict, List, Optional
import logging

from . import loader
from . import patch
from .catalogdb import CatalogDB
from .errors import PatchError, RequestError
from .records.track import Track
from .records.track_query import TrackQuery
from .schema import COLUMNS_BY_NAME, KEY_COLUMNS, matches_kind


def check_patched_shape(original: Dict[str, Any], patched: Any) -> None:
    """Make sure a patched track still looks like a track.

    The key set must be unchanged, the primary key must be unchanged and
    every value that changed must be of its column's type.
    """
    if not isinstance(patched, dict) or patched.keys() != original.keys():
        raise PatchError("Patch must not add or remove track fields")

    for name in KEY_COLUMNS:
        if not patch.json_equal(patched[name], original[name]):
            raise PatchError(f"`{name}` can not be changed")

    for name, value in patched.items():
        if patch.json_equal(value, original[name]):
            continue
        column = COLUMNS_BY_NAME[name]
        if not matches_kind(column, value):
            raise PatchError(f"`{name}` must be of type {column.kind.__name__}")


class Catalog:
    def __init__(self, catalog_db: CatalogDB):
        self.catalog_db = catalog_db

    def write_tracks_from_file(self, file_path: str) -> List[Track]:
        """Load a dataset file and insert every track in it.

        Tracks that are already stored are left untouched.
        """
        tracks = loader.load_tracks(file_path)
        self.catalog_db.insert_tracks(tracks)
        return tracks

    def get(
        self,
        title: Optional[str] = None,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Track]:
        return self.catalog_db.get_tracks(
            TrackQuery(title=title, offset=offset, limit=limit)
        )

    def update(self, track_id: str, idx: int, operations: List[Any]) -> bool:
        logger = logging.getLogger(__name__)

        operations = patch.parse_operations(operations)

        track = self.catalog_db.get_track(idx, track_id)
        if not track:
            raise RequestError("Track to be updated does not exist")

        document = track.to_dict()
        error = patch.validate(operations, document)
        if error:
            raise error

        patched = patch.apply(operations, document)
        check_patched_shape(document, patched)

        logger.debug(f"updating track ({idx}, {track_id}) with {len(operations)} ops")
        return self.catalog_db.update_track(Track.from_dict(patched))
