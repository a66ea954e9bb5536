# Copyright (c) 2025 The vivtracks contributors
# Part of the vivtracks Project
# Released under the AGPLv3 or later

# Persistence for the track catalog.
#
# A single SQLite file holds the `tracks` table. The schema is managed
# with alembic and migrated to head whenever the database is opened.

from typing import Optional, List, Iterable
import logging
import os

from importlib import resources

from alembic import command
from alembic.config import Config

from sqlalchemy import create_engine, func
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import sessionmaker

from .models.track import TrackModel
from .records.track import Track
from .records.track_query import TrackQuery
from .schema import COLUMNS, INT64_MAX, INT64_MIN, KEY_COLUMNS, MUTABLE_COLUMNS


class CatalogDB:
    """
    A simple SQLite-based persistence layer for the track catalog.
    """

    def __init__(self, db_path: str = "tracks.db"):
        self.db_path = db_path
        self._run_migrations()

        # Set up SQLAlchemy engine and session
        self.engine = create_engine(f"sqlite:///{db_path}")
        self.Session = sessionmaker(bind=self.engine)

    def _run_migrations(self):
        """Run any pending database migrations."""
        if not os.path.exists(self.db_path):
            # Create empty database file
            with open(self.db_path, "w") as f:
                pass

        alembic_ini_path = resources.files("vivtracks").joinpath("alembic.ini")
        alembic_cfg = Config(str(alembic_ini_path))

        # Override script_location to be absolute
        alembic_dir = os.path.join(os.path.dirname(str(alembic_ini_path)), "alembic")
        alembic_cfg.set_main_option("script_location", alembic_dir)
        alembic_cfg.set_main_option("path_separator", os.pathsep)
        alembic_cfg.set_main_option("sqlalchemy.url", f"sqlite:///{self.db_path}")
        command.upgrade(alembic_cfg, "head")

    def close(self):
        self.engine.dispose()

    # ----------------------
    # Track Management
    # ----------------------

    def insert_tracks(self, tracks: Iterable[Track]) -> int:
        """Insert a batch of tracks.

        A track whose (idx, id) is already stored is skipped, the stored
        row is left exactly as it was. Returns the number of tracks
        submitted.
        """
        rows = [
            {c.name: getattr(track, c.attribute) for c in COLUMNS} for track in tracks
        ]
        if not rows:
            return 0

        stmt = sqlite_insert(TrackModel.__table__).on_conflict_do_nothing(
            index_elements=list(KEY_COLUMNS)
        )
        with self.Session() as session:
            session.execute(stmt, rows)
            session.commit()

        logging.getLogger(__name__).debug(f"submitted {len(rows)} tracks")
        return len(rows)

    def get_tracks(self, query: Optional[TrackQuery] = None) -> List[Track]:
        """Get tracks, optionally filtered.

        `title` matches as a substring (case insensitive for ascii),
        `offset` is an inclusive lower bound on idx and `limit` caps the
        number of rows.
        """
        query = query or TrackQuery()
        with self.Session() as session:
            q = session.query(TrackModel)
            if query.title:
                q = q.filter(TrackModel.title.contains(query.title, autoescape=True))
            if query.offset is not None:
                q = q.filter(TrackModel.idx >= query.offset)
            q = q.order_by(TrackModel.idx, TrackModel.id)
            if query.limit is not None:
                q = q.limit(query.limit)

            return [Track.from_model(m) for m in q.all()]

    def get_track(self, idx: int, track_id: str) -> Optional[Track]:
        """Get a track by its (idx, id) key"""
        if not INT64_MIN <= idx <= INT64_MAX:
            # no stored row can have this idx
            return None

        with self.Session() as session:
            model = (
                session.query(TrackModel)
                .filter(TrackModel.idx == idx, TrackModel.id == track_id)
                .first()
            )
            return Track.from_model(model) if model else None

    def update_track(self, track: Track) -> bool:
        """Overwrite every non key column of a track.

        Returns False if no row has the track's (idx, id).
        """
        values = {c.attribute: getattr(track, c.attribute) for c in MUTABLE_COLUMNS}
        with self.Session() as session:
            count = (
                session.query(TrackModel)
                .filter(TrackModel.idx == track.idx, TrackModel.id == track.id)
                .update(values, synchronize_session=False)
            )
            session.commit()
            return count > 0

    def count_tracks(self) -> int:
        with self.Session() as session:
            return session.query(func.count(TrackModel.idx)).scalar()
