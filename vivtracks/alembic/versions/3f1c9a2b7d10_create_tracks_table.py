"""create_tracks_table

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2025-11-02 10:14:31.220417

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f1c9a2b7d10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "tracks",
        sa.Column("idx", sa.Integer, nullable=False),
        sa.Column("id", sa.String, nullable=False),
        sa.Column("title", sa.String),
        sa.Column("rating", sa.Integer, nullable=False, server_default="-1"),
        sa.Column("danceability", sa.REAL),
        sa.Column("energy", sa.REAL),
        sa.Column("key", sa.Integer),
        sa.Column("loudness", sa.REAL),
        sa.Column("mode", sa.Integer),
        sa.Column("acousticness", sa.REAL),
        sa.Column("instrumentalness", sa.REAL),
        sa.Column("liveness", sa.REAL),
        sa.Column("valence", sa.REAL),
        sa.Column("tempo", sa.REAL),
        sa.Column("duration_ms", sa.Integer),
        sa.Column("time_signature", sa.Integer),
        sa.Column("num_bars", sa.Integer),
        sa.Column("num_sections", sa.Integer),
        sa.Column("num_segments", sa.Integer),
        sa.Column("class", sa.Integer),
        sa.PrimaryKeyConstraint("idx", "id"),
    )

    # title searches
    op.create_index(op.f("ix_tracks_title"), "tracks", ["title"])


def downgrade() -> None:
    op.drop_index(op.f("ix_tracks_title"), table_name="tracks")

    op.drop_table("tracks")
