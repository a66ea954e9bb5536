from sqlalchemy import Column, Integer, String, Float

from . import Base


class TrackModel(Base):
    __tablename__ = "tracks"

    idx = Column(Integer, primary_key=True, autoincrement=False)
    id = Column(String, primary_key=True)
    title = Column(String, index=True)
    rating = Column(Integer, nullable=False, default=-1, server_default="-1")
    danceability = Column(Float)
    energy = Column(Float)
    key = Column(Integer)
    loudness = Column(Float)
    mode = Column(Integer)
    acousticness = Column(Float)
    instrumentalness = Column(Float)
    liveness = Column(Float)
    valence = Column(Float)
    tempo = Column(Float)
    duration_ms = Column(Integer)
    time_signature = Column(Integer)
    num_bars = Column(Integer)
    num_sections = Column(Integer)
    num_segments = Column(Integer)
    # `class` is reserved in python
    track_class = Column("class", Integer)
