from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint, Index
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


# --- CATALOG (read-only for the pipeline) ---
class Content(Base):
    __tablename__ = 'contents'
    __table_args__ = (
        UniqueConstraint('tmdb_id', 'content_type', name='uix_content_tmdb_type'),
    )

    id = Column(Integer, primary_key=True)
    tmdb_id = Column(Integer, nullable=False, index=True)
    imdb_id = Column(String)
    content_type = Column(String, nullable=False)   # "movie" | "series"
    title = Column(String, nullable=False)
    original_title = Column(String)
    poster_path = Column(String)


# --- RESOLVED VIDEO CACHE ---
class VideoCache(Base):
    __tablename__ = 'video_cache'
    # NULL season/episode never collide in SQL unique indexes; the gateway
    # matches them with IS NULL before writing.
    __table_args__ = (
        UniqueConstraint('tmdb_id', 'content_type', 'audio_type', 'season', 'episode',
                         name='uix_video_cache_key'),
        Index('ix_video_cache_lookup', 'tmdb_id', 'content_type', 'audio_type'),
    )

    id = Column(Integer, primary_key=True)
    tmdb_id = Column(Integer, nullable=False)
    content_type = Column(String, nullable=False)
    audio_type = Column(String, nullable=False)     # variant
    season = Column(Integer, nullable=True)
    episode = Column(Integer, nullable=True)

    video_url = Column(String, nullable=False)
    video_type = Column(String, nullable=False)     # "mp4" | "m3u8"
    provider = Column(String, nullable=False)
    expires_at = Column(DateTime, nullable=False)   # naive UTC
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
