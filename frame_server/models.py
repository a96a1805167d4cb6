import datetime
import enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import (
    Boolean, DateTime, Float, ForeignKey, Integer, String, create_engine, delete, func, select
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from . import config

logger = config.logger


class SourceType(str, enum.Enum):
    ALL = 'all'
    ALBUM = 'album'
    TAG = 'tag'


class TransitionType(str, enum.Enum):
    FADE = 'fade'
    SLIDE = 'slide'
    KENBURNS = 'kenburns'


class ImageFit(str, enum.Enum):
    CONTAIN = 'contain'
    COVER = 'cover'


class MediaType(str, enum.Enum):
    PHOTO = 'photo'
    VIDEO = 'video'


DEFAULT_SETTINGS_NAME = 'Default'
NEW_SETTINGS_NAME = 'New Configuration'


def _utcnow() -> datetime.datetime:
    """Return a timezone-aware UTC timestamp for SQLAlchemy defaults."""
    return datetime.datetime.now(datetime.timezone.utc)


def _database_url() -> str:
    return f"sqlite:///{config.DATABASE_PATH}"


engine = create_engine(_database_url(), connect_args={"check_same_thread": False})
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)
SessionLocal.configure(bind=engine)


class Base(DeclarativeBase):
    pass


class Photo(Base):
    __tablename__ = "photos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    filename: Mapped[str] = mapped_column(String(255))
    original_filename: Mapped[str] = mapped_column(String(255), default="")
    file_path: Mapped[str] = mapped_column(String(1024), default="")
    thumbnail_path: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    width: Mapped[int] = mapped_column(Integer, default=0)
    height: Mapped[int] = mapped_column(Integer, default=0)
    file_size: Mapped[int] = mapped_column(Integer, default=0)
    media_type: Mapped[str] = mapped_column(String, default=MediaType.PHOTO.value)
    duration: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    date_taken: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime, nullable=True, index=True)
    date_added: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)
    location: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    def __repr__(self) -> str:
        return f"<Photo(id={self.id}, filename={self.filename})>"


class Album(Base):
    __tablename__ = "albums"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    date_created: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)

    def __repr__(self) -> str:
        return f"<Album(id={self.id}, name={self.name})>"


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100))
    color: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name={self.name})>"


class PhotoAlbum(Base):
    __tablename__ = "photo_albums"

    photo_id: Mapped[int] = mapped_column(ForeignKey("photos.id"), primary_key=True)
    album_id: Mapped[int] = mapped_column(ForeignKey("albums.id"), primary_key=True, index=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    date_added: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)


class PhotoTag(Base):
    __tablename__ = "photo_tags"

    photo_id: Mapped[int] = mapped_column(ForeignKey("photos.id"), primary_key=True)
    tag_id: Mapped[int] = mapped_column(ForeignKey("tags.id"), primary_key=True, index=True)
    date_added: Mapped[datetime.datetime] = mapped_column(DateTime, default=_utcnow)


class DisplaySettings(Base):
    __tablename__ = "display_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), default=DEFAULT_SETTINGS_NAME)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    slide_duration: Mapped[int] = mapped_column(Integer, default=10)
    transition: Mapped[str] = mapped_column(String, default=TransitionType.FADE.value)
    transition_duration: Mapped[int] = mapped_column(Integer, default=1000)
    source_type: Mapped[str] = mapped_column(String, default=SourceType.ALL.value)
    source_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    shuffle: Mapped[bool] = mapped_column(Boolean, default=True)
    image_fit: Mapped[str] = mapped_column(String, default=ImageFit.CONTAIN.value)

    def __repr__(self) -> str:
        return f"<DisplaySettings(id={self.id}, name={self.name}, is_active={self.is_active})>"


class ConfigEntry(Base):
    __tablename__ = "config_entries"

    key: Mapped[str] = mapped_column(String, primary_key=True, index=True)
    value: Mapped[str] = mapped_column(String)

    def __repr__(self) -> str:
        return f"<ConfigEntry(key={self.key}, value={self.value})>"


def reconfigure_engine() -> None:
    """Recreate the SQLite engine to follow the current config path."""
    global engine
    new_engine = create_engine(_database_url(), connect_args={"check_same_thread": False})
    if engine:
        engine.dispose()
    engine = new_engine
    SessionLocal.configure(bind=engine)


def init_db() -> None:
    """Initialize the database by creating all tables."""
    reconfigure_engine()
    Base.metadata.create_all(bind=engine)


# Photos, albums, tags

def _photo_to_dict(photo: Photo) -> Dict[str, Any]:
    return {
        'id': photo.id,
        'filename': photo.filename,
        'original_filename': photo.original_filename,
        'file_path': photo.file_path,
        'thumbnail_path': photo.thumbnail_path,
        'width': photo.width,
        'height': photo.height,
        'file_size': photo.file_size,
        'media_type': photo.media_type,
        'duration': photo.duration,
        'date_taken': photo.date_taken,
        'date_added': photo.date_added,
        'location': photo.location
    }


def add_photo(
    filename: str,
    *,
    width: int = 0,
    height: int = 0,
    date_taken: Optional[datetime.datetime] = None,
    thumbnail_path: Optional[str] = None,
    location: Optional[str] = None,
    media_type: MediaType = MediaType.PHOTO,
    duration: Optional[float] = None,
    file_path: Optional[str] = None,
    file_size: int = 0
) -> Dict[str, Any]:
    """Register a photo row. Ingestion proper lives outside this server."""
    with SessionLocal() as db:
        photo = Photo(
            filename=filename,
            original_filename=filename,
            file_path=file_path or filename,
            thumbnail_path=thumbnail_path,
            width=width,
            height=height,
            file_size=file_size,
            media_type=MediaType(media_type).value,
            duration=duration,
            date_taken=date_taken,
            location=location
        )
        db.add(photo)
        db.commit()
        db.refresh(photo)
        return _photo_to_dict(photo)


def get_photo(photo_id: int) -> Optional[Dict[str, Any]]:
    with SessionLocal() as db:
        photo = db.get(Photo, photo_id)
        if photo is None:
            return None
        return _photo_to_dict(photo)


def delete_photo(photo_id: int) -> bool:
    with SessionLocal() as db:
        photo = db.get(Photo, photo_id)
        if photo is None:
            return False
        db.execute(delete(PhotoAlbum).where(PhotoAlbum.photo_id == photo_id))
        db.execute(delete(PhotoTag).where(PhotoTag.photo_id == photo_id))
        db.delete(photo)
        db.commit()
        return True


def count_photos() -> int:
    with SessionLocal() as db:
        return int(db.execute(select(func.count(Photo.id))).scalar_one())


def add_album(name: str, description: Optional[str] = None) -> Dict[str, Any]:
    with SessionLocal() as db:
        album = Album(name=name, description=description)
        db.add(album)
        db.commit()
        db.refresh(album)
        return {'id': album.id, 'name': album.name, 'description': album.description}


def add_photo_to_album(photo_id: int, album_id: int, sort_order: int = 0) -> None:
    with SessionLocal() as db:
        if db.get(PhotoAlbum, (photo_id, album_id)) is not None:
            return
        db.add(PhotoAlbum(photo_id=photo_id, album_id=album_id, sort_order=sort_order))
        db.commit()


def add_tag(name: str, color: Optional[str] = None) -> Dict[str, Any]:
    with SessionLocal() as db:
        tag = Tag(name=name, color=color)
        db.add(tag)
        db.commit()
        db.refresh(tag)
        return {'id': tag.id, 'name': tag.name, 'color': tag.color}


def tag_photo(photo_id: int, tag_id: int) -> None:
    with SessionLocal() as db:
        if db.get(PhotoTag, (photo_id, tag_id)) is not None:
            return
        db.add(PhotoTag(photo_id=photo_id, tag_id=tag_id))
        db.commit()


# Display settings

def _settings_to_dict(settings: DisplaySettings) -> Dict[str, Any]:
    return {
        'id': settings.id,
        'name': settings.name,
        'is_active': bool(settings.is_active),
        'slide_duration': settings.slide_duration,
        'transition': settings.transition,
        'transition_duration': settings.transition_duration,
        'source_type': settings.source_type,
        'source_id': settings.source_id,
        'shuffle': bool(settings.shuffle),
        'image_fit': settings.image_fit
    }


def list_display_settings() -> List[Dict[str, Any]]:
    with SessionLocal() as db:
        stmt = select(DisplaySettings).order_by(DisplaySettings.name, DisplaySettings.id)
        rows = db.execute(stmt).scalars().all()
        return [_settings_to_dict(row) for row in rows]


def count_display_settings() -> int:
    with SessionLocal() as db:
        return int(db.execute(select(func.count(DisplaySettings.id))).scalar_one())


def get_display_settings(settings_id: int) -> Optional[Dict[str, Any]]:
    with SessionLocal() as db:
        row = db.get(DisplaySettings, settings_id)
        if row is None:
            return None
        return _settings_to_dict(row)


def get_active_display_settings() -> Optional[Dict[str, Any]]:
    with SessionLocal() as db:
        stmt = (
            select(DisplaySettings)
            .where(DisplaySettings.is_active.is_(True))
            .order_by(DisplaySettings.id)
        )
        row = db.execute(stmt).scalars().first()
        if row is None:
            return None
        return _settings_to_dict(row)


def promote_first_display_settings() -> Optional[Dict[str, Any]]:
    """Mark the lowest-id configuration active when no row is active."""
    with SessionLocal() as db:
        rows = db.execute(select(DisplaySettings).order_by(DisplaySettings.id)).scalars().all()
        if not rows:
            return None
        active = [row for row in rows if row.is_active]
        if active:
            return _settings_to_dict(active[0])
        rows[0].is_active = True
        db.commit()
        return _settings_to_dict(rows[0])


def create_display_settings(values: Dict[str, Any]) -> Dict[str, Any]:
    """Insert a configuration; the first one ever created starts active."""
    with SessionLocal() as db:
        has_rows = db.execute(select(func.count(DisplaySettings.id))).scalar_one() > 0
        row = DisplaySettings(is_active=not has_rows)
        for key, value in values.items():
            setattr(row, key, value)
        db.add(row)
        db.commit()
        db.refresh(row)
        return _settings_to_dict(row)


def update_display_settings(settings_id: int, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    with SessionLocal() as db:
        row = db.get(DisplaySettings, settings_id)
        if row is None:
            return None
        for key, value in values.items():
            setattr(row, key, value)
        db.commit()
        db.refresh(row)
        return _settings_to_dict(row)


def delete_display_settings(settings_id: int) -> Tuple[str, Optional[int]]:
    """Delete a configuration, promoting another one if it was active.

    Returns (outcome, promoted_id) where outcome is 'deleted', 'not_found',
    or 'last'.
    """
    with SessionLocal() as db:
        row = db.get(DisplaySettings, settings_id)
        if row is None:
            return 'not_found', None
        total = db.execute(select(func.count(DisplaySettings.id))).scalar_one()
        if total <= 1:
            return 'last', None
        was_active = bool(row.is_active)
        db.delete(row)
        db.flush()
        promoted_id: Optional[int] = None
        if was_active:
            replacement = db.execute(
                select(DisplaySettings).order_by(DisplaySettings.id)
            ).scalars().first()
            if replacement is not None:
                replacement.is_active = True
                promoted_id = replacement.id
        db.commit()
        return 'deleted', promoted_id


def set_active_display_settings(settings_id: int) -> Optional[Dict[str, Any]]:
    with SessionLocal() as db:
        target = db.get(DisplaySettings, settings_id)
        if target is None:
            return None
        for row in db.execute(select(DisplaySettings)).scalars().all():
            row.is_active = row.id == settings_id
        db.commit()
        db.refresh(target)
        return _settings_to_dict(target)


# Server configuration

def save_config_entry(key: str, value: str) -> None:
    """Persist a configuration key/value pair for future restarts."""
    with SessionLocal() as db:
        entry = db.get(ConfigEntry, key)
        if entry is None:
            entry = ConfigEntry(key=key, value=str(value))
            db.add(entry)
        else:
            entry.value = str(value)
        db.commit()


def load_config_entries() -> Dict[str, str]:
    """Return all persisted configuration entries as a key/value mapping."""
    with SessionLocal() as db:
        stmt = select(ConfigEntry)
        rows = db.execute(stmt).scalars().all()
        return {row.key: row.value for row in rows}
