"""Candidate resolution: which photos a display configuration may show."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from threading import Event
from typing import Any, Dict, List, Optional

from sqlalchemy import Select, func, select

from .. import config, models

logger = config.logger


class ResolutionCancelledError(RuntimeError):
    """Raised when the caller gave up while candidates were being resolved."""
    pass


@dataclass(frozen=True)
class CandidateSource:
    """Source scope of a configuration: everything, one album, or one tag."""

    scope: models.SourceType = models.SourceType.ALL
    source_id: Optional[int] = None

    @classmethod
    def for_settings(cls, settings: Dict[str, Any]) -> CandidateSource:
        return cls(
            scope=models.SourceType(settings.get('source_type') or models.SourceType.ALL.value),
            source_id=settings.get('source_id')
        )


@dataclass(frozen=True)
class PhotoDescriptor:
    """What a display needs to fetch and lay out a photo."""

    id: int
    url: str
    thumbnail_url: Optional[str]
    date_taken: Optional[datetime.datetime]
    location: Optional[str]
    media_type: str
    duration: Optional[float]
    width: int
    height: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'url': self.url,
            'thumbnail_url': self.thumbnail_url,
            'date_taken': self.date_taken.isoformat() if self.date_taken else None,
            'location': self.location,
            'media_type': self.media_type,
            'duration': self.duration,
            'width': self.width,
            'height': self.height
        }


def _descriptor(photo: models.Photo) -> PhotoDescriptor:
    return PhotoDescriptor(
        id=photo.id,
        url=f"/api/media/photos/{photo.id}",
        thumbnail_url=f"/api/media/photos/{photo.id}/thumbnail" if photo.thumbnail_path else None,
        date_taken=photo.date_taken,
        location=photo.location,
        media_type=photo.media_type,
        duration=photo.duration,
        width=photo.width,
        height=photo.height
    )


def _scoped(stmt: Select, source: CandidateSource) -> Select:
    # Album and tag scopes without an id fall back to the whole library.
    if source.scope == models.SourceType.ALBUM and source.source_id is not None:
        return stmt.join(models.PhotoAlbum, models.PhotoAlbum.photo_id == models.Photo.id).where(
            models.PhotoAlbum.album_id == source.source_id
        )
    if source.scope == models.SourceType.TAG and source.source_id is not None:
        return stmt.join(models.PhotoTag, models.PhotoTag.photo_id == models.Photo.id).where(
            models.PhotoTag.tag_id == source.source_id
        )
    return stmt


def _check_cancelled(cancel_event: Optional[Event], source: CandidateSource) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.debug('[Candidates] resolution cancelled for %s', source)
        raise ResolutionCancelledError(f'Candidate resolution cancelled for {source.scope.value} scope')


def resolve_candidates(source: CandidateSource, cancel_event: Optional[Event] = None) -> List[PhotoDescriptor]:
    """Return the photos matching the source, oldest capture first.

    Undated photos sort after dated ones; ties break on id so the order is
    reproducible for a fixed library.
    """
    _check_cancelled(cancel_event, source)
    stmt = _scoped(select(models.Photo), source).order_by(
        models.Photo.date_taken.is_(None),
        models.Photo.date_taken,
        models.Photo.id
    )
    with models.SessionLocal() as db:
        photos = db.execute(stmt).scalars().all()
        candidates = [_descriptor(photo) for photo in photos]
    _check_cancelled(cancel_event, source)
    return candidates


def count_candidates(source: CandidateSource, cancel_event: Optional[Event] = None) -> int:
    _check_cancelled(cancel_event, source)
    stmt = _scoped(select(func.count(models.Photo.id)).select_from(models.Photo), source)
    with models.SessionLocal() as db:
        total = int(db.execute(stmt).scalar_one())
    _check_cancelled(cancel_event, source)
    return total
