"""Slideshow routes polled by the display front end."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from .. import config
from ..services import display
from ..services.display_settings import DisplaySettingsError
from .responses import no_photos_response, settings_error_response

router = APIRouter()
logger = config.logger

PHOTOS_PREFIX = '/api/display/photos'


def clamp_preload_count(count: Optional[int]) -> int:
    if count is None:
        count = config.PRELOAD_DEFAULT_COUNT
    return max(1, min(count, config.PRELOAD_MAX_COUNT))


@router.get(PHOTOS_PREFIX + '/next')
def next_photo(settings_id: Optional[int] = Query(None, alias='settings_id')) -> JSONResponse:
    """Advance the slideshow and return the photo to show now."""
    try:
        photo = display.sequencer.get_next(settings_id)
    except DisplaySettingsError as exc:
        return settings_error_response(exc)
    if photo is None:
        return no_photos_response()
    return JSONResponse(photo.to_dict())


@router.get(PHOTOS_PREFIX + '/current')
def current_photo(settings_id: Optional[int] = Query(None, alias='settings_id')) -> JSONResponse:
    """Return the photo on screen without advancing, starting the slideshow if needed."""
    try:
        photo = display.sequencer.get_current(settings_id)
    except DisplaySettingsError as exc:
        return settings_error_response(exc)
    if photo is None:
        return no_photos_response()
    return JSONResponse(photo.to_dict())


@router.get(PHOTOS_PREFIX + '/preload')
def preload_photos(
    count: Optional[int] = Query(None, alias='count'),
    settings_id: Optional[int] = Query(None, alias='settings_id')
) -> JSONResponse:
    """Return the photos that upcoming /next calls will produce, without advancing."""
    try:
        photos = display.sequencer.get_preload(clamp_preload_count(count), settings_id)
    except DisplaySettingsError as exc:
        return settings_error_response(exc)
    return JSONResponse([photo.to_dict() for photo in photos])


@router.get(PHOTOS_PREFIX + '/count')
def photo_count(settings_id: Optional[int] = Query(None, alias='settings_id')) -> JSONResponse:
    try:
        total = display.sequencer.get_count(settings_id)
    except DisplaySettingsError as exc:
        return settings_error_response(exc)
    return JSONResponse({'total_photos': total})


@router.post(PHOTOS_PREFIX + '/reset')
def reset_slideshow(settings_id: Optional[int] = Query(None, alias='settings_id')) -> JSONResponse:
    display.sequencer.reset_sequence(settings_id)
    return JSONResponse({'success': True, 'message': 'Slideshow sequence has been reset.'})
