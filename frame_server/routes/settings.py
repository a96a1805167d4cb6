"""Display configuration CRUD routes."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse, Response

from .. import config
from ..services import display
from ..services.display_settings import DisplaySettingsError
from .responses import settings_error_response

router = APIRouter()
logger = config.logger

SETTINGS_PREFIX = '/api/display/settings'


@router.get(SETTINGS_PREFIX)
@router.get(SETTINGS_PREFIX + '/')
def get_active_settings() -> JSONResponse:
    """Return the active display configuration, creating a default one if needed."""
    return JSONResponse(display.settings_manager.get_active())


@router.get(SETTINGS_PREFIX + '/all')
def list_settings() -> JSONResponse:
    return JSONResponse(display.settings_manager.get_all())


@router.get(SETTINGS_PREFIX + '/{settings_id}')
def get_settings(settings_id: int) -> JSONResponse:
    try:
        settings = display.settings_manager.get_by_id(settings_id)
    except DisplaySettingsError as exc:
        return settings_error_response(exc)
    return JSONResponse(settings)


@router.post(SETTINGS_PREFIX)
@router.post(SETTINGS_PREFIX + '/')
def create_settings(data: Dict[str, Any] = Body(...)) -> JSONResponse:
    """Create a display configuration; only the first one ever created starts active."""
    try:
        settings = display.settings_manager.create(data)
    except DisplaySettingsError as exc:
        logger.info('[Settings] rejected create: %s', exc)
        return settings_error_response(exc)
    return JSONResponse(
        settings,
        status_code=201,
        headers={'Location': f"{SETTINGS_PREFIX}/{settings['id']}"}
    )


@router.put(SETTINGS_PREFIX + '/{settings_id}')
def update_settings(settings_id: int, data: Dict[str, Any] = Body(...)) -> JSONResponse:
    """Apply a partial update and restart that configuration's slideshow."""
    try:
        settings = display.settings_manager.update(settings_id, data)
    except DisplaySettingsError as exc:
        logger.info('[Settings] rejected update of %s: %s', settings_id, exc)
        return settings_error_response(exc)
    return JSONResponse(settings)


@router.delete(SETTINGS_PREFIX + '/{settings_id}')
def delete_settings(settings_id: int) -> Response:
    try:
        display.settings_manager.delete(settings_id)
    except DisplaySettingsError as exc:
        return settings_error_response(exc)
    return Response(status_code=204)


@router.post(SETTINGS_PREFIX + '/{settings_id}/activate')
def activate_settings(settings_id: int) -> JSONResponse:
    try:
        settings = display.settings_manager.activate(settings_id)
    except DisplaySettingsError as exc:
        return settings_error_response(exc)
    return JSONResponse(settings)
