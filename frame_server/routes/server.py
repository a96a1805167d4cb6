"""Server status and runtime configuration routes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from time import time
from typing import Any, Dict

import psutil
from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from .. import config, models, utils
from ..services import display
from .responses import error_response

router = APIRouter()
logger = config.logger

_INT_CONFIG_KEYS = ('preload_default_count', 'preload_max_count', 'default_slide_duration')


def _server_config_payload() -> Dict[str, Any]:
    return {
        'admin_url': config.ADMIN_URL,
        'preload_default_count': config.PRELOAD_DEFAULT_COUNT,
        'preload_max_count': config.PRELOAD_MAX_COUNT,
        'default_slide_duration': config.DEFAULT_SLIDE_DURATION
    }


@router.get('/status')
def status_view() -> JSONResponse:
    """Retrieve the current status of the server and its slideshows."""
    uptime_seconds = int(time() - display.start_time)
    uptime = str(timedelta(seconds=uptime_seconds))

    cpu_load = psutil.cpu_percent(interval=None)
    current_time = utils.to_iso_datetime(datetime.now(timezone.utc))

    status_data = {
        'server': {
            'uptime': uptime,
            'cpu_load': cpu_load,
            'current_time': current_time
        },
        'library': {
            'total_photos': models.count_photos()
        },
        'display': {
            'active_settings': display.settings_manager.get_active(),
            'live_sequences': len(display.store)
        }
    }
    return JSONResponse(status_data)


@router.get('/server/config')
def get_server_config() -> JSONResponse:
    return JSONResponse(_server_config_payload())


@router.post('/server/config')
def update_server_config(data: Dict[str, Any] = Body(...)) -> JSONResponse:
    """Update and persist the admin URL and slideshow defaults."""
    updates: Dict[str, Any] = {}
    for key, value in data.items():
        if key == 'admin_url':
            if not isinstance(value, str) or not value.strip():
                return error_response('VALIDATION_ERROR', 'admin_url must be a non-empty string')
            updates[key] = value.strip()
        elif key in _INT_CONFIG_KEYS:
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                return error_response('VALIDATION_ERROR', f'{key} must be a positive integer')
            updates[key] = value
        else:
            return error_response('VALIDATION_ERROR', f'Unknown server config key: {key}')

    for key, value in updates.items():
        config.update_config(key, value)
        models.save_config_entry(key, str(value))
    return JSONResponse(_server_config_payload())
