"""JSON error bodies shared by the display routers."""

from __future__ import annotations

from fastapi.responses import JSONResponse

from ..services.display_settings import DisplaySettingsError, SettingsNotFoundError

NO_PHOTOS_AVAILABLE = 'NO_PHOTOS_AVAILABLE'
NO_PHOTOS_MESSAGE = (
    'No photos are available for the current slideshow settings. '
    'Add some photos or adjust your filter settings.'
)

_STATUS_BY_CODE = {
    'VALIDATION_ERROR': 400,
    'CANNOT_DELETE_LAST': 400,
    'SETTINGS_NOT_FOUND': 404,
    NO_PHOTOS_AVAILABLE: 404
}


def error_response(code: str, message: str, status_code: int | None = None) -> JSONResponse:
    status = status_code or _STATUS_BY_CODE.get(code, 400)
    return JSONResponse({'status': 'error', 'code': code, 'message': message}, status_code=status)


def settings_error_response(exc: DisplaySettingsError) -> JSONResponse:
    if isinstance(exc, SettingsNotFoundError):
        return error_response(exc.code, str(exc), status_code=404)
    return error_response(exc.code, str(exc))


def no_photos_response() -> JSONResponse:
    return error_response(NO_PHOTOS_AVAILABLE, NO_PHOTOS_MESSAGE)
