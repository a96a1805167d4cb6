"""Configuration handed to the display front end (admin link for the QR code)."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from .. import config, utils

router = APIRouter()
logger = config.logger


def _request_host(request: Request) -> str:
    host = request.headers.get('host')
    if host:
        return host
    if request.url.port:
        return f"{request.url.hostname}:{request.url.port}"
    return request.url.hostname or ''


def resolve_admin_url(request: Request) -> str:
    forwarded_host = request.headers.get('x-forwarded-host')
    scheme = request.headers.get('x-forwarded-proto') or request.url.scheme or config.SERVER_SCHEME
    admin_url = utils.build_admin_url(
        config.ADMIN_URL,
        scheme,
        _request_host(request),
        request_port=request.url.port,
        forwarded_host=forwarded_host,
        machine_ip=utils.get_host_ip()
    )
    logger.debug('[DisplayConfig] admin url resolved to %s', admin_url)
    return admin_url


@router.get('/api/display/config')
@router.get('/api/display/config/')
def get_display_config(request: Request) -> JSONResponse:
    """Return configuration for the display front end, including the admin URL."""
    return JSONResponse({'admin_url': resolve_admin_url(request)})
