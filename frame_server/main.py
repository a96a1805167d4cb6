#! /usr/bin/env python
"""FastAPI entrypoint and CLI tooling for the photo frame server."""

from __future__ import annotations

import argparse
import os
import sys
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, List, Optional

import uvicorn
from fastapi import FastAPI, Request, Response

from . import config, models, utils
from .routes import display_config_router, server_router, settings_router, slideshow_router
from .services import display
from .services.display_settings import DisplaySettingsError

###################################################################################################

logger = config.logger
logger.info('[Main] Starting frameServer')

API_LOG_PATH_PREFIXES = ('/api',)
# Displays poll these every few seconds.
QUIET_LOG_PATH_PREFIXES = ('/api/display/photos',)
MAX_REQUEST_LOG_BODY = 2048
MAX_RESPONSE_LOG_BODY = 2048
BINARY_CONTENT_PREFIXES = (
    'application/octet-stream',
    'application/pdf',
    'application/zip',
    'image/',
    'audio/',
    'video/'
)


def should_log_request(path: str) -> bool:
    if any(path.startswith(prefix) for prefix in QUIET_LOG_PATH_PREFIXES):
        return False
    return any(path.startswith(prefix) for prefix in API_LOG_PATH_PREFIXES)


def format_request_body(body: bytes, limit: int = MAX_REQUEST_LOG_BODY) -> str:
    if not body:
        return '<empty>'
    body_text = body.decode('utf-8', errors='replace')
    if len(body_text) > limit:
        return f"{body_text[:limit]}...<truncated>"
    return body_text


def is_binary_content_type(content_type: str) -> bool:
    lowered = (content_type or '').lower()
    return any(lowered.startswith(prefix) for prefix in BINARY_CONTENT_PREFIXES)


def format_response_body(body: bytes, limit: int = MAX_RESPONSE_LOG_BODY) -> str:
    if not body:
        return '<empty>'
    text = body.decode('utf-8', errors='replace')
    if len(text) > limit:
        return f"{text[:limit]}...<truncated>"
    return text


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    active = display.settings_manager.get_active()
    logger.info(
        '[Main] Active display settings: %s (%s)',
        active['id'],
        active['name']
    )
    yield
    logger.info('[Main] Dropping %s slideshow sequences', len(display.store))
    display.reset_runtime_state()


app = FastAPI(lifespan=lifespan)


@app.middleware('http')
async def log_api_request(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    log_this_request = should_log_request(request.url.path)
    if log_this_request:
        body_bytes = await request.body()
        logger.info(
            '[RequestDump] method=%s path=%s query=%s headers=%s body=%s',
            request.method,
            request.url.path,
            dict(request.query_params),
            dict(request.headers),
            format_request_body(body_bytes)
        )
    response = await call_next(request)
    if log_this_request:
        content_type = response.headers.get('content-type', '')
        if not is_binary_content_type(content_type):
            response_body_chunks = [chunk async for chunk in response.body_iterator]
            response_body = b''.join(response_body_chunks)
            logger.info(
                '[ResponseDump] path=%s status=%s content_type=%s headers=%s body=%s',
                request.url.path,
                response.status_code,
                content_type,
                dict(response.headers),
                format_response_body(response_body)
            )
            return Response(
                content=response_body,
                status_code=response.status_code,
                headers=dict(response.headers),
                media_type=response.media_type,
                background=response.background
            )
    return response
app.include_router(settings_router)
app.include_router(slideshow_router)
app.include_router(display_config_router)
app.include_router(server_router)


def _parse_cli_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Photo frame display server')
    parser.add_argument('workdir', nargs='?', help='Runtime working directory', default=None)
    parser.add_argument('--list-settings', action='store_true', help='List display configurations and exit')
    parser.add_argument(
        '--count',
        nargs='?',
        const='active',
        default=None,
        metavar='SETTINGS_ID',
        help='Print how many photos a configuration would show (default: the active one) and exit'
    )
    return parser.parse_args(argv)


def _resolve_workdir(candidate: Optional[str]) -> str:
    if not candidate:
        return config.CONFIG_DIR
    if not os.path.isdir(candidate):
        print(f"Path {candidate} is not a directory. Using default path {config.CONFIG_DIR}.")
        return config.CONFIG_DIR
    return candidate


def _prepare_runtime(current_dir: str) -> str:
    config.load_config(current_dir)
    os.makedirs(config.VAR_ROOT, exist_ok=True)
    os.makedirs(os.path.dirname(config.DATABASE_PATH), exist_ok=True)
    models.init_db()
    persisted_entries = models.load_config_entries()
    config.apply_persisted_config(persisted_entries)
    display.reset_runtime_state()

    for path in (config.LOGS_DIR, config.SSL_DIR):
        os.makedirs(path, exist_ok=True)

    server_ip = utils.get_ip_address()
    logger.info(
        'Server will be running on IP: %s and port: %s (scheme: %s)',
        server_ip,
        config.SERVER_PORT,
        config.SERVER_SCHEME
    )
    return server_ip


def _print_display_settings() -> None:
    print('Display settings:')
    for settings in display.settings_manager.get_all():
        marker = '*' if settings['is_active'] else ' '
        print(
            f" {marker} {settings['id']}: {settings['name']} "
            f"(source={settings['source_type']}, shuffle={settings['shuffle']}, "
            f"slide_duration={settings['slide_duration']}s)"
        )


def _print_photo_count(raw_settings_id: str) -> None:
    settings_id: Optional[int] = None
    if raw_settings_id != 'active':
        try:
            settings_id = int(raw_settings_id)
        except ValueError:
            logger.error("Invalid settings id '%s'", raw_settings_id)
            sys.exit(2)
    try:
        total = display.sequencer.get_count(settings_id)
    except DisplaySettingsError as exc:
        logger.error('%s', exc)
        sys.exit(1)
    print(total)


def _start_http_server(server_ip: str) -> None:
    if config.ENABLE_SSL:
        cert_file = os.path.join(config.SSL_DIR, 'cert.pem')
        key_file = os.path.join(config.SSL_DIR, 'key.pem')

        if not os.path.exists(cert_file) or not os.path.exists(key_file):
            logger.debug('[Main] cert.pem and key.pem not found, generating new ones')
            os.system(
                f'openssl req -x509 -newkey rsa:4096 -keyout {key_file} -out {cert_file} '
                f'-days 365 -nodes '
                f'-subj "/C=US/ST=Georgia/L=Atlanta/O=frameServer/OU=webapp/CN={server_ip}"'
            )

        logger.debug('[Main] Starting the server with uvicorn and SSL')
        uvicorn.run(
            app,
            host='0.0.0.0',
            port=config.SERVER_PORT,
            ssl_keyfile=key_file,
            ssl_certfile=cert_file,
            log_level='info'
        )
    else:
        logger.debug('[Main] Starting the server without SSL')
        uvicorn.run(
            app,
            host='0.0.0.0',
            port=config.SERVER_PORT,
            log_level='info'
        )


_prepare_runtime(config.CONFIG_DIR)


def run() -> None:
    args = _parse_cli_args(sys.argv[1:])
    current_dir = _resolve_workdir(args.workdir)
    server_ip = _prepare_runtime(current_dir)

    if args.list_settings:
        _print_display_settings()
        return

    if args.count is not None:
        _print_photo_count(args.count)
        return

    _start_http_server(server_ip)


if __name__ == '__main__':
    run()
