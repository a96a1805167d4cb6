from __future__ import annotations

import logging
from os import environ, getcwd
from os.path import abspath, isdir, join
from sys import stdout

# Logging Configuration
LOG_LEVEL = environ.get('LOG_LEVEL', 'DEBUG').upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.DEBUG),
    format="%(asctime)s %(levelname)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=stdout
)
logger = logging.getLogger('frameServer')

# SQLAlchemy echoes every statement at INFO when its engine logger is enabled.
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('httpcore').setLevel(logging.WARNING)

logger.info('[Config] loading module')

_TRUE_VALUES = {'true', '1', 't', 'yes', 'on'}

SERVER_PORT = 5179
ENABLE_SSL = False
SERVER_SCHEME = 'http'

# Admin front end location used for the display's QR code. Relative paths are
# made absolute against the host the display reached us on.
ADMIN_URL = '/admin'
# Explicit LAN address for QR codes when interface detection picks the wrong one.
HOST_IP = ''

# Slideshow defaults
DEFAULT_SLIDE_DURATION = 10
PRELOAD_DEFAULT_COUNT = 10
PRELOAD_MAX_COUNT = 50

CONFIG_DIR = environ.get('FRAME_SERVER_HOME') or getcwd()
VAR_ROOT = join(CONFIG_DIR, 'var')
DATABASE_PATH = join(VAR_ROOT, 'db', 'frame.db')
LOGS_DIR = join(VAR_ROOT, 'logs')
SSL_DIR = join(VAR_ROOT, 'ssl')

_ENV_OVERRIDES: set[str] = set()


def _env_str(name: str, default: str, config_key: str) -> str:
    value = environ.get(name)
    if value is None:
        return default
    _ENV_OVERRIDES.add(config_key)
    return value


def _env_bool(name: str, default: bool, config_key: str) -> bool:
    value = environ.get(name)
    if value is None:
        return default
    _ENV_OVERRIDES.add(config_key)
    return value.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int, config_key: str) -> int:
    value = environ.get(name)
    if value is None:
        return default
    try:
        number = int(value)
        _ENV_OVERRIDES.add(config_key)
        return number
    except ValueError:
        logger.warning('[Config] Invalid int for %s: %s', name, value)
        return default


def _apply_environment_overrides() -> None:
    global SERVER_PORT, ENABLE_SSL
    global ADMIN_URL, HOST_IP
    global DEFAULT_SLIDE_DURATION, PRELOAD_DEFAULT_COUNT, PRELOAD_MAX_COUNT
    _ENV_OVERRIDES.clear()

    SERVER_PORT = _env_int('SERVER_PORT', 5179, 'server_port')
    ENABLE_SSL = _env_bool('ENABLE_SSL', False, 'enable_ssl')
    ADMIN_URL = _env_str('ADMIN_URL', '/admin', 'admin_url')
    HOST_IP = _env_str('HOST_IP', '', 'host_ip')
    DEFAULT_SLIDE_DURATION = _env_int('DEFAULT_SLIDE_DURATION', 10, 'default_slide_duration')
    PRELOAD_DEFAULT_COUNT = _env_int('PRELOAD_DEFAULT_COUNT', 10, 'preload_default_count')
    PRELOAD_MAX_COUNT = _env_int('PRELOAD_MAX_COUNT', 50, 'preload_max_count')
    _refresh_server_scheme()


def _refresh_server_scheme() -> None:
    global SERVER_SCHEME
    SERVER_SCHEME = 'https' if ENABLE_SSL else 'http'


def _refresh_path_constants() -> None:
    global VAR_ROOT, DATABASE_PATH, LOGS_DIR, SSL_DIR
    VAR_ROOT = join(CONFIG_DIR, 'var')
    DATABASE_PATH = join(VAR_ROOT, 'db', 'frame.db')
    LOGS_DIR = join(VAR_ROOT, 'logs')
    SSL_DIR = join(VAR_ROOT, 'ssl')


def load_config(base_dir: str | None = None) -> None:
    """Apply environment overrides and update path constants for the provided base directory."""
    global CONFIG_DIR
    _apply_environment_overrides()
    if base_dir:
        candidate = abspath(base_dir)
        if not isdir(candidate):
            logger.warning('[Config] Provided base_dir %s is not a directory; using current working directory', base_dir)
            candidate = getcwd()
        CONFIG_DIR = candidate
    else:
        CONFIG_DIR = environ.get('FRAME_SERVER_HOME') or getcwd()
    _refresh_path_constants()


def _coerce_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


def update_config(key: str, value) -> None:
    """Update an in-memory configuration value."""
    global SERVER_PORT, ENABLE_SSL
    global ADMIN_URL, HOST_IP
    global DEFAULT_SLIDE_DURATION, PRELOAD_DEFAULT_COUNT, PRELOAD_MAX_COUNT

    logger.info('[Config] Updating %s to %s', key, value)

    if key == 'server_port':
        SERVER_PORT = int(value)
    elif key == 'enable_ssl':
        ENABLE_SSL = _coerce_bool(value)
        _refresh_server_scheme()
    elif key == 'admin_url':
        ADMIN_URL = str(value)
    elif key == 'host_ip':
        HOST_IP = str(value)
    elif key == 'default_slide_duration':
        DEFAULT_SLIDE_DURATION = max(1, int(value))
    elif key == 'preload_default_count':
        PRELOAD_DEFAULT_COUNT = max(1, int(value))
    elif key == 'preload_max_count':
        PRELOAD_MAX_COUNT = max(1, int(value))
    else:
        logger.warning('[Config] Unknown config key: %s', key)


def apply_persisted_config(entries: dict[str, str]) -> None:
    """Apply database-backed configuration entries unless overridden by env vars."""
    for key, raw_value in entries.items():
        if key in _ENV_OVERRIDES:
            continue
        try:
            update_config(key, raw_value)
        except ValueError:
            logger.warning('[Config] Ignoring invalid persisted value for %s: %s', key, raw_value)


_apply_environment_overrides()
_refresh_path_constants()
