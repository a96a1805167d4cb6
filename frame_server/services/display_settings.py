"""Display configuration management: CRUD plus the single-active rule."""

from __future__ import annotations

from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Type

from .. import config, models

logger = config.logger

InvalidationListener = Callable[[Optional[int]], None]


class DisplaySettingsError(ValueError):
    """Base class for display configuration failures carrying an API reason code."""

    code = 'DISPLAY_SETTINGS_ERROR'


class SettingsValidationError(DisplaySettingsError):
    code = 'VALIDATION_ERROR'


class SettingsNotFoundError(DisplaySettingsError):
    code = 'SETTINGS_NOT_FOUND'

    def __init__(self, settings_id: int) -> None:
        super().__init__(f'Display settings with ID {settings_id} not found.')
        self.settings_id = settings_id


class CannotDeleteLastSettingsError(DisplaySettingsError):
    code = 'CANNOT_DELETE_LAST'

    def __init__(self) -> None:
        super().__init__('Cannot delete the last display settings configuration.')


_ENUM_FIELDS: Dict[str, Type[Enum]] = {
    'source_type': models.SourceType,
    'transition': models.TransitionType,
    'image_fit': models.ImageFit
}
_EDITABLE_FIELDS = (
    'name', 'slide_duration', 'transition', 'transition_duration',
    'source_type', 'source_id', 'shuffle', 'image_fit'
)


def _parse_enum(field: str, enum_cls: Type[Enum], raw: Any) -> str:
    members = list(enum_cls)
    # Ordinals are what older display clients send.
    if isinstance(raw, int) and not isinstance(raw, bool):
        if 0 <= raw < len(members):
            return members[raw].value
    elif isinstance(raw, str):
        lowered = raw.strip().lower()
        for member in members:
            if lowered in (member.value, member.name.lower()):
                return member.value
    allowed = ', '.join(member.value for member in members)
    raise SettingsValidationError(f'{field} must be one of: {allowed}.')


def _parse_int(field: str, raw: Any) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise SettingsValidationError(f'{field} must be an integer.')
    return raw


def normalize_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a create/update payload and convert it to column values.

    Raises :class:`SettingsValidationError` before anything is written.
    """
    if not isinstance(fields, dict):
        raise SettingsValidationError('Request body must be a JSON object.')
    unknown = sorted(set(fields) - set(_EDITABLE_FIELDS))
    if unknown:
        raise SettingsValidationError(f'Unknown display settings fields: {", ".join(unknown)}.')

    values: Dict[str, Any] = {}
    for key, raw in fields.items():
        if key == 'name':
            if raw is None:
                continue
            if not isinstance(raw, str) or not raw.strip():
                raise SettingsValidationError('name must be a non-empty string.')
            if len(raw.strip()) > 100:
                raise SettingsValidationError('name must be at most 100 characters.')
            values['name'] = raw.strip()
        elif key == 'slide_duration':
            if raw is None:
                continue
            duration = _parse_int(key, raw)
            if duration < 1:
                raise SettingsValidationError('Slide duration must be at least 1 second.')
            values[key] = duration
        elif key == 'transition_duration':
            if raw is None:
                continue
            duration = _parse_int(key, raw)
            if duration < 0:
                raise SettingsValidationError('Transition duration cannot be negative.')
            values[key] = duration
        elif key == 'source_id':
            values[key] = None if raw is None else _parse_int(key, raw)
        elif key == 'shuffle':
            if raw is None:
                continue
            if not isinstance(raw, bool):
                raise SettingsValidationError('shuffle must be a boolean.')
            values[key] = raw
        elif key in _ENUM_FIELDS:
            if raw is None:
                continue
            values[key] = _parse_enum(key, _ENUM_FIELDS[key], raw)
    return values


class DisplaySettingsManager:
    """Owns display configurations and tells listeners when sequences go stale.

    Listeners receive a configuration id, or ``None`` for "whichever is
    active now".
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._listeners: List[InvalidationListener] = []
        self._removal_listeners: List[Callable[[int], None]] = []

    def add_invalidation_listener(self, listener: InvalidationListener) -> None:
        self._listeners.append(listener)

    def add_removal_listener(self, listener: Callable[[int], None]) -> None:
        """Register a callback that receives the id of every deleted configuration."""
        self._removal_listeners.append(listener)

    def _invalidate(self, settings_id: Optional[int]) -> None:
        for listener in self._listeners:
            listener(settings_id)

    def _removed(self, settings_id: int) -> None:
        for listener in self._removal_listeners:
            listener(settings_id)

    def get_active(self) -> Dict[str, Any]:
        active = models.get_active_display_settings()
        if active is not None:
            return active
        with self._lock:
            promoted = models.promote_first_display_settings()
            if promoted is not None:
                logger.warning('[DisplaySettings] no active configuration; promoted %s', promoted['id'])
                return promoted
            logger.info('[DisplaySettings] no display settings found, creating default settings')
            created = models.create_display_settings({
                'name': models.DEFAULT_SETTINGS_NAME,
                'slide_duration': config.DEFAULT_SLIDE_DURATION
            })
            logger.info('[DisplaySettings] created default display settings %s', created['id'])
            return created

    def get_all(self) -> List[Dict[str, Any]]:
        return models.list_display_settings()

    def get_by_id(self, settings_id: int) -> Dict[str, Any]:
        settings = models.get_display_settings(settings_id)
        if settings is None:
            raise SettingsNotFoundError(settings_id)
        return settings

    def resolve(self, settings_id: Optional[int]) -> Dict[str, Any]:
        """Return the configuration with this id, or the active one for ``None``."""
        if settings_id is None:
            return self.get_active()
        return self.get_by_id(settings_id)

    def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        values = normalize_fields(fields)
        values.setdefault('name', models.NEW_SETTINGS_NAME)
        values.setdefault('slide_duration', config.DEFAULT_SLIDE_DURATION)
        with self._lock:
            settings = models.create_display_settings(values)
        logger.info("[DisplaySettings] created display settings %s with name '%s'", settings['id'], settings['name'])
        return settings

    def update(self, settings_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        values = normalize_fields(fields)
        with self._lock:
            settings = models.update_display_settings(settings_id, values)
        if settings is None:
            raise SettingsNotFoundError(settings_id)
        logger.info('[DisplaySettings] updated display settings %s', settings_id)
        self._invalidate(settings_id)
        return settings

    def delete(self, settings_id: int) -> None:
        with self._lock:
            outcome, promoted_id = models.delete_display_settings(settings_id)
        if outcome == 'not_found':
            raise SettingsNotFoundError(settings_id)
        if outcome == 'last':
            logger.warning('[DisplaySettings] refusing to delete the last configuration %s', settings_id)
            raise CannotDeleteLastSettingsError()
        logger.info('[DisplaySettings] deleted display settings %s', settings_id)
        self._removed(settings_id)
        if promoted_id is not None:
            logger.info('[DisplaySettings] promoted display settings %s to active', promoted_id)
            self._invalidate(promoted_id)

    def activate(self, settings_id: int) -> Dict[str, Any]:
        with self._lock:
            settings = models.set_active_display_settings(settings_id)
        if settings is None:
            raise SettingsNotFoundError(settings_id)
        logger.info('[DisplaySettings] set display settings %s as active', settings_id)
        self._invalidate(None)
        return settings
