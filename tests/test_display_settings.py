from typing import List, Optional

import pytest

from frame_server import models
from frame_server.services import display
from frame_server.services.display_settings import (
    CannotDeleteLastSettingsError, DisplaySettingsManager, SettingsNotFoundError, SettingsValidationError,
    normalize_fields
)


def _active_ids() -> List[int]:
    return [settings['id'] for settings in models.list_display_settings() if settings['is_active']]


def test_get_active_creates_default_configuration():
    manager = DisplaySettingsManager()
    active = manager.get_active()
    assert active['name'] == models.DEFAULT_SETTINGS_NAME
    assert active['is_active'] is True
    assert active['slide_duration'] == 10
    assert manager.get_active()['id'] == active['id']
    assert models.count_display_settings() == 1


def test_get_active_promotes_lowest_id_when_none_active():
    manager = DisplaySettingsManager()
    first = manager.create({'name': 'First'})
    second = manager.create({'name': 'Second'})
    with models.SessionLocal() as db:
        db.get(models.DisplaySettings, first['id']).is_active = False
        db.commit()
    assert _active_ids() == []

    assert manager.get_active()['id'] == first['id']
    assert _active_ids() == [first['id']]
    assert second['is_active'] is False


def test_create_applies_defaults_and_only_first_is_active():
    manager = DisplaySettingsManager()
    first = manager.create({})
    second = manager.create({'name': 'Kitchen', 'shuffle': False, 'source_type': 'TAG', 'source_id': 3})

    assert first['name'] == models.NEW_SETTINGS_NAME
    assert first['slide_duration'] == 10
    assert first['is_active'] is True
    assert second['is_active'] is False
    assert second['source_type'] == 'tag'
    assert second['source_id'] == 3
    assert second['shuffle'] is False


@pytest.mark.parametrize('fields, message', [
    ({'slide_duration': 0}, 'Slide duration must be at least 1 second.'),
    ({'transition_duration': -1}, 'Transition duration cannot be negative.'),
    ({'slide_duration': True}, 'slide_duration must be an integer.'),
    ({'shuffle': 'yes'}, 'shuffle must be a boolean.'),
    ({'transition': 'wipe'}, 'transition must be one of: fade, slide, kenburns.'),
    ({'image_fit': 5}, 'image_fit must be one of: contain, cover.'),
    ({'name': '   '}, 'name must be a non-empty string.'),
    ({'is_active': True}, 'Unknown display settings fields: is_active.'),
])
def test_invalid_fields_are_rejected(fields, message):
    with pytest.raises(SettingsValidationError) as excinfo:
        normalize_fields(fields)
    assert str(excinfo.value) == message
    assert excinfo.value.code == 'VALIDATION_ERROR'


def test_enum_fields_accept_names_and_ordinals():
    values = normalize_fields({'transition': 2, 'source_type': 'Album', 'image_fit': 'COVER'})
    assert values == {'transition': 'kenburns', 'source_type': 'album', 'image_fit': 'cover'}


def test_update_is_partial_and_resets_that_sequence(add_photos):
    add_photos(3)
    active = display.settings_manager.get_active()
    display.sequencer.get_next()
    assert display.store.get(active['id']) is not None

    updated = display.settings_manager.update(active['id'], {'slide_duration': 30})
    assert updated['slide_duration'] == 30
    assert updated['name'] == active['name']
    assert updated['shuffle'] == active['shuffle']
    assert display.store.get(active['id']) is None


def test_update_unknown_raises_not_found():
    with pytest.raises(SettingsNotFoundError) as excinfo:
        DisplaySettingsManager().update(404, {'name': 'Nope'})
    assert str(excinfo.value) == 'Display settings with ID 404 not found.'


def test_invalid_update_leaves_row_untouched():
    manager = DisplaySettingsManager()
    created = manager.create({'name': 'Hall', 'slide_duration': 15})
    with pytest.raises(SettingsValidationError):
        manager.update(created['id'], {'name': 'Renamed', 'slide_duration': 0})
    assert manager.get_by_id(created['id'])['name'] == 'Hall'


def test_delete_active_promotes_remaining_configuration():
    manager = DisplaySettingsManager()
    first = manager.create({'name': 'First'})
    second = manager.create({'name': 'Second'})

    manager.delete(first['id'])
    assert _active_ids() == [second['id']]
    with pytest.raises(SettingsNotFoundError):
        manager.get_by_id(first['id'])


def test_delete_inactive_keeps_active():
    manager = DisplaySettingsManager()
    first = manager.create({'name': 'First'})
    second = manager.create({'name': 'Second'})
    manager.delete(second['id'])
    assert _active_ids() == [first['id']]


def test_delete_last_is_rejected():
    manager = DisplaySettingsManager()
    only = manager.get_active()
    with pytest.raises(CannotDeleteLastSettingsError) as excinfo:
        manager.delete(only['id'])
    assert excinfo.value.code == 'CANNOT_DELETE_LAST'
    assert models.count_display_settings() == 1


def test_delete_unknown_raises_not_found():
    manager = DisplaySettingsManager()
    manager.get_active()
    with pytest.raises(SettingsNotFoundError):
        manager.delete(999)


def test_activate_leaves_exactly_one_active_and_notifies():
    manager = DisplaySettingsManager()
    seen: List[Optional[int]] = []
    manager.add_invalidation_listener(seen.append)
    first = manager.create({'name': 'First'})
    second = manager.create({'name': 'Second'})

    activated = manager.activate(second['id'])
    assert activated['is_active'] is True
    assert _active_ids() == [second['id']]
    assert manager.get_active()['id'] == second['id']
    assert seen == [None]

    with pytest.raises(SettingsNotFoundError):
        manager.activate(first['id'] + 100)
    assert _active_ids() == [second['id']]


def test_get_all_is_ordered_by_name():
    manager = DisplaySettingsManager()
    for name in ('Porch', 'Bedroom', 'Office'):
        manager.create({'name': name})
    assert [settings['name'] for settings in manager.get_all()] == ['Bedroom', 'Office', 'Porch']


def test_resolve_uses_active_for_none():
    manager = DisplaySettingsManager()
    active = manager.get_active()
    assert manager.resolve(None)['id'] == active['id']
    assert manager.resolve(active['id'])['id'] == active['id']
    with pytest.raises(SettingsNotFoundError):
        manager.resolve(active['id'] + 1)


def test_activate_resets_the_newly_active_sequence(add_photos):
    photos = add_photos(3)
    manager = display.settings_manager
    manager.get_active()
    second = manager.create({'name': 'Second', 'shuffle': False})
    display.sequencer.get_next(second['id'])
    display.sequencer.get_next(second['id'])

    manager.activate(second['id'])
    assert display.store.get(second['id']) is None
    assert display.sequencer.get_next().id == photos[0]['id']


def test_delete_releases_the_sequence_lock(add_photos):
    add_photos(2)
    manager = display.settings_manager
    manager.get_active()
    extra = manager.create({'name': 'Spare'})
    display.sequencer.get_next(extra['id'])
    assert extra['id'] in display.store._locks

    manager.delete(extra['id'])
    assert extra['id'] not in display.store._locks
    assert display.store.get(extra['id']) is None


def test_delete_notifies_removal_listeners():
    manager = DisplaySettingsManager()
    removed: List[int] = []
    manager.add_removal_listener(removed.append)
    first = manager.create({'name': 'First'})
    second = manager.create({'name': 'Second'})
    manager.delete(second['id'])
    assert removed == [second['id']]
    assert first['id'] not in removed
