import datetime
from threading import Event

import pytest

from frame_server import models
from frame_server.services.candidates import (
    CandidateSource, ResolutionCancelledError, count_candidates, resolve_candidates
)


def test_all_scope_orders_by_capture_date_with_undated_last(add_photos):
    dated = add_photos(3, start=datetime.datetime(2023, 5, 1))
    undated = models.add_photo('scan.jpg')
    older = models.add_photo('older.jpg', date_taken=datetime.datetime(2020, 1, 1))

    candidates = resolve_candidates(CandidateSource())
    assert [photo.id for photo in candidates] == [older['id']] + [p['id'] for p in dated] + [undated['id']]
    assert count_candidates(CandidateSource()) == 5


def test_album_scope_only_returns_album_members(add_photos):
    photos = add_photos(4)
    album = models.add_album('Holidays')
    models.add_photo_to_album(photos[3]['id'], album['id'])
    models.add_photo_to_album(photos[1]['id'], album['id'])

    source = CandidateSource(models.SourceType.ALBUM, album['id'])
    assert [photo.id for photo in resolve_candidates(source)] == [photos[1]['id'], photos[3]['id']]
    assert count_candidates(source) == 2


def test_tag_scope_only_returns_tagged_photos(add_photos):
    photos = add_photos(3)
    tag = models.add_tag('Family', color='#ff0000')
    models.tag_photo(photos[0]['id'], tag['id'])

    source = CandidateSource(models.SourceType.TAG, tag['id'])
    assert [photo.id for photo in resolve_candidates(source)] == [photos[0]['id']]
    assert count_candidates(CandidateSource(models.SourceType.TAG, tag['id'] + 100)) == 0


def test_scope_without_id_falls_back_to_all(add_photos):
    add_photos(3)
    source = CandidateSource.for_settings({'source_type': 'album', 'source_id': None})
    assert len(resolve_candidates(source)) == 3


def test_descriptor_fields():
    with_thumb = models.add_photo(
        'beach.jpg',
        width=4000,
        height=3000,
        thumbnail_path='thumbs/beach.jpg',
        location='Lisbon',
        date_taken=datetime.datetime(2022, 8, 14, 9, 30)
    )
    clip = models.add_photo('clip.mp4', media_type=models.MediaType.VIDEO, duration=12.5)

    by_id = {photo.id: photo for photo in resolve_candidates(CandidateSource())}
    photo = by_id[with_thumb['id']]
    assert photo.url == f"/api/media/photos/{with_thumb['id']}"
    assert photo.thumbnail_url == f"/api/media/photos/{with_thumb['id']}/thumbnail"
    assert photo.to_dict()['date_taken'] == '2022-08-14T09:30:00'
    assert photo.location == 'Lisbon'

    video = by_id[clip['id']]
    assert video.thumbnail_url is None
    assert video.media_type == 'video'
    assert video.duration == 12.5


def test_cancelled_resolution_raises(add_photos):
    add_photos(2)
    cancel = Event()
    cancel.set()
    with pytest.raises(ResolutionCancelledError):
        resolve_candidates(CandidateSource(), cancel)
    with pytest.raises(ResolutionCancelledError):
        count_candidates(CandidateSource(), cancel)


def test_deleted_photo_drops_out_of_album(add_photos):
    photos = add_photos(2)
    album = models.add_album('Trip')
    for photo in photos:
        models.add_photo_to_album(photo['id'], album['id'])
    assert models.delete_photo(photos[0]['id'])
    assert models.delete_photo(photos[0]['id']) is False

    source = CandidateSource(models.SourceType.ALBUM, album['id'])
    assert [photo.id for photo in resolve_candidates(source)] == [photos[1]['id']]
