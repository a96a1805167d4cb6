import datetime
import os
import tempfile
from typing import Callable, Dict, List, Optional

# The server prepares its database on import, so point it at a scratch home first.
os.environ['FRAME_SERVER_HOME'] = tempfile.mkdtemp(prefix='frame-server-tests-')
os.environ.setdefault('LOG_LEVEL', 'WARNING')

import pytest  # noqa: E402

from frame_server import config, main, models  # noqa: E402,F401
from frame_server.services import display  # noqa: E402


@pytest.fixture(autouse=True)
def clean_database():
    models.Base.metadata.drop_all(bind=models.engine)
    models.Base.metadata.create_all(bind=models.engine)
    display.reset_runtime_state()
    yield
    display.reset_runtime_state()


@pytest.fixture
def add_photos() -> Callable[..., List[Dict]]:
    """Insert ``count`` photos dated one day apart and return them oldest first."""
    def _add(count: int, start: Optional[datetime.datetime] = None, prefix: str = 'photo') -> List[Dict]:
        base = start or datetime.datetime(2024, 1, 1, 12, 0, 0)
        return [
            models.add_photo(
                f'{prefix}-{index}.jpg',
                width=1920,
                height=1080,
                date_taken=base + datetime.timedelta(days=index)
            )
            for index in range(count)
        ]
    return _add
