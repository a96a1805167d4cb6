"""FastAPI routers for the photo frame server."""

from .display_config import router as display_config_router
from .server import router as server_router
from .settings import router as settings_router
from .slideshow import router as slideshow_router

__all__ = ['display_config_router', 'server_router', 'settings_router', 'slideshow_router']
