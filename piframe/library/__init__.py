from .exceptions import FrameError, ConfigurationError, RendererError, FrameDisposedError
from .frame_config import FrameConfig
from .picture_list import PictureListManager
from .scheduler import RecurringScheduler

__all__ = [
    'FrameError',
    'ConfigurationError',
    'RendererError',
    'FrameDisposedError',
    'FrameConfig',
    'PictureListManager',
    'RecurringScheduler',
]
