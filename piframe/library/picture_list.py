import logging
import os
import random
import threading
from pathlib import Path
from typing import List, Optional

from piframe.constants import PICTURE_EXTENSIONS

logger = logging.getLogger(__name__)


def find_pictures(path, extensions=PICTURE_EXTENSIONS) -> List[str]:
    """
    Recursively find picture files below `path`, following symlinked directories.

    Args:
        path (str | Path): directory to search.
        extensions (tuple): accepted file extensions, without the dot; case-insensitive.

    Returns:
        list: sorted list of file paths.
    """
    suffixes = tuple(f'.{ext.lower()}' for ext in extensions)
    pictures = []

    if not Path(path).is_dir():
        logger.warning(f'Picture directory {path} does not exist')
        return pictures

    for root, _, files in os.walk(path, followlinks=True):
        for name in files:
            if name.lower().endswith(suffixes):
                pictures.append(os.path.join(root, name))

    pictures.sort()
    return pictures


class PictureListManager:
    """
    Keeps the list of pictures found on disk and picks which one to show.

    Thread-safe: the rotation and refresh activities and the HTTP handlers may
    all call in at the same time.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._lock = threading.Lock()
        self._pictures: List[str] = []
        self._current_picture = ''
        self._random = rng or random.Random()

    @property
    def current_picture(self) -> str:
        """Path to the picture that should be displayed, '' if there is none."""
        with self._lock:
            return self._current_picture

    @property
    def found_photos(self) -> int:
        with self._lock:
            return len(self._pictures)

    def clear(self) -> None:
        with self._lock:
            self._pictures = []

    def load(self, path) -> int:
        """
        Scan `path` for pictures, replace the list and pick a new current picture.

        The scan runs without holding the lock.

        Returns:
            int: number of pictures found.
        """
        pictures = find_pictures(path)
        with self._lock:
            self._pictures = pictures
            self._next_picture_no_lock()
            count = len(self._pictures)

        logger.info(f'Pictures found in {path}: {count}')
        return count

    def next_picture(self) -> str:
        """Select a new random picture and return its path."""
        with self._lock:
            return self._next_picture_no_lock()

    def _next_picture_no_lock(self) -> str:
        # files deleted since the last scan are dropped as they are drawn
        while self._pictures:
            index = self._random.randrange(len(self._pictures))
            candidate = self._pictures[index]
            if os.path.exists(candidate):
                self._current_picture = candidate
                return candidate
            logger.debug(f'{candidate} no longer exists, dropping it')
            del self._pictures[index]

        self._current_picture = ''
        return ''
