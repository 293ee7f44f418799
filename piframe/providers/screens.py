"""
Screen collaborators: brightness and power control.

`PiTouchScreen` drives the Raspberry Pi touch screen backlight through sysfs.
`NullScreen` keeps the same state in memory for hosts without a backlight.
Both may be called from the HTTP thread and the scheduler's timer threads at
the same time.
"""
import abc
import logging
import math
import threading
from pathlib import Path
from typing import Callable, Dict, NamedTuple

from piframe.constants import FILE_BACKLIGHT_BRIGHTNESS, FILE_BACKLIGHT_POWER

logger = logging.getLogger(__name__)


class BrightnessMapping(NamedTuple):
    """Conversion between raw backlight units and the 0-100 scale."""
    to_raw: Callable[[int], int]
    from_raw: Callable[[int], int]


def _clamp(value: int) -> int:
    return max(0, min(100, value))


def scaled_to_raw(value: int) -> int:
    return int(math.floor(value / 100.0 * 255.0))


def scaled_from_raw(raw: int) -> int:
    # 20 is the dimmest usable backlight level, so it reads as 0
    return _clamp(int(math.ceil((raw - 20.0) / (255.0 - 20.0) * 100)))


def truncating_to_raw(value: int) -> int:
    return value * 255 // 100


def truncating_from_raw(raw: int) -> int:
    return _clamp(raw * 100 // 255)


BRIGHTNESS_MAPPINGS: Dict[str, BrightnessMapping] = {
    'scaled': BrightnessMapping(scaled_to_raw, scaled_from_raw),
    'truncating': BrightnessMapping(truncating_to_raw, truncating_from_raw),
}


def check_brightness(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
        raise ValueError(f'Brightness must be between 0-100, got {value}')
    return value


class Screen(abc.ABC):
    """A display whose brightness and power can be controlled."""

    @property
    @abc.abstractmethod
    def brightness(self) -> int:
        """Brightness on a scale of 0-100."""

    @brightness.setter
    @abc.abstractmethod
    def brightness(self, value: int) -> None:
        ...

    @property
    @abc.abstractmethod
    def is_on(self) -> bool:
        """Whether or not the screen is on."""

    @is_on.setter
    @abc.abstractmethod
    def is_on(self, value: bool) -> None:
        ...

    @abc.abstractmethod
    def refresh(self) -> None:
        """Re-read the state from the OS."""


class NullScreen(Screen):
    """In-memory screen used when there is no backlight device."""

    def __init__(self, brightness: int = 100, is_on: bool = True):
        self._lock = threading.Lock()
        self._brightness = check_brightness(brightness)
        self._is_on = is_on

    @property
    def brightness(self) -> int:
        with self._lock:
            return self._brightness

    @brightness.setter
    def brightness(self, value: int) -> None:
        check_brightness(value)
        with self._lock:
            self._brightness = value

    @property
    def is_on(self) -> bool:
        with self._lock:
            return self._is_on

    @is_on.setter
    def is_on(self, value: bool) -> None:
        with self._lock:
            self._is_on = bool(value)

    def refresh(self) -> None:
        pass


# one lock per sysfs file, shared by every screen instance that touches it
_file_locks: Dict[str, threading.Lock] = {}
_file_locks_guard = threading.Lock()


def _file_lock(path: Path) -> threading.Lock:
    key = str(path)
    with _file_locks_guard:
        return _file_locks.setdefault(key, threading.Lock())


class PiTouchScreen(Screen):
    """
    The official Raspberry Pi touch screen, controlled through its sysfs backlight.

    Values are cached; a cached value only changes once the write to sysfs
    succeeds. Read and write failures are logged, not raised.
    """

    def __init__(
        self,
        brightness_file: Path = FILE_BACKLIGHT_BRIGHTNESS,
        power_file: Path = FILE_BACKLIGHT_POWER,
        mapping: BrightnessMapping = BRIGHTNESS_MAPPINGS['scaled'],
    ):
        self.brightness_file = Path(brightness_file)
        self.power_file = Path(power_file)
        self.mapping = mapping

        self._brightness = 0
        self._is_on = False
        self.refresh()

    @staticmethod
    def is_available(brightness_file: Path = FILE_BACKLIGHT_BRIGHTNESS) -> bool:
        return Path(brightness_file).exists()

    @property
    def brightness(self) -> int:
        return self._brightness

    @brightness.setter
    def brightness(self, value: int) -> None:
        check_brightness(value)
        with _file_lock(self.brightness_file):
            if value == self._brightness:
                return
            if self._write_file(self.brightness_file, str(self.mapping.to_raw(value))):
                self._brightness = value

    @property
    def is_on(self) -> bool:
        return self._is_on

    @is_on.setter
    def is_on(self, value: bool) -> None:
        value = bool(value)
        with _file_lock(self.power_file):
            if value == self._is_on:
                return
            # 0 turns the backlight on, 1 turns it off
            if self._write_file(self.power_file, '0' if value else '1'):
                self._is_on = value

    def refresh(self) -> None:
        self._refresh_is_on()
        self._refresh_brightness()

    def _refresh_is_on(self) -> None:
        with _file_lock(self.power_file):
            value = self._read_file(self.power_file)
            if value:
                self._is_on = value.startswith('0')

    def _refresh_brightness(self) -> None:
        with _file_lock(self.brightness_file):
            value = self._read_file(self.brightness_file)
            if not value:
                return
            try:
                raw = int(value)
            except ValueError:
                logger.error(f"Unexpected brightness '{value}' in {self.brightness_file}")
                return
            if raw > 0:
                self._brightness = self.mapping.from_raw(raw)

    def _read_file(self, path: Path) -> str:
        try:
            value = path.read_text(encoding='utf-8').rstrip()
        except OSError as e:
            logger.error(f'Error when reading file {path}: {e}')
            return ''
        logger.debug(f"Read '{value}' from {path}")
        return value

    def _write_file(self, path: Path, value: str) -> bool:
        logger.info(f"Writing '{value}' to {path}")
        try:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(value)
        except OSError as e:
            logger.error(f'Error when writing to file {path}: {e}')
            return False
        return True


def create_screen(mapping_name: str = 'scaled', brightness: int = 100) -> Screen:
    """
    The Pi touch screen when its backlight is present, otherwise a `NullScreen`.

    Args:
        mapping_name (str): key into `BRIGHTNESS_MAPPINGS`.
        brightness (int): starting brightness for a `NullScreen`.
    """
    if PiTouchScreen.is_available():
        return PiTouchScreen(mapping=BRIGHTNESS_MAPPINGS[mapping_name])

    logger.warning(f'No backlight at {FILE_BACKLIGHT_BRIGHTNESS}, screen control is simulated')
    return NullScreen(brightness=brightness)
