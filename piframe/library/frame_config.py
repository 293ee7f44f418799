"""
The picture frame configuration.

`FrameConfig` is a small value object. The live copy is owned by the
`FrameController`; everything else only ever sees copies of it. On disk it is a
YAML document with a single root key (`KEY_FRAME_CONFIG`) holding one key per
setting. Wake and sleep times are stored as `{hour, minute}` mappings where -1
means "not set".
"""
import copy
import datetime
import logging
from pathlib import Path
from typing import Optional

from piframe.constants import (
    CONFIG_BACKUPS,
    DEFAULT_HTTP_PORT,
    FNAME_FRAME_SCHEMA,
    KEY_FRAME_CONFIG,
    PATH_APP_CONFIG,
)
from piframe.library.config_utils import load_yaml_file, validate_config, write_yaml_file
from piframe.library.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

UNSET = -1

RENDERERS = ('pqiv', 'headless')
BRIGHTNESS_MAPPINGS = ('scaled', 'truncating')


def normalize_time(value) -> Optional[datetime.time]:
    """
    Reduce a `datetime.time` or `datetime.datetime` to its hour and minute.

    Args:
        value: time, datetime or None.

    Returns:
        datetime.time | None: `time(hour, minute)` or None when `value` is None.

    Raises:
        TypeError: for any other type.
    """
    if value is None:
        return None
    if isinstance(value, (datetime.datetime, datetime.time)):
        return datetime.time(value.hour, value.minute)
    raise TypeError(f'Expected a datetime.time or datetime.datetime, got {type(value).__name__}')


def time_to_dict(value: Optional[datetime.time]) -> dict:
    if value is None:
        return {'hour': UNSET, 'minute': UNSET}
    return {'hour': value.hour, 'minute': value.minute}


def time_from_dict(key: str, data: Optional[dict]) -> Optional[datetime.time]:
    data = data or {}
    try:
        hour = int(data.get('hour', UNSET))
        minute = int(data.get('minute', UNSET))
    except (TypeError, ValueError):
        raise ConfigurationError({key: f'{key} hour and minute must be integers, got {data}'})

    if hour <= UNSET or minute <= UNSET:
        return None

    try:
        return datetime.time(hour, minute)
    except ValueError as e:
        raise ConfigurationError({key: f'{key} is not a valid time of day: {e}'})


class FrameConfig:
    """
    Settings for the picture frame.

    Only the hour and minute of `awake_time` and `sleep_time` are kept; anything
    else is dropped when the value is assigned.
    """

    def __init__(
        self,
        photo_directory: str = '/home/picframe/Photos',
        photo_change_interval: int = 60,
        photo_refresh_interval: int = 60 * 60,
        http_port: int = DEFAULT_HTTP_PORT,
        brightness: int = 75,
        awake_time: Optional[datetime.time] = None,
        sleep_time: Optional[datetime.time] = None,
        reboot_command: str = 'sudo systemctl reboot',
        shutdown_command: str = 'sudo systemctl poweroff',
        exit_to_desktop_command: str = 'sudo systemctl isolate graphical.target',
        renderer: str = 'pqiv',
        brightness_mapping: str = 'scaled',
    ):
        self.photo_directory = photo_directory
        self.photo_change_interval = photo_change_interval
        self.photo_refresh_interval = photo_refresh_interval
        self.http_port = http_port
        self.brightness = brightness
        self.awake_time = awake_time
        self.sleep_time = sleep_time
        self.reboot_command = reboot_command
        self.shutdown_command = shutdown_command
        self.exit_to_desktop_command = exit_to_desktop_command
        self.renderer = renderer
        self.brightness_mapping = brightness_mapping

    @property
    def awake_time(self) -> Optional[datetime.time]:
        """Time to turn the screen on. None to leave it alone."""
        return self._awake_time

    @awake_time.setter
    def awake_time(self, value):
        self._awake_time = normalize_time(value)

    @property
    def sleep_time(self) -> Optional[datetime.time]:
        """Time to turn the screen off. None to leave the screen on forever."""
        return self._sleep_time

    @sleep_time.setter
    def sleep_time(self, value):
        self._sleep_time = normalize_time(value)

    def problems(self) -> dict:
        """
        Check the configuration, returning a dictionary of problems.

        Returns:
            dict: field name -> human readable message. Empty when valid.
        """
        problems = {}

        if not isinstance(self.photo_directory, str) or not self.photo_directory.strip():
            problems['photo_directory'] = 'photo_directory can not be empty, whitespace, or None'

        if not isinstance(self.photo_change_interval, int) or self.photo_change_interval < 1:
            problems['photo_change_interval'] = 'photo_change_interval must be at least 1 second'

        if not isinstance(self.photo_refresh_interval, int) or self.photo_refresh_interval < 0:
            problems['photo_refresh_interval'] = 'photo_refresh_interval can not be negative'

        if not isinstance(self.http_port, int) or self.http_port < 0:
            problems['http_port'] = 'http_port can not be negative'
        elif self.http_port > 65535:
            problems['http_port'] = 'http_port can not be more than 65535'

        if not isinstance(self.brightness, int) or self.brightness < 0:
            problems['brightness'] = 'brightness can not be negative'
        elif self.brightness > 100:
            problems['brightness'] = 'brightness can not be more than 100'

        for key in ('reboot_command', 'shutdown_command', 'exit_to_desktop_command'):
            value = getattr(self, key)
            if not isinstance(value, str) or not value.strip():
                problems[key] = f'{key} can not be empty, whitespace, or None'

        if self.renderer not in RENDERERS:
            problems['renderer'] = f'renderer must be one of {list(RENDERERS)}, got {self.renderer}'

        if self.brightness_mapping not in BRIGHTNESS_MAPPINGS:
            problems['brightness_mapping'] = (
                f'brightness_mapping must be one of {list(BRIGHTNESS_MAPPINGS)}, got {self.brightness_mapping}'
            )

        return problems

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: if any setting is invalid.
        """
        problems = self.problems()
        if problems:
            raise ConfigurationError(problems)

    def copy(self) -> 'FrameConfig':
        """Return a deep copy of this configuration."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            'photo_directory': self.photo_directory,
            'photo_change_interval': self.photo_change_interval,
            'photo_refresh_interval': self.photo_refresh_interval,
            'http_port': self.http_port,
            'brightness': self.brightness,
            'awake_time': time_to_dict(self.awake_time),
            'sleep_time': time_to_dict(self.sleep_time),
            'reboot_command': self.reboot_command,
            'shutdown_command': self.shutdown_command,
            'exit_to_desktop_command': self.exit_to_desktop_command,
            'renderer': self.renderer,
            'brightness_mapping': self.brightness_mapping,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'FrameConfig':
        """
        Build a configuration from a mapping shaped like `to_dict()`.

        Keys that are missing keep their default value.

        Raises:
            ConfigurationError: if a wake/sleep time is malformed.
        """
        config = cls()
        for key, value in data.items():
            if key == 'awake_time':
                config.awake_time = time_from_dict(key, value)
            elif key == 'sleep_time':
                config.sleep_time = time_from_dict(key, value)
            elif hasattr(config, key) and not key.startswith('_'):
                setattr(config, key, value)
            else:
                logger.debug(f"Ignoring unknown configuration key '{key}'")
        return config

    def __eq__(self, other):
        if not isinstance(other, FrameConfig):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f'FrameConfig({self.to_dict()})'


def load_frame_schema(schema_file: Path = PATH_APP_CONFIG / FNAME_FRAME_SCHEMA) -> dict:
    schema_full = load_yaml_file(schema_file)
    return schema_full.get(KEY_FRAME_CONFIG, {})


def save_frame_config(config: FrameConfig, config_file: Path, backup: bool = False) -> bool:
    """
    Write `config` to `config_file`, creating the parent directory if needed.

    With `backup` the file being replaced is kept as `config_file.1` (and the
    one before that as `.2`) so a bad change from the settings page can be
    rolled back by hand.

    Returns:
        bool: True if the file was written.
    """
    config_file = Path(config_file).expanduser()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    return write_yaml_file(config_file, {KEY_FRAME_CONFIG: config.to_dict()}, backup=backup, keep=CONFIG_BACKUPS)


def load_frame_config(config_file: Path, schema_file: Path = PATH_APP_CONFIG / FNAME_FRAME_SCHEMA) -> FrameConfig:
    """
    Load the configuration file, or create it with defaults if it does not exist.

    Values with the wrong type or out of range are replaced with the schema
    default (and logged); the result must then pass `FrameConfig.validate()`.

    Args:
        config_file (Path): location of the YAML configuration.
        schema_file (Path): location of the schema to check against.

    Returns:
        FrameConfig: the loaded configuration.

    Raises:
        ValueError: the file can not be parsed or a fatal schema check failed.
        ConfigurationError: the configuration is invalid.
    """
    config_file = Path(config_file).expanduser()

    if not config_file.is_file():
        logger.info(f'No configuration at {config_file}, writing defaults')
        config = FrameConfig()
        save_frame_config(config, config_file)
        return config

    config_full = load_yaml_file(config_file)
    if KEY_FRAME_CONFIG not in config_full:
        raise ValueError(f"Configuration file {config_file} has no '{KEY_FRAME_CONFIG}' section")

    section = config_full.get(KEY_FRAME_CONFIG) or {}
    validated, errors = validate_config(config=section, schema=load_frame_schema(schema_file))
    logger.info(f'Configuration loaded from {config_file} | problems={len(errors)}')

    config = FrameConfig.from_dict(validated)
    config.validate()
    return config
