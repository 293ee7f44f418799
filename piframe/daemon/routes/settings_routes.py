# piframe/daemon/routes/settings_routes.py
import datetime
import logging
from typing import Dict, Optional, Tuple
from urllib.parse import parse_qs

from piframe.daemon.pages import page_response
from piframe.library.exceptions import ConfigurationError
from piframe.library.frame_config import UNSET, FrameConfig

logger = logging.getLogger(__name__)


def read_form(handler) -> Dict[str, str]:
    """Parse an application/x-www-form-urlencoded body; last value wins."""
    try:
        length = int(handler.headers.get('Content-Length', '0'))
    except ValueError:
        length = 0
    body = handler.rfile.read(length).decode('utf-8') if length > 0 else ''
    return {key: values[-1] for key, values in parse_qs(body, keep_blank_values=True).items()}


def _parse_int(form: Dict[str, str], key: str, problems: Dict[str, str]) -> Optional[int]:
    raw = form.get(key, '').strip()
    try:
        return int(raw)
    except ValueError:
        problems[key] = f"{key} must be a whole number, got '{raw}'"
        return None


def _parse_time(form: Dict[str, str], prefix: str, problems: Dict[str, str]) -> Tuple[bool, Optional[datetime.time]]:
    """Returns (parsed ok, time or None for 'never')."""
    hour = _parse_int(form, f'{prefix}_hour', problems)
    minute = _parse_int(form, f'{prefix}_minute', problems)
    if hour is None or minute is None:
        return False, None
    if hour <= UNSET or minute <= UNSET:
        return True, None
    try:
        return True, datetime.time(hour, minute)
    except ValueError as e:
        problems[f'{prefix}_time'] = f'{prefix} time is not a valid time of day: {e}'
        return False, None


def config_from_form(form: Dict[str, str], current: FrameConfig) -> FrameConfig:
    """
    Apply submitted settings on top of a copy of `current`.

    Fields missing from the form keep their current value.

    Raises:
        ConfigurationError: if a submitted value can not be parsed.
    """
    config = current.copy()
    problems: Dict[str, str] = {}

    if 'photo_directory' in form:
        config.photo_directory = form['photo_directory'].strip()

    if 'change_interval' in form:
        minutes = _parse_int(form, 'change_interval', problems)
        if minutes is not None:
            config.photo_change_interval = minutes * 60

    if 'refresh_interval' in form:
        hours = _parse_int(form, 'refresh_interval', problems)
        if hours is not None:
            config.photo_refresh_interval = hours * 60 * 60

    if 'brightness' in form:
        brightness = _parse_int(form, 'brightness', problems)
        if brightness is not None:
            config.brightness = brightness

    for prefix in ('awake', 'sleep'):
        if f'{prefix}_hour' in form or f'{prefix}_minute' in form:
            ok, value = _parse_time(form, prefix, problems)
            if ok:
                setattr(config, f'{prefix}_time', value)

    if problems:
        raise ConfigurationError(problems)

    return config


def settings_page(handler, frame, message: str = '', problems: Optional[dict] = None):
    return page_response(
        'settings.html',
        config=frame.get_current_config(),
        options=handler.server.control_server.settings_options,
        message=message,
        problems=problems or {},
    )


def handle_settings(handler, frame):
    """
    GET /settings.html: show the current settings.
    POST /settings.html: validate and apply submitted settings.
    """
    if handler.command != 'POST':
        return settings_page(handler, frame)

    form = read_form(handler)
    try:
        new_config = config_from_form(form, frame.get_current_config())
        frame.configure(new_config)
    except ConfigurationError as e:
        logger.warning(f'Rejected settings: {e}')
        return settings_page(handler, frame, 'Settings were not saved.', e.problems)

    return settings_page(handler, frame, 'Settings saved.')


ROUTES = {
    '/settings.html': handle_settings,
}
