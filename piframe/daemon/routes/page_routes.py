# piframe/daemon/routes/page_routes.py
import logging
import shutil
from pathlib import Path

from piframe.constants import PATH_STATIC
from piframe.daemon.pages import Response, not_found_response, page_response

logger = logging.getLogger(__name__)


def turn_off_page(frame, message: str = ''):
    """The screen control page; the button offers the opposite of the current state."""
    return page_response(
        'turnoff.html',
        message=message,
        on_or_off='Off' if frame.screen.is_on else 'On',
    )


def handle_index(handler, frame):
    """GET / or /index.html: the home page."""
    return page_response('index.html', current_picture=frame.current_picture_location)


def handle_turn_off(handler, frame):
    """
    GET /turnoff.html: show the screen control page.
    POST /turnoff.html: toggle the screen power.
    """
    if handler.command == 'POST':
        frame.screen.is_on = not frame.screen.is_on
        return turn_off_page(frame, 'Screen should have been toggled.')
    return turn_off_page(frame)


def handle_sleep(handler, frame):
    """POST /sleep.html: toggle the screen power."""
    if handler.command == 'POST':
        frame.screen.is_on = not frame.screen.is_on
        return turn_off_page(frame, 'Screen should have been toggled.')
    return turn_off_page(frame, 'Must POST request to toggle screen.')


def handle_change_picture(handler, frame):
    """POST /changepicture.html: show the next picture now."""
    if handler.command == 'POST':
        frame.toggle_next_photo()
    return handle_index(handler, frame)


def handle_about(handler, frame):
    """GET /about.html: version information."""
    return page_response('about.html')


def handle_full(handler, frame):
    """GET /full.html: the current picture, full window."""
    return page_response('full.html')


def handle_credits(handler, frame):
    """GET /credits.txt: third-party software used by the frame."""
    credits_file = PATH_STATIC / 'credits.txt'
    if not credits_file.is_file():
        return not_found_response()
    return Response(body=credits_file.read_bytes(), content_type='text/plain; charset=utf-8')


def get_disk_usage(mounts_file: Path = Path('/proc/mounts')) -> list:
    """
    Usage of each mounted file system, in GB.

    Pseudo file systems (size 0) are skipped.
    """
    mount_points = ['/']
    try:
        for line in mounts_file.read_text(encoding='utf-8').splitlines():
            parts = line.split()
            if len(parts) > 1 and parts[1] not in mount_points:
                mount_points.append(parts[1])
    except OSError as e:
        logger.debug(f'Could not read {mounts_file}: {e}')

    drives = []
    for mount_point in mount_points:
        try:
            usage = shutil.disk_usage(mount_point)
        except OSError:
            continue
        if usage.total <= 0:
            continue
        drives.append({
            'name': mount_point,
            'total_gb': usage.total / 1000 ** 3,
            'used_gb': (usage.total - usage.free) / 1000 ** 3,
            'free_gb': usage.free / 1000 ** 3,
        })
    return drives


def handle_space(handler, frame):
    """GET /space.html: disk space remaining."""
    return page_response('space.html', drives=get_disk_usage())


ROUTES = {
    '/': handle_index,
    '/index.html': handle_index,
    '/turnoff.html': handle_turn_off,
    '/sleep.html': handle_sleep,
    '/changepicture.html': handle_change_picture,
    '/about.html': handle_about,
    '/full.html': handle_full,
    '/credits.txt': handle_credits,
    '/space.html': handle_space,
}
