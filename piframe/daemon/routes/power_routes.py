# piframe/daemon/routes/power_routes.py
import logging

from piframe.daemon.quit_reason import QuitReason
from piframe.daemon.pages import page_response
from piframe.daemon.routes.page_routes import turn_off_page

logger = logging.getLogger(__name__)


def _request_quit(handler, frame, reason: QuitReason, message: str, wrong_method_message: str):
    if handler.command != 'POST':
        return turn_off_page(frame, wrong_method_message)

    # the page is rendered first; the quit is acted on after a grace period
    response = page_response('shutdown.html', message=message)
    if not handler.server.control_server.request_quit(reason):
        logger.info(f'Quit already requested, ignoring {reason.value}')
    return response


def handle_exit_to_desktop(handler, frame):
    """POST /linux.html: stop the frame and return to the desktop."""
    return _request_quit(
        handler, frame, QuitReason.EXIT_TO_DESKTOP,
        'The frame will exit to the desktop in ~5 seconds.  This webpage will no longer show up.',
        'Must POST request to exit to desktop.',
    )


def handle_restart(handler, frame):
    """POST /restart.html: reboot the system."""
    return _request_quit(
        handler, frame, QuitReason.RESTARTING,
        'The frame will start the restart sequence in ~5 seconds.  '
        'This webpage will no longer show up until it is done rebooting.',
        'Must POST request to restart system.',
    )


def handle_shutdown(handler, frame):
    """POST /shutdown.html: power the system off."""
    return _request_quit(
        handler, frame, QuitReason.SHUTTING_DOWN,
        'The frame will start the shutdown sequence in ~5 seconds.  This webpage will no longer show up.',
        'Must POST request to shutdown system.',
    )


ROUTES = {
    '/linux.html': handle_exit_to_desktop,
    '/restart.html': handle_restart,
    '/shutdown.html': handle_shutdown,
}
