# piframe/daemon/routes/picture_routes.py
import gzip
import logging
import mimetypes
from pathlib import Path

from piframe.daemon.pages import Response, not_found_response

logger = logging.getLogger(__name__)


def picture_content_type(path: str) -> str:
    content_type, _ = mimetypes.guess_type(path)
    if content_type:
        return content_type
    return 'image/' + Path(path).suffix.lstrip('.').lower()


def accepts_gzip(handler) -> bool:
    accept = handler.headers.get('Accept-Encoding', '') or ''
    return any(part.split(';')[0].strip() == 'gzip' for part in accept.split(','))


def handle_current_picture(handler, frame):
    """GET /current.jpg: the picture on screen, gzip encoded when the client accepts it."""
    location = frame.current_picture_location
    if not location or not Path(location).is_file():
        logger.debug(f"No current picture to serve ('{location}')")
        return not_found_response()

    contents = Path(location).read_bytes()
    headers = {}
    if accepts_gzip(handler):
        contents = gzip.compress(contents)
        headers['Content-Encoding'] = 'gzip'

    return Response(body=contents, content_type=picture_content_type(location), headers=headers)


ROUTES = {
    '/current.jpg': handle_current_picture,
}
