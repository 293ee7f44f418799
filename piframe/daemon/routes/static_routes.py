# piframe/daemon/routes/static_routes.py
import re

from piframe.constants import PATH_STATIC
from piframe.daemon.pages import Response, not_found_response

STATIC_PATTERN = re.compile(r'^/(?P<kind>js|css)/(?P<pure>pure/)?(?P<file>[\w-]+\.(css|js))$')

CONTENT_TYPES = {
    '.css': 'text/css; charset=utf-8',
    '.js': 'application/javascript; charset=utf-8',
}


def handle_static(handler, frame):
    """GET /css/*.css, /js/*.js: static assets."""
    path = handler.path.split('?', 1)[0].lower()
    match = STATIC_PATTERN.match(path)
    if not match:
        return not_found_response()

    file_path = PATH_STATIC / match.group('kind') / (match.group('pure') or '') / match.group('file')
    if not file_path.is_file():
        return not_found_response()

    return Response(body=file_path.read_bytes(), content_type=CONTENT_TYPES[file_path.suffix])


SUFFIX_ROUTES = {
    '.css': handle_static,
    '.js': handle_static,
}
