import logging
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler
from urllib.parse import urlparse

from piframe import __version__
from piframe.daemon.pages import Response, error_response, not_found_response
from piframe.daemon.routes import find_route

"""
HTTP handler for the picture frame control server.

Defines the RootHandler class, which dispatches requests of every method to
route handlers based on the request path.
"""


class RootHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler for the picture frame.

    Routes incoming requests to handlers registered in the route registry.
    Each route is called as `route(handler, frame)` and returns a `Response`;
    method checks (e.g. POST-only actions) are left to the route. The frame is
    reachable through `self.server.frame`, the control server through
    `self.server.control_server`.
    """

    server_version = f'piframe/{__version__}'
    # a client that connects and never sends must not stall the accept loop
    timeout = 10

    def do_GET(self):
        self.dispatch()

    def do_POST(self):
        self.dispatch()

    # every method goes through the same path table; routes decide what they accept
    do_HEAD = do_PUT = do_DELETE = do_PATCH = do_OPTIONS = do_GET

    @property
    def log(self) -> logging.Logger:
        """The logger injected into the control server."""
        return self.server.control_server.log

    def dispatch(self):
        """
        Find the route for the request path, run it and write its response.

        Any exception from the route becomes a 500 page; the server keeps going.
        """
        path = urlparse(self.path).path.lower()
        self.log.debug("Routing %s request to %s", self.command, path)
        route_func = find_route(path)

        try:
            if route_func is None:
                response = not_found_response()
            else:
                response = route_func(self, self.server.frame)
        except Exception as e:
            self.log.exception("Caught exception when determining response for %s: %s", path, e)
            response = self.build_error_response(e)

        self.write_response(response)

    def build_error_response(self, error: Exception) -> Response:
        try:
            return error_response(error)
        except Exception as e:
            self.log.error("Could not render error page: %s", e)
            return Response(
                status=HTTPStatus.INTERNAL_SERVER_ERROR,
                body=f'500: Internal System Error\n{error}\n'.encode('utf-8'),
                content_type='text/plain; charset=utf-8',
            )

    def write_response(self, response: Response):
        try:
            self.send_response(response.status)
            self.send_header('Content-Type', response.content_type)
            self.send_header('Content-Length', str(len(response.body)))
            for key, value in response.headers.items():
                self.send_header(key, value)
            self.end_headers()
            if self.command != "HEAD":
                self.wfile.write(response.body)
        except (BrokenPipeError, ConnectionResetError) as e:
            # the client went away; nothing to do but move on to the next request
            self.log.info("Client %s closed the connection early: %s", self.client_address[0], e)

    def log_request(self, code='-', size='-'):
        """Log every answered request: method, client, path and status."""
        if isinstance(code, HTTPStatus):
            code = code.value
        self.log.info(
            "%s from: %s %s (%s)",
            getattr(self, 'command', '-'),
            self.client_address[0],
            getattr(self, 'path', '-'),
            code,
        )

    def log_message(self, format, *args):
        """
        Override BaseHTTPRequestHandler logging to avoid AttributeError when
        parse_request fails before setting self.command/self.path.
        """
        self.log.debug("HTTP %s: %s", getattr(self, 'command', '-'), format % args)
