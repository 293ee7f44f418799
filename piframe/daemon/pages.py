"""
Response building for the control server.

Route handlers return a `Response`; the request handler writes it. Nothing
is written to the socket until a route has finished, so a route that raises
can still be answered with a clean 500 page.
"""
import json
import traceback
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Dict

from jinja2 import Environment, PackageLoader, select_autoescape

from piframe import __version__

TITLE = 'Pi Picture Frame Control'

env = Environment(
    loader=PackageLoader('piframe.daemon', 'templates'),
    autoescape=select_autoescape(['html']),
)


@dataclass
class Response:
    status: int = HTTPStatus.OK
    body: bytes = b''
    content_type: str = 'text/html; charset=utf-8'
    headers: Dict[str, str] = field(default_factory=dict)


def render_page(template_name: str, **context: Any) -> str:
    context.setdefault('title', TITLE)
    context.setdefault('version', __version__)
    return env.get_template(template_name).render(**context)


def html_response(html: str, status: int = HTTPStatus.OK) -> Response:
    return Response(status=status, body=html.encode('utf-8'))


def page_response(template_name: str, status: int = HTTPStatus.OK, **context: Any) -> Response:
    return html_response(render_page(template_name, **context), status=status)


def json_response(payload: Dict[str, Any], status: int = HTTPStatus.OK) -> Response:
    return Response(
        status=status,
        body=json.dumps(payload, indent=2, default=str).encode('utf-8'),
        content_type='application/json',
    )


def not_found_response() -> Response:
    return page_response('404.html', status=HTTPStatus.NOT_FOUND)


def error_response(error: BaseException) -> Response:
    """500 page describing `error`, including its traceback."""
    stack = traceback.format_exception(type(error), error, error.__traceback__)
    return page_response(
        '500.html',
        status=HTTPStatus.INTERNAL_SERVER_ERROR,
        message_lines=str(error).splitlines() or [type(error).__name__],
        stack_lines=''.join(stack).splitlines(),
    )
