from piframe.daemon.pages import json_response


def handle_help_route(handler, frame):
    """Return a list of all available HTTP routes with their docstrings."""
    from piframe.daemon.routes import ROUTE_REGISTRY, SUFFIX_REGISTRY  # Delayed import to avoid circularity

    help_data = {
        route: func.__doc__ or "No description"
        for route, func in ROUTE_REGISTRY.items()
    }
    for suffix, func in SUFFIX_REGISTRY.items():
        help_data[f'*{suffix}'] = func.__doc__ or "No description"

    return json_response(help_data)


# This dictionary maps URL paths to their corresponding route handler functions.
ROUTES = {
    '/help': handle_help_route
}
