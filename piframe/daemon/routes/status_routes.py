from piframe.daemon.pages import json_response


def handle_status_route(handler, frame):
    """Respond with the frame's current running state."""
    response = {
        'running': frame.is_running,
        'quit_reason': handler.server.control_server.quit_reason.value,
        'screen': {
            'is_on': frame.screen.is_on,
            'brightness': frame.screen.brightness,
        },
        'current_picture': frame.current_picture_location,
        'found_photos': frame.picture_count,
    }
    return json_response(response)


def handle_config_route(handler, frame):
    """Respond with the configuration currently in effect."""
    return json_response({'data': frame.get_current_config().to_dict()})


# This dictionary maps URL paths to their corresponding route handler functions.
# These routes are discovered and registered by the system to enable automatic
# dispatching and documentation (e.g., via the /help route).
ROUTES = {
    '/status': handle_status_route,
    '/config': handle_config_route,
}
