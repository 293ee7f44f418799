import importlib
import pkgutil

# exact path -> handler
ROUTE_REGISTRY = {}
# path suffix (e.g. '.css') -> handler, tried when no exact path matches
SUFFIX_REGISTRY = {}

# Dynamically discover and import all modules in this package
for _, module_name, _ in pkgutil.iter_modules(__path__):
    module = importlib.import_module(f'{__name__}.{module_name}')
    routes = getattr(module, 'ROUTES', None)
    if isinstance(routes, dict):
        ROUTE_REGISTRY.update(routes)
    suffix_routes = getattr(module, 'SUFFIX_ROUTES', None)
    if isinstance(suffix_routes, dict):
        SUFFIX_REGISTRY.update(suffix_routes)


def find_route(path: str):
    """Return the handler for a normalized request path, or None."""
    route_func = ROUTE_REGISTRY.get(path)
    if route_func is not None:
        return route_func

    for suffix, func in SUFFIX_REGISTRY.items():
        if path.endswith(suffix):
            return func

    return None
