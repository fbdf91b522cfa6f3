"""URL routing for tiny, on top of werkzeug's routing Map.

Page paths use werkzeug rule syntax: ``/posts/<slug>``,
``/archive/<int:year>`` or ``/archive/<regex("[0-9]{4}"):year>``. Mounts
match every path below a prefix.
"""

from __future__ import annotations

import typing as t
from collections.abc import Iterable

from werkzeug.exceptions import HTTPException, NotFound
from werkzeug.routing import BaseConverter, Map, Rule

from .wsgi import ENVIRON_PATH_PARAMS

if t.TYPE_CHECKING:
    from _typeshed.wsgi import StartResponse, WSGIApplication, WSGIEnvironment


class RegexConverter(BaseConverter):
    """Match a path variable against the regular expression given in the rule."""

    def __init__(self, map: Map, regex: str):
        super().__init__(map)
        self.regex = regex


CONVERTERS = {"regex": RegexConverter}


def new_map() -> Map:
    """Return an empty Map matching paths exactly, without slash redirects."""
    return Map(converters=CONVERTERS, strict_slashes=False, merge_slashes=False)


def check_rule(path: str) -> str | None:
    """Return why path is not a usable rule, or None when it is.

    Examples:
        >>> check_rule("/posts/<slug>") is None
        True
        >>> check_rule("/posts/<slug") is None
        False
    """
    try:
        new_map().add(Rule(path, endpoint="check"))
    except (ValueError, LookupError) as exc:
        return str(exc)
    return None


class Router:
    """Dispatch requests to WSGI applications.

    Unknown paths go to not_found. A known path requested with another
    method gets werkzeug's 405 response with an ``Allow`` header.

    Attributes:
        url_map: The werkzeug Map holding every rule.
        apps: Endpoint name to WSGI application.
        not_found: Application used when nothing matches.
    """

    def __init__(self, not_found: WSGIApplication | None = None):
        self.url_map = new_map()
        self.apps: dict[str, WSGIApplication] = {}
        self.not_found = not_found or NotFound()

    def add(
        self,
        rule: str,
        endpoint: str,
        app: WSGIApplication,
        methods: Iterable[str] = ("GET",),
    ) -> None:
        """Route rule to app; GET routes answer HEAD as well.

        Raises:
            ValueError: If the rule is malformed.
            LookupError: If the rule names an unknown converter.
        """
        self.url_map.add(Rule(rule, endpoint=endpoint, methods=list(methods)))
        self.apps[endpoint] = app

    def mount(self, prefix: str, endpoint: str, app: WSGIApplication) -> None:
        """Route every path below prefix to app."""
        self.add(f"{prefix.rstrip('/')}/<path:filename>", endpoint, app)

    def __call__(self, environ: WSGIEnvironment, start_response: StartResponse):
        adapter = self.url_map.bind_to_environ(environ)
        try:
            endpoint, values = adapter.match()
        except NotFound:
            return self.not_found(environ, start_response)
        except HTTPException as exc:
            return exc(environ, start_response)
        environ[ENVIRON_PATH_PARAMS] = values
        return self.apps[endpoint](environ, start_response)
