"""WSGI middleware and the static file application.

Key functions:
- cache: Add a public Cache-Control header to every response.
- auth_required: Redirect unauthenticated visitors to the login page.
- static_files: Serve the files of a directory below a URL prefix.
"""

from __future__ import annotations

import typing as t
from collections.abc import Callable
from datetime import timedelta
from pathlib import Path
from urllib.parse import quote

from werkzeug.exceptions import NotFound
from werkzeug.middleware.shared_data import SharedDataMiddleware
from werkzeug.utils import redirect

from .wsgi import Request

if t.TYPE_CHECKING:
    from _typeshed.wsgi import StartResponse, WSGIApplication, WSGIEnvironment

DEFAULT_MAX_AGE = timedelta(days=30)

AuthInfo = Callable[[Request], tuple[t.Any, bool]]
Middleware = t.Callable[["WSGIApplication"], "WSGIApplication"]


def cache(max_age: timedelta | int | float = 0) -> Middleware:
    """Return middleware that marks responses as publicly cacheable.

    Args:
        max_age: Max age as a timedelta or seconds; zero means 30 days.
    """
    seconds = max_age.total_seconds() if isinstance(max_age, timedelta) else max_age
    if not seconds:
        seconds = DEFAULT_MAX_AGE.total_seconds()
    header = ("Cache-Control", f"public, max-age={int(seconds)}")

    def middleware(app: WSGIApplication) -> WSGIApplication:
        def wrapped(environ: WSGIEnvironment, start_response: StartResponse):
            def start(status, headers, exc_info=None):
                headers = [(k, v) for k, v in headers if k.lower() != "cache-control"]
                headers.append(header)
                return start_response(status, headers, exc_info)

            return app(environ, start)

        return wrapped

    return middleware


def auth_required(login_path: str, auth_info: AuthInfo) -> Middleware:
    """Return middleware that redirects anonymous requests to login_path.

    The original path is passed to the login page as the ``redirect``
    query parameter.
    """

    def middleware(app: WSGIApplication) -> WSGIApplication:
        def wrapped(environ: WSGIEnvironment, start_response: StartResponse):
            request = Request(environ)
            _, ok = auth_info(request)
            if not ok:
                location = f"{login_path}?redirect={quote(request.path, safe='/')}"
                return redirect(location)(environ, start_response)
            return app(environ, start_response)

        return wrapped

    return middleware


def static_files(
    root: Path, prefix: str, not_found: WSGIApplication | None = None
) -> WSGIApplication:
    """Return an application serving the files of root below prefix.

    Paths ending in ``/`` are served through their index.html. Directories
    are never listed and paths outside root are treated as missing.

    Args:
        root: Directory holding the files.
        prefix: URL prefix mapped onto root.
        not_found: Application answering missing files; plain 404 by default.
    """
    files = SharedDataMiddleware(not_found or NotFound(), {prefix: str(Path(root).resolve())})

    def app(environ: WSGIEnvironment, start_response: StartResponse):
        path = environ.get("PATH_INFO") or "/"
        if path.endswith("/"):
            environ = {**environ, "PATH_INFO": f"{path}index.html"}
        return files(environ, start_response)

    return app
