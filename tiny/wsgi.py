"""Request and response objects for tiny.

Both build on werkzeug's wrappers. The request exposes the variables the
router captured from the page path; the response can be turned into a
redirect by a data handler, which stops the page from being rendered.
"""

from __future__ import annotations

import typing as t
from http import HTTPStatus

from werkzeug.wrappers import Request as BaseRequest
from werkzeug.wrappers import Response as BaseResponse

if t.TYPE_CHECKING:
    from _typeshed.wsgi import StartResponse, WSGIApplication, WSGIEnvironment  # noqa: F401

ENVIRON_PATH_PARAMS = "tiny.path_params"


class Request(BaseRequest):
    """Incoming request, as passed to data handlers and auth info functions."""

    @property
    def path_params(self) -> dict[str, t.Any]:
        """Variables captured from the page path, e.g. ``slug``."""
        return self.environ.get(ENVIRON_PATH_PARAMS, {})


class Response(BaseResponse):
    """Outgoing response, HTML unless told otherwise.

    Attributes:
        finished: Set by redirect; the page is not rendered afterwards.
    """

    default_mimetype = "text/html"
    finished = False

    def redirect(self, location: str, code: int = HTTPStatus.FOUND) -> None:
        self.status_code = int(code)
        self.headers["Location"] = location
        self.set_data(b"")
        self.finished = True
