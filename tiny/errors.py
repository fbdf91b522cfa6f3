"""Exceptions used across tiny.

Errors raised while serving carry an HTTP status code so the site can pick
the matching error page. Anything without a code is treated as an internal
server error.

Key classes:
- SiteError: Error with an HTTP status code.
- SiteConfigError: Invalid site definition.
- GeneratorError: Failure while exporting the static site.
"""

from __future__ import annotations

from http import HTTPStatus

_CODE_ATTRIBUTES = ("code", "status_code", "status")


class SiteError(Exception):
    """Error with an HTTP status code.

    Attributes:
        code: HTTP status code used to select the error page.
        message: Human-readable error message.
    """

    def __init__(self, code: int, message: str = ""):
        self.code = int(code)
        self.message = message or _status_phrase(self.code)
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"SiteError({self.code}, {self.message!r})"


class SiteConfigError(Exception):
    """Raised when a site definition cannot be loaded or fails validation."""


class GeneratorError(Exception):
    """Raised when the static site cannot be generated.

    Attributes:
        path: Request path or filesystem path involved, if any.
        original_error: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        original_error: Exception | None = None,
    ):
        self.path = path
        self.original_error = original_error
        super().__init__(f"{path}: {message}" if path else message)


def not_found(message: str = "page not found") -> SiteError:
    return SiteError(HTTPStatus.NOT_FOUND, message)


def internal(message: str) -> SiteError:
    return SiteError(HTTPStatus.INTERNAL_SERVER_ERROR, message)


def error_from_exception(exc: BaseException) -> SiteError:
    """Convert any exception into a SiteError.

    A SiteError is returned unchanged. Other exceptions keep their code when
    they expose an integer-like ``code``, ``status_code`` or ``status``
    attribute; everything else becomes a 500.

    Args:
        exc: Exception raised or returned while serving a page.

    Returns:
        SiteError carrying the resolved status code.
    """
    if isinstance(exc, SiteError):
        return exc
    for attr in _CODE_ATTRIBUTES:
        value = getattr(exc, attr, None)
        if isinstance(value, bool) or value is None:
            continue
        try:
            code = int(value)
        except (TypeError, ValueError):
            continue
        return SiteError(code, str(exc))
    return SiteError(HTTPStatus.INTERNAL_SERVER_ERROR, str(exc))


def _status_phrase(code: int) -> str:
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return "Unknown Error"
