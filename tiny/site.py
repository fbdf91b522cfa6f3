"""The Site: pages declared in YAML, served as a WSGI application.

A Site reads its definition, adds the built-in pages that are not
declared (robots.txt, sitemap.xml, error and not_found), attaches data
handlers and validates the definition. Calling the site as a WSGI
application builds the router on first use and serves the pages.

Key classes:
- Site: Page registry, renderer and WSGI application.
- PageData: Variables available to page templates.
- SiteMap, SiteMapURL, RobotsTXT, UserAgent: Data of the built-in pages.

Key functions:
- load_site: Build a Site from a YAML file.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http import HTTPStatus
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any

import yaml

from .config import (
    PAGE_ERROR,
    PAGE_NOT_FOUND,
    PAGE_ROBOTS_TXT,
    PAGE_SITEMAP_XML,
    PageConfig,
    SiteConfig,
    load_site_config,
)
from .errors import SiteConfigError, SiteError, error_from_exception, internal, not_found
from .funcs import add_funcs, func_map
from .metadata import MetaData, merge
from .middleware import AuthInfo, auth_required, cache, static_files
from .rendering import TemplateEngine
from .routing import Router, check_rule
from .wsgi import Request, Response

if TYPE_CHECKING:
    from _typeshed.wsgi import StartResponse, WSGIApplication, WSGIEnvironment

logger = logging.getLogger(__name__)

JSON_PREFIX = "json://"
YAML_PREFIX = "yaml://"

_CONTENT_TYPES = {
    ".xml": "application/xml; charset=utf-8",
    ".txt": "text/plain; charset=utf-8",
    ".json": "application/json; charset=utf-8",
}
_HTML = "text/html; charset=utf-8"

DataHandler = Callable[[Request, Response], Any]
DynamicPathsHandler = Callable[[], Iterable[str]]


@dataclass
class PageData:
    """Variables available to page templates.

    Attributes:
        metadata: Page metadata merged over the site metadata.
        authenticated: Whether the visitor is authenticated.
        user: Whatever the auth info function returned for the visitor.
        error: The error being rendered, on error pages.
        cookies: Request cookie values by name.
        data: Value returned by the page's data handler.
    """

    metadata: MetaData = field(default_factory=MetaData)
    authenticated: bool = False
    user: Any = None
    error: SiteError | None = None
    cookies: dict[str, str] = field(default_factory=dict)
    data: Any = None

    def get_cookie(self, name: str) -> str:
        return self.cookies.get(name, "")


@dataclass
class SiteMapURL:
    loc: str
    last_mod: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    change_freq: str = "daily"
    priority: float = 1.0


@dataclass
class SiteMap:
    url_set: list[SiteMapURL] = field(default_factory=list)


@dataclass
class UserAgent:
    user_agent: str = "*"
    disallow: list[str] = field(default_factory=list)
    allow: list[str] = field(default_factory=list)


@dataclass
class RobotsTXT:
    user_agents: list[UserAgent] = field(default_factory=list)


def default_sitemap(request: Request, response: Response) -> SiteMap:
    return SiteMap(url_set=[SiteMapURL(loc="/", change_freq="daily", priority=1.0)])


def default_robots_txt(request: Request, response: Response) -> RobotsTXT:
    return RobotsTXT(user_agents=[UserAgent(user_agent="*", allow=["/"])])


class Site:
    """Pages of a site, served as a WSGI application.

    Attributes:
        config: Parsed site definition.
        auth_info: Returns ``(user, ok)`` for a request; required when a
            page sets ``auth``.
        engine: Template engine rendering the pages.
        error_pages: HTTP status code to the page rendering it.
    """

    def __init__(
        self,
        config: SiteConfig,
        funcs: Mapping[str, Callable[..., Any]] | None = None,
        auth_info: AuthInfo | None = None,
    ):
        """Initialize the site.

        Args:
            config: Parsed site definition.
            funcs: Extra template functions, replacing built-ins of the same name.
            auth_info: Function returning ``(user, ok)`` for a request.

        Raises:
            SiteConfigError: If the definition is invalid and validation is on,
                or a data file cannot be loaded.
        """
        self.config = config
        self.auth_info = auth_info
        self._funcs = func_map()
        add_funcs(self._funcs, funcs or {})
        self._lock = threading.RLock()
        self._router: Router | None = None
        self._router_lock = threading.Lock()
        self._data_handlers: dict[str, DataHandler] = {}
        self._dynamic_paths_handlers: list[DynamicPathsHandler] = []
        self.engine = TemplateEngine(config, self._funcs)

        self._add_default_pages()
        self._attach_page_data()
        self.error_pages: dict[int, str] = {}
        for page_name, codes in config.errors.items():
            for code in codes:
                self.error_pages[code] = page_name

        problems = self.validate()
        if problems:
            message = "; ".join(problems)
            if config.validate:
                raise SiteConfigError(message)
            logger.warning("invalid site definition: %s", message)

    @classmethod
    def from_file(
        cls,
        path: Path | str,
        *,
        funcs: Mapping[str, Callable[..., Any]] | None = None,
        auth_info: AuthInfo | None = None,
    ) -> Site:
        return cls(load_site_config(path), funcs=funcs, auth_info=auth_info)

    @property
    def pages(self) -> dict[str, PageConfig]:
        return self.config.pages

    def _add_default_pages(self) -> None:
        defaults = (
            (PAGE_ROBOTS_TXT, "/robots.txt", default_robots_txt),
            (PAGE_SITEMAP_XML, "/sitemap.xml", default_sitemap),
            (PAGE_ERROR, "/error", None),
            (PAGE_NOT_FOUND, "/404", None),
        )
        for name, path, handler in defaults:
            if name in self.config.pages:
                continue
            template = name if "." in name else f"{name}.html"
            self.engine.add_embedded(name, template)
            self.config.pages[name] = PageConfig(path=path, embedded=True)
            if handler is not None:
                self._data_handlers[name] = handler

    def _attach_page_data(self) -> None:
        for name, page in self.config.pages.items():
            if page.data is None:
                continue
            value = page.data
            if isinstance(value, str) and value.startswith((JSON_PREFIX, YAML_PREFIX)):
                self.set_data_handler(name, self._file_data_handler(value))
            else:
                self.set_data_handler(name, _constant(value))

    def _file_data_handler(self, reference: str) -> DataHandler:
        """Return a handler serving the content of a json:// or yaml:// file.

        The file is read once at startup and again on every request when
        reload is enabled.

        Raises:
            SiteConfigError: If the file cannot be read at startup.
        """
        is_json = reference.startswith(JSON_PREFIX)
        raw_path = reference[len(JSON_PREFIX if is_json else YAML_PREFIX):]
        path = Path(raw_path)
        if not path.is_absolute():
            path = self.config.base_dir / path

        def load() -> Any:
            try:
                with open(path, encoding="utf-8") as f:
                    return json.load(f) if is_json else yaml.safe_load(f)
            except OSError as exc:
                raise internal(f"read data from file, err: {exc}") from exc
            except (ValueError, yaml.YAMLError) as exc:
                raise internal(f"invalid data, err: {exc}") from exc

        try:
            data = load()
        except SiteError as exc:
            raise SiteConfigError(f"{path}: {exc.message}") from exc

        def handler(request: Request, response: Response) -> Any:
            if not self.config.reload:
                return data
            try:
                return load()
            except SiteError as exc:
                return exc

        return handler

    def set_data_handler(self, name: str, handler: DataHandler) -> None:
        """Attach a data handler to a page.

        The handler is called with the request and the response for every
        render of the page. Its return value is available as ``data`` in the
        templates; returning a PageData replaces the default page data and
        returning an exception renders the matching error page.

        Raises:
            SiteError: 404 if the page does not exist.
        """
        with self._lock:
            if name not in self.config.pages:
                raise not_found("page not found")
            self._data_handlers[name] = handler

    def set_data_handlers(self, handlers: Mapping[str, DataHandler]) -> None:
        for name, handler in handlers.items():
            self.set_data_handler(name, handler)

    def set_sitemap_data_handler(
        self, name: str, handler: Callable[[Request, Response], SiteMap]
    ) -> None:
        self.set_data_handler(name, handler)

    def set_robots_txt_data_handler(
        self, name: str, handler: Callable[[Request, Response], RobotsTXT]
    ) -> None:
        self.set_data_handler(name, handler)

    def add_dynamic_paths_handlers(self, *handlers: DynamicPathsHandler) -> None:
        """Register functions returning extra paths for the static export."""
        with self._lock:
            self._dynamic_paths_handlers.extend(handlers)

    @property
    def dynamic_paths_handlers(self) -> list[DynamicPathsHandler]:
        with self._lock:
            return list(self._dynamic_paths_handlers)

    def data_handler(self, name: str) -> DataHandler | None:
        with self._lock:
            return self._data_handlers.get(name)

    def validate(self) -> list[str]:
        """Check that page paths are valid rules and referenced files exist.

        Returns:
            Problems found, empty when the definition is valid.
        """
        problems: list[str] = []
        config = self.config
        if config.static is not None and not config.static.exists():
            problems.append(f"static path: {config.static} does not exist")
        for layout, files in config.layouts.items():
            for path in files:
                if not path.exists():
                    problems.append(f"layout: {layout}, component: {path} does not exist")
        needs_auth = False
        for name, page in config.pages.items():
            if page.path and not page.embedded:
                reason = check_rule(page.path)
                if reason is not None:
                    problems.append(f"page: {name}, path: {page.path} is invalid: {reason}")
            if page.layout and page.layout not in config.layouts:
                problems.append(f"page: {name}, layout: {page.layout} not found")
            for path in page.components:
                if not path.exists():
                    problems.append(f"page: {name}, component: {path} does not exist")
            needs_auth = needs_auth or page.auth
        if needs_auth and self.auth_info is None:
            problems.append("auth is enabled but no auth info func is provided")
        return problems

    def get_page_data(
        self, name: str, request: Request, error: SiteError | None = None
    ) -> PageData:
        """Build the default data of a page for a request."""
        page = self.config.pages.get(name)
        if page is None:
            metadata = MetaData(self.config.metadata)
        else:
            metadata = merge(page.metadata, self.config.metadata)
        user, authenticated = None, False
        if self.auth_info is not None:
            user, authenticated = self.auth_info(request)
        return PageData(
            metadata=metadata,
            authenticated=bool(authenticated),
            user=user,
            error=error,
            cookies=request.cookies.to_dict(),
        )

    def render(self, name: str, data: PageData) -> str:
        """Render a page with the given page data."""
        context = {
            "page": data,
            "metadata": data.metadata,
            "authenticated": data.authenticated,
            "user": data.user,
            "error": data.error,
            "cookies": data.cookies,
            "data": data.data,
        }
        page = self.config.pages.get(name)
        return self.engine.render(name, None if page is None or page.embedded else page, context)

    def serve_page(self, name: str) -> WSGIApplication:
        """Return the WSGI application serving one page."""

        def app(environ: WSGIEnvironment, start_response: StartResponse):
            request = Request(environ)
            response = Response(content_type=self.content_type(name))
            handler = self.data_handler(name)
            try:
                data = self.get_page_data(name, request)
                if handler is not None:
                    result = handler(request, response)
                    if response.finished:
                        return response(environ, start_response)
                    if isinstance(result, PageData):
                        data = result
                    elif isinstance(result, BaseException):
                        error_response = self.handle_error(request, result, response)
                        return error_response(environ, start_response)
                    else:
                        data.data = result
                response.set_data(self.render(name, data))
            except Exception as exc:
                logger.error("serve page %s failed: %s", name, exc, exc_info=True)
                return self.handle_error(request, exc, response)(environ, start_response)
            return response(environ, start_response)

        return app

    def handle_error(
        self, request: Request, exc: BaseException, response: Response | None = None
    ) -> Response:
        """Render the error page mapped to the error's status code.

        Headers already set on response, such as cookies set by a data
        handler, are kept on the error response. Falls back to a plain 500
        when the error page cannot be rendered.
        """
        error = error_from_exception(exc)
        name = self.error_pages.get(error.code, PAGE_ERROR)
        status = error.code if 400 <= error.code <= 599 else HTTPStatus.INTERNAL_SERVER_ERROR
        try:
            body = self.render(name, self.get_page_data(name, request, error))
        except Exception as render_exc:
            logger.error("serve error page %s failed: %s", name, render_exc, exc_info=True)
            error_response = Response(
                HTTPStatus.INTERNAL_SERVER_ERROR.phrase,
                status=HTTPStatus.INTERNAL_SERVER_ERROR,
                content_type="text/plain; charset=utf-8",
            )
        else:
            error_response = Response(body, status=status, content_type=self.content_type(name))
        if response is not None:
            for key, value in response.headers.items():
                if key.lower() not in ("content-type", "content-length"):
                    error_response.headers.add(key, value)
        return error_response

    def _serve_not_found(self, environ: WSGIEnvironment, start_response: StartResponse):
        return self.handle_error(Request(environ), not_found())(environ, start_response)

    def content_type(self, name: str) -> str:
        page = self.config.pages.get(name)
        if page is None:
            return _HTML
        return _CONTENT_TYPES.get(PurePosixPath(page.path).suffix.lower(), _HTML)

    def build_router(self) -> Router:
        """Build the router serving static files and every page."""
        router = Router(not_found=self._serve_not_found)
        config = self.config
        if config.static is not None:
            files = static_files(config.static, config.static_prefix, not_found=self._serve_not_found)
            router.mount(config.static_prefix, "static:", cache(config.cache_max_age)(files))
        auth_info = self.auth_info or _anonymous
        for name, page in config.pages.items():
            if not page.path:
                logger.warning("page %s has no path; not registered", name)
                continue
            app = self.serve_page(name)
            if page.auth:
                app = auth_required(config.login, auth_info)(app)
            try:
                router.add(page.path, name, app, methods=("GET",))
            except (ValueError, LookupError) as exc:
                logger.error("page %s has an invalid path %s; not registered: %s", name, page.path, exc)
                continue
            logger.info("register page: %s, path: %s, method: GET", name, page.path)
        return router

    def __call__(self, environ: WSGIEnvironment, start_response: StartResponse):
        if self._router is None:
            with self._router_lock:
                if self._router is None:
                    self._router = self.build_router()
        return self._router(environ, start_response)

    def generate_static_site(self):
        """Export the site as static files; see StaticSiteGenerator."""
        from .generator import StaticSiteGenerator

        return StaticSiteGenerator(self).generate()


def load_site(
    path: Path | str,
    *,
    funcs: Mapping[str, Callable[..., Any]] | None = None,
    auth_info: AuthInfo | None = None,
) -> Site:
    """Load a site definition from a YAML file.

    Args:
        path: Path to the YAML site definition.
        funcs: Extra template functions.
        auth_info: Function returning ``(user, ok)`` for a request.

    Returns:
        The ready to serve Site.
    """
    return Site.from_file(path, funcs=funcs, auth_info=auth_info)


def _constant(value: Any) -> DataHandler:
    def handler(request: Request, response: Response) -> Any:
        return value

    return handler


def _anonymous(request: Request) -> tuple[Any, bool]:
    return None, False
