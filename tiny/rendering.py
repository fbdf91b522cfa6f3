"""Template rendering for tiny pages.

Each page gets its own Jinja2 environment because delimiters can be
overridden page by page. A page is made of the files of its layout
followed by its components:

- with a layout, every component is rendered in order and the joined
  output is handed to the layout's entry template as ``page_content``;
- without a layout, the first component is the entry template and the
  other components can be included or imported by their file name.

The macros of the bundled ``common.html`` are available everywhere as
the ``common`` global.

Key classes:
- TemplateEngine: Compiles and caches page templates, renders pages.
- CompiledPage: Environment and template names of one page.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    FunctionLoader,
    PackageLoader,
    select_autoescape,
)
from markupsafe import Markup

from .config import DEFAULT_DELIM_LEFT, DEFAULT_DELIM_RIGHT, PageConfig, SiteConfig
from .errors import not_found
from .funcs import GLOBAL_ONLY

logger = logging.getLogger(__name__)

COMMON_TEMPLATE = "common.html"


@dataclass
class CompiledPage:
    """A parsed page.

    Attributes:
        env: Environment holding the page's templates.
        entry: Name of the template rendered last.
        components: Templates rendered into ``page_content`` before the entry.
        embedded: Built-in page, never re-parsed.
    """

    env: Environment
    entry: str
    components: list[str] = field(default_factory=list)
    embedded: bool = False


def delimiters(left: str, right: str) -> dict[str, str]:
    """Jinja delimiter settings derived from a variable delimiter pair.

    Block and comment tags reuse the outer characters, so ``[[ ]]`` gives
    ``[% %]`` and ``[# #]`` while ``{{ }}`` gives Jinja's usual syntax.
    """
    return {
        "variable_start_string": left,
        "variable_end_string": right,
        "block_start_string": f"{left[0]}%",
        "block_end_string": f"%{right[-1]}",
        "comment_start_string": f"{left[0]}#",
        "comment_end_string": f"#{right[-1]}",
    }


class TemplateEngine:
    """Compile, cache and render page templates.

    Attributes:
        config: Site configuration.
        funcs: Template functions installed on every environment.
    """

    def __init__(self, config: SiteConfig, funcs: Mapping[str, Callable[..., Any]]):
        self.config = config
        self.funcs = dict(funcs)
        self._cache: dict[str, CompiledPage] = {}
        self._lock = threading.RLock()
        self._package_loader = PackageLoader("tiny", "templates")
        self._common = self._environment(
            self._package_loader, DEFAULT_DELIM_LEFT, DEFAULT_DELIM_RIGHT, with_common=False
        ).get_template(COMMON_TEMPLATE).module

    def _environment(
        self, loader, left: str, right: str, with_common: bool = True
    ) -> Environment:
        env = Environment(
            loader=loader,
            autoescape=select_autoescape(["html", "xml"]),
            auto_reload=self.config.reload,
            keep_trailing_newline=True,
            **delimiters(left, right),
        )
        for name, fn in self.funcs.items():
            env.globals[name] = fn
            if name not in GLOBAL_ONLY:
                env.filters[name] = fn
        if with_common:
            env.globals["common"] = self._common
        return env

    def add_embedded(self, name: str, template: str) -> None:
        """Register a built-in page rendered from a bundled template.

        Built-in pages always use the default ``[[ ]]`` delimiters.
        """
        env = self._environment(self._package_loader, DEFAULT_DELIM_LEFT, DEFAULT_DELIM_RIGHT)
        env.get_template(template)
        with self._lock:
            self._cache[name] = CompiledPage(env=env, entry=template, embedded=True)

    def compile(self, name: str, page: PageConfig | None) -> CompiledPage:
        """Return the compiled templates of a page.

        Cached pages are reused unless reload is enabled; built-in pages
        are always reused.

        Raises:
            SiteError: 404 when the page is unknown or has no templates.
            jinja2.TemplateError: When a template cannot be loaded or parsed.
        """
        with self._lock:
            cached = self._cache.get(name)
            if cached is not None and (cached.embedded or not self.config.reload):
                return cached
            if page is None:
                raise not_found("page not found")
            compiled = self._parse(name, page)
            self._cache[name] = compiled
            return compiled

    def _parse(self, name: str, page: PageConfig) -> CompiledPage:
        layout_files = list(self.config.layouts.get(page.layout, []))
        files = layout_files + list(page.components)
        if not files:
            raise not_found("no templates found")

        by_name: dict[str, Path] = {}
        for path in files:
            by_name.setdefault(str(path), path)
            by_name.setdefault(path.name, path)

        left, right = page.delim_left, page.delim_right
        if not left or not right:
            left, right = self.config.delim_left, self.config.delim_right

        loader = ChoiceLoader(
            [
                FunctionLoader(lambda template: _load_file(by_name.get(template))),
                FileSystemLoader(sorted({str(p.parent) for p in files})),
                self._package_loader,
            ]
        )
        env = self._environment(loader, left, right)

        if page.layout:
            entry = _entry_file(page.layout, layout_files)
            components = [str(p) for p in page.components]
        else:
            entry = page.components[0]
            components = []
        # Parse everything now so syntax errors surface before rendering.
        for path in files:
            env.get_template(str(path))
        logger.debug("parsed page %s: entry=%s components=%d", name, entry, len(components))
        return CompiledPage(env=env, entry=str(entry), components=components)

    def render(self, name: str, page: PageConfig | None, context: Mapping[str, Any]) -> str:
        """Render a page with the given context.

        Args:
            name: Page name.
            page: Page configuration, None for built-in pages.
            context: Template variables.

        Returns:
            Rendered text.
        """
        compiled = self.compile(name, page)
        env = compiled.env
        values = dict(context)
        if compiled.components:
            parts = [env.get_template(c).render(values) for c in compiled.components]
            values["page_content"] = Markup("".join(parts))
        return env.get_template(compiled.entry).render(values)

    def clear(self) -> None:
        """Drop every cached page except the built-in ones."""
        with self._lock:
            self._cache = {k: v for k, v in self._cache.items() if v.embedded}


def _entry_file(layout: str, files: list[Path]) -> Path:
    """Pick the layout file named after the layout, else the first one."""
    wanted = layout if Path(layout).suffix else f"{layout}.html"
    for path in files:
        if path.name == wanted:
            return path
    return files[0] if files else Path(wanted)


def _load_file(path: Path | None):
    if path is None or not path.is_file():
        return None
    source = path.read_text(encoding="utf-8")
    mtime = path.stat().st_mtime
    return source, str(path), lambda: path.exists() and path.stat().st_mtime == mtime
