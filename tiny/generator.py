"""Static export of a tiny site.

The generator cleans the output directory, copies static assets and then
requests every configured path through the site itself, in process, with
werkzeug's test client. Successful pages whose path matches
``allowed_pages`` are written to disk.

Key classes:
- StaticSiteGenerator: Runs the export for a Site.
- GenerateResult: Files written and paths skipped by an export.
"""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from werkzeug.test import Client, TestResponse

from .errors import GeneratorError

if TYPE_CHECKING:
    from .site import Site

logger = logging.getLogger(__name__)


@dataclass
class GenerateResult:
    """Result of a static export.

    Attributes:
        output_dir: Root directory of the exported site.
        written: Files written, in request order.
        skipped: Request paths that produced no file.
    """

    output_dir: Path
    written: list[Path] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def output_file(root: Path, url_path: str) -> Path:
    """Map a request path to the file it is exported to.

    Examples:
        >>> output_file(Path("out"), "/")
        PosixPath('out/index.html')
        >>> output_file(Path("out"), "/about")
        PosixPath('out/about.html')
        >>> output_file(Path("out"), "/posts/")
        PosixPath('out/posts/index.html')
        >>> output_file(Path("out"), "/sitemap.xml")
        PosixPath('out/sitemap.xml')

    Raises:
        GeneratorError: If the path would leave the root directory.
    """
    path = url_path.split("?", 1)[0]
    parts = [p for p in path.split("/") if p]
    if any(p in (".", "..") for p in parts):
        raise GeneratorError("path escapes the output directory", path=url_path)
    if not parts or path.endswith("/"):
        return root.joinpath(*parts, "index.html")
    relative = PurePosixPath(*parts)
    if not relative.suffix:
        relative = relative.with_name(f"{relative.name}.html")
    return root.joinpath(*relative.parts)


class StaticSiteGenerator:
    """Export a site as static files.

    Attributes:
        site: Site being exported.
        settings: The site's static_site settings.
    """

    def __init__(self, site: Site):
        """Initialize the generator.

        Raises:
            GeneratorError: If an ``allowed_pages`` entry is not a valid regex.
        """
        self.site = site
        self.settings = site.config.static_site
        self._allowed: list[re.Pattern[str]] = []
        for pattern in self.settings.allowed_pages:
            try:
                self._allowed.append(re.compile(pattern))
            except re.error as exc:
                raise GeneratorError(
                    f"invalid allowed_pages pattern {pattern!r}: {exc}", original_error=exc
                ) from exc
        self._result = GenerateResult(output_dir=self.settings.output.root_dir)

    def prepare(self) -> None:
        """Clean the output directory and copy the static files into it.

        Entries of the output root named in ``keep`` are left in place.

        Raises:
            GeneratorError: If a static source is missing or copying fails.
        """
        output = self.settings.output
        root = output.root_dir
        keep = set(output.keep)
        try:
            root.mkdir(parents=True, exist_ok=True)
            for entry in root.iterdir():
                if entry.name in keep:
                    continue
                if entry.is_dir() and not entry.is_symlink():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
            output.static_dir.mkdir(parents=True, exist_ok=True)
            for source in self.settings.static:
                if not source.exists():
                    raise GeneratorError("static source does not exist", path=str(source))
                if source.is_dir():
                    shutil.copytree(source, output.static_dir, dirs_exist_ok=True)
                else:
                    shutil.copy2(source, output.static_dir / source.name)
        except OSError as exc:
            raise GeneratorError(f"prepare output: {exc}", path=str(root), original_error=exc) from exc

    def paths(self) -> list[str]:
        """Configured request paths followed by the dynamic ones.

        Raises:
            GeneratorError: If a dynamic paths handler fails.
        """
        paths = list(self.settings.request.paths)
        for handler in self.site.dynamic_paths_handlers:
            try:
                paths.extend(handler())
            except Exception as exc:
                raise GeneratorError(f"dynamic paths handler failed: {exc}", original_error=exc) from exc
        return paths

    def is_allowed(self, path: str) -> bool:
        return any(pattern.search(path) for pattern in self._allowed)

    def capture(self, response: TestResponse) -> None:
        """Write a successful, allowed response to disk; skip anything else.

        The decoded request path decides the output file, so
        ``/posts/hello%20world`` is written to ``posts/hello world.html``.
        """
        path = response.request.path
        code = response.status_code
        if 200 <= code < 300 and self.is_allowed(path):
            self._write(path, response.get_data())
        else:
            logger.warning("skip %s: status %d, allowed %s", path, code, self.is_allowed(path))
            self._result.skipped.append(path)

    def _write(self, path: str, body: bytes) -> None:
        target = output_file(self.settings.output.root_dir, path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(body)
        except OSError as exc:
            raise GeneratorError(f"write static file failed: {exc}", path=path, original_error=exc) from exc
        logger.info("wrote %s", target)
        self._result.written.append(target)

    def generate(self) -> GenerateResult:
        """Run the export.

        Returns:
            GenerateResult listing the written files and skipped paths. When
            the export is disabled nothing is done and the result is empty.

        Raises:
            GeneratorError: If collecting the paths, preparing the output or
                writing a file fails. Paths are collected before the output
                directory is cleaned, so a failing handler leaves it untouched.
        """
        self._result = GenerateResult(output_dir=self.settings.output.root_dir)
        if not self.settings.enable:
            logger.warning("static site is disabled")
            return self._result
        paths = self.paths()
        self.prepare()
        client = Client(self.site, use_cookies=False)
        host = self.settings.request.host
        base_url = host if "://" in host else f"http://{host}"
        for path in paths:
            self.capture(client.get(path, base_url=base_url))
        return self._result
