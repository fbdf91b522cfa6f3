"""Serving and watching for tiny.

- serve: Run a site on werkzeug's threaded development server.
- SiteWatcher: Re-run the static export when source files change.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer
from werkzeug.serving import BaseWSGIServer, make_server

if TYPE_CHECKING:
    from _typeshed.wsgi import WSGIApplication

logger = logging.getLogger(__name__)


def create_server(app: WSGIApplication, host: str = "", port: int = 8000) -> BaseWSGIServer:
    """Return a threaded server for app; an empty host binds every interface.

    Requests are logged through the ``werkzeug`` logger.
    """
    return make_server(host or "0.0.0.0", port, app, threaded=True)


def serve(app: WSGIApplication, host: str = "", port: int = 8000) -> None:  # pragma: no cover - integration path
    """Serve app until interrupted."""
    httpd = create_server(app, host, port)
    print(f"Serving at http://{host or 'localhost'}:{port}")
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        httpd.server_close()


class SiteWatcher:
    """Call a rebuild function whenever files under root change.

    Attributes:
        root: Directory watched recursively.
        build: Function doing the rebuild.
        ignore: Directories whose changes are ignored, e.g. the output root.
    """

    def __init__(self, root: Path, build: Callable[[], Any], ignore: Iterable[Path] = ()):
        self.root = root
        self.build = build
        self.ignore = [Path(p).resolve() for p in ignore]
        self._observer: Observer | None = None
        self._lock = threading.Lock()
        self._rebuilding = False
        self._last_rebuild_at = 0.0
        self._last_signature: tuple | None = None
        self._debounce_seconds = 0.2

    def is_ignored(self, path: Path) -> bool:
        resolved = path.resolve()
        return any(resolved == p or p in resolved.parents for p in self.ignore)

    def start(self) -> None:
        self._last_signature = self._compute_signature()
        observer = Observer()
        observer.schedule(_ChangeHandler(self), str(self.root), recursive=True)
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def run_forever(self) -> None:  # pragma: no cover - integration path
        self.start()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def rebuild(self) -> bool:
        """Rebuild unless a rebuild is running, ran too recently or nothing changed.

        Returns:
            True if the build function was called.
        """
        with self._lock:
            now = time.time()
            if self._rebuilding or (now - self._last_rebuild_at) < self._debounce_seconds:
                return False
            signature = self._compute_signature()
            if signature is not None and signature == self._last_signature:
                return False
            self._rebuilding = True
        try:
            logger.info("change detected; rebuilding")
            self.build()
            self._last_signature = signature
            return True
        except Exception as exc:
            logger.error("rebuild failed: %s", exc)
            return False
        finally:
            self._rebuilding = False
            self._last_rebuild_at = time.time()

    def _compute_signature(self) -> tuple | None:
        entries: list[tuple] = []
        for path in sorted(self.root.rglob("*")):
            if path.is_dir() or self.is_ignored(path):
                continue
            try:
                stat = path.stat()
            except OSError:
                continue
            entries.append((str(path.relative_to(self.root)), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) if entries else None


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, watcher: SiteWatcher):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event):
        if event.is_directory:
            return
        if self.watcher.is_ignored(Path(event.src_path)):
            return
        self.watcher.rebuild()
