"""Development server for Satsuma.

Serves the public directory with live reload:
- Injects a reload script into HTML responses.
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Watches the source folders and the project root, handing every change to the
  Orchestrator, which rebuilds incrementally and tells browsers to reload.

Key classes:
- DevServer: Wires the HTTP server, websocket server, watcher and orchestrator.
- ReloadBroadcaster: ReloadNotifier that pushes ``{"type": "reload"}`` to every client.
- FileWatcher: WatchService backed by a watchdog observer.
- _ReloadHandler: HTTP request handler that injects the reload script and enforces 404s.
- _ChangeHandler: watchdog handler translating events into ``(kind, path)`` pairs.
"""

from __future__ import annotations

import asyncio
import functools
import json
import threading
import time
from collections.abc import Awaitable, Callable, Iterable
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .build import SiteBuilder
from .logging import get_logger
from .orchestrator import Orchestrator
from .utils import is_path_inside, normalize_path

logger = get_logger(__name__)

RELOAD_MESSAGE = json.dumps({"type": "reload"})

EventCallback = Callable[[str, Path], Awaitable[bool]]

_EVENT_KINDS = {
    "created": "add",
    "modified": "change",
    "deleted": "unlink",
}


def inject_reload_script(content: str, script: str) -> str:
    """Insert ``script`` before ``</body>``, or append it when there is no body tag."""
    if "</body>" in content:
        return content.replace("</body>", f"{script}</body>")
    return content + script


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that injects live reload script into HTML pages.

    Attributes:
        reload_script: JavaScript code for WebSocket connection to trigger reloads.
    """

    reload_script_template = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
      }};
    }})();
    </script>
    """
    reload_script = reload_script_template.format(ws_port=3001)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        return self._serve_404()

    def _send_html(self, status: int, content: str) -> None:
        encoded = inject_reload_script(content, self.reload_script).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html (when present) with the reload script and a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.is_file():
            self._send_html(404, error_page.read_text(encoding="utf-8"))
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            path_obj = path_obj / "index.html"
        if not path_obj.is_file():
            return self._serve_404()
        if path_obj.suffix == ".html":
            self._send_html(200, path_obj.read_text(encoding="utf-8"))
            return None
        return super().send_head()


class ReloadBroadcaster:
    """Tracks websocket clients and broadcasts reload messages to them.

    ``reload`` may be called from any thread; the broadcast itself runs on
    the loop that owns the websocket connections.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self.clients: set = set()

    async def handler(self, websocket) -> None:
        self.clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self.clients.discard(websocket)

    def reload(self) -> None:
        asyncio.run_coroutine_threadsafe(self.broadcast(RELOAD_MESSAGE), self._loop)

    async def broadcast(self, message: str) -> None:
        stale = set()
        for ws in list(self.clients):
            try:
                await ws.send(message)
            except Exception as exc:
                logger.debug("Dropping websocket client: %s", exc)
                stale.add(ws)
        self.clients -= stale
        logger.debug("Sent reload to %d clients", len(self.clients))


def translate_event(event: FileSystemEvent, ignored: Iterable[Path] = ()) -> list[tuple[str, Path]]:
    """Map a watchdog event to ``(kind, path)`` pairs.

    Directory events and paths inside an ignored directory produce nothing; a
    move becomes an ``unlink`` of the source plus an ``add`` of the destination.
    """
    if event.is_directory:
        return []
    ignored = [normalize_path(p) for p in ignored]

    def keep(path) -> bool:
        target = normalize_path(path)
        return not any(target == root or is_path_inside(root, target) for root in ignored)

    if event.event_type == "moved":
        pairs = [("unlink", event.src_path), ("add", event.dest_path)]
    elif event.event_type in _EVENT_KINDS:
        pairs = [(_EVENT_KINDS[event.event_type], event.src_path)]
    else:
        return []
    return [(kind, normalize_path(path)) for kind, path in pairs if keep(path)]


class _ChangeHandler(FileSystemEventHandler):
    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: EventCallback,
        ignored: Iterable[Path] = (),
        project_files: Iterable[Path] | None = None,
    ):
        super().__init__()
        self.loop = loop
        self.callback = callback
        self.ignored = list(ignored)
        self.project_files = None if project_files is None else set(project_files)

    def on_any_event(self, event):
        for kind, path in translate_event(event, self.ignored):
            if self.project_files is not None and path not in self.project_files:
                continue
            asyncio.run_coroutine_threadsafe(self.callback(kind, path), self.loop)


class FileWatcher:
    """WatchService backed by a watchdog observer.

    Each root is watched recursively once. The project root is watched
    non-recursively so that edits to satsuma.yaml and globals.yaml are seen.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: EventCallback,
        ignored: Iterable[Path] = (),
    ):
        self.loop = loop
        self.callback = callback
        self.ignored = [normalize_path(p) for p in ignored]
        self.watched: set[Path] = set()
        self._observer = Observer()

    def add(self, roots: Iterable[Path]) -> None:
        handler = _ChangeHandler(self.loop, self.callback, self.ignored)
        for root in roots:
            root = normalize_path(root)
            if root in self.watched or not root.is_dir():
                continue
            if any(is_path_inside(parent, root) for parent in self.watched):
                continue
            self._observer.schedule(handler, str(root), recursive=True)
            self.watched.add(root)
            logger.debug("Watching %s", root)

    def watch_files(self, directory: Path, files: Iterable[Path]) -> None:
        """Watch specific files directly inside ``directory``."""
        handler = _ChangeHandler(
            self.loop, self.callback, self.ignored, [normalize_path(f) for f in files]
        )
        self._observer.schedule(handler, str(directory), recursive=False)

    def start(self) -> None:
        self._observer.start()

    def stop(self) -> None:
        self._observer.stop()
        self._observer.join()


class DevServer:
    """Development server with live reload.

    Attributes:
        project_root: Root directory of the project.
        builder: SiteBuilder shared with the orchestrator.
        http_port: Port for the HTTP server.
        ws_port: Port for websocket connections.
    """

    def __init__(self, project_root: Path, http_port: int | None = None, ws_port: int | None = None):
        """Initialize the development server.

        Args:
            project_root: Root directory of the project.
            http_port: Optional override for the HTTP port.
            ws_port: Optional override for the websocket port.

        Raises:
            ConfigurationError: If the project configuration is invalid.
        """
        self.project_root = normalize_path(project_root)
        self.builder = SiteBuilder(self.project_root)
        config = self.builder.state.config
        self.http_port = int(http_port or config.get("port", 3000))
        if ws_port is not None:
            self.ws_port = ws_port
        elif http_port is not None:
            self.ws_port = self.http_port + 1
        else:
            self.ws_port = int(config.get("ws_port", self.http_port + 1))
        self._reload_script = _ReloadHandler.reload_script_template.format(ws_port=self.ws_port)
        self._loop = asyncio.new_event_loop()
        self.broadcaster = ReloadBroadcaster(self._loop)
        self.watcher = FileWatcher(
            self._loop, self._on_change, ignored=[self.builder.directories.public]
        )
        self.orchestrator = Orchestrator(self.builder, self.broadcaster, self.watcher)

    async def _on_change(self, kind: str, path: Path) -> bool:
        return await self.orchestrator.handle(kind, path)

    def start(self) -> None:  # pragma: no cover - integration path
        threading.Thread(target=self._run_loop, daemon=True).start()
        asyncio.run_coroutine_threadsafe(self.builder.build_site(clean=True), self._loop).result()
        threading.Thread(target=self._start_http, daemon=True).start()
        asyncio.run_coroutine_threadsafe(self._run_ws_server(), self._loop)
        self.watcher.add(self.builder.directories.watch_roots())
        directories = self.builder.directories
        self.watcher.watch_files(
            self.project_root, [directories.config_file, directories.globals_file]
        )
        self.watcher.start()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:  # pragma: no cover - integration path
        self.watcher.stop()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def _run_loop(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script},
        )
        public = self.builder.directories.public
        handler = functools.partial(handler_cls, directory=str(public))
        httpd = ThreadingHTTPServer(("", self.http_port), handler)
        logger.info("Serving %s at http://localhost:%d", public, self.http_port)
        httpd.serve_forever()

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        try:
            async with websockets.serve(self.broadcaster.handler, "0.0.0.0", self.ws_port):
                await asyncio.Future()
        except OSError as exc:
            logger.error("WebSocket server failed to start (port %d): %s", self.ws_port, exc)
