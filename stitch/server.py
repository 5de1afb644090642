"""Development server for Stitch.

Serves the built site with live reload for local authoring:
- Injects a reload script into HTML responses.
- Resolves directories to index.html and answers missing paths with a 404.
- Watches the source tree, rebuilds on change and tells browsers to reload.

A failed rebuild is logged and leaves the previous output in place; browsers
are only told to reload after a successful build.

Key classes:
- DevServer: Main class for running the development server.
- _ReloadHandler: HTTP request handler that injects the reload script.
- _ChangeHandler: File system event handler for triggering rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import threading
import time
import webbrowser
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import Builder, BuildError

logger = logging.getLogger(__name__)


def inject_reload_script(html: str, script: str) -> str:
    """Insert the reload script before `</body>`, or append it."""
    if "</body>" in html:
        return html.replace("</body>", f"{script}</body>", 1)
    return html + script


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
    reload_script = reload_script_template.format(ws_port=8082)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):  # noqa: A002 - matches base signature
        logger.debug("%s - %s", self.address_string(), format % args)

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        return self._serve_404()

    def _serve_404(self):
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            path_obj = path_obj / "index.html"
        if not path_obj.is_file():
            return self._serve_404()

        if path_obj.suffix.lower() == ".html":
            content = path_obj.read_bytes().decode("utf-8", errors="replace")
            encoded = inject_reload_script(content, self.reload_script).encode("utf-8")
            self.send_response(200)
            self.send_header("Content-type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(encoded)))
            self.end_headers()
            self.wfile.write(encoded)
            return None
        return super().send_head()


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        builder: Builder used for the initial build and every rebuild.
        host: Interface to bind both servers to.
        http_port: Port for HTTP server.
        ws_port: Port for WebSocket connections.
        _observer: File system observer for changes.
        _ws_clients: Set of connected WebSocket clients.
        _loop: Event loop for WebSocket handling.
    """

    def __init__(
        self,
        builder: Builder,
        host: str = "127.0.0.1",
        http_port: int = 8081,
        ws_port: int | None = None,
    ):
        """Initialize the development server.

        Args:
            builder: Builder for the site.
            host: Interface to bind to.
            http_port: HTTP port.
            ws_port: WebSocket port; defaults to http_port + 1.
        """
        self.builder = builder
        self.host = host
        self.http_port = http_port
        self.ws_port = ws_port if ws_port is not None else http_port + 1
        self._reload_script = _ReloadHandler.reload_script_template.format(
            ws_port=self.ws_port
        )
        self._observer: Observer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._rebuilding = False
        self._last_rebuild_at = 0.0
        self._last_signature: tuple | None = None
        self._debounce_seconds = 0.05

    @property
    def source_dir(self) -> Path:
        return self.builder.source_dir

    @property
    def output_dir(self) -> Path:
        return self.builder.output_dir

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.http_port}"

    def start(self, open_browser: bool = True) -> None:  # pragma: no cover - integration path
        logger.info("Initial build ...")
        self.builder.build()
        self._last_signature = self._compute_signature()
        threading.Thread(target=self._start_http, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        self._start_watcher()
        if open_browser:
            webbrowser.open(self.url)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer((self.host, self.http_port), handler)
        logger.info("Serving %s at %s", self.output_dir, self.url)
        httpd.serve_forever()

    def _start_ws(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.error(
                "WebSocket server failed to start (port %s): %s", self.ws_port, exc
            )

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, self.host, self.ws_port):
            await asyncio.Future()  # Run forever

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self):
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in self._ws_clients:
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)

    def _start_watcher(self) -> None:
        handler = _ChangeHandler(self)
        observer = Observer()
        observer.schedule(handler, str(self.source_dir), recursive=True)
        observer.start()
        self._observer = observer
        logger.info("Watching for changes in %s", self.source_dir)

    def rebuild(self) -> bool:
        """Rebuild the site and notify browsers on success.

        Returns:
            True if a build ran and succeeded.
        """
        now = time.time()
        if self._rebuilding or (now - self._last_rebuild_at) < self._debounce_seconds:
            return False
        signature = self._compute_signature()
        if signature is not None and signature == self._last_signature:
            return False
        self._rebuilding = True
        try:
            logger.info("Change detected; rebuilding...")
            try:
                self.builder.build()
            except (BuildError, OSError) as exc:
                logger.error("build failed: %s", exc)
                return False
            self._last_signature = signature
            self._broadcast_reload()
            return True
        finally:
            self._rebuilding = False
            self._last_rebuild_at = time.time()

    def _compute_signature(self) -> tuple | None:
        entries: list[tuple] = []
        root = self.source_dir
        if not root.exists():
            return None
        for path in sorted(root.rglob("*")):
            if path.is_dir():
                continue
            try:
                stat = path.stat()
            except OSError:
                continue
            rel = path.relative_to(root)
            entries.append((rel.as_posix(), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) if entries else None


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer):
        super().__init__()
        self.server = server

    def on_any_event(self, event):
        if event.is_directory:
            return
        if event.event_type not in ("created", "modified", "deleted", "moved"):
            return
        path = Path(event.src_path)
        # Skip changes in output/staging directories
        for ignored in (self.server.output_dir, self.server.builder.staging_dir):
            try:
                path.relative_to(ignored)
                return
            except ValueError:
                pass
        self.server.rebuild()
