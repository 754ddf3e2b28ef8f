"""Development server for Quire.

Serves the latest build with live reload and sane defaults for local authoring:
- Responses come from an in-memory snapshot of the last completed build, which
  is swapped atomically after each rebuild. While a rebuild runs, requests are
  answered from the previous build (stale until rebuilt), never a mix of both.
- Injects a reload script into HTML responses.
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Redirects directory URLs that lack a trailing slash, as SimpleHTTPRequestHandler does.
- Watches the content store and rebuilds once per debounced burst of changes.

Key classes:
- DevServer: Main class for running the development server.
- _SnapshotHandler: HTTP request handler that serves from the current snapshot.
"""

from __future__ import annotations

import asyncio
import functools
import io
import json
import threading
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import unquote, urlsplit

import websockets
from watchdog.observers import Observer

from .build import BuildResult, build_site, resolve_output_dir
from .config import MAX_PORT, load_config
from .errors import ConfigError
from .tree import SiteSnapshot, staging_paths, write_tree
from .watch import ChangeHandler, WatchLoop


class _SnapshotHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that serves files from a SiteSnapshot.

    Attributes:
        snapshot: Reference to the current output tree.
        baseurl: Site subpath prefix stripped from request paths.
        reload_script: JavaScript injected into HTML pages.
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
    reload_script = reload_script_template.format(ws_port=4001)
    snapshot: SiteSnapshot = SiteSnapshot()
    baseurl = ""

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def list_directory(self, path):  # pragma: no cover - send_head never reaches it
        return self._serve_404(self.snapshot.current())

    def send_head(self):
        # One snapshot per request: a concurrent rebuild cannot change what we serve
        tree = self.snapshot.current()
        parts = urlsplit(self.path)
        url_path = unquote(parts.path)
        prefix = self.baseurl.rstrip("/")
        if prefix:
            if url_path == prefix:
                return self._redirect_to_directory(parts)
            if not url_path.startswith(prefix + "/"):
                return self._serve_404(tree)
            url_path = url_path[len(prefix) :]
        found = tree.resolve(url_path)
        if found is None:
            return self._serve_404(tree)
        output_path, data = found
        # Relative URLs in a directory index only resolve under the slashed URL
        if not url_path.endswith("/") and output_path == url_path.strip("/") + "/index.html":
            return self._redirect_to_directory(parts)
        return self._send_bytes(200, output_path, data)

    def _redirect_to_directory(self, parts):
        location = parts.path + "/"
        if parts.query:
            location += "?" + parts.query
        self.send_response(301)
        self.send_header("Location", location)
        self.send_header("Content-Length", "0")
        self.end_headers()
        return None

    def _serve_404(self, tree):
        """Serve 404.html (when present) with a 404 status."""
        if "404.html" in tree:
            return self._send_bytes(404, "404.html", tree["404.html"])
        self.send_error(404, "File not found")
        return None

    def _send_bytes(self, status: int, output_path: str, data: bytes):
        if output_path.endswith(".html"):
            content = data.decode("utf-8", errors="replace")
            if "</body>" in content:
                content = content.replace("</body>", f"{self.reload_script}</body>", 1)
            else:
                content += self.reload_script
            data = content.encode("utf-8")
            content_type = "text/html; charset=utf-8"
        else:
            content_type = self.guess_type(output_path)
        self.send_response(status)
        self.send_header("Content-type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        return io.BytesIO(data)


class DevServer:
    """Development server with file watching and live reload.

    Attributes:
        root: Content store root.
        config: Site configuration, read once at startup.
        output_dir: Directory the latest build is mirrored to.
        host: Bind address.
        http_port: Port for HTTP server.
        ws_port: Port for WebSocket connections.
        include_drafts: Whether drafts are built.
        write_output: Whether each published build is also written to output_dir.
        snapshot: Reference to the build being served.
    """

    def __init__(
        self,
        root: Path,
        host: str | None = None,
        http_port: int | None = None,
        ws_port: int | None = None,
        output_dir: Path | None = None,
        include_drafts: bool = False,
        write_output: bool = True,
        debounce: float = 0.2,
    ):
        """Initialize the development server.

        Args:
            root: Content store root.
            host: Optional override for the bind address.
            http_port: Optional override for HTTP port.
            ws_port: Optional override for the live reload port (default: HTTP port + 1).
            output_dir: Optional override for the output directory.
            include_drafts: Whether to build drafts.
            write_output: Whether to mirror each build to the output directory.
            debounce: Quiet period, in seconds, that closes a batch of changes.

        Raises:
            ConfigError: If ``_config.yml`` is invalid or a port is out of range.
            BuildError: If the output directory would overwrite the sources.
        """
        self.root = root
        self.config = load_config(root)
        self.output_dir = resolve_output_dir(root, self.config, output_dir)
        self.host = host or self.config.host
        self.http_port = int(http_port if http_port is not None else self.config.port)
        self.ws_port = int(ws_port if ws_port is not None else self.http_port + 1)
        for name, value in (("port", self.http_port), ("live reload port", self.ws_port)):
            if not 0 <= value <= MAX_PORT:
                raise ConfigError(f"{name} {value} is outside 0-{MAX_PORT}")
        self.include_drafts = include_drafts
        self.write_output = write_output
        self.snapshot = SiteSnapshot()
        self._reload_script = _SnapshotHandler.reload_script_template.format(ws_port=self.ws_port)
        self._ignored_dirs = [self.output_dir, *staging_paths(self.output_dir)]
        self._watch_loop = WatchLoop(self.rebuild, debounce=debounce)
        self._stop = threading.Event()
        self._observer: Observer | None = None
        self._httpd: ThreadingHTTPServer | None = None
        self._serving = False
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._ws_task: asyncio.Task | None = None
        self._ws_thread: threading.Thread | None = None

    def start(self) -> None:  # pragma: no cover - integration path
        """Build, bind, and watch until interrupted.

        Raises:
            OSError: If the HTTP port cannot be bound.
        """
        self._httpd = self.make_http_server()
        try:
            result = build_site(self.root, self.include_drafts, output_dir=self.output_dir)
        except BaseException:
            self.stop()
            raise
        self._publish(result)
        threading.Thread(target=self._httpd.serve_forever, daemon=True).start()
        self._serving = True
        print(f"Serving {self.root} at http://{self.host}:{self.http_port}{self.config.baseurl}/")
        self._start_ws()
        self._start_watcher()
        print("Watching for changes. Press Ctrl+C to stop.")
        try:
            self._watch_loop.run(self._stop)
        except KeyboardInterrupt:
            print("\nStopping.")
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop watching and serving; release the port and watches."""
        self._stop.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        if self._httpd is not None:
            # shutdown() waits for serve_forever and would block if it never ran
            if self._serving:
                self._httpd.shutdown()
                self._serving = False
            self._httpd.server_close()
            self._httpd = None
        if self._ws_task is not None and not self._loop.is_closed():
            try:
                self._loop.call_soon_threadsafe(self._ws_task.cancel)
            except RuntimeError:
                # The loop closed after the check; the task is already done
                pass
        if self._ws_thread is not None:
            self._ws_thread.join(timeout=5)
            self._ws_thread = None
        elif not self._loop.is_closed():
            self._loop.close()

    def make_http_server(self) -> ThreadingHTTPServer:
        """Bind the HTTP server to the configured address.

        Raises:
            OSError: If the address is already in use.
        """
        handler_cls = type(
            "_SnapshotHandlerForSite",
            (_SnapshotHandler,),
            {
                "reload_script": self._reload_script,
                "snapshot": self.snapshot,
                "baseurl": self.config.baseurl,
            },
        )
        handler = functools.partial(handler_cls, directory=str(self.root))
        return ThreadingHTTPServer((self.host, self.http_port), handler)

    def _start_ws(self) -> None:
        """Run the live reload server on its own loop in a daemon thread."""
        self._ws_task = self._loop.create_task(self._run_ws_server())
        self._ws_thread = threading.Thread(target=self._run_ws_loop, daemon=True)
        self._ws_thread.start()

    def _run_ws_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._ws_task)
        except OSError as exc:
            print(f"WebSocket server failed to start (port {self.ws_port}): {exc}")
        except asyncio.CancelledError:
            # stop() cancelled the task; leaving serve() closed the server
            pass
        finally:
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.close()

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, self.host, self.ws_port):
            await asyncio.Future()  # Run forever

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self) -> None:
        if not self._loop.is_running():
            return
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in list(self._ws_clients):
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)

    def _start_watcher(self) -> None:
        handler = ChangeHandler(self._watch_loop, self.root, self._ignored_dirs)
        observer = Observer()
        observer.schedule(handler, str(self.root), recursive=True)
        observer.start()
        self._observer = observer

    def rebuild(self) -> bool:
        """Rebuild the site and publish it.

        Content errors are reported and the remaining documents are published.
        Any other failure (a file locked mid-save, a broken ``_config.yml``) is
        reported and the previous build keeps being served until the next
        change.

        Returns:
            True if a new build was published.
        """
        print("Change detected; rebuilding...")
        try:
            result = build_site(self.root, self.include_drafts, output_dir=self.output_dir)
        except Exception as exc:
            print(f"Rebuild failed, still serving the previous build: {exc}")
            return False
        self._publish(result)
        self._broadcast_reload()
        return True

    def _publish(self, result: BuildResult) -> None:
        generation = self.snapshot.swap(result.tree)
        for issue in result.issues:
            print(f"  {issue.describe(self.root)}")
        if self.write_output:
            try:
                write_tree(result.tree, self.output_dir)
            except OSError as exc:
                print(f"Could not write {self.output_dir}: {exc}")
        status = "with errors" if result.issues else "ok"
        print(
            f"Build {generation}: {result.documents} documents, "
            f"{len(result.issues)} failed ({status})"
        )
