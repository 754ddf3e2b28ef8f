"""File watching for the Quire dev server.

Watchdog observers run in their own thread and only put change events onto a
queue. The ``WatchLoop`` consumes that queue on the caller's thread: it waits for
a first event, keeps draining until the sources have been quiet for the debounce
window, then runs the rebuild callback once. Events that arrive while a rebuild
runs stay queued and lead to exactly one further rebuild.

Key classes:
- WatchLoop: Debouncing consumer of change events.
- ChangeHandler: Watchdog handler that forwards relevant events to a WatchLoop.
"""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from watchdog.events import FileSystemEventHandler

# Path components whose changes never affect a build
IGNORED_PARTS = ("node_modules", "vendor", "__pycache__")

# Reads by the builder raise "opened" and "closed_no_write" events on some platforms
CHANGE_EVENTS = ("created", "modified", "deleted", "moved", "closed")


class WatchLoop:
    """Coalesces bursts of change events into single rebuilds.

    Attributes:
        rebuild: Callback run once per batch of events.
        debounce: Seconds without new events before a batch is closed.
        max_wait: Upper bound on how long a continuous burst can delay a rebuild.
        poll_interval: How often a blocked wait checks the stop flag.
    """

    def __init__(
        self,
        rebuild: Callable[[], object],
        debounce: float = 0.2,
        max_wait: float = 2.0,
        poll_interval: float = 0.5,
    ):
        self.rebuild = rebuild
        self.debounce = debounce
        self.max_wait = max_wait
        self.poll_interval = poll_interval
        self.events: queue.Queue[str] = queue.Queue()
        self.rebuilds = 0

    def notify(self, path: str) -> None:
        """Queue a change event. Safe to call from any thread."""
        self.events.put(path)

    def next_batch(self, stop: threading.Event) -> list[str]:
        """Block until a debounced batch of events is available.

        Args:
            stop: Flag checked while waiting for the first event.

        Returns:
            The changed paths of one batch, or an empty list once ``stop`` is set.
        """
        while True:
            if stop.is_set():
                return []
            try:
                first = self.events.get(timeout=self.poll_interval)
                break
            except queue.Empty:
                continue
        batch = [first]
        started = time.monotonic()
        deadline = started + self.debounce
        while True:
            remaining = min(deadline, started + self.max_wait) - time.monotonic()
            if remaining <= 0:
                break
            try:
                batch.append(self.events.get(timeout=remaining))
            except queue.Empty:
                break
            deadline = time.monotonic() + self.debounce
        return batch

    def run_once(self, stop: threading.Event) -> bool:
        """Wait for one batch and rebuild.

        Returns:
            True if a rebuild ran, False if the loop was stopped first.
        """
        batch = self.next_batch(stop)
        if not batch:
            return False
        self.rebuilds += 1
        self.rebuild()
        return True

    def run(self, stop: threading.Event) -> None:
        """Rebuild after every batch until ``stop`` is set."""
        while not stop.is_set():
            self.run_once(stop)


class ChangeHandler(FileSystemEventHandler):
    """Forwards source changes to a WatchLoop.

    Directory events, hidden files (editor swap files, ``.git``), paths under
    the ignored directories (the output directory and its staging siblings)
    and vendored dependencies are dropped.
    """

    def __init__(self, loop: WatchLoop, root: Path, ignored_dirs: Iterable[Path] = ()):
        super().__init__()
        self.loop = loop
        self.root = root.resolve()
        self.ignored_dirs = [Path(p).resolve() for p in ignored_dirs]

    def on_any_event(self, event):
        if event.is_directory or event.event_type not in CHANGE_EVENTS:
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(dest)
        for raw in paths:
            path = Path(raw if isinstance(raw, str) else raw.decode())
            if self.is_relevant(path):
                self.loop.notify(str(path))
                return

    def is_relevant(self, path: Path) -> bool:
        path = path.resolve()
        for ignored in self.ignored_dirs:
            if path == ignored or ignored in path.parents:
                return False
        try:
            rel = path.relative_to(self.root)
        except ValueError:
            return False
        if any(part.startswith(".") for part in rel.parts):
            return False
        if any(part in IGNORED_PARTS for part in rel.parts):
            return False
        return not rel.name.endswith("~")
