"""Polling watcher for the routes source and the database directory."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable

import structlog

LOGGER = structlog.get_logger("mockup_server")

DEFAULT_POLL_INTERVAL = 1.0

Snapshot = dict[str, tuple[int, int]]


def _snapshot(path: Path) -> Snapshot:
    entries: Snapshot = {}
    if path.is_file():
        candidates = [path]
    elif path.is_dir():
        candidates = [item for item in path.rglob("*") if item.is_file()]
    else:
        candidates = []
    for item in candidates:
        try:
            stat = item.stat()
        except OSError:
            continue
        entries[str(item)] = (stat.st_mtime_ns, stat.st_size)
    return entries


class FileWatcher:
    """Calls ``on_change(path)`` for every file added, changed or removed under the watched paths."""

    def __init__(
        self,
        paths: dict[str, Path],
        on_change: Callable[[str], None],
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._paths = paths
        self._on_change = on_change
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._snapshots = {label: _snapshot(path) for label, path in paths.items()}

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="mockup-watcher", daemon=True)
        self._thread.start()
        LOGGER.debug("watcher_started", paths={label: str(path) for label, path in self._paths.items()})

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval * 2)
            self._thread = None

    def poll(self) -> list[str]:
        """Compare against the last snapshot once and report the changed paths."""

        changed: list[str] = []
        for label, path in self._paths.items():
            current = _snapshot(path)
            previous = self._snapshots[label]
            self._snapshots[label] = current
            for name in sorted(set(current) | set(previous)):
                if current.get(name) == previous.get(name):
                    continue
                if name not in previous:
                    event = "file_added"
                elif name not in current:
                    event = "file_removed"
                else:
                    event = "file_changed"
                if label == "routes":
                    LOGGER.warning(event, watched=label, path=name)
                else:
                    LOGGER.info(event, watched=label, path=name)
                changed.append(name)
        for name in changed:
            self._on_change(name)
        return changed

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.poll()
            except Exception:
                LOGGER.exception("watcher_failed")
