"""
File system watcher that turns source edits into change sets.

This module provides:
- Watchdog-based monitoring of .tex files under the corpus root
- Debouncing of editor save cycles
- Content hashing so touch-only saves do not trigger rebuilds
"""

import hashlib
import logging
import threading
import time
from pathlib import Path
from typing import Callable, Iterable

from watchdog.events import (
    FileSystemEventHandler,
    FileCreatedEvent,
    FileModifiedEvent,
    FileDeletedEvent,
    FileMovedEvent,
)
from watchdog.observers import Observer

from .corpus.paths import SOURCE_SUFFIX

logger = logging.getLogger(__name__)


def compute_file_hash(path: Path) -> str | None:
    try:
        return hashlib.sha256(path.read_bytes()).hexdigest()
    except OSError:
        return None


class CorpusEventHandler(FileSystemEventHandler):
    """
    Collects changed .tex paths and releases them once they settle.

    Key behaviors:
    - Debounces rapid modifications
    - Drops modifications that leave the content unchanged
    - Ignores hidden paths and anything under the skipped directories
    """

    DEBOUNCE_SECONDS = 1.0

    def __init__(
        self,
        corpus_root: Path,
        on_changes: Callable[[list[str]], Iterable[Path] | None] | None = None,
        skip: Iterable[Path] = (),
        debounce: float | None = None,
    ):
        super().__init__()
        self.corpus_root = corpus_root.resolve()
        self.on_changes = on_changes
        self.skip = [p.resolve() for p in skip]
        self.debounce = self.DEBOUNCE_SECONDS if debounce is None else debounce

        # path -> time of last event; written by the observer thread
        self.pending: dict[str, float] = {}
        self._lock = threading.Lock()

        # path -> last seen content hash
        self.file_hashes: dict[str, str] = {}

    def _is_relevant(self, path: str) -> bool:
        p = Path(path)
        if p.suffix.lower() != SOURCE_SUFFIX:
            return False
        try:
            rel = p.resolve().relative_to(self.corpus_root)
        except ValueError:
            return False
        if any(part.startswith(".") for part in rel.parts):
            return False
        if any(p.resolve().is_relative_to(d) for d in self.skip):
            return False
        return True

    def _relative(self, path: str) -> str:
        return Path(path).resolve().relative_to(self.corpus_root).as_posix()

    def _touch(self, path: str, timestamp: float | None = None) -> None:
        with self._lock:
            self.pending[path] = time.time() if timestamp is None else timestamp

    def remember(self, paths: Iterable[Path]) -> None:
        """Record current hashes, e.g. after we rewrote these files ourselves."""
        for path in paths:
            digest = compute_file_hash(path)
            if digest:
                self.file_hashes[str(path.resolve())] = digest

    def flush_pending(self, now: float | None = None) -> list[str]:
        """Release paths whose debounce window has passed.

        Returns corpus-relative paths; the callback is invoked with the same
        list when it is not empty. Files the callback reports having written
        are remembered so they do not come back as changes.
        """
        now = time.time() if now is None else now
        with self._lock:
            ready = [p for p, ts in list(self.pending.items()) if now - ts >= self.debounce]
            for path_str in ready:
                del self.pending[path_str]

        changed = []
        for path_str in ready:
            path = Path(path_str)
            key = str(path.resolve())

            if path.exists():
                digest = compute_file_hash(path)
                if digest is not None and digest == self.file_hashes.get(key):
                    continue
                if digest is not None:
                    self.file_hashes[key] = digest
            else:
                self.file_hashes.pop(key, None)

            changed.append(self._relative(path_str))

        changed.sort()
        if changed and self.on_changes:
            written = self.on_changes(changed)
            if written:
                self.remember(written)
        return changed

    def on_created(self, event: FileCreatedEvent) -> None:
        if event.is_directory or not self._is_relevant(event.src_path):
            return
        self._touch(event.src_path)

    def on_modified(self, event: FileModifiedEvent) -> None:
        if event.is_directory or not self._is_relevant(event.src_path):
            return
        self._touch(event.src_path)

    def on_deleted(self, event: FileDeletedEvent) -> None:
        if event.is_directory or not self._is_relevant(event.src_path):
            return
        self._touch(event.src_path)

    def on_moved(self, event: FileMovedEvent) -> None:
        if event.is_directory:
            return
        # A move changes both the old identity (now gone) and the new one
        if self._is_relevant(event.src_path):
            self._touch(event.src_path)
        if self._is_relevant(event.dest_path):
            self._touch(event.dest_path)


def watch_corpus(
    corpus_root: Path,
    on_changes: Callable[[list[str]], Iterable[Path] | None] | None = None,
    skip: Iterable[Path] = (),
) -> tuple[Observer, CorpusEventHandler]:
    """
    Start watching a corpus.

    Returns:
        Tuple of (observer, handler) - caller should call observer.stop() to stop watching
    """
    handler = CorpusEventHandler(corpus_root, on_changes=on_changes, skip=skip)

    observer = Observer()
    observer.schedule(handler, str(corpus_root), recursive=True)
    observer.start()

    return observer, handler


def run_watch_loop(
    corpus_root: Path,
    on_changes: Callable[[list[str]], Iterable[Path] | None],
    skip: Iterable[Path] = (),
) -> None:
    """
    Run the watch loop until interrupted.

    Blocking; flushes settled changes every half second.
    """
    observer, handler = watch_corpus(corpus_root, on_changes=on_changes, skip=skip)
    logger.debug("Watching %s", corpus_root)

    try:
        while True:
            time.sleep(0.5)
            handler.flush_pending()
    except KeyboardInterrupt:
        pass
    finally:
        observer.stop()
        observer.join()
