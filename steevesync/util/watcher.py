"""Debounced recursive directory watcher"""
import os
import threading
import time
from collections import namedtuple

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from steevesync.exceptions import WatcherError
from steevesync.util.log import logger

CREATED = "created"
MODIFIED = "modified"
DELETED = "deleted"

DebouncedEvent = namedtuple("DebouncedEvent", ("kind", "path"))


def merge_event_kinds(previous, current):
    """Kind reported for a path that got `current` while `previous` was pending"""
    if previous == CREATED and current == MODIFIED:
        return CREATED
    return current


class SaveWatcher(FileSystemEventHandler):
    """Watches a directory tree and reports file changes once they settle.

    Raw events are collected per path; a path is reported to `callback` with
    a DebouncedEvent once no new event arrived for it during `delay` seconds.
    Callbacks run one after the other on the watcher's own thread.
    """

    def __init__(self, name, path, callback, delay=0.5):
        super().__init__()
        self.name = name
        self.path = path
        self.callback = callback
        self.delay = delay
        self.observer = None
        self._pending = {}  # path -> (kind, deadline)
        self._pending_lock = threading.Lock()
        self._wakeup = threading.Event()
        self._stop_request = threading.Event()
        self._thread = None

    def __repr__(self):
        return "<SaveWatcher %s: %s>" % (self.name, self.path)

    @property
    def is_running(self):
        return self._thread is not None

    def start(self):
        """Start watching, raise WatcherError if the watch can't be established"""
        if self.is_running:
            return
        if not os.path.isdir(self.path):
            raise WatcherError("%s path is not a directory: %s" % (self.name, self.path), directory=self.path)
        observer = Observer()
        try:
            observer.schedule(self, self.path, recursive=True)
            observer.start()
        except OSError as ex:
            raise WatcherError("Can't watch %s path %s: %s" % (self.name, self.path, ex), directory=self.path) from ex
        self.observer = observer
        self._stop_request.clear()
        self._thread = threading.Thread(target=self._run, name="%s-watcher" % self.name, daemon=True)
        self._thread.start()
        logger.debug("Watching %s folder %s", self.name, self.path)

    def stop(self, timeout=5):
        """Stop watching. Safe to call several times, and when the watched
        directory is gone. Pending events are dropped."""
        if not self.is_running:
            return
        observer, self.observer = self.observer, None
        try:
            observer.unschedule_all()
            observer.stop()
            observer.join(timeout)
        except Exception as ex:  # pylint: disable=broad-except
            logger.warning("Failed to stop watching %s folder %s: %s", self.name, self.path, ex)
        self._stop_request.set()
        self._wakeup.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None
        with self._pending_lock:
            self._pending.clear()
        logger.debug("Stopped watching %s folder %s", self.name, self.path)

    def on_created(self, event):
        if not event.is_directory:
            self.queue_event(CREATED, event.src_path)

    def on_modified(self, event):
        if not event.is_directory:
            self.queue_event(MODIFIED, event.src_path)

    def on_deleted(self, event):
        if not event.is_directory:
            self.queue_event(DELETED, event.src_path)

    def on_moved(self, event):
        # Saves written through a temporary file show up as a move
        if not event.is_directory:
            self.queue_event(DELETED, event.src_path)
            self.queue_event(CREATED, event.dest_path)

    def queue_event(self, kind, path, now=None):
        """Record a raw event for `path`, pushing back its deadline"""
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        now = time.monotonic() if now is None else now
        with self._pending_lock:
            previous = self._pending.get(path)
            if previous:
                kind = merge_event_kinds(previous[0], kind)
            self._pending[path] = (kind, now + self.delay)
        self._wakeup.set()

    def dispatch_pending(self, now=None):
        """Deliver the events whose deadline passed. Return the number of
        seconds until the next deadline, or None if nothing is pending."""
        now = time.monotonic() if now is None else now
        with self._pending_lock:
            due = sorted(
                (deadline, path, kind)
                for path, (kind, deadline) in self._pending.items()
                if deadline <= now
            )
            for _deadline, path, _kind in due:
                del self._pending[path]
            deadlines = [deadline for _kind, deadline in self._pending.values()]
        for _deadline, path, kind in due:
            try:
                self.callback(DebouncedEvent(kind, path))
            except Exception as ex:  # pylint: disable=broad-except
                logger.exception("Error while handling %s event for %s: %s", self.name, path, ex)
        if not deadlines:
            return None
        return max(min(deadlines) - now, 0)

    def _run(self):
        while not self._stop_request.is_set():
            self._wakeup.clear()
            timeout = self.dispatch_pending()
            self._wakeup.wait(timeout)
