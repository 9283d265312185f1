"""Two-way save synchronization service.

SaveSync watches the save directories of both editions. When a save file
changes on one side, it is copied over the save of the other side if it is
more recent, after the overwritten save was backed up.

Writing the destination save produces file system events on the destination
side. Those are filtered out by an IgnoreMarker; if the marker is missed,
the modification time check stops the reverse copy anyway since the copy
carries the source modification time over.
"""
import os
import threading
import time

from steevesync import settings
from steevesync.exceptions import HomeDirectoryError, SaveError, SteeveError
from steevesync.saves import steam_endpoint, xbox_endpoint
from steevesync.util.log import logger
from steevesync.util.watcher import DELETED, SaveWatcher

# Number of debounce windows an ignore marker stays valid for
IGNORE_MARKER_WINDOWS = 4
IGNORE_MARKER_MIN_TTL = 2.0


class IgnoreMarker:
    """Single slot advisory flag asking a watcher to skip the next event for
    a path. Arming it again replaces the previous request."""

    def __init__(self, ttl=IGNORE_MARKER_MIN_TTL):
        self.ttl = ttl
        self._lock = threading.Lock()
        self._path = None
        self._expires = 0.0

    def arm(self, path, now=None):
        now = time.monotonic() if now is None else now
        with self._lock:
            self._path = os.path.normcase(os.path.abspath(path))
            self._expires = now + self.ttl

    def try_consume(self, path, now=None):
        """Return True, and disarm, if the marker is set for `path` and still valid"""
        now = time.monotonic() if now is None else now
        path = os.path.normcase(os.path.abspath(path))
        with self._lock:
            if self._path is None:
                return False
            if now > self._expires:
                self._path = None
                return False
            if self._path != path:
                return False
            self._path = None
            return True

    def cancel(self, path):
        """Disarm the marker if it is set for `path`"""
        path = os.path.normcase(os.path.abspath(path))
        with self._lock:
            if self._path == path:
                self._path = None


class SaveSync:
    """The primary sync service."""

    def __init__(self, steam_save, xbox_save, debounce_delay=settings.DEFAULT_DEBOUNCE_DELAY, initial_sync=False):
        self.steam_save = steam_save
        self.xbox_save = xbox_save
        self.debounce_delay = debounce_delay
        self.initial_sync = initial_sync
        marker_ttl = max(IGNORE_MARKER_MIN_TTL, debounce_delay * IGNORE_MARKER_WINDOWS)
        self.ignore_markers = {
            steam_save.name: IgnoreMarker(marker_ttl),
            xbox_save.name: IgnoreMarker(marker_ttl),
        }
        self.watchers = []

    def __repr__(self):
        return "<SaveSync %s <-> %s>" % (self.steam_save.name, self.xbox_save.name)

    def start(self):
        """Start watching both save directories.

        Raises WatcherError if either directory can't be watched, in which
        case nothing is left running.
        """
        if self.watchers:
            return
        if self.initial_sync:
            self.sync_now()
        watchers = [
            SaveWatcher(
                self.steam_save.name,
                self.steam_save.save_dir,
                lambda event: self.handle_event(self.steam_save, self.xbox_save, event),
                delay=self.debounce_delay,
            ),
            SaveWatcher(
                self.xbox_save.name,
                self.xbox_save.save_dir,
                lambda event: self.handle_event(self.xbox_save, self.steam_save, event),
                delay=self.debounce_delay,
            ),
        ]
        started = []
        try:
            for watcher in watchers:
                watcher.start()
                started.append(watcher)
        except SteeveError:
            for watcher in started:
                watcher.stop()
            raise
        self.watchers = watchers

    def stop(self):
        """Stop watching for events. Errors are logged, never raised."""
        watchers, self.watchers = self.watchers, []
        for watcher in watchers:
            watcher.stop()

    def handle_event(self, source, destination, event):
        """Event handler for the save directory of `source`"""
        if event.kind == DELETED:
            return
        if source.save_file(event.path) is None:
            return
        if self.ignore_markers[source.name].try_consume(event.path):
            logger.debug("Ignoring self-induced event for %s path: %s", source.name, event.path)
            return

        logger.debug("Got %s event for %s path: %s", event.kind, source.name, event.path)
        self.copy_save(source, destination, event.path)

    def copy_save(self, source, destination, path):
        """Copy a save from `source` to `destination`.

        Return True if the destination save was overwritten, False if it was
        left alone because of a SaveError and None if the copy failed.
        """
        marker = self.ignore_markers[destination.name]
        armed = []

        def before_overwrite(to_path):
            marker.arm(to_path)
            armed.append(to_path)

        try:
            destination.copy_save(path, before_overwrite=before_overwrite)
        except SaveError as ex:
            logger.debug("Not syncing %s save to %s: %s", source.name, destination.name, ex)
            return False
        except (OSError, SteeveError) as ex:
            # The overwrite failed, the next real event must get through
            for to_path in armed:
                marker.cancel(to_path)
            logger.warning("%s save error: %s", destination.name, ex)
            return None
        return True

    def sync_now(self):
        """Copy the most recent of both saves over the other one.
        Return the endpoint that received a new save, if any."""
        in_sync = True
        for source, destination in ((self.steam_save, self.xbox_save), (self.xbox_save, self.steam_save)):
            located = source.locate_save()
            if not located:
                logger.debug("No %s save to sync", source.name)
                in_sync = False
                continue
            copied = self.copy_save(source, destination, located[0])
            if copied:
                return destination
            if copied is None:
                in_sync = False
        if in_sync:
            logger.info("Saves are in sync")
        return None


def create_save_sync(config):
    """Build the sync service from a configuration dict (see settings.read_config).

    Raises a MisconfigurationError if the saves or the backup location
    can't be found.
    """
    max_backups = settings.validate_max_backups(config["max_backups"])
    backup_root = config.get("backup_dir") or settings.BACKUP_DIR
    if not backup_root:
        raise HomeDirectoryError()
    steam_save = steam_endpoint(max_backups, backup_root, config.get("steam_save_dir") or None)
    xbox_save = xbox_endpoint(max_backups, backup_root, config.get("xbox_save_dir") or None)
    return SaveSync(
        steam_save,
        xbox_save,
        debounce_delay=config.get("debounce_delay", settings.DEFAULT_DEBOUNCE_DELAY),
        initial_sync=config.get("initial_sync", False),
    )
