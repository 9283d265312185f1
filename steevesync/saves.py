"""Save file location, backups and copies for both editions of the game.

A SaveEndpoint is one side of the sync. It knows where its save lives, how
to recognize the save file by name, and where to keep backups of saves it
is about to overwrite. Both editions share the same algorithm; they only
differ by directories and by their file naming rule.
"""
import os
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

from steevesync import settings
from steevesync.exceptions import DirectoryCreationError, NoSaveError, NotNewerError
from steevesync.util import system
from steevesync.util.log import logger
from steevesync.util.steam.appmanifest import find_app_install_path
from steevesync.util.xbox import get_xbox_save_dir

STEAM = "Steam"
XBOX = "Xbox"


def is_steam_save_name(filename: str) -> bool:
    """Steam saves are named after the player, like 76561197960287930_Player.sav"""
    return filename.endswith(settings.STEAM_SAVE_SUFFIX)


def is_xbox_save_name(filename: str) -> bool:
    """Xbox saves are blobs named with 32 hexadecimal characters"""
    return len(filename) == 32 and all(char in "0123456789abcdefABCDEF" for char in filename)


def backup_filename(filename, timestamp):
    """Name of the backup of `filename` taken at `timestamp` (Unix seconds)"""
    return "%d_%s" % (timestamp, filename)


@dataclass(frozen=True)
class SaveEndpoint:
    """One side of the sync: a save directory, its backups and retention limit"""

    name: str
    save_dir: str
    backup_dir: str
    max_backups: int
    is_save_name: Callable[[str], bool] = field(repr=False, compare=False)

    def __post_init__(self):
        settings.validate_max_backups(self.max_backups)

    def save_file(self, path) -> Optional[str]:
        """Get the file (leaf) name if the path looks like the current save file."""
        filename = os.path.basename(path)
        if filename and os.path.isfile(path) and self.is_save_name(filename):
            return filename
        return None

    def locate_save(self) -> Optional[Tuple[str, str]]:
        """Find a file in the save directory that looks like the current save file."""
        for path in system.walk_files(self.save_dir):
            filename = self.save_file(path)
            if filename:
                return path, filename
        return None

    def copy_save(self, from_path, before_overwrite=None):
        """Copy the given save file over the one we can locate.

        Raises NoSaveError if this endpoint has no save yet and NotNewerError
        if `from_path` isn't strictly more recent than the current save.
        `before_overwrite` is called with the destination path right before
        it gets written.
        """
        located = self.locate_save()
        if not located:
            raise NoSaveError(endpoint=self.name)
        to_path, filename = located

        # Compare the file modify times
        from_time = os.stat(from_path).st_mtime_ns
        to_time = os.stat(to_path).st_mtime_ns
        if from_time <= to_time:
            raise NotNewerError()

        # Backup the destination save file
        self.backup(to_path, filename)

        if before_overwrite:
            before_overwrite(to_path)

        logger.info("Steeve is syncing a new save to %s", self.name)
        logger.debug("Copy %s save: %s -> %s", self.name, from_path, to_path)
        system.copy_file(from_path, to_path)
        return to_path

    def backup(self, save_path, filename) -> bool:
        """Backup the save file. Return False if an identical backup exists."""
        if self.is_dupe_backup(save_path):
            logger.debug("%s save backup de-duped: %s", self.name, save_path)
            return False

        self.remove_old_backups()

        backup_path = os.path.join(self.backup_dir, backup_filename(filename, int(time.time())))
        logger.debug("Backup %s save: %s -> %s", self.name, save_path, backup_path)
        system.copy_file(save_path, backup_path, keep_mtime=False)
        return True

    def is_dupe_backup(self, save_path) -> bool:
        """Check if the file is already backed up."""
        save_hash = system.get_file_checksum(save_path)
        save_size = os.path.getsize(save_path)
        for backup_path in system.list_files(self.backup_dir):
            try:
                if os.path.getsize(backup_path) != save_size:
                    continue
                if system.get_file_checksum(backup_path) == save_hash:
                    return True
            except OSError as ex:
                logger.debug("Can't read %s backup %s: %s", self.name, backup_path, ex)
        return False

    def get_backups(self):
        """Return the backup files, oldest first"""
        return sorted(
            system.list_files(self.backup_dir),
            key=lambda path: (system.get_mtime_ns(path), os.path.basename(path)),
        )

    def remove_old_backups(self):
        """Delete the oldest backups so that one more can be written without
        going over the retention limit."""
        backups = self.get_backups()
        keep = self.max_backups - 1
        for path in backups[:max(len(backups) - keep, 0)]:
            logger.debug("Removing old %s backup: %s", self.name, path)
            os.remove(path)


def create_endpoint(name, save_dir, backup_root, max_backups, is_save_name):
    """Build an endpoint and make sure its backup directory exists"""
    backup_dir = os.path.join(backup_root, name)
    endpoint = SaveEndpoint(
        name=name,
        save_dir=os.path.abspath(save_dir),
        backup_dir=os.path.abspath(backup_dir),
        max_backups=max_backups,
        is_save_name=is_save_name,
    )
    try:
        system.create_folder(endpoint.backup_dir)
    except OSError as ex:
        raise DirectoryCreationError(directory=endpoint.backup_dir) from ex
    logger.debug("%s saves: %s, backups: %s", name, endpoint.save_dir, endpoint.backup_dir)
    return endpoint


def steam_endpoint(max_backups, backup_root, save_dir=None):
    """Endpoint for the Steam edition, located through the Steam libraries
    unless `save_dir` is given."""
    if not save_dir:
        save_dir = os.path.join(find_app_install_path(settings.DRG_APP_ID), settings.STEAM_SAVE_SUBDIR)
    return create_endpoint(STEAM, save_dir, backup_root, max_backups, is_steam_save_name)


def xbox_endpoint(max_backups, backup_root, save_dir=None):
    """Endpoint for the Xbox edition, located in the local app data unless
    `save_dir` is given."""
    if not save_dir:
        save_dir = get_xbox_save_dir()
    return create_endpoint(XBOX, save_dir, backup_root, max_backups, is_xbox_save_name)
