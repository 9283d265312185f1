"""Exception handling module"""


class SteeveError(Exception):
    """Base exception for Steeve-Sync related errors"""

    def __init__(self, message, *args, **kwarg):
        super().__init__(message, *args, **kwarg)
        self.message = message
        self.is_expected = False


class MisconfigurationError(SteeveError):
    """Raised for incorrect configuration or installation, like invalid
    settings or save directories that can't be found. The service never
    starts when one of these is raised. This has subclasses that are less vague."""


class InvalidMaxBackupsError(MisconfigurationError):
    """Raised when the backup retention limit is not a positive integer."""

    def __init__(self, max_backups=None, *args, **kwarg):
        super().__init__("Max backups must be > 0, got %r" % (max_backups,), *args, **kwarg)
        self.max_backups = max_backups


class HomeDirectoryError(MisconfigurationError):
    """Raised when the user's home or data directory can't be resolved."""

    def __init__(self, message=None, *args, **kwarg):
        super().__init__(message or "Could not find home directory", *args, **kwarg)


class SteamNotFoundError(MisconfigurationError):
    """Raised when no Steam installation can be located."""

    def __init__(self, message=None, *args, **kwarg):
        super().__init__(message or "Could not find Steam", *args, **kwarg)


class SteamAppNotFoundError(MisconfigurationError):
    """Raised when the game is not installed in any Steam library."""

    def __init__(self, message=None, appid=None, *args, **kwarg):
        if not message:
            message = "Could not find Deep Rock Galactic on Steam"
        super().__init__(message, *args, **kwarg)
        self.appid = appid


class DirectoryCreationError(MisconfigurationError):
    """Raised when a directory that is required can't be created."""

    def __init__(self, message=None, directory=None, *args, **kwarg):
        if not message and directory:
            message = "Unable to create directory: {}".format(directory)
        super().__init__(message, *args, **kwarg)
        self.directory = directory


class WatcherError(SteeveError):
    """Raised when a file system watch can't be established."""

    def __init__(self, message, directory=None, *args, **kwarg):
        super().__init__(message, *args, **kwarg)
        self.directory = directory


class SaveError(SteeveError):
    """Steady state conditions of the copy engine. These are not failures,
    the orchestrator absorbs them."""

    def __init__(self, message, *args, **kwarg):
        super().__init__(message, *args, **kwarg)
        self.is_expected = True


class NoSaveError(SaveError):
    """Raised when an endpoint has no save file to overwrite yet."""

    def __init__(self, message=None, endpoint=None, *args, **kwarg):
        if not message:
            message = "No save file" if not endpoint else "No {} save file".format(endpoint)
        super().__init__(message, *args, **kwarg)
        self.endpoint = endpoint


class NotNewerError(SaveError):
    """Raised when the destination was modified at the same time or more
    recently than the source."""

    def __init__(self, message=None, *args, **kwarg):
        super().__init__(message or "Destination was modified more recently than source", *args, **kwarg)
