"""Utility module for creating an application wide logger."""
import collections
import logging
import logging.handlers
import os
import sys
import threading

# Formatters
FILE_FORMATTER = logging.Formatter(
    "[%(levelname)s:%(asctime)s:%(module)s]: %(message)s"
)

SIMPLE_FORMATTER = logging.Formatter("%(asctime)s: %(message)s")

DEBUG_FORMATTER = logging.Formatter(
    "%(levelname)-8s %(asctime)s [%(module)s.%(funcName)s:%(lineno)s]:%(message)s"
)

LOG_FILENAME = "steevesync.log"

DEBUG_BUFFER_LINES = 1000


class MemoryLogHandler(logging.Handler):
    """Keeps the most recent formatted log lines in memory, dropping the
    oldest ones past `max_lines`."""

    def __init__(self, max_lines, level=logging.NOTSET):
        super().__init__(level)
        self.max_lines = max_lines
        self._lines = collections.deque(maxlen=max_lines)
        self._lines_lock = threading.Lock()

    def emit(self, record):
        try:
            message = self.format(record)
        except Exception:  # pylint: disable=broad-except
            self.handleError(record)
            return
        with self._lines_lock:
            for line in message.splitlines():
                if line:
                    self._lines.append(line)

    def lines(self):
        """Return a snapshot of the buffered lines, oldest first"""
        with self._lines_lock:
            return list(self._lines)

    def clear(self):
        with self._lines_lock:
            self._lines.clear()


logger = logging.getLogger("steevesync")
logger.setLevel(logging.DEBUG)

# Console output is set up at import, everything else in init_logging()
console_handler = logging.StreamHandler(stream=sys.stdout)
console_handler.setFormatter(SIMPLE_FORMATTER)
console_handler.setLevel(logging.INFO)
logger.addHandler(console_handler)

# Recent history, dumped when a fatal error stops the program
debug_buffer = MemoryLogHandler(DEBUG_BUFFER_LINES, logging.DEBUG)
debug_buffer.setFormatter(DEBUG_FORMATTER)


def init_logging(debug=False, log_dir=None):
    """Attach the file and in-memory handlers to the application logger.

    Params:
        debug (bool): Show debug messages on the console
        log_dir (str): Directory for the rotating log file, no file logging if empty
    """
    if debug:
        console_handler.setFormatter(DEBUG_FORMATTER)
        console_handler.setLevel(logging.DEBUG)
    if debug_buffer not in logger.handlers:
        logger.addHandler(debug_buffer)
    if not log_dir:
        return None
    log_path = os.path.abspath(os.path.join(log_dir, LOG_FILENAME))
    for handler in logger.handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler) and handler.baseFilename == log_path:
            return handler
    try:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(log_path, maxBytes=20971520, backupCount=5)
    except OSError as ex:
        logger.warning("Can't write log file %s: %s", log_path, ex)
        return None
    file_handler.setFormatter(FILE_FORMATTER)
    file_handler.setLevel(logging.DEBUG)
    logger.addHandler(file_handler)
    return file_handler
