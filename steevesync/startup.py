"""Command line entry point"""
import argparse
import signal
import sys
import threading

from steevesync import settings
from steevesync.exceptions import SteeveError
from steevesync.sync import create_save_sync
from steevesync.util.log import debug_buffer, init_logging, logger


def get_parser():
    parser = argparse.ArgumentParser(
        prog="steeve-sync",
        description="Synchronize your Deep Rock Galactic saves between the Xbox and Steam editions.",
    )
    parser.add_argument("-c", "--config", help="YAML configuration file (default: %s)" % settings.CONFIG_FILE)
    parser.add_argument("-m", "--max-backups", type=int, help="Backups to keep for each edition")
    parser.add_argument("--backup-dir", help="Directory holding the Steam and Xbox backup folders")
    parser.add_argument("--steam-save-dir", help="Steam save directory, found through Steam if not set")
    parser.add_argument("--xbox-save-dir", help="Xbox save directory, found in the local app data if not set")
    parser.add_argument("--debounce-delay", type=float, help="Seconds to wait for a save to settle")
    parser.add_argument("--initial-sync", action="store_true", default=None, help="Sync both saves when starting")
    parser.add_argument("--sync-now", action="store_true", help="Sync both saves once and exit")
    parser.add_argument("--write-config", action="store_true", help="Save the resulting settings to the config file")
    parser.add_argument("-d", "--debug", action="store_true", help="Show debug messages")
    return parser


def get_config(options):
    """Read the configuration file and apply command line overrides"""
    logger.debug("Reading configuration from %s", options.config or settings.CONFIG_FILE)
    config = settings.read_config(options.config)
    overrides = {
        "max_backups": options.max_backups,
        "backup_dir": options.backup_dir,
        "steam_save_dir": options.steam_save_dir,
        "xbox_save_dir": options.xbox_save_dir,
        "debounce_delay": options.debounce_delay,
        "initial_sync": options.initial_sync,
    }
    config.update({key: value for key, value in overrides.items() if value is not None})
    return settings.validate_config(config)


def wait_for_exit():
    """Block until the process is asked to terminate"""
    stop_event = threading.Event()

    def on_signal(_signum, _frame):
        stop_event.set()

    signal.signal(signal.SIGINT, on_signal)
    signal.signal(signal.SIGTERM, on_signal)
    while not stop_event.is_set():
        stop_event.wait(1)


def print_recent_log(stream=None):
    """Write the buffered debug history, to explain what led to a fatal error"""
    lines = debug_buffer.lines()
    if not lines:
        return
    stream = stream or sys.stderr
    stream.write("Recent log messages:\n")
    for line in lines:
        stream.write(line + "\n")


def run(options):
    config = get_config(options)
    if options.write_config:
        settings.write_config(config, options.config)
        logger.info("Settings saved to %s", options.config or settings.CONFIG_FILE)

    logger.info("Welcome, miners!")
    save_sync = create_save_sync(config)

    if options.sync_now:
        save_sync.sync_now()
        return

    save_sync.start()
    logger.info("Steeve is waiting for bugs to kill...")
    try:
        wait_for_exit()
    finally:
        save_sync.stop()
    logger.info("See you next mission!")


def main(argv=None):
    options = get_parser().parse_args(argv)
    init_logging(debug=options.debug, log_dir=settings.LOG_DIR)
    try:
        run(options)
    except SteeveError as ex:
        logger.error("Error: %s", ex.message)
        if not options.debug:
            print_recent_log()
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
