"""Internal settings."""

import os

import platformdirs
import yaml

from steevesync import __version__
from steevesync.exceptions import InvalidMaxBackupsError, MisconfigurationError
from steevesync.util.log import logger
from steevesync.util.system import path_exists, resolve_user_dir

PROJECT = "Steeve-Sync"
VERSION = __version__
APP_NAME = "SteeveSync"
APP_AUTHOR = "KodeWerx"

# Paths, empty when the home directory can't be resolved
DATA_DIR = resolve_user_dir(platformdirs.user_data_dir, APP_NAME, APP_AUTHOR)
CONFIG_DIR = resolve_user_dir(platformdirs.user_config_dir, APP_NAME, APP_AUTHOR) or DATA_DIR
CACHE_DIR = resolve_user_dir(platformdirs.user_cache_dir, APP_NAME, APP_AUTHOR)
LOG_DIR = CACHE_DIR
BACKUP_DIR = os.path.join(DATA_DIR, "Backups") if DATA_DIR else ""
CONFIG_FILE = os.path.join(CONFIG_DIR, "steevesync.yml") if CONFIG_DIR else ""

# Steam app ID for Deep Rock Galactic.
# See: https://steamdb.info/app/548430/
DRG_APP_ID = 548430
STEAM_SAVE_SUBDIR = os.path.join("FSD", "Saved", "SaveGames")
STEAM_SAVE_SUFFIX = "_Player.sav"

DEFAULT_MAX_BACKUPS = 10
DEFAULT_DEBOUNCE_DELAY = 0.5

DEFAULT_CONFIG = {
    "max_backups": DEFAULT_MAX_BACKUPS,
    "debounce_delay": DEFAULT_DEBOUNCE_DELAY,
    "initial_sync": False,
    "backup_dir": "",
    "steam_save_dir": "",
    "xbox_save_dir": "",
}


def validate_max_backups(max_backups):
    """Return `max_backups` if it's a usable retention limit"""
    if isinstance(max_backups, bool) or not isinstance(max_backups, int) or max_backups < 1:
        raise InvalidMaxBackupsError(max_backups)
    return max_backups


def validate_config(config):
    """Check the types of a configuration dict, raising MisconfigurationError"""
    validate_max_backups(config["max_backups"])
    delay = config["debounce_delay"]
    if isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0:
        raise MisconfigurationError("debounce_delay must be a positive number, got %r" % (delay,))
    if not isinstance(config["initial_sync"], bool):
        raise MisconfigurationError("initial_sync must be true or false, got %r" % (config["initial_sync"],))
    for key in ("backup_dir", "steam_save_dir", "xbox_save_dir"):
        if not isinstance(config[key], str):
            raise MisconfigurationError("%s must be a path, got %r" % (key, config[key]))
    return config


def read_config_file(filename):
    """Parse the YAML configuration file. A missing or empty file holds no
    settings, anything else than a mapping is a MisconfigurationError."""
    if not path_exists(filename):
        return {}
    try:
        with open(filename, "r", encoding="utf-8") as config_file:
            content = yaml.safe_load(config_file)
    except yaml.YAMLError as ex:
        raise MisconfigurationError("Can't parse configuration file %s: %s" % (filename, ex)) from ex
    except OSError as ex:
        raise MisconfigurationError("Can't read configuration file %s: %s" % (filename, ex)) from ex
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise MisconfigurationError("Configuration file %s must contain a mapping of settings" % filename)
    return content


def read_config(filename=None):
    """Read the YAML configuration, filling missing keys with defaults"""
    filename = filename or CONFIG_FILE
    config = dict(DEFAULT_CONFIG)
    file_config = read_config_file(filename) if filename else {}
    for key, value in file_config.items():
        if key not in DEFAULT_CONFIG:
            logger.warning("Unknown setting '%s' in %s", key, filename)
            continue
        if value is None:
            continue
        config[key] = value
    for key in ("backup_dir", "steam_save_dir", "xbox_save_dir"):
        if isinstance(config[key], str) and config[key]:
            config[key] = os.path.expanduser(config[key])
    return validate_config(config)


def write_config(config, filename=None):
    """Persist the known keys of `config` to the YAML configuration file.
    The file is replaced atomically so a failed write keeps the old one."""
    filename = filename or CONFIG_FILE
    if not filename:
        raise MisconfigurationError("No configuration file location")
    content = yaml.safe_dump(
        {key: config.get(key, value) for key, value in DEFAULT_CONFIG.items()},
        default_flow_style=False,
        sort_keys=False,
    )
    temp_path = filename + ".tmp"
    try:
        os.makedirs(os.path.dirname(os.path.abspath(filename)), exist_ok=True)
        with open(temp_path, "w", encoding="utf-8") as config_file:
            config_file.write(content)
        os.replace(temp_path, filename)
    except OSError as ex:
        raise MisconfigurationError("Can't write configuration file %s: %s" % (filename, ex)) from ex
    finally:
        if os.path.isfile(temp_path):
            os.unlink(temp_path)
