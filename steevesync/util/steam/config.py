"""Handle Steam configuration"""

import os
import sys

from steevesync.util import system
from steevesync.util.log import logger
from steevesync.util.steam.vdf import get_entry_case_insensitive, vdf_parse

STEAM_DATA_DIRS = (
    "~/.steam/debian-installation",
    "~/.steam",
    "~/.local/share/steam",
    "~/.local/share/Steam",
    "~/snap/steam/common/.local/share/Steam",
    "~/.steam/steam",
    "~/.var/app/com.valvesoftware.Steam/data/steam",
    "~/.var/app/com.valvesoftware.Steam/data/Steam",
    "~/Library/Application Support/Steam",
    "/usr/share/steam",
    "/usr/local/share/steam",
)

WINDOWS_STEAM_DIRS = (
    "C:/Program Files (x86)/Steam",
    "C:/Program Files/Steam",
)

STEAM_REGISTRY_KEYS = (
    ("HKEY_CURRENT_USER", r"Software\Valve\Steam", "SteamPath"),
    ("HKEY_LOCAL_MACHINE", r"SOFTWARE\WOW6432Node\Valve\Steam", "InstallPath"),
    ("HKEY_LOCAL_MACHINE", r"SOFTWARE\Valve\Steam", "InstallPath"),
)


def read_registry_steam_dirs():
    """Return the Steam install folders listed in the Windows registry"""
    if sys.platform != "win32":
        return []
    import winreg  # pylint: disable=import-error,import-outside-toplevel

    dirs = []
    for hive_name, key_path, value_name in STEAM_REGISTRY_KEYS:
        try:
            with winreg.OpenKey(getattr(winreg, hive_name), key_path) as key:
                dirs.append(winreg.QueryValueEx(key, value_name)[0])
        except OSError:
            continue
    return dirs


def get_steam_data_dirs():
    """Return every candidate location of a Steam installation, most likely first"""
    candidates = read_registry_steam_dirs()
    if sys.platform == "win32":
        for env_name in ("ProgramFiles(x86)", "ProgramFiles"):
            program_files = os.environ.get(env_name)
            if program_files:
                candidates.append(os.path.join(program_files, "Steam"))
        candidates += list(WINDOWS_STEAM_DIRS)
    candidates += [os.path.expanduser(candidate) for candidate in STEAM_DATA_DIRS]
    return candidates


def search_in_steam_dirs(file):
    """Find the (first) file/dir in all the Steam directories"""
    for candidate in get_steam_data_dirs():
        path = system.fix_path_case(os.path.join(candidate, file))
        if path and system.path_exists(path):
            return path


def get_steam_dir():
    """Main installation directory for Steam"""
    steamapps_dir = search_in_steam_dirs("steamapps")
    if steamapps_dir:
        return os.path.dirname(steamapps_dir.rstrip("/\\"))


def read_library_folders(steam_data_dir):
    """Read the Steam Library Folders config and return it as an object"""
    if not steam_data_dir:
        return None
    library_filename = system.fix_path_case(os.path.join(steam_data_dir, "steamapps", "libraryfolders.vdf"))
    if not system.path_exists(library_filename):
        library_filename = system.fix_path_case(os.path.join(steam_data_dir, "config", "libraryfolders.vdf"))
    if not system.path_exists(library_filename):
        return None
    with open(library_filename, "r", encoding="utf-8") as steam_library_file:
        library = vdf_parse(steam_library_file, {})
    try:
        library = get_entry_case_insensitive(library, ["libraryfolders"])
    except KeyError as ex:
        logger.error("Steam libraryfolders %s is empty: %s", library_filename, ex)
        return None
    # The contentstatsid key is unused and causes problems when looking for library paths.
    library.pop("contentstatsid", None)
    return library


def get_library_paths(library_config):
    """Return the library root folders declared in a libraryfolders config"""
    paths = []
    for entry in library_config.values():
        if isinstance(entry, dict):
            if entry.get("path") and entry.get("mounted", "1") == "1":
                paths.append(entry["path"])
        elif entry:
            # Old style libraryfolders.vdf maps an index to the path directly
            paths.append(entry)
    return paths


def get_steamapps_dirs(steam_dir=None):
    """Return a list of the Steam library main + custom steamapps folders."""
    steam_dir = steam_dir or get_steam_dir()
    if not steam_dir:
        return []
    dirs = []
    main_dir = system.fix_path_case(os.path.join(steam_dir, "steamapps"))
    if main_dir and os.path.isdir(main_dir):
        dirs.append(main_dir)

    library_config = read_library_folders(steam_dir)
    if library_config:
        for library_path in get_library_paths(library_config):
            path = system.fix_path_case(os.path.join(library_path, "steamapps"))
            if path and os.path.isdir(path):
                dirs.append(path)
    return system.list_unique_folders(dirs)
