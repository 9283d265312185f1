"""Steam appmanifest file handling"""
import os
import re

from steevesync.exceptions import SteamAppNotFoundError, SteamNotFoundError
from steevesync.util.log import logger
from steevesync.util.steam.config import get_steam_dir, get_steamapps_dirs
from steevesync.util.steam.vdf import vdf_parse
from steevesync.util.system import fix_path_case, path_exists

APP_STATE_FLAGS = [
    "Invalid",
    "Uninstalled",
    "Update Required",
    "Fully Installed",
    "Encrypted",
    "Locked",
    "Files Missing",
    "AppRunning",
    "Files Corrupt",
    "Update Running",
    "Update Paused",
    "Update Started",
    "Uninstalling",
    "Backup Running",
    "Reconfiguring",
    "Validating",
    "Adding Files",
    "Preallocating",
    "Downloading",
    "Staging",
    "Committing",
    "Update Stopping",
]


class AppManifest:
    def __init__(self, appmanifest_path):
        self.appmanifest_path = appmanifest_path
        self.steamapps_path, filename = os.path.split(appmanifest_path)
        self.steamid = re.findall(r"(\d+)", filename)[-1]
        self.appmanifest_data = {}

        if path_exists(appmanifest_path):
            with open(appmanifest_path, "r", encoding="utf-8") as appmanifest_file:
                self.appmanifest_data = vdf_parse(appmanifest_file, {})
        else:
            logger.error("Path to AppManifest file %s doesn't exist", appmanifest_path)

    def __repr__(self):
        return "<AppManifest: %s>" % self.appmanifest_path

    @property
    def app_state(self):
        return self.appmanifest_data.get("AppState") or {}

    @property
    def name(self):
        _name = self.app_state.get("name")
        if not _name:
            _name = (self.app_state.get("UserConfig") or {}).get("name")
        return _name

    @property
    def installdir(self):
        return self.app_state.get("installdir")

    @property
    def states(self):
        """Return the states of a Steam game."""
        states = []
        state_flags = self.app_state.get("StateFlags", 0)
        state_flags = bin(int(state_flags))[:1:-1]
        for index, flag in enumerate(state_flags):
            if flag == "1" and index + 1 < len(APP_STATE_FLAGS):
                states.append(APP_STATE_FLAGS[index + 1])
        return states

    def is_installed(self):
        return "Fully Installed" in self.states

    def get_install_path(self):
        if not self.installdir:
            return None
        install_path = fix_path_case(os.path.join(self.steamapps_path, "common", self.installdir))
        if install_path and os.path.isdir(install_path):
            return install_path
        return None


def get_appmanifest_from_appid(steamapps_path, appid):
    """Given the steam apps path and appid, return the corresponding appmanifest"""
    if not steamapps_path:
        raise ValueError("steamapps_path is mandatory")
    if not path_exists(steamapps_path):
        raise IOError("steamapps_path must be a valid directory")
    if not appid:
        raise ValueError("Missing mandatory appid")
    appmanifest_path = os.path.join(steamapps_path, "appmanifest_%s.acf" % appid)
    if not path_exists(appmanifest_path):
        return None
    return AppManifest(appmanifest_path)


def find_app_install_path(appid, steam_dir=None):
    """Return the install path of `appid` across all Steam libraries.

    Raises SteamNotFoundError when Steam itself can't be located and
    SteamAppNotFoundError when no library holds the game.
    """
    steam_dir = steam_dir or get_steam_dir()
    if not steam_dir:
        raise SteamNotFoundError()
    for steamapps_path in get_steamapps_dirs(steam_dir):
        appmanifest = get_appmanifest_from_appid(steamapps_path, appid)
        if not appmanifest:
            continue
        install_path = appmanifest.get_install_path()
        if not install_path:
            continue
        if not appmanifest.is_installed():
            logger.warning("%s is not fully installed: %s", appmanifest.name, ", ".join(appmanifest.states))
        logger.debug("Found Steam app %s in %s", appid, install_path)
        return install_path
    raise SteamAppNotFoundError(appid=appid)
