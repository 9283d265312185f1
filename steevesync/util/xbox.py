"""Locate the Xbox (Microsoft Store) edition's save container"""
import os

import platformdirs

from steevesync.exceptions import HomeDirectoryError
from steevesync.util.system import resolve_user_dir

DRG_PACKAGE_NAME = "CoffeeStainStudios.DeepRockGalactic_496a1srhmar9w"

# The wgs container holding the player's save blobs
DRG_WGS_CONTAINER = "000901F266032D3B_882901006F2042808DB0569531F199CB"


def get_local_data_dir():
    """Machine local application data root (%LOCALAPPDATA% on Windows)"""
    local_data_dir = resolve_user_dir(platformdirs.user_data_dir, roaming=False)
    if not local_data_dir:
        raise HomeDirectoryError()
    return local_data_dir


def get_package_dir(package_name=DRG_PACKAGE_NAME, local_data_dir=None):
    """Return the data folder of an installed Store package"""
    local_data_dir = local_data_dir or get_local_data_dir()
    return os.path.join(local_data_dir, "Packages", package_name)


def get_xbox_save_dir(local_data_dir=None):
    """Return the directory the Xbox edition writes its save blobs to"""
    return os.path.join(
        get_package_dir(local_data_dir=local_data_dir),
        "SystemAppData",
        "wgs",
        DRG_WGS_CONTAINER,
    )
