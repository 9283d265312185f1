"""System utilities"""
import hashlib
import os
import shutil

from steevesync.util.log import logger


def resolve_user_dir(dir_function, *args, **kwargs):
    """Call a platformdirs lookup and return its absolute result, or an empty
    string if the folder can't be resolved on this system."""
    try:
        path = dir_function(*args, **kwargs)
    except (OSError, ValueError, KeyError) as ex:
        logger.debug("Can't resolve user folder: %s", ex)
        return ""
    # An unresolvable home directory is left as "~" by os.path.expanduser
    if not path or not os.path.isabs(path):
        return ""
    return path


def get_file_checksum(filename, hash_type="md5"):
    """Return the checksum of type `hash_type` for a given filename"""
    hasher = hashlib.new(hash_type)
    with open(filename, "rb") as input_file:
        for chunk in iter(lambda: input_file.read(8192), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def get_mtime_ns(path):
    """Return the modification time of `path` in nanoseconds, or 0 if its
    metadata can't be read."""
    try:
        return os.stat(path).st_mtime_ns
    except OSError as ex:
        logger.debug("Can't read metadata of %s: %s", path, ex)
        return 0


def list_files(path):
    """Return the regular files directly inside `path`, not recursive"""
    files = []
    with os.scandir(path) as entries:
        for entry in entries:
            try:
                if entry.is_file(follow_symlinks=False):
                    files.append(entry.path)
            except OSError:
                continue
    return files


def walk_files(path):
    """Yield every regular file under `path`, depth first, in a stable order.
    A missing or unreadable directory yields nothing."""
    for root, dirs, files in os.walk(path):
        dirs.sort()
        for filename in sorted(files):
            file_path = os.path.join(root, filename)
            if os.path.isfile(file_path):
                yield file_path


def create_folder(path):
    """Creates a folder specified by path"""
    if not path:
        return
    path = os.path.expanduser(path)
    os.makedirs(path, exist_ok=True)
    return path


def copy_file(source, destination, keep_mtime=True):
    """Copy `source` over `destination`. Unless `keep_mtime` is False, the
    copy carries the modification time of `source`."""
    if keep_mtime:
        return shutil.copy2(source, destination)
    return shutil.copy(source, destination)


def fix_path_case(path):
    """Do a case-insensitive check, return the real path with correct case. If the path is
    not for a real file, this corrects as many components as do exist."""
    if not path or os.path.exists(path) or not path.startswith("/"):
        # If a path isn't provided, or it exists as is, or is a relative path, just return it.
        return path
    parts = path.strip("/").split("/")
    current_path = "/"
    for part in parts:
        parent_path = current_path
        current_path = os.path.join(current_path, part)
        if not os.path.exists(current_path) and os.path.isdir(parent_path):
            try:
                path_contents = os.listdir(parent_path)
            except OSError:
                logger.error("Can't read contents of %s", parent_path)
                path_contents = []
            for filename in path_contents:
                if filename.lower() == part.lower():
                    current_path = os.path.join(parent_path, filename)
                    break

    # Only return the path if we got the same number of elements
    if len(parts) == len(current_path.strip("/").split("/")):
        return current_path
    # otherwise return original path
    return path


def list_unique_folders(folders):
    """Deduplicate directories with the same Device.Inode"""
    unique_dirs = {}
    for folder in folders:
        folder_stat = os.stat(folder)
        identifier = "%s.%s" % (folder_stat.st_dev, folder_stat.st_ino)
        if identifier not in unique_dirs:
            unique_dirs[identifier] = folder
    return list(unique_dirs.values())


def path_exists(path: str, check_symlinks: bool = False) -> bool:
    """Wrapper around os.path.exists that doesn't crash with empty values

    Params:
        path (str): File to the file to check
        check_symlinks (bool): If the path is a broken symlink, return False
    """
    if not path:
        return False
    if path.startswith("~"):
        path = os.path.expanduser(path)
    if os.path.exists(path):
        return True
    if os.path.islink(path):
        logger.warning("%s is a broken link", path)
        return not check_symlinks
    return False
