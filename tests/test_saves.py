import os
import tempfile
import time
from unittest import TestCase
from unittest.mock import patch

from steevesync import saves
from steevesync.exceptions import (
    DirectoryCreationError, InvalidMaxBackupsError, NoSaveError, NotNewerError
)
from steevesync.saves import SaveEndpoint, is_steam_save_name, is_xbox_save_name

STEAM_SAVE = "76561197960287930_Player.sav"
XBOX_SAVE = "0123456789ABCDEF0123456789abcdef"


def write_file(path, content, mtime=None):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as save_file:
        save_file.write(content)
    if mtime is not None:
        os.utime(path, ns=(mtime * 10 ** 9, mtime * 10 ** 9))
    return path


def read_file(path):
    with open(path, "rb") as save_file:
        return save_file.read()


class EndpointTestCase(TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = self._tmp.name

    def make_endpoint(self, name="Steam", max_backups=3, is_save_name=is_steam_save_name):
        return saves.create_endpoint(
            name,
            os.path.join(self.root, name, "saves"),
            os.path.join(self.root, "backups"),
            max_backups,
            is_save_name,
        )

    def list_backups(self, endpoint):
        return sorted(os.listdir(endpoint.backup_dir))


class TestSaveNames(TestCase):
    def test_steam_save_names(self):
        self.assertTrue(is_steam_save_name(STEAM_SAVE))
        self.assertTrue(is_steam_save_name("world_Player.sav"))
        self.assertFalse(is_steam_save_name("world_Player.sav.bak"))
        self.assertFalse(is_steam_save_name("SaveGames.ini"))

    def test_xbox_save_names(self):
        self.assertTrue(is_xbox_save_name(XBOX_SAVE))
        self.assertTrue(is_xbox_save_name("f" * 32))
        self.assertFalse(is_xbox_save_name("f" * 31))
        self.assertFalse(is_xbox_save_name("f" * 33))
        self.assertFalse(is_xbox_save_name("g" * 32))
        self.assertFalse(is_xbox_save_name("containers.index"))

    def test_backup_filename(self):
        self.assertEqual(saves.backup_filename(STEAM_SAVE, 1650000000), "1650000000_" + STEAM_SAVE)


class TestSaveEndpoint(EndpointTestCase):
    def test_max_backups_must_be_positive(self):
        with self.assertRaises(InvalidMaxBackupsError):
            self.make_endpoint(max_backups=0)
        with self.assertRaises(InvalidMaxBackupsError):
            SaveEndpoint("Steam", self.root, self.root, -1, is_steam_save_name)

    def test_endpoint_is_immutable(self):
        endpoint = self.make_endpoint()
        with self.assertRaises(AttributeError):
            endpoint.max_backups = 5

    def test_backup_dir_is_created_per_endpoint(self):
        steam = self.make_endpoint("Steam")
        xbox = self.make_endpoint("Xbox", is_save_name=is_xbox_save_name)
        self.assertEqual(steam.backup_dir, os.path.join(self.root, "backups", "Steam"))
        self.assertEqual(xbox.backup_dir, os.path.join(self.root, "backups", "Xbox"))
        self.assertTrue(os.path.isdir(steam.backup_dir))
        self.assertTrue(os.path.isdir(xbox.backup_dir))

    def test_backup_dir_creation_failure(self):
        # A file where the backup root should be
        blocker = write_file(os.path.join(self.root, "blocker"), b"")
        with self.assertRaises(DirectoryCreationError) as context:
            saves.create_endpoint("Steam", self.root, blocker, 1, is_steam_save_name)
        self.assertEqual(context.exception.directory, os.path.join(blocker, "Steam"))

    def test_save_file_checks_name_and_type(self):
        endpoint = self.make_endpoint()
        save_path = write_file(os.path.join(endpoint.save_dir, STEAM_SAVE), b"save")
        other_path = write_file(os.path.join(endpoint.save_dir, "Settings.sav"), b"settings")
        os.makedirs(os.path.join(endpoint.save_dir, "folder_Player.sav"))
        self.assertEqual(endpoint.save_file(save_path), STEAM_SAVE)
        self.assertIsNone(endpoint.save_file(other_path))
        self.assertIsNone(endpoint.save_file(os.path.join(endpoint.save_dir, "folder_Player.sav")))
        self.assertIsNone(endpoint.save_file(os.path.join(endpoint.save_dir, "missing_Player.sav")))


class TestLocateSave(EndpointTestCase):
    def test_missing_save_dir(self):
        endpoint = self.make_endpoint()
        self.assertIsNone(endpoint.locate_save())

    def test_no_matching_file(self):
        endpoint = self.make_endpoint()
        write_file(os.path.join(endpoint.save_dir, "SaveGames.ini"), b"")
        self.assertIsNone(endpoint.locate_save())

    def test_finds_nested_steam_save(self):
        endpoint = self.make_endpoint()
        write_file(os.path.join(endpoint.save_dir, "Settings.sav"), b"")
        save_path = write_file(os.path.join(endpoint.save_dir, "nested", STEAM_SAVE), b"save")
        self.assertEqual(endpoint.locate_save(), (save_path, STEAM_SAVE))

    def test_finds_xbox_save_among_containers(self):
        endpoint = self.make_endpoint("Xbox", is_save_name=is_xbox_save_name)
        write_file(os.path.join(endpoint.save_dir, "containers.index"), b"")
        write_file(os.path.join(endpoint.save_dir, "A" * 31), b"")
        save_path = write_file(os.path.join(endpoint.save_dir, XBOX_SAVE), b"save")
        self.assertEqual(endpoint.locate_save(), (save_path, XBOX_SAVE))


class TestBackup(EndpointTestCase):
    def test_backup_copies_save(self):
        endpoint = self.make_endpoint()
        save_path = write_file(os.path.join(endpoint.save_dir, STEAM_SAVE), b"save 1")
        with patch("steevesync.saves.time") as mock_time:
            mock_time.time.return_value = 1650000000.7
            self.assertTrue(endpoint.backup(save_path, STEAM_SAVE))
        self.assertEqual(self.list_backups(endpoint), ["1650000000_" + STEAM_SAVE])
        backup_path = os.path.join(endpoint.backup_dir, "1650000000_" + STEAM_SAVE)
        self.assertEqual(read_file(backup_path), b"save 1")

    def test_backup_gets_its_own_modification_time(self):
        endpoint = self.make_endpoint()
        save_path = write_file(os.path.join(endpoint.save_dir, STEAM_SAVE), b"save 1", mtime=100)
        before = time.time() - 5
        endpoint.backup(save_path, STEAM_SAVE)
        backup_path = os.path.join(endpoint.backup_dir, self.list_backups(endpoint)[0])
        self.assertGreater(os.stat(backup_path).st_mtime, before)
        self.assertEqual(os.stat(save_path).st_mtime, 100)

    def test_retention_follows_backup_order_not_save_age(self):
        endpoint = self.make_endpoint(max_backups=2)
        save_path = os.path.join(endpoint.save_dir, STEAM_SAVE)
        with patch("steevesync.saves.time") as mock_time:
            mock_time.time.side_effect = [1001, 1002, 1003]
            # Each save is older than the previous one
            for index, mtime in enumerate((300, 200, 100)):
                write_file(save_path, b"save %d" % index, mtime=mtime)
                endpoint.backup(save_path, STEAM_SAVE)
        self.assertEqual(self.list_backups(endpoint), ["1002_" + STEAM_SAVE, "1003_" + STEAM_SAVE])

    def test_identical_content_is_backed_up_once(self):
        endpoint = self.make_endpoint()
        save_path = write_file(os.path.join(endpoint.save_dir, STEAM_SAVE), b"same")
        other_path = write_file(os.path.join(self.root, "elsewhere", "other_Player.sav"), b"same")
        with patch("steevesync.saves.time") as mock_time:
            mock_time.time.side_effect = [1000, 2000]
            self.assertTrue(endpoint.backup(save_path, STEAM_SAVE))
            self.assertFalse(endpoint.backup(other_path, "other_Player.sav"))
        self.assertEqual(self.list_backups(endpoint), ["1000_" + STEAM_SAVE])

    def test_retention_keeps_most_recent(self):
        endpoint = self.make_endpoint(max_backups=3)
        save_path = os.path.join(endpoint.save_dir, STEAM_SAVE)
        with patch("steevesync.saves.time") as mock_time:
            mock_time.time.side_effect = [1001, 1002, 1003, 1004, 1005]
            for index in range(5):
                write_file(save_path, b"save %d" % index, mtime=100 + index)
                self.assertTrue(endpoint.backup(save_path, STEAM_SAVE))
                self.assertLessEqual(len(self.list_backups(endpoint)), 3)
        self.assertEqual(
            self.list_backups(endpoint),
            ["1003_" + STEAM_SAVE, "1004_" + STEAM_SAVE, "1005_" + STEAM_SAVE],
        )

    def test_single_backup_retention(self):
        endpoint = self.make_endpoint(max_backups=1)
        save_path = os.path.join(endpoint.save_dir, STEAM_SAVE)
        with patch("steevesync.saves.time") as mock_time:
            mock_time.time.side_effect = [1, 2]
            write_file(save_path, b"first", mtime=100)
            endpoint.backup(save_path, STEAM_SAVE)
            write_file(save_path, b"second", mtime=200)
            endpoint.backup(save_path, STEAM_SAVE)
        self.assertEqual(self.list_backups(endpoint), ["2_" + STEAM_SAVE])

    def test_oldest_backups_are_evicted_by_mtime(self):
        endpoint = self.make_endpoint(max_backups=2)
        # Names and modification times disagree on purpose
        write_file(os.path.join(endpoint.backup_dir, "1_a"), b"a", mtime=300)
        write_file(os.path.join(endpoint.backup_dir, "2_b"), b"b", mtime=100)
        write_file(os.path.join(endpoint.backup_dir, "3_c"), b"c", mtime=200)
        endpoint.remove_old_backups()
        self.assertEqual(self.list_backups(endpoint), ["1_a"])

    def test_unreadable_metadata_sorts_first(self):
        endpoint = self.make_endpoint(max_backups=2)
        first = write_file(os.path.join(endpoint.backup_dir, "1_a"), b"a", mtime=100)
        second = write_file(os.path.join(endpoint.backup_dir, "2_b"), b"b", mtime=200)
        mtimes = {first: 100, second: 0}
        with patch("steevesync.saves.system.get_mtime_ns", side_effect=lambda path: mtimes[path]):
            self.assertEqual(endpoint.get_backups(), [second, first])

    def test_failed_write_after_eviction_leaves_fewer_backups(self):
        endpoint = self.make_endpoint(max_backups=2)
        write_file(os.path.join(endpoint.backup_dir, "1_" + STEAM_SAVE), b"a", mtime=100)
        write_file(os.path.join(endpoint.backup_dir, "2_" + STEAM_SAVE), b"b", mtime=200)
        save_path = write_file(os.path.join(endpoint.save_dir, STEAM_SAVE), b"c")
        with patch("steevesync.util.system.shutil.copy", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                endpoint.backup(save_path, STEAM_SAVE)
        self.assertEqual(self.list_backups(endpoint), ["2_" + STEAM_SAVE])

    def test_unreadable_save_raises(self):
        endpoint = self.make_endpoint()
        with self.assertRaises(OSError):
            endpoint.backup(os.path.join(endpoint.save_dir, STEAM_SAVE), STEAM_SAVE)


class TestCopySave(EndpointTestCase):
    def setUp(self):
        super().setUp()
        self.steam = self.make_endpoint("Steam", max_backups=3)
        self.xbox = self.make_endpoint("Xbox", max_backups=3, is_save_name=is_xbox_save_name)
        self.steam_path = os.path.join(self.steam.save_dir, "world_Player.sav")
        self.xbox_path = os.path.join(self.xbox.save_dir, XBOX_SAVE)

    def test_no_destination_save(self):
        write_file(self.steam_path, b"steam", mtime=100)
        with self.assertRaises(NoSaveError):
            self.xbox.copy_save(self.steam_path)
        self.assertFalse(os.path.exists(self.xbox_path))
        self.assertEqual(self.list_backups(self.xbox), [])

    def test_newer_source_overwrites_destination(self):
        write_file(self.steam_path, b"steam", mtime=100)
        write_file(self.xbox_path, b"xbox", mtime=50)
        with patch("steevesync.saves.time") as mock_time:
            mock_time.time.return_value = 1000
            self.assertEqual(self.xbox.copy_save(self.steam_path), self.xbox_path)
        self.assertEqual(read_file(self.xbox_path), b"steam")
        self.assertEqual(os.stat(self.xbox_path).st_mtime_ns, os.stat(self.steam_path).st_mtime_ns)
        self.assertEqual(self.list_backups(self.xbox), ["1000_" + XBOX_SAVE])
        self.assertEqual(read_file(os.path.join(self.xbox.backup_dir, "1000_" + XBOX_SAVE)), b"xbox")

    def test_copy_is_idempotent(self):
        write_file(self.steam_path, b"steam", mtime=100)
        write_file(self.xbox_path, b"xbox", mtime=50)
        self.xbox.copy_save(self.steam_path)
        with self.assertRaises(NotNewerError):
            self.xbox.copy_save(self.steam_path)
        self.assertEqual(len(self.list_backups(self.xbox)), 1)

    def test_equal_timestamps_never_overwrite(self):
        write_file(self.steam_path, b"steam", mtime=100)
        write_file(self.xbox_path, b"xbox", mtime=100)
        with self.assertRaises(NotNewerError):
            self.xbox.copy_save(self.steam_path)
        self.assertEqual(read_file(self.xbox_path), b"xbox")

    def test_older_source_never_overwrites(self):
        write_file(self.steam_path, b"steam", mtime=99)
        write_file(self.xbox_path, b"xbox", mtime=100)
        with self.assertRaises(NotNewerError):
            self.xbox.copy_save(self.steam_path)
        self.assertEqual(read_file(self.xbox_path), b"xbox")
        self.assertEqual(self.list_backups(self.xbox), [])

    def test_reverse_copy_after_sync_is_not_newer(self):
        write_file(self.steam_path, b"steam", mtime=100)
        write_file(self.xbox_path, b"xbox", mtime=50)
        self.xbox.copy_save(self.steam_path)
        with self.assertRaises(NotNewerError):
            self.steam.copy_save(self.xbox_path)
        self.assertEqual(self.list_backups(self.steam), [])

    def test_before_overwrite_hook(self):
        write_file(self.steam_path, b"steam", mtime=100)
        write_file(self.xbox_path, b"xbox", mtime=50)
        seen = []

        def before_overwrite(path):
            seen.append((path, read_file(path)))

        self.xbox.copy_save(self.steam_path, before_overwrite=before_overwrite)
        self.assertEqual(seen, [(self.xbox_path, b"xbox")])

    def test_before_overwrite_hook_not_called_when_skipped(self):
        write_file(self.steam_path, b"steam", mtime=10)
        write_file(self.xbox_path, b"xbox", mtime=50)
        seen = []
        with self.assertRaises(NotNewerError):
            self.xbox.copy_save(self.steam_path, before_overwrite=seen.append)
        self.assertEqual(seen, [])

    def test_four_overwrites_keep_three_backups(self):
        write_file(self.xbox_path, b"save 0", mtime=100)
        with patch("steevesync.saves.time") as mock_time:
            mock_time.time.side_effect = [2001, 2002, 2003, 2004]
            for index in range(1, 5):
                write_file(self.steam_path, b"save %d" % index, mtime=100 + index * 10)
                self.xbox.copy_save(self.steam_path)
        self.assertEqual(
            self.list_backups(self.xbox),
            ["2002_" + XBOX_SAVE, "2003_" + XBOX_SAVE, "2004_" + XBOX_SAVE],
        )
        contents = sorted(read_file(os.path.join(self.xbox.backup_dir, name)) for name in self.list_backups(self.xbox))
        self.assertEqual(contents, [b"save 1", b"save 2", b"save 3"])
        self.assertEqual(read_file(self.xbox_path), b"save 4")


class TestEndpointFactories(TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = self._tmp.name

    def test_steam_endpoint_with_explicit_save_dir(self):
        with patch("steevesync.saves.find_app_install_path") as mock_find:
            endpoint = saves.steam_endpoint(4, self.root, save_dir=os.path.join(self.root, "steam"))
        mock_find.assert_not_called()
        self.assertEqual(endpoint.name, "Steam")
        self.assertEqual(endpoint.max_backups, 4)
        self.assertTrue(endpoint.is_save_name(STEAM_SAVE))

    def test_steam_endpoint_discovers_install(self):
        install_path = os.path.join(self.root, "common", "Deep Rock Galactic")
        with patch("steevesync.saves.find_app_install_path", return_value=install_path) as mock_find:
            endpoint = saves.steam_endpoint(4, self.root)
        mock_find.assert_called_once_with(548430)
        self.assertEqual(endpoint.save_dir, os.path.join(install_path, "FSD", "Saved", "SaveGames"))

    def test_xbox_endpoint_discovers_package(self):
        with patch("steevesync.saves.get_xbox_save_dir", return_value=os.path.join(self.root, "wgs")):
            endpoint = saves.xbox_endpoint(2, self.root)
        self.assertEqual(endpoint.name, "Xbox")
        self.assertEqual(endpoint.save_dir, os.path.join(self.root, "wgs"))
        self.assertEqual(endpoint.backup_dir, os.path.join(self.root, "Xbox"))
        self.assertTrue(endpoint.is_save_name(XBOX_SAVE))
