import os

import pytest

from safekeep.exceptions import StorageError
from safekeep.storage import VaultStorage


def test_save_and_load(tmp_path):
    storage = VaultStorage(str(tmp_path / "vaults" / "work.vault"))
    assert not storage.exists()

    storage.save("U2FsdGVkX1token")

    assert storage.exists()
    assert storage.load() == "U2FsdGVkX1token"
    assert os.listdir(tmp_path / "vaults") == ["work.vault"]


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions only")
def test_saved_file_is_owner_only(tmp_path):
    storage = VaultStorage(str(tmp_path / "work.vault"))
    storage.save("token")
    assert oct(os.stat(storage.filename).st_mode)[-3:] == "600"


def test_save_replaces_previous_content(tmp_path):
    storage = VaultStorage(str(tmp_path / "work.vault"))
    storage.save("first")
    storage.save("second")
    assert storage.load() == "second"


def test_display_name():
    assert VaultStorage("/tmp/x/personal.vault").display_name == "personal"
    assert VaultStorage("notes.txt").display_name == "notes.txt"


def test_load_missing_file(tmp_path):
    with pytest.raises(StorageError):
        VaultStorage(str(tmp_path / "missing.vault")).load()


def test_failed_replace_leaves_no_temporary_file(tmp_path):
    target = tmp_path / "taken.vault"
    target.mkdir()
    with pytest.raises(StorageError):
        VaultStorage(str(target)).save("token")
    assert sorted(os.listdir(tmp_path)) == ["taken.vault"]


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions only")
def test_temporary_file_is_never_group_readable(tmp_path, monkeypatch):
    storage = VaultStorage(str(tmp_path / "work.vault"))
    modes = []
    real_replace = os.replace

    def spy(src, dst):
        modes.append(oct(os.stat(src).st_mode)[-3:])
        real_replace(src, dst)

    monkeypatch.setattr(os, "replace", spy)
    old_umask = os.umask(0o022)
    try:
        storage.save("token")
    finally:
        os.umask(old_umask)
    assert modes == ["600"]
