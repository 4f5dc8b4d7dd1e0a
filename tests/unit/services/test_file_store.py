"""
Unit tests for FileStore listing, hashing, backups and conflict handling.
"""
import hashlib
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from imageguard.core.exceptions import BackupError, ConflictError, ImageStoreUnavailableError
from imageguard.models.enums import BackupPrefix
from imageguard.services.file_store import FileStore


def test_list_image_files_skips_dotfiles_and_backups(file_store, write_image, images_dir):
    write_image("b.jpg")
    write_image("a.jpg")
    write_image(".hidden.jpg")
    (images_dir / ".backups").mkdir()
    (images_dir / ".backups" / "orphan_1_c.jpg").write_bytes(b"x")
    (images_dir / "nested").mkdir()

    assert file_store.list_image_files() == ["a.jpg", "b.jpg"]


def test_list_image_files_missing_directory_is_empty(tmp_path):
    store = FileStore(tmp_path / "does-not-exist")
    assert store.list_image_files() == []


def test_ensure_directories_creates_store_and_backup_dir(tmp_path):
    store = FileStore(tmp_path / "uploads" / "categories")

    store.ensure_directories()

    assert store.images_dir.is_dir()
    assert store.backup_dir.is_dir()
    assert store.list_image_files() == []


def test_list_image_files_unreadable_directory_raises(file_store):
    with patch.object(Path, "iterdir", side_effect=PermissionError("denied")):
        with pytest.raises(ImageStoreUnavailableError):
            file_store.list_image_files()


def test_hash_is_md5_of_content(file_store, write_image):
    content = b"some image bytes" * 10000
    write_image("big.jpg", content)
    assert file_store.hash("big.jpg") == hashlib.md5(content).hexdigest()


@pytest.mark.parametrize("filename", ["", ".", "..", "../escape.jpg", "sub/dir.jpg", "a\\b.jpg"])
def test_path_for_rejects_non_plain_names(file_store, filename):
    with pytest.raises(ValueError):
        file_store.path_for(filename)


def test_backup_is_verified_before_delete(file_store, write_image, images_dir):
    """The delete call must only happen once the backup copy is on disk."""
    write_image("orphan.jpg", b"orphan-bytes")
    original_unlink = Path.unlink
    seen_backups = []

    def checking_unlink(path, *args, **kwargs):
        if path.parent == file_store.images_dir and path.name == "orphan.jpg":
            backups = [p for p in (images_dir / ".backups").iterdir() if p.name.endswith("_orphan.jpg")]
            assert backups, "original deleted before its backup existed"
            assert backups[0].read_bytes() == b"orphan-bytes"
            seen_backups.extend(backups)
        return original_unlink(path, *args, **kwargs)

    with patch.object(Path, "unlink", autospec=True, side_effect=checking_unlink):
        backup_path = file_store.backup_then_remove("orphan.jpg", BackupPrefix.ORPHAN)

    assert seen_backups
    assert not (images_dir / "orphan.jpg").exists()
    assert backup_path.name.startswith("orphan_")
    assert backup_path.read_bytes() == b"orphan-bytes"


def test_failed_backup_leaves_original(file_store, write_image, images_dir):
    write_image("keep.jpg", b"keep")

    with patch("imageguard.services.file_store.shutil.copy2", side_effect=OSError("disk full")):
        with pytest.raises(BackupError):
            file_store.backup_then_remove("keep.jpg", BackupPrefix.DUPLICATE)

    assert (images_dir / "keep.jpg").read_bytes() == b"keep"


def test_failed_delete_keeps_backup(file_store, write_image, images_dir):
    write_image("stuck.jpg", b"stuck")

    with patch.object(Path, "unlink", side_effect=PermissionError("busy")):
        with pytest.raises(PermissionError):
            file_store.backup_then_remove("stuck.jpg", BackupPrefix.ORPHAN)

    assert (images_dir / "stuck.jpg").exists()
    assert file_store.find_backup("stuck.jpg") is not None


def test_backup_names_never_collide(file_store, write_image):
    write_image("same.jpg", b"1")
    with patch("imageguard.services.file_store.now_millis", return_value=1700000000000):
        first = file_store.backup_copy("same.jpg", BackupPrefix.MIGRATED)
        second = file_store.backup_copy("same.jpg", BackupPrefix.MIGRATED)

    assert first != second
    assert first.exists() and second.exists()
    assert FileStore.original_name(second.name) == (1700000000000, "same.jpg")


def test_rename_refuses_to_overwrite(file_store, write_image, images_dir):
    write_image("old.jpg", b"old")
    write_image("new.jpg", b"new")

    with pytest.raises(ConflictError) as exc_info:
        file_store.rename("old.jpg", "new.jpg")

    assert exc_info.value.target == "new.jpg"
    assert (images_dir / "old.jpg").read_bytes() == b"old"
    assert (images_dir / "new.jpg").read_bytes() == b"new"


def test_copy_keeps_source(file_store, write_image, images_dir):
    write_image("shared.jpg", b"shared")
    file_store.copy("shared.jpg", "copy.jpg")

    assert (images_dir / "shared.jpg").exists()
    assert (images_dir / "copy.jpg").read_bytes() == b"shared"
    assert file_store.list_image_files() == ["copy.jpg", "shared.jpg"]


def test_find_backup_returns_newest(file_store, images_dir):
    backups = images_dir / ".backups"
    backups.mkdir()
    (backups / "orphan_1000_a.jpg").write_bytes(b"old")
    (backups / "migrated_3000_a.jpg").write_bytes(b"newest")
    (backups / "duplicate_2000_a.jpg").write_bytes(b"middle")
    (backups / "orphan_4000_b.jpg").write_bytes(b"other")

    assert file_store.find_backup("a.jpg").name == "migrated_3000_a.jpg"
    assert file_store.find_backup("missing.jpg") is None


def test_restore_from_backup(file_store, write_image, images_dir):
    write_image("gone.jpg", b"gone")
    file_store.backup_then_remove("gone.jpg", BackupPrefix.ORPHAN)

    assert file_store.restore_from_backup("gone.jpg") is True
    assert (images_dir / "gone.jpg").read_bytes() == b"gone"

    with pytest.raises(ConflictError):
        file_store.restore_from_backup("gone.jpg")
    assert file_store.restore_from_backup("never.jpg") is False


def test_stores_on_the_same_directory_share_filename_locks(images_dir):
    # Each request builds its own FileStore; they must still serialize on a filename
    first = FileStore(images_dir)
    second = FileStore(images_dir)
    held = threading.Event()
    release = threading.Event()
    second_acquired = threading.Event()

    def hold_lock():
        with first.lock_for("x.jpg"):
            held.set()
            release.wait(timeout=5)

    def contend():
        with second.lock_for("x.jpg"):
            second_acquired.set()

    holder = threading.Thread(target=hold_lock)
    holder.start()
    assert held.wait(timeout=5)
    contender = threading.Thread(target=contend)
    contender.start()
    try:
        assert not second_acquired.wait(timeout=0.3)
    finally:
        release.set()
        holder.join(timeout=5)
        contender.join(timeout=5)

    assert second_acquired.is_set()


def test_stores_on_different_directories_do_not_share_locks(tmp_path):
    first = FileStore(tmp_path / "one")
    second = FileStore(tmp_path / "two")

    assert first._locks is not second._locks
