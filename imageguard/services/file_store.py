"""
File store for category images.

One instance owns the configured images directory and its ``.backups``
subdirectory. All filesystem access of the integrity engine goes through it:
- Flat listing of image files (dotfiles and the backup directory excluded)
- Streaming content hashes
- Backup-then-remove deletion
- Non-overwriting rename/copy
- Per-filename locking of mutations
"""
import hashlib
import re
import shutil
import threading
from contextlib import ExitStack, contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from imageguard.core.exceptions import BackupError, ConflictError, ImageStoreUnavailableError
from imageguard.core.logging_config import log_error, log_image_event, log_info, log_warning
from imageguard.core.time_utils import from_timestamp, now_millis
from imageguard.models.enums import BackupPrefix
from imageguard.schemas.integrity import ImageFile

BACKUP_DIR_NAME = ".backups"
HASH_CHUNK_SIZE = 64 * 1024
# Filename locks are shared by every FileStore on the same directory
_LOCK_REGISTRY: Dict[Path, Dict[str, threading.RLock]] = {}
_LOCK_REGISTRY_GUARD = threading.Lock()
_BACKUP_NAME_RE = re.compile(
    r"^(?P<prefix>orphan|duplicate|migrated|rollback)_(?P<ts>\d+)(?:-\d+)?_(?P<name>.+)$"
)


class FileStore:
    """
    Resource-scoped access to the flat category images directory.

    Layout:
        {images_dir}/cat_<id>_<ts>_<nonce>.jpg
        {images_dir}/.backups/orphan_<ts>_<name>
    """

    def __init__(self, images_dir: Union[str, Path]):
        """
        Initialize the file store.

        Args:
            images_dir: Directory holding the category images (e.g., /data/uploads/categories)
        """
        self.images_dir = Path(images_dir).resolve()
        self.backup_dir = self.images_dir / BACKUP_DIR_NAME
        with _LOCK_REGISTRY_GUARD:
            self._locks = _LOCK_REGISTRY.setdefault(self.images_dir, {})

    def ensure_directories(self) -> None:
        """Create the images and backup directories if needed."""
        self.images_dir.mkdir(parents=True, exist_ok=True)
        self.backup_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, filename: str) -> Path:
        """
        Absolute path of an image inside the store.

        Raises:
            ValueError: If filename is not a plain file name
        """
        if not filename or '/' in filename or '\\' in filename or filename in ('.', '..'):
            raise ValueError(f"Invalid image filename: {filename!r}")
        return self.images_dir / filename

    def exists(self, filename: str) -> bool:
        return self.path_for(filename).is_file()

    @contextmanager
    def lock_for(self, filename: str) -> Iterator[None]:
        """Serialize mutations that touch the same filename."""
        with _LOCK_REGISTRY_GUARD:
            lock = self._locks.setdefault(filename, threading.RLock())
        with lock:
            yield

    @contextmanager
    def _lock_pair(self, first: str, second: str) -> Iterator[None]:
        # Fixed acquisition order so concurrent A->B and B->A cannot deadlock
        with ExitStack() as stack:
            for filename in sorted({first, second}):
                stack.enter_context(self.lock_for(filename))
            yield

    def list_image_files(self) -> List[str]:
        """
        List regular files directly under the images directory.

        Returns:
            Sorted filenames; empty if the directory does not exist yet

        Raises:
            ImageStoreUnavailableError: If the directory exists but cannot be read
        """
        if not self.images_dir.exists():
            return []

        try:
            return sorted(
                entry.name
                for entry in self.images_dir.iterdir()
                if not entry.name.startswith('.') and entry.is_file()
            )
        except OSError as e:
            log_error(e, images_dir=str(self.images_dir))
            raise ImageStoreUnavailableError(
                f"Cannot read images directory {self.images_dir}: {e}"
            ) from e

    def stat(self, filename: str) -> ImageFile:
        """File size and modification time."""
        st = self.path_for(filename).stat()
        return ImageFile(
            filename=filename,
            size_bytes=st.st_size,
            modified_at=from_timestamp(st.st_mtime),
        )

    def hash(self, filename: str) -> str:
        """
        Calculate the MD5 digest of an image, streaming in chunks.

        MD5 is only used to group identical content, not for security.

        Raises:
            OSError: If the file can't be read
        """
        digest = hashlib.md5(usedforsecurity=False)
        with open(self.path_for(filename), "rb") as f:
            for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
                digest.update(chunk)
        return digest.hexdigest()

    def _backup_target(self, filename: str, prefix: Union[BackupPrefix, str]) -> Path:
        prefix_value = prefix.value if isinstance(prefix, BackupPrefix) else prefix
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        target = self.backup_dir / f"{prefix_value}_{now_millis()}_{filename}"
        counter = 1
        while target.exists():
            target = self.backup_dir / f"{prefix_value}_{now_millis()}-{counter}_{filename}"
            counter += 1
        return target

    def _copy_to_backup(self, filename: str, prefix: Union[BackupPrefix, str]) -> Path:
        source = self.path_for(filename)
        target = self._backup_target(filename, prefix)
        try:
            shutil.copy2(source, target)
        except OSError as e:
            if target.exists():
                target.unlink()
            raise BackupError(f"Failed to back up {filename}: {e}") from e

        if not target.is_file() or target.stat().st_size != source.stat().st_size:
            raise BackupError(f"Backup copy of {filename} could not be verified at {target}")
        return target

    def backup_copy(self, filename: str, prefix: Union[BackupPrefix, str]) -> Path:
        """
        Copy an image into the backup directory without touching the original.

        Returns:
            Path of the verified backup copy

        Raises:
            BackupError: If the copy could not be written or verified
        """
        with self.lock_for(filename):
            backup_path = self._copy_to_backup(filename, prefix)
        log_image_event("backed up", filename, backup=backup_path.name)
        return backup_path

    def backup_then_remove(self, filename: str, prefix: Union[BackupPrefix, str]) -> Path:
        """
        Back up an image, then delete the original.

        The delete is only attempted once the backup copy is verified on disk.
        If the delete fails, the backup copy is kept.

        Returns:
            Path of the backup copy

        Raises:
            BackupError: If the backup could not be written (original untouched)
            OSError: If the original could not be deleted (backup kept)
        """
        with self.lock_for(filename):
            backup_path = self._copy_to_backup(filename, prefix)
            if not backup_path.is_file():
                raise BackupError(f"Backup of {filename} vanished before delete")
            try:
                self.path_for(filename).unlink()
            except OSError as e:
                log_error(e, filename=filename, backup=str(backup_path))
                raise

        log_image_event("deleted", filename, backup=backup_path.name)
        return backup_path

    def remove(self, filename: str) -> None:
        """Delete an image without keeping a backup."""
        with self.lock_for(filename):
            self.path_for(filename).unlink()
        log_image_event("deleted", filename, backup=None)

    def rename(self, old_filename: str, new_filename: str) -> None:
        """
        Rename an image inside the store.

        Raises:
            ConflictError: If new_filename already exists
            FileNotFoundError: If old_filename does not exist
        """
        with self._lock_pair(old_filename, new_filename):
            source = self.path_for(old_filename)
            target = self.path_for(new_filename)
            if target.exists():
                raise ConflictError(new_filename)
            if not source.is_file():
                raise FileNotFoundError(f"Image not found: {old_filename}")
            source.rename(target)
        log_image_event("renamed", old_filename, new_filename=new_filename)

    def copy(self, old_filename: str, new_filename: str) -> None:
        """
        Copy an image to a new name inside the store.

        Raises:
            ConflictError: If new_filename already exists
        """
        with self._lock_pair(old_filename, new_filename):
            target = self.path_for(new_filename)
            if target.exists():
                raise ConflictError(new_filename)
            tmp_path = target.with_name(f".{new_filename}.tmp")
            try:
                shutil.copy2(self.path_for(old_filename), tmp_path)
                tmp_path.rename(target)
            except Exception:
                if tmp_path.exists():
                    tmp_path.unlink()
                raise
        log_image_event("copied", old_filename, new_filename=new_filename)

    def list_backups(self) -> List[str]:
        if not self.backup_dir.is_dir():
            return []
        return sorted(entry.name for entry in self.backup_dir.iterdir() if entry.is_file())

    @staticmethod
    def original_name(backup_name: str) -> Optional[Tuple[int, str]]:
        """Split '<prefix>_<ts>[-<n>]_<name>' into (ts, name); None if not a backup name."""
        match = _BACKUP_NAME_RE.match(backup_name)
        if not match:
            return None
        return int(match.group("ts")), match.group("name")

    def find_backup(self, filename: str) -> Optional[Path]:
        """Newest backup copy of filename, if any."""
        candidates = []
        for name in self.list_backups():
            parsed = self.original_name(name)
            if parsed and parsed[1] == filename:
                candidates.append((parsed[0], name))
        if not candidates:
            return None
        return self.backup_dir / max(candidates)[1]

    def restore_from_backup(self, filename: str) -> bool:
        """
        Restore filename from its newest backup copy.

        Returns:
            True if restored, False if no backup copy exists

        Raises:
            ConflictError: If filename already exists in the store
        """
        backup_path = self.find_backup(filename)
        if backup_path is None:
            log_warning(f"No backup copy found for {filename}")
            return False

        with self.lock_for(filename):
            target = self.path_for(filename)
            if target.exists():
                raise ConflictError(filename)
            shutil.copy2(backup_path, target)

        log_info(f"Restored {filename} from backup", backup=backup_path.name)
        return True
