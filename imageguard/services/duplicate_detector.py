"""
Content-hash duplicate detection for category images.
"""
import time
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Tuple

from imageguard.core.config import settings
from imageguard.core.logging_config import log_debug, log_info, log_warning
from imageguard.schemas.integrity import DuplicateGroup, DuplicateReport
from imageguard.services.file_store import FileStore


class DuplicateDetector:
    """Groups files in the images directory by MD5 digest."""

    def __init__(self, file_store: FileStore, max_workers: Optional[int] = None):
        self.file_store = file_store
        self.max_workers = max_workers or settings.hash_workers

    def _hash_one(self, filename: str) -> Tuple[str, str, int]:
        info = self.file_store.stat(filename)
        return filename, self.file_store.hash(filename), info.size_bytes

    def detect(self) -> DuplicateReport:
        """
        Hash every file once and return groups with two or more members.

        Unreadable files are logged and left out of the grouping.

        Raises:
            ImageStoreUnavailableError: If the images directory cannot be read
        """
        started = time.monotonic()
        files = self.file_store.list_image_files()

        by_hash: Dict[str, List[Tuple[str, int]]] = defaultdict(list)
        unreadable: List[str] = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(self._hash_one, filename): filename for filename in files}
            for future in as_completed(futures):
                filename = futures[future]
                try:
                    _, digest, size = future.result()
                except (OSError, ValueError) as e:
                    log_warning(f"Could not hash {filename}, excluding it: {e}")
                    unreadable.append(filename)
                    continue
                log_debug(f"Hashed {filename}", content_hash=digest, size_bytes=size)
                by_hash[digest].append((filename, size))

        groups = [
            DuplicateGroup(
                content_hash=digest,
                files=sorted(name for name, _ in members),
                size_bytes=members[0][1],
            )
            for digest, members in sorted(by_hash.items())
            if len(members) > 1
        ]

        report = DuplicateReport(
            groups=groups,
            total_files=len(files),
            processed_files=len(files) - len(unreadable),
            unreadable=sorted(unreadable),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        log_info(
            "Duplicate scan completed",
            files=report.total_files,
            groups=len(report.groups),
            duplicate_files=report.duplicate_files,
            wasted_bytes=report.total_wasted_bytes,
            unreadable=len(report.unreadable),
        )
        return report
