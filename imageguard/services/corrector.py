"""
Corrections for integrity findings.

Every operation rescans the current state, handles findings one at a time and
records the outcome of each item in a CorrectionResult. A failing item is
logged and counted; the loop moves on to the next one. A scan that cannot read
the images directory at all raises ImageStoreUnavailableError, which callers
treat as a whole-stage failure.
"""
from pathlib import PurePosixPath
from typing import List, Optional

from imageguard.core.exceptions import ConflictError, InvalidCategoryIdError
from imageguard.core.logging_config import log_error, log_info
from imageguard.models.enums import BackupPrefix
from imageguard.schemas.integrity import CorrectionResult, Finding, FixAllResult
from imageguard.services import naming
from imageguard.services.duplicate_detector import DuplicateDetector
from imageguard.services.file_store import FileStore
from imageguard.services.integrity_checker import IntegrityChecker
from imageguard.services.record_index import RecordIndex

MANUAL_INTERVENTION = "requires manual intervention"


class Corrector:
    """Applies idempotent fixes to the images directory and category records."""

    def __init__(
        self,
        file_store: FileStore,
        record_index: RecordIndex,
        checker: Optional[IntegrityChecker] = None,
        detector: Optional[DuplicateDetector] = None,
    ):
        self.file_store = file_store
        self.record_index = record_index
        self.checker = checker or IntegrityChecker(file_store, record_index)
        self.detector = detector or DuplicateDetector(file_store)

    def _delete(self, filename: str, prefix: BackupPrefix, create_backup: bool) -> None:
        if create_backup:
            self.file_store.backup_then_remove(filename, prefix)
        else:
            self.file_store.remove(filename)

    def remove_orphans(self, dry_run: bool = False, create_backup: bool = True) -> CorrectionResult:
        """
        Delete files that no category references.

        Args:
            dry_run: Report what would be deleted without touching anything
            create_backup: Keep an ``orphan_`` copy in the backup directory
        """
        result = CorrectionResult(operation="remove_orphans", dry_run=dry_run)
        orphaned = self.checker.check().orphaned

        for filename in orphaned:
            try:
                size = self.file_store.stat(filename).size_bytes
                if dry_run:
                    result.corrected("would_delete", filename=filename, bytes=size)
                    continue
                self._delete(filename, BackupPrefix.ORPHAN, create_backup)
                result.bytes_freed += size
                result.corrected("deleted", filename=filename, bytes=size)
            except Exception as e:
                log_error(e, operation=result.operation, filename=filename)
                result.failed(str(e), filename=filename)

        log_info(
            "Orphan cleanup finished",
            dry_run=dry_run,
            corrected=result.corrected_count,
            errors=result.error_count,
            bytes_freed=result.bytes_freed,
        )
        return result

    def deduplicate(self, dry_run: bool = False, create_backup: bool = True) -> CorrectionResult:
        """
        Keep the newest file of every duplicate group and delete the others.

        Files still referenced by a category are never deleted.
        """
        result = CorrectionResult(operation="deduplicate", dry_run=dry_run)
        report = self.detector.detect()
        reference_counts = self.record_index.reference_counts()

        for group in report.groups:
            try:
                members = sorted(
                    (self.file_store.stat(filename) for filename in group.files),
                    key=lambda info: (info.modified_at, info.filename),
                    reverse=True,
                )
            except Exception as e:
                log_error(e, operation=result.operation, content_hash=group.content_hash)
                result.failed(str(e), filename=group.files[0])
                continue

            keeper = members[0].filename
            for info in members[1:]:
                filename = info.filename
                if reference_counts.get(filename):
                    result.skipped(f"referenced by a category, kept alongside {keeper}", filename=filename)
                    continue
                try:
                    if dry_run:
                        result.corrected("would_delete", filename=filename, bytes=info.size_bytes)
                        continue
                    self._delete(filename, BackupPrefix.DUPLICATE, create_backup)
                    result.bytes_freed += info.size_bytes
                    result.corrected("deleted", filename=filename, bytes=info.size_bytes)
                except Exception as e:
                    log_error(e, operation=result.operation, filename=filename)
                    result.failed(str(e), filename=filename)

        log_info(
            "Duplicate cleanup finished",
            dry_run=dry_run,
            groups=len(report.groups),
            corrected=result.corrected_count,
            skipped=result.skipped_count,
            bytes_freed=result.bytes_freed,
        )
        return result

    def fix_naming(self, dry_run: bool = False, create_backup: bool = True) -> CorrectionResult:
        """
        Rename images that are not in the unique format or carry another category's id.

        A file shared by several categories is copied for all but the last of them.
        """
        result = CorrectionResult(operation="fix_naming", dry_run=dry_run)
        findings = self.checker.check().invalid_naming
        reference_counts = self.record_index.reference_counts()

        for finding in findings:
            old_filename = finding.filename
            category_id = finding.category_id
            try:
                extension = PurePosixPath(old_filename).suffix
                if not extension:
                    result.skipped("image has no file extension", filename=old_filename, category_id=category_id)
                    continue
                new_filename = naming.generate(category_id, extension)

                if dry_run:
                    result.corrected(
                        "would_rename",
                        filename=old_filename,
                        new_filename=new_filename,
                        category_id=category_id,
                    )
                    continue

                if create_backup:
                    self.file_store.backup_copy(old_filename, BackupPrefix.MIGRATED)

                shared = reference_counts.get(old_filename, 0) > 1
                if shared:
                    self.file_store.copy(old_filename, new_filename)
                else:
                    self.file_store.rename(old_filename, new_filename)
                reference_counts[old_filename] = reference_counts.get(old_filename, 1) - 1

                self.record_index.set_image_path(category_id, new_filename)
                result.corrected(
                    "copied" if shared else "renamed",
                    filename=old_filename,
                    new_filename=new_filename,
                    category_id=category_id,
                )
            except ConflictError as e:
                result.skipped(f"target already exists: {e.target}", filename=old_filename, category_id=category_id)
            except InvalidCategoryIdError as e:
                result.skipped(str(e), filename=old_filename, category_id=category_id)
            except Exception as e:
                log_error(e, operation=result.operation, filename=old_filename, category_id=category_id)
                result.failed(str(e), filename=old_filename, category_id=category_id)

        log_info(
            "Naming fixes finished",
            dry_run=dry_run,
            corrected=result.corrected_count,
            skipped=result.skipped_count,
            errors=result.error_count,
        )
        return result

    @staticmethod
    def _replacement_for(category_id: str, files: List[str]) -> Optional[str]:
        """Newest unique-format file named for this category."""
        candidates = []
        for filename in files:
            parsed = naming.parse(filename)
            if isinstance(parsed, naming.UniqueName) and parsed.category_id == category_id:
                candidates.append((parsed.timestamp_ms, parsed.nonce or "", filename))
        if not candidates:
            return None
        return max(candidates)[2]

    def repair_missing(self, dry_run: bool = False) -> CorrectionResult:
        """
        Re-point categories whose image is missing to the newest file named for them.

        Categories without a candidate are reported as skipped, whether their
        reference is broken or absent.
        """
        result = CorrectionResult(operation="repair_missing", dry_run=dry_run)
        integrity = self.checker.check()
        files = self.file_store.list_image_files()

        findings: List[Finding] = integrity.missing + integrity.missing_references
        for finding in findings:
            category_id = finding.category_id
            try:
                replacement = self._replacement_for(category_id, files)
                if replacement is None:
                    result.skipped(MANUAL_INTERVENTION, filename=finding.filename, category_id=category_id)
                    continue

                if dry_run:
                    result.corrected(
                        "would_relink",
                        filename=finding.filename,
                        new_filename=replacement,
                        category_id=category_id,
                    )
                    continue

                self.record_index.set_image_path(category_id, replacement)
                result.corrected(
                    "relinked",
                    filename=finding.filename,
                    new_filename=replacement,
                    category_id=category_id,
                )
            except Exception as e:
                log_error(e, operation=result.operation, category_id=category_id)
                result.failed(str(e), filename=finding.filename, category_id=category_id)

        log_info(
            "Missing image repair finished",
            dry_run=dry_run,
            corrected=result.corrected_count,
            skipped=result.skipped_count,
            errors=result.error_count,
        )
        return result

    def fix_all(self, dry_run: bool = False, create_backup: bool = True) -> FixAllResult:
        """Run every correction in dependency order: naming, missing, duplicates, orphans."""
        outcome = FixAllResult(
            naming=self.fix_naming(dry_run=dry_run, create_backup=create_backup),
            missing=self.repair_missing(dry_run=dry_run),
            duplicates=self.deduplicate(dry_run=dry_run, create_backup=create_backup),
            orphans=self.remove_orphans(dry_run=dry_run, create_backup=create_backup),
        )
        log_info(
            "All corrections finished",
            dry_run=dry_run,
            corrected=outcome.corrected_count,
            skipped=outcome.skipped_count,
            errors=outcome.error_count,
            bytes_freed=outcome.bytes_freed,
        )
        return outcome
