"""
Migration of category images to the unique naming scheme.

Stages:
    analyze -> backup -> migrate -> cleanup -> verify

Safety:
    - Dry runs perform no filesystem or database writes and write no backup
    - The backup artifact is written before anything is mutated and is never
      deleted automatically
    - Every deleted or renamed file keeps a copy in the images backup directory
      unless backups are disabled
    - A failing stage stops the run; the results of earlier stages are kept
    - Rollback is never automatic, operators invoke it with a backup artifact
"""
import json
import time
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from imageguard import __version__
from imageguard.core.config import settings
from imageguard.core.exceptions import BackupArtifactError, ConflictError
from imageguard.core.logging_config import log_error, log_migration, log_warning
from imageguard.core.time_utils import backup_stamp, utc_now
from imageguard.models.enums import BackupPrefix, MigrationStage
from imageguard.schemas.integrity import CategoryRecord, CorrectionResult
from imageguard.schemas.migration import (
    BackupInfo,
    MigrationOptions,
    MigrationReport,
    RollbackResult,
)
from imageguard.services.corrector import Corrector
from imageguard.services.file_store import FileStore
from imageguard.services.integrity_checker import IntegrityChecker
from imageguard.services.record_index import RecordIndex

MIGRATION_NAME = "category-unique-images"
BACKUP_FILE_PREFIX = "category_images_backup_"


class MigrationOrchestrator:
    """Runs the staged migration and restores its backup artifacts."""

    def __init__(
        self,
        file_store: FileStore,
        record_index: RecordIndex,
        backup_dir: Optional[Union[str, Path]] = None,
        checker: Optional[IntegrityChecker] = None,
        corrector: Optional[Corrector] = None,
    ):
        self.file_store = file_store
        self.record_index = record_index
        self.backup_dir = Path(backup_dir) if backup_dir is not None else settings.backup_path
        self.checker = checker or IntegrityChecker(file_store, record_index)
        self.corrector = corrector or Corrector(file_store, record_index, checker=self.checker)

    def run(self, options: Optional[MigrationOptions] = None) -> MigrationReport:
        """
        Run the migration pipeline.

        Never raises: a failing stage is recorded in the report.
        """
        options = options or MigrationOptions()
        report = MigrationReport(options=options)
        started = time.monotonic()

        log_migration("=" * 80)
        log_migration(
            "Starting category image migration",
            images_dir=str(self.file_store.images_dir),
            **options.model_dump(),
        )
        log_migration("=" * 80)

        stage = MigrationStage.ANALYZE
        try:
            report.analysis = self.checker.analyze()

            stage = MigrationStage.BACKUP
            if options.dry_run:
                log_migration("DRY RUN: skipping backup artifact")
            elif options.create_backup:
                report.backup_path = str(self.create_backup(options))
            else:
                warning = "Backups are disabled: changes cannot be rolled back"
                log_warning(warning)
                report.warnings.append(warning)

            stage = MigrationStage.MIGRATE
            report.migrated = self.corrector.fix_naming(
                dry_run=options.dry_run,
                create_backup=options.create_backup,
            )

            stage = MigrationStage.CLEANUP
            if options.cleanup_orphans:
                report.cleaned = self.corrector.remove_orphans(
                    dry_run=options.dry_run,
                    create_backup=options.create_backup,
                )

            stage = MigrationStage.VERIFY
            if options.verify:
                report.integrity_result = self.checker.check()
                if not report.integrity_result.is_healthy:
                    log_warning(
                        "Integrity verification found remaining issues",
                        total_issues=report.integrity_result.total_issues,
                    )
        except Exception as e:
            log_error(e, stage=stage.value)
            report.failed_stage = stage
            report.error = str(e)

        report.duration_ms = int((time.monotonic() - started) * 1000)
        log_migration(
            "Migration finished",
            success=report.success,
            failed_stage=report.failed_stage.value if report.failed_stage else None,
            backup=report.backup_path,
            duration_ms=report.duration_ms,
        )
        return report

    def create_backup(self, options: Optional[MigrationOptions] = None) -> Path:
        """
        Write the category table and file listing to a JSON backup artifact.

        Raises:
            OSError: If the artifact can't be written
        """
        options = options or MigrationOptions()
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        backup_path = self.backup_dir / f"{BACKUP_FILE_PREFIX}{backup_stamp()}.json"

        categories = self.record_index.snapshot()
        files = self.file_store.list_image_files()
        backup_data = {
            "timestamp": utc_now().isoformat(),
            "migration": MIGRATION_NAME,
            "version": __version__,
            "config": {
                "images_dir": str(self.file_store.images_dir),
                **options.model_dump(),
            },
            "counts": {
                "categories": len(categories),
                "files": len(files),
            },
            "data": {
                "categories": categories,
                "files": files,
            },
        }

        with open(backup_path, "w") as f:
            json.dump(backup_data, f, indent=2)

        log_migration(
            f"Backup created: {backup_path}",
            categories=len(categories),
            files=len(files),
        )
        return backup_path

    def list_backups(self) -> List[BackupInfo]:
        """Backup artifacts in the backup directory, newest first."""
        if not self.backup_dir.is_dir():
            return []

        backups = []
        for path in sorted(self.backup_dir.glob(f"{BACKUP_FILE_PREFIX}*.json"), reverse=True):
            info = BackupInfo(path=str(path), size_bytes=path.stat().st_size)
            try:
                data = self._load_artifact(path)
            except BackupArtifactError as e:
                log_warning(f"Skipping unreadable backup artifact {path.name}: {e}")
            else:
                info.timestamp = data.get("timestamp")
                info.categories = len(data["data"]["categories"])
                info.files = len(data["data"]["files"])
            backups.append(info)
        return backups

    @staticmethod
    def _load_artifact(backup_path: Path) -> dict:
        if not backup_path.is_file():
            raise BackupArtifactError(f"Backup artifact not found: {backup_path}")
        try:
            with open(backup_path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise BackupArtifactError(f"Backup artifact {backup_path} is unreadable: {e}") from e

        if not isinstance(data, dict) or data.get("migration") != MIGRATION_NAME:
            raise BackupArtifactError(f"{backup_path} is not a {MIGRATION_NAME} backup artifact")
        payload = data.get("data")
        if (
            not isinstance(payload, dict)
            or not isinstance(payload.get("categories"), list)
            or not isinstance(payload.get("files"), list)
        ):
            raise BackupArtifactError(f"Backup artifact {backup_path} has no data section")
        return data

    def rollback(self, backup_path: Union[str, Path], dry_run: bool = False) -> RollbackResult:
        """
        Restore files and category image paths captured in a backup artifact.

        Files listed in the artifact but absent on disk are restored from the
        images backup directory. Category image paths are reset to the artifact
        values. Files the artifact does not list that no category references
        afterwards are moved into the images backup directory.

        Raises:
            BackupArtifactError: If the artifact is missing or malformed
        """
        backup_path = Path(backup_path)
        data = self._load_artifact(backup_path)

        saved_records = [CategoryRecord.model_validate(item) for item in data["data"]["categories"]]
        saved_files: Set[str] = set(data["data"]["files"])

        log_migration(
            f"Rolling back from {backup_path.name}",
            dry_run=dry_run,
            categories=len(saved_records),
            files=len(saved_files),
        )

        result = RollbackResult(
            backup_path=str(backup_path),
            dry_run=dry_run,
            files_restored=self._restore_files(saved_files, dry_run),
            records=self._restore_records(saved_records, dry_run),
            files_removed=CorrectionResult(operation="rollback_remove_files", dry_run=dry_run),
        )

        current_records = {record.id: record for record in self.record_index.load_all()}
        referenced = {record.filename for record in saved_records if record.filename and record.id in current_records}
        saved_ids = {record.id for record in saved_records}
        referenced.update(
            record.filename
            for record in current_records.values()
            if record.id not in saved_ids and record.filename
        )

        for filename in self.file_store.list_image_files():
            if filename in saved_files or filename in referenced:
                continue
            try:
                if dry_run:
                    result.files_removed.corrected("would_move_to_backup", filename=filename)
                    continue
                self.file_store.backup_then_remove(filename, BackupPrefix.ROLLBACK)
                result.files_removed.corrected("moved_to_backup", filename=filename)
            except Exception as e:
                log_error(e, operation="rollback", filename=filename)
                result.files_removed.failed(str(e), filename=filename)

        log_migration(
            "Rollback finished",
            dry_run=dry_run,
            files_restored=result.files_restored.corrected_count,
            records_restored=result.records.corrected_count,
            files_removed=result.files_removed.corrected_count,
            errors=result.error_count,
        )
        return result

    def _restore_files(self, saved_files: Set[str], dry_run: bool) -> CorrectionResult:
        result = CorrectionResult(operation="rollback_restore_files", dry_run=dry_run)
        present = set(self.file_store.list_image_files())

        for filename in sorted(saved_files - present):
            try:
                if dry_run:
                    if self.file_store.find_backup(filename) is None:
                        result.skipped("no backup copy available", filename=filename)
                    else:
                        result.corrected("would_restore", filename=filename)
                    continue
                if self.file_store.restore_from_backup(filename):
                    result.corrected("restored", filename=filename)
                else:
                    result.skipped("no backup copy available", filename=filename)
            except ConflictError as e:
                result.skipped(f"target already exists: {e.target}", filename=filename)
            except Exception as e:
                log_error(e, operation="rollback", filename=filename)
                result.failed(str(e), filename=filename)
        return result

    def _restore_records(self, saved_records: List[CategoryRecord], dry_run: bool) -> CorrectionResult:
        result = CorrectionResult(operation="rollback_restore_records", dry_run=dry_run)
        current: Dict[str, CategoryRecord] = {record.id: record for record in self.record_index.load_all()}

        to_restore: Dict[str, Optional[str]] = {}
        for record in saved_records:
            existing = current.get(record.id)
            if existing is None:
                result.skipped("category no longer exists", category_id=record.id)
                continue
            if existing.image_path != record.image_path:
                to_restore[record.id] = record.image_path

        if dry_run:
            for category_id, image_path in to_restore.items():
                result.corrected("would_restore_path", category_id=category_id, filename=image_path)
            return result

        try:
            changed = self.record_index.restore_image_paths(to_restore)
        except Exception as e:
            log_error(e, operation="rollback", categories=len(to_restore))
            for category_id in to_restore:
                result.failed(str(e), category_id=category_id)
            return result

        for category_id in changed:
            result.corrected("restored_path", category_id=category_id, filename=to_restore[category_id])
        return result
