"""
Integrity checks between category records and the images directory.
"""
from typing import Optional

from imageguard.core.config import settings
from imageguard.core.logging_config import log_info
from imageguard.core.time_utils import utc_now
from imageguard.models.enums import FindingType
from imageguard.schemas.integrity import (
    CategoryCounts,
    FileCounts,
    Finding,
    IntegrityResult,
    MigrationAnalysis,
)
from imageguard.services import naming
from imageguard.services.file_store import FileStore
from imageguard.services.record_index import RecordIndex


class IntegrityChecker:
    """
    Compares the category table with the files on disk.

    Scans are stateless: every call re-reads the directory and the database.
    """

    def __init__(
        self,
        file_store: FileStore,
        record_index: RecordIndex,
        missing_reference_is_issue: Optional[bool] = None,
    ):
        self.file_store = file_store
        self.record_index = record_index
        if missing_reference_is_issue is None:
            missing_reference_is_issue = settings.missing_reference_is_issue
        self.missing_reference_is_issue = missing_reference_is_issue

    def check(self) -> IntegrityResult:
        """
        Run all integrity checks.

        A record lands in at most one of missing / invalid_naming: a missing
        file short-circuits the naming checks for that record.

        Raises:
            ImageStoreUnavailableError: If the images directory cannot be read
        """
        files = self.file_store.list_image_files()
        files_set = set(files)
        records = self.record_index.load_all()

        referenced = {record.filename for record in records if record.filename}
        result = IntegrityResult(
            orphaned=[filename for filename in files if filename not in referenced],
            total_files=len(files),
            total_categories=len(records),
            categories_with_images=sum(1 for record in records if record.filename),
            missing_reference_is_issue=self.missing_reference_is_issue,
            checked_at=utc_now(),
        )

        for record in records:
            filename = record.filename
            if not filename:
                result.missing_references.append(Finding(
                    type=FindingType.MISSING_REFERENCE,
                    category_id=record.id,
                    category_name=record.name,
                    image_path=record.image_path,
                    description="Category has no image reference",
                ))
                continue

            if filename not in files_set:
                result.missing.append(Finding(
                    type=FindingType.MISSING,
                    category_id=record.id,
                    category_name=record.name,
                    filename=filename,
                    image_path=record.image_path,
                    description="Referenced image file does not exist",
                ))
                continue

            naming_finding = self._naming_finding(record.id, record.name, filename, record.image_path)
            if naming_finding is not None:
                result.invalid_naming.append(naming_finding)

        log_info(
            "Integrity check completed",
            orphaned=len(result.orphaned),
            missing=len(result.missing),
            invalid_naming=len(result.invalid_naming),
            missing_references=len(result.missing_references),
            healthy=result.is_healthy,
        )
        return result

    @staticmethod
    def _naming_finding(
        category_id: str,
        category_name: Optional[str],
        filename: str,
        image_path: Optional[str],
    ) -> Optional[Finding]:
        if not naming.is_unique_format(filename):
            legacy = naming.is_legacy_format(filename)
            return Finding(
                type=FindingType.NON_UNIQUE_FORMAT,
                category_id=category_id,
                category_name=category_name,
                filename=filename,
                image_path=image_path,
                legacy=legacy,
                description=(
                    "Legacy filename, needs migration to the unique naming convention"
                    if legacy
                    else "Image filename does not follow the unique naming convention"
                ),
            )

        extracted_id = naming.extract_category_id(filename)
        if extracted_id != category_id:
            return Finding(
                type=FindingType.ID_MISMATCH,
                category_id=category_id,
                category_name=category_name,
                filename=filename,
                image_path=image_path,
                extracted_id=extracted_id,
                description="Category id in filename does not match the category",
            )
        return None

    def analyze(self) -> MigrationAnalysis:
        """
        Summarize how much of the image set still needs migrating.

        Raises:
            ImageStoreUnavailableError: If the images directory cannot be read
        """
        result = self.check()
        files = self.file_store.list_image_files()
        records = self.record_index.load_all()
        referenced = self.record_index.referenced_filenames()

        needs_migration_ids = {finding.category_id for finding in result.invalid_naming}
        missing_ids = {finding.category_id for finding in result.missing}

        categories = CategoryCounts(
            total=len(records),
            with_images=result.categories_with_images,
            missing_files=len(result.missing),
        )
        for record in records:
            if not record.filename or record.id in missing_ids:
                continue
            if record.id in needs_migration_ids:
                categories.needs_migration += 1
            else:
                categories.already_unique += 1

        file_counts = FileCounts(total=len(files))
        for filename in files:
            if naming.is_unique_format(filename):
                file_counts.unique_format += 1
            else:
                file_counts.legacy_format += 1
            if filename in referenced:
                file_counts.referenced += 1
            else:
                file_counts.orphaned += 1

        analysis = MigrationAnalysis(
            categories=categories,
            files=file_counts,
            issues=result.findings(),
        )
        log_info(
            "Migration analysis completed",
            categories=categories.total,
            needs_migration=categories.needs_migration,
            files=file_counts.total,
            orphaned=file_counts.orphaned,
        )
        return analysis
