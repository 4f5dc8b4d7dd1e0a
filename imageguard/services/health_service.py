"""
Read-only health reporting for category images.
"""
import math
import time
from fractions import Fraction
from typing import List

from imageguard import __version__
from imageguard.core.logging_config import log_info, log_warning
from imageguard.core.time_utils import utc_now
from imageguard.models.enums import HealthStatus, RecommendationPriority
from imageguard.schemas.health import (
    FileSize,
    HealthDetails,
    HealthReport,
    HealthStatusSummary,
    HealthSummary,
    Recommendation,
    StorageStatistics,
)
from imageguard.schemas.integrity import DuplicateReport, IntegrityResult
from imageguard.services.duplicate_detector import DuplicateDetector
from imageguard.services.file_store import FileStore
from imageguard.services.integrity_checker import IntegrityChecker
from imageguard.services.record_index import RecordIndex

SYSTEM_NAME = "category-image-health"
MAINTENANCE_THRESHOLD = 70
TOP_FILES_LIMIT = 10
STATUS_RECOMMENDATION_LIMIT = 5


def round_half_up(value) -> int:
    """Round to the nearest integer, halves away from zero for non-negative values."""
    return math.floor(Fraction(value) + Fraction(1, 2))


def health_score(total_issues: int, total_files: int) -> int:
    if total_files <= 0:
        return 100
    return max(0, 100 - round_half_up(Fraction(100 * total_issues, total_files)))


def health_status(score: int) -> HealthStatus:
    if score >= 90:
        return HealthStatus.EXCELLENT
    if score >= 70:
        return HealthStatus.GOOD
    if score >= 50:
        return HealthStatus.FAIR
    return HealthStatus.POOR


class HealthReporter:
    """Combines integrity and duplicate scans into a scored report. Never mutates."""

    def __init__(
        self,
        file_store: FileStore,
        record_index: RecordIndex,
        checker: IntegrityChecker = None,
        detector: DuplicateDetector = None,
    ):
        self.file_store = file_store
        self.record_index = record_index
        self.checker = checker or IntegrityChecker(file_store, record_index)
        self.detector = detector or DuplicateDetector(file_store)

    @staticmethod
    def _summarize(integrity: IntegrityResult, duplicates: DuplicateReport) -> HealthSummary:
        summary = HealthSummary(
            total_files=integrity.total_files,
            duplicate_groups=len(duplicates.groups),
            duplicate_files=duplicates.duplicate_files,
            orphaned_files=len(integrity.orphaned),
            missing_files=len(integrity.missing),
            invalid_naming=len(integrity.invalid_naming),
            missing_references=len(integrity.missing_references),
            wasted_bytes=duplicates.total_wasted_bytes,
        )
        summary.total_issues = (
            summary.duplicate_files
            + summary.orphaned_files
            + summary.missing_files
            + summary.invalid_naming
        )
        if integrity.missing_reference_is_issue:
            summary.total_issues += summary.missing_references
        return summary

    @staticmethod
    def _recommendations(summary: HealthSummary, score: int, count_missing_references: bool) -> List[Recommendation]:
        recommendations = []

        if summary.duplicate_files > 0:
            recommendations.append(Recommendation(
                type="cleanup",
                priority=RecommendationPriority.MEDIUM,
                title="Remove Duplicate Images",
                description=(
                    f"{summary.duplicate_files} duplicate images found in "
                    f"{summary.duplicate_groups} groups"
                ),
                action="Run automatic duplicate correction to free up space",
                estimated_savings=f"{round_half_up(Fraction(summary.wasted_bytes, 1024))} KB",
            ))

        if summary.orphaned_files > 0:
            recommendations.append(Recommendation(
                type="cleanup",
                priority=RecommendationPriority.LOW,
                title="Clean Up Orphaned Images",
                description=f"{summary.orphaned_files} orphaned image files found",
                action="Run orphaned image cleanup to remove unused files",
            ))

        incorrect = summary.missing_files + summary.invalid_naming
        if count_missing_references:
            incorrect += summary.missing_references
        if incorrect > 0:
            recommendations.append(Recommendation(
                type="data_integrity",
                priority=RecommendationPriority.HIGH,
                title="Fix Incorrect References",
                description=f"{incorrect} categories have incorrect image references",
                action="Run automatic reference correction or manual review",
            ))

        if score < MAINTENANCE_THRESHOLD:
            recommendations.append(Recommendation(
                type="maintenance",
                priority=RecommendationPriority.HIGH,
                title="System Maintenance Required",
                description=f"Health score is {score}%, indicating significant issues",
                action="Run comprehensive cleanup and correction procedures",
            ))

        return recommendations

    def generate_report(self, include_details: bool = False) -> HealthReport:
        """
        Scan the images directory and score its health.

        Raises:
            ImageStoreUnavailableError: If the images directory cannot be read
        """
        started = time.monotonic()
        integrity = self.checker.check()
        duplicates = self.detector.detect()

        summary = self._summarize(integrity, duplicates)
        score = health_score(summary.total_issues, summary.total_files)
        report = HealthReport(
            timestamp=utc_now(),
            system=SYSTEM_NAME,
            version=__version__,
            health_score=score,
            status=health_status(score),
            summary=summary,
            recommendations=self._recommendations(summary, score, integrity.missing_reference_is_issue),
        )
        if include_details:
            report.details = HealthDetails(
                integrity=integrity,
                duplicates=duplicates,
                storage=self.storage_statistics(),
            )
        report.duration_ms = int((time.monotonic() - started) * 1000)

        log_info(
            f"Health report generated: score {score}%",
            status=report.status.value,
            total_issues=summary.total_issues,
            duration_ms=report.duration_ms,
        )
        return report

    def status(self) -> HealthStatusSummary:
        report = self.generate_report()
        return HealthStatusSummary(
            timestamp=report.timestamp,
            health_score=report.health_score,
            status=report.status,
            summary=report.summary,
            recommendations=report.recommendations[:STATUS_RECOMMENDATION_LIMIT],
        )

    def storage_statistics(self) -> StorageStatistics:
        """
        Sizes of the files in the images directory.

        Files that cannot be stat'ed are logged and left out of the totals.
        """
        files = self.file_store.list_image_files()
        sizes: List[FileSize] = []
        for filename in files:
            try:
                sizes.append(FileSize(filename=filename, size_bytes=self.file_store.stat(filename).size_bytes))
            except OSError as e:
                log_warning(f"Could not stat {filename}: {e}")

        sizes.sort(key=lambda item: (-item.size_bytes, item.filename))
        total_size = sum(item.size_bytes for item in sizes)

        records = self.record_index.load_all()
        with_images = sum(1 for record in records if record.filename)

        return StorageStatistics(
            total_files=len(files),
            total_size=total_size,
            average_size=round_half_up(Fraction(total_size, len(files))) if files else 0,
            largest_file=sizes[0] if sizes else None,
            smallest_file=sizes[-1] if sizes else None,
            total_categories=len(records),
            categories_with_images=with_images,
            storage_efficiency=round_half_up(Fraction(100 * with_images, len(records))) if records else 0,
            largest_files=sizes[:TOP_FILES_LIMIT],
        )
