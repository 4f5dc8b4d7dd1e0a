"""
Integrity, duplicate and correction schemas.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from imageguard.models.enums import FindingType


class CategoryRecord(BaseModel):
    """Read model of a category's image association."""
    id: str
    name: Optional[str] = None
    image_path: Optional[str] = None

    model_config = {"frozen": True, "from_attributes": True}

    @property
    def filename(self) -> Optional[str]:
        if not self.image_path:
            return None
        return self.image_path.replace("\\", "/").rsplit("/", 1)[-1] or None


class ImageFile(BaseModel):
    """A file directly under the images directory."""
    filename: str
    size_bytes: int
    modified_at: datetime
    content_hash: Optional[str] = None


class Finding(BaseModel):
    """One inconsistency between the database and the images directory."""
    type: FindingType
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    filename: Optional[str] = None
    image_path: Optional[str] = None
    extracted_id: Optional[str] = None
    legacy: bool = False
    description: str


class IntegrityResult(BaseModel):
    """Result of a full integrity scan."""
    orphaned: List[str] = Field(default_factory=list)
    missing: List[Finding] = Field(default_factory=list)
    invalid_naming: List[Finding] = Field(default_factory=list)
    missing_references: List[Finding] = Field(default_factory=list)
    total_files: int = 0
    total_categories: int = 0
    categories_with_images: int = 0
    missing_reference_is_issue: bool = False
    checked_at: datetime

    @computed_field
    @property
    def total_issues(self) -> int:
        total = len(self.orphaned) + len(self.missing) + len(self.invalid_naming)
        if self.missing_reference_is_issue:
            total += len(self.missing_references)
        return total

    @computed_field
    @property
    def is_healthy(self) -> bool:
        return self.total_issues == 0

    def findings(self) -> List[Finding]:
        """All findings, orphans included, as one flat list."""
        orphan_findings = [
            Finding(
                type=FindingType.ORPHANED,
                filename=filename,
                description="File exists but is not referenced by any category",
            )
            for filename in self.orphaned
        ]
        return orphan_findings + self.missing + self.invalid_naming + self.missing_references


class CategoryCounts(BaseModel):
    total: int = 0
    with_images: int = 0
    needs_migration: int = 0
    already_unique: int = 0
    missing_files: int = 0


class FileCounts(BaseModel):
    total: int = 0
    unique_format: int = 0
    legacy_format: int = 0
    referenced: int = 0
    orphaned: int = 0


class MigrationAnalysis(BaseModel):
    """Snapshot of how far the image set is from the unique naming scheme."""
    categories: CategoryCounts = Field(default_factory=CategoryCounts)
    files: FileCounts = Field(default_factory=FileCounts)
    issues: List[Finding] = Field(default_factory=list)


class DuplicateGroup(BaseModel):
    """Files with byte-identical content."""
    content_hash: str
    files: List[str]
    size_bytes: int

    @computed_field
    @property
    def wasted_bytes(self) -> int:
        return (len(self.files) - 1) * self.size_bytes


class DuplicateReport(BaseModel):
    groups: List[DuplicateGroup] = Field(default_factory=list)
    total_files: int = 0
    processed_files: int = 0
    unreadable: List[str] = Field(default_factory=list)
    duration_ms: int = 0

    @computed_field
    @property
    def total_wasted_bytes(self) -> int:
        return sum(group.wasted_bytes for group in self.groups)

    @computed_field
    @property
    def duplicate_files(self) -> int:
        return sum(len(group.files) - 1 for group in self.groups)


class CorrectionDetail(BaseModel):
    action: str
    filename: Optional[str] = None
    new_filename: Optional[str] = None
    category_id: Optional[str] = None
    reason: Optional[str] = None
    bytes: Optional[int] = None


class CorrectionResult(BaseModel):
    """Outcome of one batch of corrections."""
    operation: str
    dry_run: bool = False
    corrected_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    bytes_freed: int = 0
    details: List[CorrectionDetail] = Field(default_factory=list)

    def corrected(self, action: str, **kwargs) -> None:
        self.corrected_count += 1
        self.details.append(CorrectionDetail(action=action, **kwargs))

    def skipped(self, reason: str, **kwargs) -> None:
        self.skipped_count += 1
        self.details.append(CorrectionDetail(action="skipped", reason=reason, **kwargs))

    def failed(self, reason: str, **kwargs) -> None:
        self.error_count += 1
        self.details.append(CorrectionDetail(action="error", reason=reason, **kwargs))


class FixAllResult(BaseModel):
    naming: CorrectionResult
    missing: CorrectionResult
    duplicates: CorrectionResult
    orphans: CorrectionResult

    def _parts(self) -> List[CorrectionResult]:
        return [self.naming, self.missing, self.duplicates, self.orphans]

    @computed_field
    @property
    def corrected_count(self) -> int:
        return sum(part.corrected_count for part in self._parts())

    @computed_field
    @property
    def skipped_count(self) -> int:
        return sum(part.skipped_count for part in self._parts())

    @computed_field
    @property
    def error_count(self) -> int:
        return sum(part.error_count for part in self._parts())

    @computed_field
    @property
    def bytes_freed(self) -> int:
        return sum(part.bytes_freed for part in self._parts())
