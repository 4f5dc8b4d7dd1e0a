"""
Migration and rollback schemas.
"""
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from imageguard.models.enums import MigrationStage
from imageguard.schemas.integrity import CorrectionResult, IntegrityResult, MigrationAnalysis


class MigrationOptions(BaseModel):
    """Switches for a migration run."""
    dry_run: bool = False
    create_backup: bool = True
    cleanup_orphans: bool = True
    verify: bool = True


class MigrationReport(BaseModel):
    """Outcome of every stage that ran, plus the stage that failed if any."""
    options: MigrationOptions
    backup_path: Optional[str] = None
    analysis: Optional[MigrationAnalysis] = None
    migrated: Optional[CorrectionResult] = None
    cleaned: Optional[CorrectionResult] = None
    integrity_result: Optional[IntegrityResult] = None
    warnings: List[str] = Field(default_factory=list)
    failed_stage: Optional[MigrationStage] = None
    error: Optional[str] = None
    duration_ms: int = 0

    @computed_field
    @property
    def item_errors(self) -> int:
        return sum(part.error_count for part in (self.migrated, self.cleaned) if part is not None)

    @computed_field
    @property
    def verified(self) -> Optional[bool]:
        if self.integrity_result is None:
            return None
        return self.integrity_result.is_healthy

    @computed_field
    @property
    def success(self) -> bool:
        return self.failed_stage is None and self.item_errors == 0


class BackupInfo(BaseModel):
    """A migration backup artifact on disk."""
    path: str
    timestamp: Optional[str] = None
    categories: int = 0
    files: int = 0
    size_bytes: int = 0


class RollbackResult(BaseModel):
    """Outcome of restoring a migration backup artifact."""
    backup_path: str
    dry_run: bool = False
    files_restored: CorrectionResult
    records: CorrectionResult
    files_removed: CorrectionResult

    @computed_field
    @property
    def error_count(self) -> int:
        return self.files_restored.error_count + self.records.error_count + self.files_removed.error_count

    @computed_field
    @property
    def success(self) -> bool:
        return self.error_count == 0
