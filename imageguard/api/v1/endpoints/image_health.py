"""
Admin endpoints for category image health, detection and correction.

Handlers are synchronous so FastAPI runs the filesystem scans in its threadpool.
"""
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Query

from imageguard.api.dependencies import (
    get_corrector,
    get_duplicate_detector,
    get_health_reporter,
    get_integrity_checker,
    get_migration_orchestrator,
    get_request_id,
)
from imageguard.core.logging_config import log_info
from imageguard.schemas.health import HealthReport, HealthStatusSummary, StorageStatistics
from imageguard.schemas.integrity import (
    CorrectionResult,
    DuplicateReport,
    FixAllResult,
    IntegrityResult,
)
from imageguard.schemas.migration import MigrationOptions, MigrationReport
from imageguard.services.corrector import Corrector
from imageguard.services.duplicate_detector import DuplicateDetector
from imageguard.services.health_service import HealthReporter
from imageguard.services.integrity_checker import IntegrityChecker
from imageguard.services.migration_service import MigrationOrchestrator

router = APIRouter()

_responses = {
    503: {"description": "Images directory unavailable"},
    500: {"description": "Internal server error"},
}


@router.get("/status", response_model=HealthStatusSummary, responses=_responses)
def get_status(reporter: Annotated[HealthReporter, Depends(get_health_reporter)]):
    """Health score, status and top recommendations."""
    return reporter.status()


@router.get("/report", response_model=HealthReport, responses=_responses)
def get_report(
    reporter: Annotated[HealthReporter, Depends(get_health_reporter)],
    include_details: bool = Query(default=False),
):
    """Full health report."""
    return reporter.generate_report(include_details=include_details)


@router.get("/integrity", response_model=IntegrityResult, responses=_responses)
def get_integrity(checker: Annotated[IntegrityChecker, Depends(get_integrity_checker)]):
    return checker.check()


@router.get("/storage", response_model=StorageStatistics, responses=_responses)
def get_storage(reporter: Annotated[HealthReporter, Depends(get_health_reporter)]):
    return reporter.storage_statistics()


@router.get("/detect/duplicates", response_model=DuplicateReport, responses=_responses)
def detect_duplicates(detector: Annotated[DuplicateDetector, Depends(get_duplicate_detector)]):
    return detector.detect()


@router.get("/detect/orphaned", response_model=Dict[str, Any], responses=_responses)
def detect_orphaned(checker: Annotated[IntegrityChecker, Depends(get_integrity_checker)]):
    result = checker.check()
    return {
        "orphaned_files": result.orphaned,
        "count": len(result.orphaned),
        "total_files": result.total_files,
        "checked_at": result.checked_at,
    }


@router.get("/detect/references", response_model=Dict[str, Any], responses=_responses)
def detect_references(checker: Annotated[IntegrityChecker, Depends(get_integrity_checker)]):
    """Categories whose image reference is missing, misnamed or absent."""
    result = checker.check()
    return {
        "missing": [finding.model_dump(mode="json") for finding in result.missing],
        "invalid_naming": [finding.model_dump(mode="json") for finding in result.invalid_naming],
        "missing_references": [finding.model_dump(mode="json") for finding in result.missing_references],
        "count": result.total_issues - len(result.orphaned),
        "checked_at": result.checked_at,
    }


@router.post("/correct/duplicates", response_model=CorrectionResult, responses=_responses)
def correct_duplicates(
    corrector: Annotated[Corrector, Depends(get_corrector)],
    request_id: Annotated[str, Depends(get_request_id)],
    dry_run: bool = Query(default=False),
    create_backup: bool = Query(default=True),
):
    log_info("Duplicate correction requested", request_id=request_id, dry_run=dry_run)
    return corrector.deduplicate(dry_run=dry_run, create_backup=create_backup)


@router.post("/correct/orphaned", response_model=CorrectionResult, responses=_responses)
def correct_orphaned(
    corrector: Annotated[Corrector, Depends(get_corrector)],
    request_id: Annotated[str, Depends(get_request_id)],
    dry_run: bool = Query(default=False),
    create_backup: bool = Query(default=True),
):
    log_info("Orphan cleanup requested", request_id=request_id, dry_run=dry_run)
    return corrector.remove_orphans(dry_run=dry_run, create_backup=create_backup)


@router.post("/correct/references", response_model=Dict[str, CorrectionResult], responses=_responses)
def correct_references(
    corrector: Annotated[Corrector, Depends(get_corrector)],
    request_id: Annotated[str, Depends(get_request_id)],
    dry_run: bool = Query(default=False),
    create_backup: bool = Query(default=True),
):
    """Rename misnamed images, then re-point categories with missing images."""
    log_info("Reference correction requested", request_id=request_id, dry_run=dry_run)
    return {
        "naming": corrector.fix_naming(dry_run=dry_run, create_backup=create_backup),
        "missing": corrector.repair_missing(dry_run=dry_run),
    }


@router.post("/correct/all", response_model=FixAllResult, responses=_responses)
def correct_all(
    corrector: Annotated[Corrector, Depends(get_corrector)],
    request_id: Annotated[str, Depends(get_request_id)],
    dry_run: bool = Query(default=False),
    create_backup: bool = Query(default=True),
):
    log_info("Full correction requested", request_id=request_id, dry_run=dry_run)
    return corrector.fix_all(dry_run=dry_run, create_backup=create_backup)


@router.post("/migrate", response_model=MigrationReport, responses=_responses)
def run_migration(
    orchestrator: Annotated[MigrationOrchestrator, Depends(get_migration_orchestrator)],
    request_id: Annotated[str, Depends(get_request_id)],
    dry_run: bool = Query(default=True),
    create_backup: bool = Query(default=True),
    cleanup_orphans: bool = Query(default=True),
    verify: bool = Query(default=True),
):
    """Run the staged migration. Defaults to a dry run."""
    log_info("Migration requested", request_id=request_id, dry_run=dry_run)
    return orchestrator.run(MigrationOptions(
        dry_run=dry_run,
        create_backup=create_backup,
        cleanup_orphans=cleanup_orphans,
        verify=verify,
    ))
