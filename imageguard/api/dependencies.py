"""
Shared API dependencies.
"""
from typing import Annotated

from fastapi import Depends
from sqlmodel import Session

from imageguard.core.config import settings
from imageguard.core.database import get_session
from imageguard.middleware.request_logging import request_id_ctx
from imageguard.services.corrector import Corrector
from imageguard.services.duplicate_detector import DuplicateDetector
from imageguard.services.file_store import FileStore
from imageguard.services.health_service import HealthReporter
from imageguard.services.integrity_checker import IntegrityChecker
from imageguard.services.migration_service import MigrationOrchestrator
from imageguard.services.record_index import RecordIndex


def get_request_id() -> str:
    """
    Current request ID from context.

    Returns:
        The current request ID, or 'unknown' if not in a request context.
    """
    return request_id_ctx.get()


def get_file_store() -> FileStore:
    return FileStore(settings.images_path)


def get_record_index(session: Annotated[Session, Depends(get_session)]) -> RecordIndex:
    return RecordIndex(session)


def get_integrity_checker(
    file_store: Annotated[FileStore, Depends(get_file_store)],
    record_index: Annotated[RecordIndex, Depends(get_record_index)],
) -> IntegrityChecker:
    return IntegrityChecker(file_store, record_index)


def get_duplicate_detector(
    file_store: Annotated[FileStore, Depends(get_file_store)],
) -> DuplicateDetector:
    return DuplicateDetector(file_store)


def get_corrector(
    file_store: Annotated[FileStore, Depends(get_file_store)],
    record_index: Annotated[RecordIndex, Depends(get_record_index)],
) -> Corrector:
    return Corrector(file_store, record_index)


def get_health_reporter(
    file_store: Annotated[FileStore, Depends(get_file_store)],
    record_index: Annotated[RecordIndex, Depends(get_record_index)],
) -> HealthReporter:
    return HealthReporter(file_store, record_index)


def get_migration_orchestrator(
    file_store: Annotated[FileStore, Depends(get_file_store)],
    record_index: Annotated[RecordIndex, Depends(get_record_index)],
) -> MigrationOrchestrator:
    return MigrationOrchestrator(file_store, record_index)
