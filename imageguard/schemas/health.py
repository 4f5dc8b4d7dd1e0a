"""
Health report schemas.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from imageguard.models.enums import HealthStatus, RecommendationPriority
from imageguard.schemas.integrity import DuplicateReport, IntegrityResult


class FileSize(BaseModel):
    filename: str
    size_bytes: int


class StorageStatistics(BaseModel):
    """Disk usage of the images directory."""
    total_files: int = 0
    total_size: int = 0
    average_size: int = 0
    largest_file: Optional[FileSize] = None
    smallest_file: Optional[FileSize] = None
    total_categories: int = 0
    categories_with_images: int = 0
    storage_efficiency: int = 0
    largest_files: List[FileSize] = Field(default_factory=list)


class HealthSummary(BaseModel):
    total_files: int = 0
    total_issues: int = 0
    duplicate_groups: int = 0
    duplicate_files: int = 0
    orphaned_files: int = 0
    missing_files: int = 0
    invalid_naming: int = 0
    missing_references: int = 0
    wasted_bytes: int = 0


class Recommendation(BaseModel):
    type: str
    priority: RecommendationPriority
    title: str
    description: str
    action: str
    estimated_savings: Optional[str] = None


class HealthDetails(BaseModel):
    integrity: IntegrityResult
    duplicates: DuplicateReport
    storage: StorageStatistics


class HealthReport(BaseModel):
    """Read-only snapshot of the image system's health."""
    timestamp: datetime
    system: str
    version: str
    duration_ms: int = 0
    health_score: int = Field(ge=0, le=100)
    status: HealthStatus
    summary: HealthSummary
    recommendations: List[Recommendation] = Field(default_factory=list)
    details: Optional[HealthDetails] = None


class HealthStatusSummary(BaseModel):
    """Compact health view for monitoring."""
    timestamp: datetime
    health_score: int
    status: HealthStatus
    summary: HealthSummary
    recommendations: List[Recommendation] = Field(default_factory=list)
