"""
Enums and constants for the application.
"""
from enum import Enum


class FindingType(str, Enum):
    """Kinds of inconsistency between category records and image files."""
    ORPHANED = "orphaned"
    MISSING = "missing"
    NON_UNIQUE_FORMAT = "non_unique_format"
    ID_MISMATCH = "id_mismatch"
    MISSING_REFERENCE = "missing_reference"


class ImageNamingVersion(int, Enum):
    """Naming scheme of a category's image_path."""
    UNKNOWN = 0
    UNIQUE = 1


class HealthStatus(str, Enum):
    """Health buckets derived from the health score."""
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class RecommendationPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class BackupPrefix(str, Enum):
    """Prefixes of copies stored in the images backup directory."""
    ORPHAN = "orphan"
    DUPLICATE = "duplicate"
    MIGRATED = "migrated"
    ROLLBACK = "rollback"


class MigrationStage(str, Enum):
    ANALYZE = "analyze"
    BACKUP = "backup"
    MIGRATE = "migrate"
    CLEANUP = "cleanup"
    VERIFY = "verify"
