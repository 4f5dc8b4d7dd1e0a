"""
Custom application exceptions.
"""

class ImageGuardException(Exception):
    """Base exception for the image integrity engine."""
    pass


class ImageStoreUnavailableError(ImageGuardException):
    """Raised when the images directory cannot be read at all."""
    pass


class ConflictError(ImageGuardException):
    """Raised when a rename or copy target already exists."""

    def __init__(self, target: str):
        super().__init__(f"Target already exists: {target}")
        self.target = target


class BackupError(ImageGuardException):
    """Raised when a backup copy could not be written or verified."""
    pass


class CategoryNotFoundError(ImageGuardException):
    """Raised when a category is not found."""
    pass


class InvalidCategoryIdError(ImageGuardException):
    """Raised when a category id cannot be encoded into a unique filename."""
    pass


class BackupArtifactError(ImageGuardException):
    """Raised when a migration backup artifact is missing or malformed."""
    pass


class RecordStoreUnavailableError(ImageGuardException):
    """Raised when the category table cannot be read or written."""
    pass
