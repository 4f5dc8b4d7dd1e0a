"""
Database access to category image associations.
"""
from collections import Counter
from typing import Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from imageguard.core.config import settings
from imageguard.core.exceptions import CategoryNotFoundError, RecordStoreUnavailableError
from imageguard.core.logging_config import log_error, log_info
from imageguard.core.time_utils import utc_now
from imageguard.models.category import Category
from imageguard.models.enums import ImageNamingVersion
from imageguard.schemas.integrity import CategoryRecord
from imageguard.services import naming


class RecordIndex:
    """
    Reads and updates the ``{id, image_path}`` pairs of the category table.

    Every read hits the database; nothing is cached between calls.
    """

    def __init__(self, session: Session, image_url_prefix: Optional[str] = None):
        self.session = session
        self.image_url_prefix = (image_url_prefix or settings.image_url_prefix).rstrip("/")

    def load_all(self) -> List[CategoryRecord]:
        """
        Every category's id, name and image path.

        Raises:
            RecordStoreUnavailableError: If the category table cannot be queried
        """
        try:
            rows = self.session.exec(
                select(Category.id, Category.name, Category.image_path).order_by(Category.id)
            ).all()
        except SQLAlchemyError as e:
            log_error(e, operation="load_categories")
            raise RecordStoreUnavailableError(f"Category records unavailable: {e}") from e
        return [
            CategoryRecord(id=row[0], name=row[1], image_path=row[2])
            for row in rows
        ]

    def referenced_filenames(self) -> Set[str]:
        return {record.filename for record in self.load_all() if record.filename}

    def reference_counts(self) -> Dict[str, int]:
        """How many categories point at each filename."""
        return dict(Counter(record.filename for record in self.load_all() if record.filename))

    def image_path_for(self, filename: str) -> str:
        return f"{self.image_url_prefix}/{filename}"

    def set_image_path(self, category_id: str, filename: str) -> CategoryRecord:
        """
        Point a category at an image file in the store.

        Raises:
            CategoryNotFoundError: If no category has this id
            RecordStoreUnavailableError: If the update cannot be committed
        """
        category = self._get(category_id)
        if category is None:
            raise CategoryNotFoundError(f"Category {category_id} not found")

        category.image_path = self.image_path_for(filename)
        category.image_naming_version = (
            ImageNamingVersion.UNIQUE.value
            if naming.is_valid_association(category_id, filename)
            else ImageNamingVersion.UNKNOWN.value
        )
        category.updated_at = utc_now()
        self.session.add(category)
        self._commit()
        self.session.refresh(category)

        log_info("Category image path updated", category_id=category_id, image_path=category.image_path)
        return CategoryRecord.model_validate(category)

    def snapshot(self) -> List[dict]:
        """JSON-ready dump of every category's image association."""
        return [record.model_dump() for record in self.load_all()]

    def restore_image_paths(self, image_paths: Dict[str, Optional[str]]) -> List[str]:
        """
        Write back image paths captured in a snapshot.

        Returns:
            Ids of categories whose image_path actually changed

        Raises:
            CategoryNotFoundError: If a category in the snapshot no longer exists
            RecordStoreUnavailableError: If the update cannot be committed
        """
        changed: List[str] = []
        for category_id, image_path in image_paths.items():
            category = self._get(category_id)
            if category is None:
                self.session.rollback()
                raise CategoryNotFoundError(f"Category {category_id} not found")
            if category.image_path == image_path:
                continue
            category.image_path = image_path
            category.image_naming_version = (
                ImageNamingVersion.UNIQUE.value
                if naming.is_valid_association(category_id, image_path)
                else ImageNamingVersion.UNKNOWN.value
            )
            category.updated_at = utc_now()
            self.session.add(category)
            changed.append(category_id)

        self._commit()
        return changed

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            log_error(e, operation="commit_categories")
            raise RecordStoreUnavailableError(f"Category update failed: {e}") from e

    def _get(self, category_id: str) -> Optional[Category]:
        try:
            return self.session.get(Category, category_id)
        except SQLAlchemyError as e:
            self.session.rollback()
            log_error(e, operation="get_category", category_id=category_id)
            raise RecordStoreUnavailableError(f"Category {category_id} unavailable: {e}") from e
