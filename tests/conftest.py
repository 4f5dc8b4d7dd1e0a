"""
Pytest fixtures shared across the unit and CLI suites.

Every test gets its own images directory under tmp_path and its own
in-memory SQLite database.
"""
from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Callable, Optional

# Settings, logging and the module-level engine are created at import time.
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="imageguard-tests-"))
os.environ.setdefault("LOG_DIR", str(_TEST_ROOT / "logs"))
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("IMAGES_DIR", str(_TEST_ROOT / "uploads" / "categories"))
os.environ.setdefault("BACKUP_DIR", str(_TEST_ROOT / "backups"))
os.environ.setdefault("SKIP_DB_INIT", "true")

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from imageguard.models.category import Category
from imageguard.services.file_store import FileStore
from imageguard.services.record_index import RecordIndex

URL_PREFIX = "/uploads/categories"


@pytest.fixture
def images_dir(tmp_path) -> Path:
    """Create a temporary images directory."""
    path = tmp_path / "categories"
    path.mkdir()
    return path


@pytest.fixture
def backup_dir(tmp_path) -> Path:
    """Directory for migration backup artifacts, outside the images directory."""
    return tmp_path / "backups"


@pytest.fixture
def file_store(images_dir: Path) -> FileStore:
    return FileStore(images_dir)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine usable from worker threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    session = Session(db_engine)
    yield session
    session.close()


@pytest.fixture
def record_index(db_session: Session) -> RecordIndex:
    return RecordIndex(db_session, image_url_prefix=URL_PREFIX)


@pytest.fixture
def category_factory(db_session: Session) -> Callable[..., Category]:
    """Factory that inserts categories, optionally pointing at an image file."""

    def _create(
        category_id: Optional[str] = None,
        filename: Optional[str] = None,
        name: str = "Pizza",
        image_path: Optional[str] = None,
    ) -> Category:
        if image_path is None and filename is not None:
            image_path = f"{URL_PREFIX}/{filename}"
        category = Category(name=name, image_path=image_path)
        if category_id:
            category.id = category_id
        db_session.add(category)
        db_session.commit()
        db_session.refresh(category)
        return category

    return _create


@pytest.fixture
def write_image(images_dir: Path) -> Callable[..., str]:
    """Write an image file into the images directory and return its name."""

    def _write(filename: str, content: bytes = b"\xff\xd8\xff\xe0fake-jpeg", mtime: Optional[float] = None) -> str:
        path = images_dir / filename
        path.write_bytes(content)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return filename

    return _write
