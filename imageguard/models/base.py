"""
Base model shared by all tables.
"""
import secrets
from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from imageguard.core.time_utils import utc_now


def generate_object_id() -> str:
    """24 lowercase hex characters, compatible with document-store ObjectIds."""
    return secrets.token_hex(12)


class BaseModel(SQLModel):
    """
    Base model with an ObjectId-style primary key and timestamps.
    """
    id: str = Field(
        default_factory=generate_object_id,
        primary_key=True,
        min_length=24,
        max_length=24,
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )
