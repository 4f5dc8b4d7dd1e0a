"""
Category model.

Only the fields the image integrity engine needs are declared here; the shop
owns the rest of the category document.
"""
from typing import Optional

from sqlalchemy import Column, Integer, String
from sqlmodel import Field

from .base import BaseModel
from .enums import ImageNamingVersion


class Category(BaseModel, table=True):
    """
    Product category with its display image.
    """
    __tablename__ = "category"

    name: str = Field(..., min_length=1, max_length=100)
    image_path: Optional[str] = Field(
        default=None,
        sa_column=Column(String(500), nullable=True, index=True),
        description="Public path of the category image, e.g. /uploads/categories/<file>",
    )
    image_naming_version: int = Field(
        default=ImageNamingVersion.UNKNOWN.value,
        sa_column=Column(Integer, nullable=False, server_default="0"),
        description="0 until the image has been verified or migrated to the unique naming format",
    )
