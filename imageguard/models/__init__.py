# Import all models for easy access
from .base import BaseModel
from .category import Category

__all__ = [
    "BaseModel",
    "Category",
]
