"""Database models"""

from stars_keeper.models.repository import Repository
from stars_keeper.models.star import Star

__all__ = [
    "Repository",
    "Star",
]
