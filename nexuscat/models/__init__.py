"""Database models for the model catalog and secret store."""

from nexuscat.models.base import Base, Record
from nexuscat.models.catalog import CatalogModel, CurrentModelPointer
from nexuscat.models.secret import StoredSecret

__all__ = [
    "Base",
    "Record",
    "CatalogModel",
    "CurrentModelPointer",
    "StoredSecret",
]
