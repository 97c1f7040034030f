"""Document model and page capture."""

from .document import Document, Location, MutationRecord, StorageArea

__all__ = ["Document", "Location", "MutationRecord", "StorageArea"]
