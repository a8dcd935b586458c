"""Shared Pydantic schemas for API requests and responses."""

from .epub_import import EpubImportResponse

__all__ = [
    "EpubImportResponse",
]
