"""SQLModel database models for Rover."""

from rover.models.files import StoredFile, StoredFileBase

__all__ = [
    "StoredFile",
    "StoredFileBase",
]
