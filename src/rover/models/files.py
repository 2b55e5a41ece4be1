"""StoredFile model for the database backend.

Provides the ``StoredFileBase`` non-table base class.  Subclass with
``table=True`` and a custom ``__tablename__`` to store a backend's files
in a different table.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class StoredFileBase(SQLModel):
    """Base fields for a stored file or directory."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    path: str = Field(index=True, unique=True)
    parent_path: str = Field(default="/", index=True)
    name: str = Field(default="")
    is_directory: bool = Field(default=False)
    content: bytes | None = Field(default=None)
    size_bytes: int = Field(default=0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )


class StoredFile(StoredFileBase, table=True):
    """Default file table — ``rover_files``."""

    __tablename__ = "rover_files"
