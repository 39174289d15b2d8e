"""
Models for the Files API

FileRecord rows hold the metadata of one version of an uploaded file.
Versions of the same logical file share a group_id, and FileLink rows
attach a group to the parent records that own it.
"""

import uuid
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field, UniqueConstraint
from pydantic import AliasChoices, BaseModel, ConfigDict
from pydantic import Field as PydanticField


# Fields an edit may change. Everything else is owned by the store.
EDITABLE_FIELDS = ("title", "description", "document_type")


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Database Tables
# ============================================================================


class FileRecord(SQLModel, table=True):
    """One version of an uploaded file's metadata"""
    __tablename__ = "filerecord"

    id: str = Field(default_factory=_new_id, primary_key=True, max_length=64)
    group_id: str = Field(index=True, max_length=64)
    version_number: int = Field(default=1)
    title: str = Field(max_length=255)
    description: str | None = Field(default=None)
    document_type: str | None = Field(default=None, max_length=255)
    file_type: str | None = Field(default=None, max_length=50)
    size_bytes: int | None = None  # Raw size, never converted here
    last_modified_at: datetime = Field(default_factory=_utcnow, index=True)
    last_modified_by_name: str | None = Field(default=None, max_length=255)

    model_config = ConfigDict(from_attributes=True)


class FileLink(SQLModel, table=True):
    """Associates a parent record with a logical file group"""
    __tablename__ = "filelink"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    parent_id: str = Field(index=True, max_length=64)
    group_id: str = Field(index=True, max_length=64)

    __table_args__ = (
        UniqueConstraint("parent_id", "group_id", name="uq_filelink_parent_group"),
    )


# ============================================================================
# Request/Response Models (Pydantic)
# ============================================================================


class FileRecordRules(SQLModel):
    """
    Store-side rules every record must satisfy before it is written.
    Violations reject that record only.
    """
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=32000)
    document_type: str | None = Field(default=None, max_length=255)


class FileEdit(BaseModel):
    """
    A partial patch submitted by the file table.

    Absent and blank values both mean "leave unchanged". Read-only keys
    (size, last modified, ...) are ignored.
    """
    id: str | None = None
    title: str | None = None
    description: str | None = None
    document_type: str | None = PydanticField(
        default=None,
        validation_alias=AliasChoices("document_type", "documentType"),
    )

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class FileRecordPublic(SQLModel):
    """Public representation of a file record"""
    id: str
    group_id: str
    version_number: int
    title: str
    description: str | None
    document_type: str | None
    file_type: str | None
    size_bytes: int | None
    last_modified_at: datetime
    last_modified_by_name: str | None

    model_config = ConfigDict(from_attributes=True)


class WriteOutcome(SQLModel):
    """Result of writing one record in a bulk write"""
    id: str
    success: bool
    error_messages: list[str] = Field(default_factory=list)


class ReconcileResult(SQLModel):
    """Per-record ledger of a batch of edits"""
    success_ids: list[str] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)
