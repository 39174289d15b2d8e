"""
Backing store for file records.

FileStore is the interface the reconciler depends on. SqlFileStore is the
SQLModel implementation used by the API; tests substitute an in-memory one.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Protocol

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlmodel import Session

from api.files.exceptions import StoreRejected, StoreUnavailable
from api.files.models import (
    EDITABLE_FIELDS,
    FileRecord,
    FileRecordRules,
    WriteOutcome,
)

logger = logging.getLogger(__name__)

# Errors meaning the database could not be reached at all
CONNECTION_ERRORS = (OperationalError, InterfaceError)

ROLLED_BACK_MESSAGE = "Not written: another record in the batch was rejected."


class FileStore(Protocol):
    """Partial-update datastore for file records."""

    def fetch_by_id(self, file_id: str) -> FileRecord | None:
        """Return a detached copy of the record, or None if it does not exist."""
        ...

    def bulk_write(
        self,
        records: Sequence[FileRecord],
        allow_partial_failure: bool = True,
    ) -> list[WriteOutcome]:
        """Write the editable fields of every record; outcomes align with records."""
        ...


def check_rules(record: FileRecord) -> None:
    """
    Validate a record against the store-side rules.

    Raises:
        StoreRejected: with one message per violated rule
    """
    try:
        FileRecordRules.model_validate(
            {field: getattr(record, field) for field in EDITABLE_FIELDS}
        )
    except ValidationError as exc:
        messages = []
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"])
            messages.append(f"{field}: {error['msg']}")
        raise StoreRejected(messages) from exc


class SqlFileStore:
    """FileStore backed by a SQLModel session."""

    def __init__(self, session: Session, writer_name: str):
        self.session = session
        self.writer_name = writer_name

    def fetch_by_id(self, file_id: str) -> FileRecord | None:
        try:
            stored = self.session.get(FileRecord, file_id)
        except CONNECTION_ERRORS as exc:
            raise StoreUnavailable(f"Unable to read file record {file_id}: {exc}") from exc
        if stored is None:
            return None
        # Callers mutate the copy; the session only sees bulk_write changes
        return FileRecord.model_validate(stored, from_attributes=True)

    def bulk_write(
        self,
        records: Sequence[FileRecord],
        allow_partial_failure: bool = True,
    ) -> list[WriteOutcome]:
        """
        Write a batch of records in one transaction.

        With allow_partial_failure each record is written in its own
        savepoint, so a rejected record does not affect the others.
        Without it, any rejection leaves the whole batch unwritten and
        every record is reported as failed.

        Raises:
            StoreUnavailable: if the database cannot be reached
        """
        written_at = datetime.now(timezone.utc)

        if not allow_partial_failure:
            outcomes = [self._precheck(record) for record in records]
            if not all(outcome.success for outcome in outcomes):
                logger.warning(
                    "Rejecting batch of %d file records: rule violations found",
                    len(records),
                )
                return [self._as_rolled_back(outcome) for outcome in outcomes]

        try:
            outcomes = [self._write_one(record, written_at) for record in records]
            if not allow_partial_failure and not all(o.success for o in outcomes):
                self.session.rollback()
                return [self._as_rolled_back(outcome) for outcome in outcomes]
            self.session.commit()
        except CONNECTION_ERRORS as exc:
            self.session.rollback()
            raise StoreUnavailable(f"Unable to write file records: {exc}") from exc

        logger.debug(
            "Bulk write of %d file records: %d written",
            len(records),
            sum(1 for outcome in outcomes if outcome.success),
        )
        return outcomes

    def _precheck(self, record: FileRecord) -> WriteOutcome:
        try:
            check_rules(record)
        except StoreRejected as exc:
            return WriteOutcome(id=record.id, success=False, error_messages=exc.messages)
        return WriteOutcome(id=record.id, success=True)

    def _write_one(self, record: FileRecord, written_at: datetime) -> WriteOutcome:
        try:
            check_rules(record)
            stored = self.session.get(FileRecord, record.id)
            if stored is None:
                raise StoreRejected(["not found"])
            with self.session.begin_nested():
                for field in EDITABLE_FIELDS:
                    setattr(stored, field, getattr(record, field))
                stored.last_modified_at = written_at
                stored.last_modified_by_name = self.writer_name
                self.session.add(stored)
        except StoreRejected as exc:
            logger.info("File record %s rejected: %s", record.id, exc)
            return WriteOutcome(id=record.id, success=False, error_messages=exc.messages)
        except IntegrityError as exc:
            logger.info("File record %s rejected by database: %s", record.id, exc.orig)
            return WriteOutcome(id=record.id, success=False, error_messages=[str(exc.orig)])

        record.last_modified_at = written_at
        record.last_modified_by_name = self.writer_name
        return WriteOutcome(id=record.id, success=True)

    @staticmethod
    def _as_rolled_back(outcome: WriteOutcome) -> WriteOutcome:
        if outcome.success:
            return WriteOutcome(
                id=outcome.id, success=False, error_messages=[ROLLED_BACK_MESSAGE]
            )
        return outcome
