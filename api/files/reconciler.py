"""
Applies a batch of partial file edits and reports a per-record ledger.

Edits are merged onto the stored records with present-and-non-blank-wins
semantics and written back in a single bulk write. Unknown ids and store
rejections are reported in the result rather than raised.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from api.files.exceptions import InvalidArgument, StoreUnavailable
from api.files.models import EDITABLE_FIELDS, FileEdit, FileRecord, ReconcileResult
from api.files.store import FileStore

logger = logging.getLogger(__name__)

MISSING_ID_KEY = "missing-id"
MISSING_ID_MESSAGE = "missing id"
NOT_FOUND_MESSAGE = "not found"
REJECTED_MESSAGE = "rejected by store"


def is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def merge_edit(record: FileRecord, edit: FileEdit) -> FileRecord:
    """Overwrite each editable field the edit carries a non-blank value for."""
    for field in EDITABLE_FIELDS:
        value = getattr(edit, field)
        if not is_blank(value):
            setattr(record, field, value)
    return record


@dataclass
class EditOutcome:
    """Resolution of one edit: either a merged record or an error message"""
    key: str
    record: FileRecord | None = None
    error: str | None = None


class FileUpdateReconciler:
    """Reconciles caller-submitted edits against a FileStore"""

    def __init__(self, store: FileStore):
        self.store = store

    def reconcile(self, edits: Sequence[FileEdit] | None) -> ReconcileResult:
        """
        Apply a batch of edits.

        Args:
            edits: Partial patches, applied in order

        Returns:
            ReconcileResult with every submitted id in either success_ids or errors

        Raises:
            InvalidArgument: if no edits were submitted
            StoreUnavailable: if the store cannot be reached
        """
        if not edits:
            raise InvalidArgument("No file edits were submitted")

        logger.info("Reconciling %d file edits", len(edits))

        merged: dict[str, FileRecord] = {}
        errors: dict[str, str] = {}

        for position, edit in enumerate(edits):
            outcome = self._resolve(position, edit, merged, errors)
            if outcome.record is not None:
                merged[outcome.key] = outcome.record
            else:
                errors[outcome.key] = outcome.error

        success_ids = self._write(list(merged.values()), errors)

        logger.info(
            "Reconciled file edits: %d succeeded, %d failed",
            len(success_ids),
            len(errors),
        )
        return ReconcileResult(success_ids=success_ids, errors=errors)

    def _resolve(
        self,
        position: int,
        edit: FileEdit,
        merged: dict[str, FileRecord],
        errors: dict[str, str],
    ) -> EditOutcome:
        if is_blank(edit.id):
            return EditOutcome(
                key=f"{MISSING_ID_KEY}:{position}", error=MISSING_ID_MESSAGE
            )

        if edit.id in merged:
            return EditOutcome(key=edit.id, record=merge_edit(merged[edit.id], edit))
        if edit.id in errors:
            # Already known to be missing; don't look it up again
            return EditOutcome(key=edit.id, error=errors[edit.id])

        record = self.store.fetch_by_id(edit.id)
        if record is None:
            logger.warning("File record %s not found", edit.id)
            return EditOutcome(key=edit.id, error=NOT_FOUND_MESSAGE)
        return EditOutcome(key=edit.id, record=merge_edit(record, edit))

    def _write(self, records: list[FileRecord], errors: dict[str, str]) -> list[str]:
        if not records:
            return []

        outcomes = self.store.bulk_write(records, allow_partial_failure=True)
        if len(outcomes) != len(records):
            raise StoreUnavailable(
                f"Store returned {len(outcomes)} outcomes for {len(records)} records"
            )

        success_ids = []
        for record, outcome in zip(records, outcomes):
            if outcome.success:
                success_ids.append(record.id)
                continue
            message = " ".join(outcome.error_messages).strip() or REJECTED_MESSAGE
            logger.warning("File record %s rejected: %s", record.id, message)
            errors[record.id] = message
        return success_ids
