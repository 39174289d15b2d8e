"""
Services for the Files API
"""

from collections.abc import Sequence
import logging
from sqlalchemy import and_
from sqlmodel import Session, select, col, func

from api.files.exceptions import NotFound, StoreUnavailable
from api.files.models import FileEdit, FileLink, FileRecord, ReconcileResult
from api.files.reconciler import FileUpdateReconciler
from api.files.store import CONNECTION_ERRORS, SqlFileStore

logger = logging.getLogger(__name__)


def list_files(session: Session, parent_id: str) -> list[FileRecord]:
    """
    List the files attached to a parent record.

    Only the most recent version (highest version_number) of each logical
    file is returned, most recently modified first.

    Args:
        session: Database session
        parent_id: Id of the record that owns the files

    Returns:
        List of FileRecord objects (empty if the parent has no files)

    Raises:
        NotFound: If parent_id is blank
        StoreUnavailable: If the database cannot be reached
    """
    if not parent_id or not parent_id.strip():
        raise NotFound("A parent record id is required to list files")

    linked_groups = select(FileLink.group_id).where(FileLink.parent_id == parent_id)

    # The latest version is the highest version_number, not the latest edit
    latest_versions = (
        select(
            FileRecord.group_id,
            func.max(FileRecord.version_number).label("version_number"),
        )
        .where(col(FileRecord.group_id).in_(linked_groups))
        .group_by(FileRecord.group_id)
        .subquery()
    )
    statement = (
        select(FileRecord)
        .join(
            latest_versions,
            and_(
                FileRecord.group_id == latest_versions.c.group_id,
                FileRecord.version_number == latest_versions.c.version_number,
            ),
        )
        .order_by(col(FileRecord.last_modified_at).desc())
    )

    try:
        records = session.exec(statement).all()
    except CONNECTION_ERRORS as exc:
        raise StoreUnavailable(f"Unable to list files for {parent_id}: {exc}") from exc

    # A group holding two rows with the same version_number keeps the newest one
    latest: dict[str, FileRecord] = {}
    for record in records:
        latest.setdefault(record.group_id, record)

    logger.debug("Found %d files for parent %s", len(latest), parent_id)
    return list(latest.values())


def update_files(
    session: Session,
    edits: Sequence[FileEdit],
    writer_name: str,
) -> ReconcileResult:
    """
    Apply a batch of inline edits from the file table.

    Args:
        session: Database session
        edits: Partial patches to apply
        writer_name: Identity recorded as last_modified_by_name

    Returns:
        ReconcileResult listing written ids and per-id errors
    """
    store = SqlFileStore(session=session, writer_name=writer_name)
    return FileUpdateReconciler(store).reconcile(edits)
