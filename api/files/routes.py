"""
Routes/endpoints for the Files API

HTTP   URI                          Action
----   ---                          ------
GET    /api/v1/files?parent_id=X    List the latest version of each file of a parent
PATCH  /api/v1/files                Apply a batch of inline edits
"""

from typing import List
from fastapi import APIRouter, Body, HTTPException, Query, status

from core.deps import SessionDep, WriterDep
from api.files.exceptions import InvalidArgument, NotFound, StoreUnavailable
from api.files.models import FileEdit, FileRecordPublic, ReconcileResult
from api.files import services

router = APIRouter(prefix="/files", tags=["File Endpoints"])


@router.get("", response_model=List[FileRecordPublic], tags=["File Endpoints"])
def list_files(
    session: SessionDep,
    parent_id: str = Query(
        ...,
        description="Id of the record that owns the files"
    ),
) -> List[FileRecordPublic]:
    """
    List the files attached to a parent record.

    Only the most recent version of each file is returned, newest first.
    """
    try:
        records = services.list_files(session=session, parent_id=parent_id)
    except NotFound as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except StoreUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
    return [FileRecordPublic.model_validate(record) for record in records]


@router.patch("", response_model=ReconcileResult, tags=["File Endpoints"])
def update_files(
    session: SessionDep,
    writer_name: WriterDep,
    edits: List[FileEdit] = Body(
        ...,
        description="Partial edits; blank or missing fields are left unchanged"
    ),
) -> ReconcileResult:
    """
    Apply a batch of inline edits to file records.

    Records that cannot be found or are rejected by the database are
    reported in `errors`; the remaining edits are still saved.
    """
    try:
        return services.update_files(
            session=session, edits=edits, writer_name=writer_name
        )
    except InvalidArgument as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc
