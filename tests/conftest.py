from datetime import datetime, timedelta, timezone
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, create_engine, select, SQLModel
from sqlmodel.pool import StaticPool
from core.deps import get_db
from api.files.models import FileLink, FileRecord, WriteOutcome
from main import app


BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class InMemoryFileStore:
    """In-memory FileStore for testing the reconciler"""

    def __init__(self, records=None):
        self.records = {record.id: record for record in records or []}
        self.fetch_calls = []  # ids passed to fetch_by_id
        self.bulk_write_calls = []  # list of (ids, allow_partial_failure)
        self.rejections = {}  # {id: [messages]}
        self.unavailable = False

    def add(self, record_id: str, **fields) -> FileRecord:
        """Add a record with sensible defaults"""
        fields.setdefault("group_id", f"group-{record_id}")
        fields.setdefault("title", f"Title {record_id}")
        record = FileRecord(id=record_id, **fields)
        self.records[record_id] = record
        return record

    def reject(self, record_id: str, *messages: str):
        """Configure the store to reject writes of a record"""
        self.rejections[record_id] = list(messages)

    def simulate_outage(self):
        """Configure the store to fail every call"""
        self.unavailable = True

    def _check_available(self):
        if self.unavailable:
            from api.files.exceptions import StoreUnavailable

            raise StoreUnavailable("connection refused")

    def fetch_by_id(self, file_id: str):
        self._check_available()
        self.fetch_calls.append(file_id)
        record = self.records.get(file_id)
        if record is None:
            return None
        return FileRecord.model_validate(record.model_dump())

    def bulk_write(self, records, allow_partial_failure: bool = True):
        self._check_available()
        self.bulk_write_calls.append(
            ([record.id for record in records], allow_partial_failure)
        )
        outcomes = []
        for record in records:
            if record.id in self.rejections:
                outcomes.append(
                    WriteOutcome(
                        id=record.id,
                        success=False,
                        error_messages=self.rejections[record.id],
                    )
                )
                continue
            self.records[record.id] = FileRecord.model_validate(record.model_dump())
            outcomes.append(WriteOutcome(id=record.id, success=True))
        return outcomes


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_db_override():
        return session

    app.dependency_overrides[get_db] = get_db_override

    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="memory_store")
def memory_store_fixture():
    """Provide an empty in-memory FileStore"""
    return InMemoryFileStore()


@pytest.fixture(name="make_file")
def make_file_fixture(session: Session):
    """
    Factory that inserts a file version and links its group to a parent.

    Usage: make_file("parent-1", title="Report", minutes=5)
    `minutes` offsets last_modified_at from BASE_TIME.
    """

    def _make_file(
        parent_id: str | None,
        title: str = "Untitled",
        group_id: str | None = None,
        minutes: int = 0,
        **fields,
    ) -> FileRecord:
        group_id = group_id or str(uuid.uuid4())
        record = FileRecord(
            group_id=group_id,
            title=title,
            last_modified_at=BASE_TIME + timedelta(minutes=minutes),
            **fields,
        )
        session.add(record)
        if parent_id is not None and not _is_linked(session, parent_id, group_id):
            session.add(FileLink(parent_id=parent_id, group_id=group_id))
        session.commit()
        session.refresh(record)
        return record

    return _make_file


def _is_linked(session: Session, parent_id: str, group_id: str) -> bool:
    link = session.exec(
        select(FileLink).where(
            FileLink.parent_id == parent_id, FileLink.group_id == group_id
        )
    ).first()
    return link is not None
