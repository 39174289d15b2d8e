"""
Test the SQLModel-backed file store
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from api.files.exceptions import StoreRejected, StoreUnavailable
from api.files.models import FileRecord
from api.files.store import ROLLED_BACK_MESSAGE, SqlFileStore, check_rules


class TestCheckRules:
    """Tests for the store-side validation rules"""

    def test_valid_record_passes(self):
        check_rules(FileRecord(id="f1", group_id="g1", title="Report.pdf"))

    def test_long_title_is_rejected(self):
        record = FileRecord(id="f1", group_id="g1", title="x" * 256)

        with pytest.raises(StoreRejected) as exc_info:
            check_rules(record)

        assert len(exc_info.value.messages) == 1
        assert exc_info.value.messages[0].startswith("title: ")

    def test_every_violation_is_reported(self):
        record = FileRecord(
            id="f1", group_id="g1", title="", document_type="d" * 300
        )

        with pytest.raises(StoreRejected) as exc_info:
            check_rules(record)

        fields = sorted(message.split(":")[0] for message in exc_info.value.messages)
        assert fields == ["document_type", "title"]


class TestSqlFileStore:
    """Tests for SqlFileStore"""

    def test_fetch_by_id_returns_detached_copy(self, session: Session, make_file):
        stored = make_file("parent-1", title="Original")
        store = SqlFileStore(session=session, writer_name="alice")

        record = store.fetch_by_id(stored.id)
        record.title = "Changed locally"

        assert record is not stored
        session.expire_all()
        assert session.get(FileRecord, stored.id).title == "Original"

    def test_fetch_by_id_unknown(self, session: Session):
        store = SqlFileStore(session=session, writer_name="alice")
        assert store.fetch_by_id("does-not-exist") is None

    def test_bulk_write_updates_editable_fields(self, session: Session, make_file):
        stored = make_file("parent-1", title="Old", size_bytes=1024, file_type="PDF")
        previously_modified = stored.last_modified_at
        store = SqlFileStore(session=session, writer_name="alice")

        record = store.fetch_by_id(stored.id)
        record.title = "New"
        record.document_type = "Invoice"
        record.size_bytes = 1  # read-only, must not be written
        outcomes = store.bulk_write([record])

        assert [o.success for o in outcomes] == [True]
        session.expire_all()
        saved = session.get(FileRecord, stored.id)
        assert saved.title == "New"
        assert saved.document_type == "Invoice"
        assert saved.size_bytes == 1024
        assert saved.last_modified_by_name == "alice"
        assert saved.last_modified_at > previously_modified

    def test_bulk_write_partial_success(self, session: Session, make_file):
        good = make_file("parent-1", title="Good")
        bad = make_file("parent-1", title="Bad")
        store = SqlFileStore(session=session, writer_name="bob")

        good_record = store.fetch_by_id(good.id)
        good_record.title = "Good v2"
        bad_record = store.fetch_by_id(bad.id)
        bad_record.title = "x" * 300
        outcomes = store.bulk_write([good_record, bad_record], allow_partial_failure=True)

        assert [o.id for o in outcomes] == [good.id, bad.id]
        assert outcomes[0].success is True
        assert outcomes[1].success is False
        assert outcomes[1].error_messages[0].startswith("title: ")

        session.expire_all()
        assert session.get(FileRecord, good.id).title == "Good v2"
        assert session.get(FileRecord, bad.id).title == "Bad"

    def test_bulk_write_all_or_nothing(self, session: Session, make_file):
        good = make_file("parent-1", title="Good")
        bad = make_file("parent-1", title="Bad")
        store = SqlFileStore(session=session, writer_name="bob")

        good_record = store.fetch_by_id(good.id)
        good_record.title = "Good v2"
        bad_record = store.fetch_by_id(bad.id)
        bad_record.title = "x" * 300
        outcomes = store.bulk_write([good_record, bad_record], allow_partial_failure=False)

        assert all(not o.success for o in outcomes)
        assert outcomes[0].error_messages == [ROLLED_BACK_MESSAGE]
        session.expire_all()
        assert session.get(FileRecord, good.id).title == "Good"

    def test_bulk_write_record_deleted_meanwhile(self, session: Session, make_file):
        stored = make_file("parent-1", title="Gone soon")
        store = SqlFileStore(session=session, writer_name="bob")
        record = store.fetch_by_id(stored.id)

        session.delete(session.get(FileRecord, stored.id))
        session.commit()
        outcomes = store.bulk_write([record])

        assert outcomes[0].success is False
        assert outcomes[0].error_messages == ["not found"]

    def test_fetch_connection_failure(self):
        session = MagicMock()
        session.get.side_effect = OperationalError("SELECT", {}, Exception("refused"))
        store = SqlFileStore(session=session, writer_name="bob")

        with pytest.raises(StoreUnavailable):
            store.fetch_by_id("f1")

    def test_write_connection_failure_rolls_back(self):
        session = MagicMock()
        session.get.return_value = FileRecord(id="f1", group_id="g1", title="T")
        session.commit.side_effect = OperationalError("COMMIT", {}, Exception("refused"))
        store = SqlFileStore(session=session, writer_name="bob")

        with pytest.raises(StoreUnavailable):
            store.bulk_write([FileRecord(id="f1", group_id="g1", title="New")])

        session.rollback.assert_called_once()
