"""Unit tests for EditService -- the deep module owning edits and versions.

Exercises the service directly against the test database, bypassing the
HTTP stack: retrieval, the save pipeline, failure isolation and
reconciliation.
"""

import json
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from feedstudio.exceptions import (
    ContentNotFoundError,
    InvalidRequestError,
    PersistenceError,
    VersionNotFoundError,
)
from feedstudio.models import AuditLog, ContentDocument, ContentVersion
from feedstudio.repositories import ContentRepository, VersionRepository
from feedstudio.services import EditService
from feedstudio.services import audit_service

FIXED_NOW = datetime(2025, 11, 14, 10, 0, tzinfo=timezone.utc)


def _versions(db, content_id: str) -> list[ContentVersion]:
    db.expire_all()
    return (
        db.query(ContentVersion)
        .filter(ContentVersion.content_id == content_id)
        .order_by(ContentVersion.version)
        .all()
    )


def _storage_failure(*args, **kwargs):
    raise OperationalError("INSERT", {}, Exception("disk I/O error"))


class TestGetForEditing:

    def test_returns_edited_body_outline_and_topic(self, db, make_content, make_topic):
        make_topic("topic-1", "Test Topic")
        make_content("c1", edited_content="<p>Edited content</p>", topic_id="topic-1")

        editable = EditService(db).get_for_editing("c1")

        assert editable.body == "<p>Edited content</p>"
        assert editable.original_body == "Original outline"
        assert editable.topic.id == "topic-1"
        assert editable.topic.title == "Test Topic"
        assert editable.current_version == 0

    def test_falls_back_to_original_content(self, db, make_content):
        make_content("c1", content="Original content", edited_content=None)
        assert EditService(db).get_for_editing("c1").body == "Original content"

    def test_empty_edit_is_not_replaced_by_fallback(self, db, make_content):
        make_content("c1", content="Original content", edited_content="")
        assert EditService(db).get_for_editing("c1").body == ""

    def test_missing_outline_is_empty_string(self, db, make_content):
        make_content("c1", outline=None)
        editable = EditService(db).get_for_editing("c1")
        assert editable.original_body == ""
        assert editable.topic is None

    def test_unknown_content_raises(self, db):
        with pytest.raises(ContentNotFoundError):
            EditService(db).get_for_editing("missing")

    def test_reports_current_version(self, db, make_content):
        make_content("c1")
        svc = EditService(db)
        svc.save_edit("c1", {"body": "one"})
        svc.save_edit("c1", {"body": "two"})
        editable = svc.get_for_editing("c1")
        assert editable.current_version == 2
        assert editable.body == "two"


class TestSaveEdit:

    def test_end_to_end_manual_then_auto_save(self, db, make_content):
        make_content("D1")
        svc = EditService(db)

        first = svc.save_edit("D1", {"body": "<p>v1</p>", "changes": [], "autoSave": False})
        assert (first.version, first.changes_count, first.auto_save) == (1, 0, False)
        assert db.get(ContentDocument, "D1").edited_content == "<p>v1</p>"

        second = svc.save_edit("D1", {
            "body": "<p>v2</p>",
            "changes": [{"type": "modify", "position": 3, "length": 2, "content": "v2"}],
            "autoSave": True,
        })
        assert (second.version, second.changes_count, second.auto_save) == (2, 1, True)

        db.expire_all()
        assert db.get(ContentDocument, "D1").edited_content == "<p>v2</p>"
        assert [v.version for v in _versions(db, "D1")] == [1, 2]

    def test_sequential_saves_are_gap_free(self, db, make_content):
        make_content("c1")
        svc = EditService(db)
        results = [svc.save_edit("c1", {"body": f"draft {i}"}).version for i in range(10)]
        assert results == list(range(1, 11))
        assert [v.version for v in _versions(db, "c1")] == list(range(1, 11))

    def test_identical_payloads_make_distinct_versions(self, db, make_content):
        make_content("c1")
        svc = EditService(db)
        svc.save_edit("c1", {"body": "same"})
        svc.save_edit("c1", {"body": "same"})
        versions = _versions(db, "c1")
        assert len(versions) == 2
        assert versions[0].id != versions[1].id

    def test_version_record_contents(self, db, make_content):
        make_content("c1", title="Quarterly Trends")
        changes = [
            {"type": "insert", "position": 0, "length": 5, "content": "Hello", "timestamp": "2025-11-14T09:59:00Z"},
            {"type": "delete", "position": 6, "length": 3, "content": "old"},
        ]
        EditService(db, clock=lambda: FIXED_NOW).save_edit(
            "c1",
            {"body": "Hello world", "changes": changes, "autoSave": True,
             "sessionId": "session-xyz", "timeSpentMs": 4200},
            editor="editor-7",
        )

        version = _versions(db, "c1")[0]
        assert version.title == "Quarterly Trends"
        assert version.version_content == "Hello world"
        assert version.change_type == "auto_save"
        assert version.change_count == 2
        assert version.word_count == 2
        assert version.char_count == 11
        assert version.edited_by == "editor-7"
        assert version.session_id == "session-xyz"
        assert version.time_spent_ms == 4200
        assert json.loads(version.changes) == [
            {"type": "insert", "position": 0, "length": 5, "content": "Hello", "timestamp": "2025-11-14T09:59:00Z"},
            {"type": "delete", "position": 6, "length": 3, "content": "old"},
        ]

    def test_manual_save_change_type(self, db, make_content):
        make_content("c1")
        EditService(db).save_edit("c1", {"body": "x"})
        assert _versions(db, "c1")[0].change_type == "manual_save"

    def test_result_uses_clock(self, db, make_content):
        make_content("c1")
        result = EditService(db, clock=lambda: FIXED_NOW).save_edit("c1", {"body": "x"})
        assert result.updated_at == FIXED_NOW
        assert result.content_id == "c1"

    def test_session_fallback_is_unique_per_call(self, db, make_content):
        make_content("c1")
        svc = EditService(db, clock=lambda: FIXED_NOW)
        svc.save_edit("c1", {"body": "a"})
        svc.save_edit("c1", {"body": "b"})
        sessions = [v.session_id for v in _versions(db, "c1")]
        prefix = f"session-{int(FIXED_NOW.timestamp() * 1000)}-"
        assert all(s.startswith(prefix) for s in sessions)
        assert sessions[0] != sessions[1]

    def test_anonymous_editor_placeholder(self, db, make_content):
        make_content("c1")
        EditService(db).save_edit("c1", {"body": "x"})
        assert _versions(db, "c1")[0].edited_by == "user"

    def test_manual_save_is_audited(self, db, make_content):
        make_content("c1")
        svc = EditService(db)
        svc.save_edit("c1", {"body": "auto", "autoSave": True}, editor="editor-1")
        svc.save_edit("c1", {"body": "manual"}, editor="editor-1")

        entries = audit_service.get_by_resource(db, "content", "c1")
        assert [e.action for e in entries] == ["content_save"]
        assert json.loads(entries[0].details)["version"] == 2


class TestSaveEditFailures:

    def test_invalid_payload_writes_nothing(self, db, make_content):
        make_content("c1")
        with pytest.raises(InvalidRequestError):
            EditService(db).save_edit("c1", {"invalidField": "value"})
        assert _versions(db, "c1") == []
        assert db.get(ContentDocument, "c1").edited_content is None

    def test_unknown_content_writes_nothing(self, db):
        with pytest.raises(ContentNotFoundError):
            EditService(db).save_edit("missing", {"body": "x"})
        assert db.query(ContentVersion).count() == 0

    def test_version_write_failure_leaves_document_untouched(self, db, make_content, monkeypatch):
        make_content("c1", edited_content="before")
        before = db.get(ContentDocument, "c1")
        before_updated_at, before_live = before.updated_at, before.live_version

        monkeypatch.setattr(VersionRepository, "create", _storage_failure)
        with pytest.raises(PersistenceError) as exc_info:
            EditService(db).save_edit("c1", {"body": "after"})

        assert "disk I/O" not in exc_info.value.message
        db.expire_all()
        doc = db.get(ContentDocument, "c1")
        assert doc.edited_content == "before"
        assert doc.updated_at == before_updated_at
        assert doc.live_version == before_live
        assert _versions(db, "c1") == []

    def test_lost_race_retries_with_fresh_number(self, db, make_content, monkeypatch):
        make_content("c1")
        svc = EditService(db)
        svc.save_edit("c1", {"body": "first"})

        real_next = VersionRepository.next_version_number
        calls = []

        def stale_once(self, content_id):
            calls.append(content_id)
            if len(calls) == 1:
                return 1  # already taken
            return real_next(self, content_id)

        monkeypatch.setattr(VersionRepository, "next_version_number", stale_once)
        result = svc.save_edit("c1", {"body": "second"})

        assert result.version == 2
        assert len(calls) == 2
        assert [v.version for v in _versions(db, "c1")] == [1, 2]

    def test_gives_up_after_max_attempts(self, db, make_content, monkeypatch):
        make_content("c1", edited_content="first")
        svc = EditService(db, max_attempts=3)
        svc.save_edit("c1", {"body": "first"})

        monkeypatch.setattr(VersionRepository, "next_version_number", lambda self, content_id: 1)
        with pytest.raises(PersistenceError):
            svc.save_edit("c1", {"body": "never stored"})

        db.expire_all()
        assert db.get(ContentDocument, "c1").edited_content == "first"
        assert [v.version for v in _versions(db, "c1")] == [1]


class TestInconsistencyAndReconcile:

    def _fail_live_update_once(self, monkeypatch):
        real_apply = ContentRepository.apply_live_update
        state = {"failed": False}

        def flaky(self, *args, **kwargs):
            if not state["failed"]:
                state["failed"] = True
                raise OperationalError("UPDATE", {}, Exception("connection reset"))
            return real_apply(self, *args, **kwargs)

        monkeypatch.setattr(ContentRepository, "apply_live_update", flaky)

    def test_live_update_failure_still_reports_success(self, db, make_content, monkeypatch):
        make_content("c1", edited_content="old")
        self._fail_live_update_once(monkeypatch)

        result = EditService(db).save_edit("c1", {"body": "new"}, editor="editor-1")

        assert result.version == 1
        assert [v.version_content for v in _versions(db, "c1")] == ["new"]
        doc = db.get(ContentDocument, "c1")
        assert doc.edited_content == "old"
        assert doc.live_version == 0

        actions = [e.action for e in db.query(AuditLog).filter(AuditLog.resource_id == "c1")]
        assert "live_update_failed" in actions

    def test_next_read_reconciles(self, db, make_content, monkeypatch):
        make_content("c1", edited_content="old")
        self._fail_live_update_once(monkeypatch)
        svc = EditService(db)
        svc.save_edit("c1", {"body": "new"})

        editable = svc.get_for_editing("c1")

        assert editable.body == "new"
        db.expire_all()
        doc = db.get(ContentDocument, "c1")
        assert doc.edited_content == "new"
        assert doc.live_version == 1

    def test_reconcile_all_repairs_lagging_documents(self, db, make_content, monkeypatch):
        make_content("c1")
        make_content("c2")
        svc = EditService(db)
        svc.save_edit("c2", {"body": "in sync"})
        self._fail_live_update_once(monkeypatch)
        svc.save_edit("c1", {"body": "lagging"})

        assert svc.reconcile_all() == 1
        assert svc.reconcile_all() == 0
        db.expire_all()
        assert db.get(ContentDocument, "c1").edited_content == "lagging"

    def test_failed_live_update_reports_commit_time(self, db, make_content, monkeypatch):
        make_content("c1")
        self._fail_live_update_once(monkeypatch)

        result = EditService(db, clock=lambda: FIXED_NOW).save_edit("c1", {"body": "new"})

        version = _versions(db, "c1")[0]
        assert result.updated_at == version.edited_at
        assert result.updated_at.replace(tzinfo=None) == FIXED_NOW.replace(tzinfo=None)

    def test_superseded_live_update_reports_document_time(self, db, make_content, monkeypatch):
        make_content("c1")
        monkeypatch.setattr(ContentRepository, "apply_live_update", lambda self, *args: False)

        result = EditService(db, clock=lambda: FIXED_NOW).save_edit("c1", {"body": "late"})

        db.expire_all()
        doc = db.get(ContentDocument, "c1")
        assert result.updated_at == doc.updated_at
        assert result.updated_at != FIXED_NOW

    def test_stale_live_update_does_not_regress(self, db, make_content):
        make_content("c1")
        svc = EditService(db)
        svc.save_edit("c1", {"body": "v1"})
        svc.save_edit("c1", {"body": "v2"})

        applied = ContentRepository(db).apply_live_update("c1", "v1", 1, FIXED_NOW)
        db.commit()

        assert applied is False
        db.expire_all()
        assert db.get(ContentDocument, "c1").edited_content == "v2"


class TestVersionHistory:

    def test_list_versions_newest_first(self, db, make_content):
        make_content("c1", title="History")
        svc = EditService(db)
        for body in ("one", "two", "three"):
            svc.save_edit("c1", {"body": body})

        history = svc.list_versions("c1")

        assert history.title == "History"
        assert history.current_version == 3
        assert history.total_versions == 3
        assert [v.version for v in history.versions] == [3, 2, 1]
        assert [v.is_current for v in history.versions] == [True, False, False]

    def test_list_versions_empty(self, db, make_content):
        make_content("c1")
        history = EditService(db).list_versions("c1")
        assert history.current_version == 0
        assert history.total_versions == 0
        assert history.versions == []

    def test_change_list_is_decoded(self, db, make_content):
        make_content("c1")
        svc = EditService(db)
        change = {"type": "modify", "position": 3, "length": 2, "content": "v2"}
        svc.save_edit("c1", {"body": "<p>v2</p>", "changes": [change]})

        summary = svc.list_versions("c1").versions[0]
        assert summary.changes[0].model_dump(by_alias=True, exclude_none=True) == change

    def test_get_version(self, db, make_content):
        make_content("c1")
        svc = EditService(db)
        svc.save_edit("c1", {"body": "one"})
        svc.save_edit("c1", {"body": "two"})

        first = svc.get_version("c1", 1)
        assert first.version_content == "one"
        assert first.is_current is False
        assert svc.get_version("c1", 2).is_current is True

    def test_get_missing_version_raises(self, db, make_content):
        make_content("c1")
        with pytest.raises(VersionNotFoundError):
            EditService(db).get_version("c1", 1)

    def test_history_of_unknown_content_raises(self, db):
        with pytest.raises(ContentNotFoundError):
            EditService(db).list_versions("missing")
