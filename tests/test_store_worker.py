"""Tests for the persistence worker: request handling and store policies.

Most tests call ``handle()`` directly on the test thread; the threaded
tests at the bottom check FIFO delivery through ``start()``/``post()``.
"""

import queue

import pytest

from specvault.exceptions import ErrorCode, WorkerUnavailableError
from specvault.schemas.anchor import AnchorData
from specvault.worker.protocol import (
    AddAnchor,
    AddVersion,
    DeleteAnchor,
    DeleteFile,
    DeletePermanently,
    DeleteVersion,
    GetAnchors,
    GetEntryViewData,
    GetLastVersion,
    GetVersions,
    IsFileTracked,
    IsNextVersionFull,
    RenameFile,
    RestoreFile,
    RestoreVersion,
    SoftDeleteFile,
)
from tests.conftest import make_spec, message


def add(worker, content, version, is_full=False, path="spec.yaml", message_id=1, base_id=None):
    """Append a record; a diff is based on the current latest record unless told otherwise."""
    if not is_full and base_id is None:
        last = worker.handle(message(GetLastVersion, path=path)).data
        base_id = last["id"] if last else None
    spec = make_spec(content, path=path, version=version, is_full=is_full)
    return worker.handle(message(AddVersion, message_id, spec=spec, base_id=base_id))


class TestAddAndRead:

    def test_add_first_full_version(self, worker):
        response = add(worker, {"a": 1}, "1.0.0", is_full=True)
        assert response.ok
        assert response.id == 1
        assert response.data == {"id": 1}

    def test_first_version_must_be_full(self, worker):
        response = add(worker, {"a": 1}, "1.0.0", is_full=False)
        assert not response.ok
        assert response.error_code == ErrorCode.VALIDATION_ERROR.value
        assert worker.handle(message(GetVersions, path="spec.yaml")).data == []

    def test_version_must_increase(self, worker):
        add(worker, {"a": 1}, "1.1.0", is_full=True)
        response = add(worker, {"b": [1]}, "1.0.5")
        assert not response.ok
        assert "must be greater" in response.error_message
        assert len(worker.handle(message(GetVersions, path="spec.yaml")).data) == 1

    def test_diff_must_be_based_on_latest_record(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        add(worker, {"a": [1, 2]}, "1.1.0")

        stale = add(worker, {"a": [1, 3]}, "1.2.0", base_id=1)
        assert not stale.ok
        assert stale.error_code == ErrorCode.CHAIN_INTEGRITY.value
        missing = worker.handle(message(AddVersion, spec=make_spec({"a": [1, 3]}, version="1.2.0", is_full=False)))
        assert not missing.ok
        assert missing.error_code == ErrorCode.CHAIN_INTEGRITY.value
        assert len(worker.handle(message(GetVersions, path="spec.yaml")).data) == 2

    def test_full_record_needs_no_base(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        add(worker, {"a": [1, 2]}, "1.1.0")
        assert add(worker, {"a": 9}, "2.0.0", is_full=True, base_id=1).ok

    def test_get_versions_in_id_order(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        add(worker, {"b": [2]}, "1.1.0")
        add(worker, {"a": 1}, "1.0.0", is_full=True, path="other.json")

        data = worker.handle(message(GetVersions, path="spec.yaml")).data
        assert [r["version"] for r in data] == ["1.0.0", "1.1.0"]
        assert [r["is_full"] for r in data] == [True, False]
        assert all(isinstance(r["diff"], bytes) for r in data)
        assert all(r["created_at"].tzinfo is not None for r in data)

    def test_get_last_version(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        add(worker, {"b": [2]}, "1.1.0")
        data = worker.handle(message(GetLastVersion, path="spec.yaml")).data
        assert data["id"] == 2
        assert data["version"] == "1.1.0"

    def test_get_last_version_of_untracked_path(self, worker):
        response = worker.handle(message(GetLastVersion, path="nope.yaml"))
        assert response.ok
        assert response.data is None


class TestLifecycle:

    def test_soft_delete_and_restore(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)

        assert worker.handle(message(DeleteVersion, id=1)).ok
        assert worker.handle(message(GetVersions, path="spec.yaml")).data[0]["soft_deleted"] is True

        assert worker.handle(message(RestoreVersion, id=1)).ok
        assert worker.handle(message(GetVersions, path="spec.yaml")).data[0]["soft_deleted"] is False

    def test_soft_delete_is_idempotent(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        assert worker.handle(message(DeleteVersion, id=1)).ok
        assert worker.handle(message(DeleteVersion, id=1)).ok

    def test_soft_delete_unknown_id(self, worker):
        response = worker.handle(message(DeleteVersion, id=99))
        assert not response.ok
        assert response.error_code == ErrorCode.VERSION_NOT_FOUND.value

    def test_permanent_delete_of_last_record(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        add(worker, {"b": [2]}, "1.1.0")
        assert worker.handle(message(DeletePermanently, id=2)).ok
        data = worker.handle(message(GetVersions, path="spec.yaml")).data
        assert [r["id"] for r in data] == [1]

    def test_permanent_delete_of_diff_base_is_refused(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        add(worker, {"b": [2]}, "1.1.0")
        response = worker.handle(message(DeletePermanently, id=1))
        assert not response.ok
        assert response.error_code == ErrorCode.CHAIN_INTEGRITY.value
        assert len(worker.handle(message(GetVersions, path="spec.yaml")).data) == 2

    def test_permanent_delete_before_full_record(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        add(worker, {"a": 2}, "2.0.0", is_full=True)
        assert worker.handle(message(DeletePermanently, id=1)).ok

    def test_ids_are_not_reused(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        add(worker, {"b": [2]}, "1.1.0")
        worker.handle(message(DeletePermanently, id=2))
        add(worker, {"b": [3]}, "1.2.0")
        data = worker.handle(message(GetLastVersion, path="spec.yaml")).data
        assert data["id"] == 3

    def test_permanent_delete_unknown_id(self, worker):
        response = worker.handle(message(DeletePermanently, id=5))
        assert response.error_code == ErrorCode.VERSION_NOT_FOUND.value


class TestFullVersionPolicy:

    def test_new_path_needs_full(self, worker):
        assert worker.handle(message(IsNextVersionFull, path="new.yaml")).data is True

    def test_rebaseline_after_interval(self, worker, settings):
        add(worker, {"v": 0}, "1.0.0", is_full=True)
        for i in range(1, settings.rebaseline_interval):
            assert worker.handle(message(IsNextVersionFull, path="spec.yaml")).data is False
            add(worker, {"v": [i]}, f"1.{i}.0")
        # The chain since the last full record now holds rebaseline_interval records.
        assert worker.handle(message(IsNextVersionFull, path="spec.yaml")).data is True

        add(worker, {"v": 99}, "2.0.0", is_full=True)
        assert worker.handle(message(IsNextVersionFull, path="spec.yaml")).data is False


class TestFiles:

    def test_entry_view_data(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        add(worker, {"b": [2]}, "1.1.0")
        add(worker, {"a": 1}, "1.0.0", is_full=True, path="other.json")

        data = worker.handle(GetEntryViewData().model_dump()).data
        assert set(data) == {"spec.yaml", "other.json"}
        assert data["spec.yaml"]["count"] == 2
        assert data["other.json"]["count"] == 1
        assert isinstance(data["spec.yaml"]["last_update"], int)

    def test_is_file_tracked(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        assert worker.handle(message(IsFileTracked, path="spec.yaml")).data is True
        assert worker.handle(message(IsFileTracked, path="other.yaml")).data is False

    def test_rename_moves_versions_and_anchors(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        worker.handle(message(AddAnchor, path="spec.yaml", anchor=AnchorData(line=3, pos=1, time=0)))

        response = worker.handle(message(RenameFile, old_path="spec.yaml", new_path="api/spec.yaml"))
        assert response.data == 1
        assert worker.handle(message(GetVersions, path="spec.yaml")).data == []
        assert len(worker.handle(message(GetVersions, path="api/spec.yaml")).data) == 1
        assert len(worker.handle(message(GetAnchors, path="api/spec.yaml")).data["anchors"]) == 1

    def test_rename_onto_tracked_path_is_refused(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        add(worker, {"a": 1}, "1.0.0", is_full=True, path="other.json")
        response = worker.handle(message(RenameFile, old_path="spec.yaml", new_path="other.json"))
        assert response.error_code == ErrorCode.VALIDATION_ERROR.value

    def test_delete_file_removes_chain_and_anchors(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        add(worker, {"b": [2]}, "1.1.0")
        worker.handle(message(AddAnchor, path="spec.yaml", anchor=AnchorData(line=1, pos=0, time=0)))

        assert worker.handle(message(DeleteFile, path="spec.yaml")).data == 2
        assert worker.handle(message(IsFileTracked, path="spec.yaml")).data is False
        assert worker.handle(message(GetAnchors, path="spec.yaml")).data == {"anchors": []}

    def test_soft_delete_and_restore_file(self, worker):
        add(worker, {"a": 1}, "1.0.0", is_full=True)
        add(worker, {"b": [2]}, "1.1.0")

        assert worker.handle(message(SoftDeleteFile, path="spec.yaml")).data == 2
        data = worker.handle(message(GetVersions, path="spec.yaml")).data
        assert all(r["soft_deleted"] for r in data)

        assert worker.handle(message(RestoreFile, path="spec.yaml")).data == 2
        data = worker.handle(message(GetVersions, path="spec.yaml")).data
        assert not any(r["soft_deleted"] for r in data)


class TestAnchors:

    def test_add_and_list_in_order(self, worker):
        for line, pos in [(10, 2), (3, 7), (3, 1)]:
            anchor = AnchorData(line=line, pos=pos, time=1700000000000, label=f"L{line}")
            assert worker.handle(message(AddAnchor, path="spec.yaml", anchor=anchor)).ok

        anchors = worker.handle(message(GetAnchors, path="spec.yaml")).data["anchors"]
        assert [(a["line"], a["pos"]) for a in anchors] == [(3, 1), (3, 7), (10, 2)]

    def test_duplicate_position_is_refused(self, worker):
        anchor = AnchorData(line=1, pos=1, time=0)
        worker.handle(message(AddAnchor, path="spec.yaml", anchor=anchor))
        response = worker.handle(message(AddAnchor, path="spec.yaml", anchor=anchor))
        assert response.error_code == ErrorCode.VALIDATION_ERROR.value

    def test_delete_anchor(self, worker):
        worker.handle(message(AddAnchor, path="spec.yaml", anchor=AnchorData(line=1, pos=1, time=0)))
        assert worker.handle(message(DeleteAnchor, path="spec.yaml", line=1, pos=1)).data is True
        assert worker.handle(message(DeleteAnchor, path="spec.yaml", line=1, pos=1)).data is False


class TestInvalidMessages:

    def test_unknown_type_becomes_error_response(self, worker):
        response = worker.handle({"id": 8, "type": "drop-tables", "payload": {"data": {}}})
        assert not response.ok
        assert response.id == 8
        assert response.error_code == ErrorCode.VALIDATION_ERROR.value

    def test_malformed_payload_becomes_error_response(self, worker):
        raw = message(GetVersions, 9, path="spec.yaml")
        del raw["payload"]["data"]["path"]
        response = worker.handle(raw)
        assert not response.ok
        assert response.id == 9

    def test_non_dict_message(self, worker):
        response = worker.handle("get-versions")
        assert not response.ok
        assert response.id is None


class TestThread:

    def test_post_before_start_is_refused(self, worker):
        with pytest.raises(WorkerUnavailableError):
            worker.post(message(GetVersions, path="spec.yaml"))

    def test_responses_arrive_in_fifo_order(self, worker):
        responses: "queue.Queue" = queue.Queue()
        worker.start(responses.put)
        try:
            assert worker.is_running
            worker.post(message(AddVersion, 1, spec=make_spec({"a": 1}, version="1.0.0")))
            worker.post(message(AddVersion, 2, spec=make_spec({"a": [2]}, version="1.1.0", is_full=False), base_id=1))
            worker.post(message(GetVersions, 3, path="spec.yaml"))

            received = [responses.get(timeout=5) for _ in range(3)]
        finally:
            worker.stop()

        assert [r.id for r in received] == [1, 2, 3]
        assert all(r.ok for r in received)
        assert [v["version"] for v in received[2].data] == ["1.0.0", "1.1.0"]
        assert not worker.is_running

    def test_failing_callback_does_not_stop_the_worker(self, worker):
        delivered: "queue.Queue" = queue.Queue()

        def on_response(response):
            if response.id == 1:
                raise RuntimeError("receiver went away")
            delivered.put(response)

        worker.start(on_response)
        try:
            worker.post(message(GetVersions, 1, path="spec.yaml"))
            worker.post(message(GetVersions, 2, path="spec.yaml"))
            assert delivered.get(timeout=5).id == 2
        finally:
            worker.stop()
