"""Tests for the remote directory sync."""

import io
import json
from urllib.error import HTTPError, URLError

import pytest

import directory_sync
from directory_sync import (
    DirectorySync, RemoteDirectoryClient, RemotePerson, RemoteSyncError
)
from planner.models import PersonnelGroup, SyncState


class FakeClient:
    """In-memory stand-in for the remote list."""

    def __init__(self, remote=None, fail_names=(), fail_deletes=(), fail_fetch=False):
        self.remote = list(remote or [])
        self.fail_names = set(fail_names)
        self.fail_deletes = set(fail_deletes)
        self.fail_fetch = fail_fetch
        self.created, self.updated, self.deleted = [], [], []
        self._next = 100

    def is_configured(self):
        return True

    def fetch_personnel(self):
        if self.fail_fetch:
            raise RemoteSyncError("offline")
        return list(self.remote)

    def create_item(self, person):
        if person.name in self.fail_names:
            raise RemoteSyncError("rejected")
        self._next += 1
        self.created.append(person.name)
        return str(self._next)

    def update_item(self, person):
        if person.name in self.fail_names:
            raise RemoteSyncError("rejected")
        self.updated.append(person.remote_id)

    def delete_item(self, remote_id):
        if remote_id in self.fail_deletes:
            raise RemoteSyncError("gone")
        self.deleted.append(remote_id)
        self.remote = [p for p in self.remote if p.remote_id != remote_id]


def test_sync_pushes_pending_adds(store):
    directory = store.directory
    anna = directory.add({"name": "Anna Müller"})
    client = FakeClient()

    report = DirectorySync(client).sync(directory)

    assert report.success
    assert report.created == 1
    assert client.created == ["Anna Müller"]
    assert directory.get(anna.id).sync_state == SyncState.SYNCED
    assert directory.get(anna.id).remote_id == "101"
    assert not directory.has_unsynced_changes()


def test_failed_record_keeps_marker_and_local_state(store):
    directory = store.directory
    anna = directory.add({"name": "Anna Müller"})
    ben = directory.add({"name": "Ben Koch"})
    client = FakeClient(fail_names={"Ben Koch"})

    report = DirectorySync(client).sync(directory)

    assert not report.success
    assert report.created == 1
    assert len(report.errors) == 1 and "Ben Koch" in report.errors[0]
    assert directory.get(anna.id).sync_state == SyncState.SYNCED
    assert directory.get(ben.id).sync_state == SyncState.PENDING_ADD
    assert directory.has_unsynced_changes()

    client.fail_names.clear()
    assert DirectorySync(client).sync(directory).success
    assert not directory.has_unsynced_changes()


def test_sync_pushes_modifications_and_deletions(store):
    directory = store.directory
    anna = directory.add({"name": "Anna Müller", "remote_id": "5"}, sync_state=SyncState.SYNCED)
    ben = directory.add({"name": "Ben Koch", "remote_id": "6"}, sync_state=SyncState.SYNCED)
    directory.update(anna.id, {"comment": "neu"})
    directory.delete(ben.id)
    client = FakeClient(remote=[RemotePerson("5", "Anna Müller"), RemotePerson("6", "Ben Koch")])

    report = DirectorySync(client).sync(directory)

    assert report.success
    assert client.updated == ["5"]
    assert client.deleted == ["6"]
    # A person deleted locally is not pulled back in
    assert directory.find_by_name("Ben Koch") is None
    assert directory.pending_deletions == []


def test_failed_deletion_is_retried_later(store):
    directory = store.directory
    ben = directory.add({"name": "Ben Koch", "remote_id": "6"}, sync_state=SyncState.SYNCED)
    directory.delete(ben.id)
    client = FakeClient(remote=[RemotePerson("6", "Ben Koch")], fail_deletes={"6"})

    report = DirectorySync(client).sync(directory)

    assert report.deleted == 0
    assert directory.pending_deletions == ["6"]
    assert directory.find_by_name("Ben Koch") is None


def test_pull_adds_and_links_remote_people(store):
    directory = store.directory
    local = directory.add({"name": "anna müller"})
    client = FakeClient(remote=[
        RemotePerson("5", "Anna Müller"),
        RemotePerson("9", "Carla Thiel", department="OP", job_title="MFA"),
    ])

    report = DirectorySync(client).sync(directory)

    assert report.pulled == 1
    carla = directory.find_by_name("Carla Thiel")
    assert carla.remote_id == "9"
    assert carla.group == PersonnelGroup.MFA
    assert carla.sync_state == SyncState.SYNCED
    # The local record was linked and updated instead of created twice
    assert client.created == []
    assert client.updated == ["5"]
    assert directory.get(local.id).remote_id == "5"


def test_fetch_failure_does_not_block_push(store):
    directory = store.directory
    directory.add({"name": "Anna Müller"})
    client = FakeClient(fail_fetch=True)

    report = DirectorySync(client).sync(directory)

    assert report.created == 1
    assert report.errors == ["Fetch: offline"]


def test_concurrent_sync_is_skipped(store):
    sync = DirectorySync(FakeClient())
    sync._in_progress = True

    report = sync.sync(store.directory)

    assert report.skipped
    assert not report.success


class _FakeResponse(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def test_client_fetch_parses_list_items(monkeypatch):
    captured = {}

    def fake_urlopen(req, timeout):
        captured["url"] = req.full_url
        captured["auth"] = req.get_header("Authorization")
        body = {"value": [
            {"id": 1, "fields": {"DisplayName": "Anna Müller", "Department": "OP"}},
            {"id": 2, "fields": {"Title": "Ben Koch", "IsActive": False}},
        ]}
        return _FakeResponse(json.dumps(body).encode("utf-8"))

    monkeypatch.setattr(directory_sync, "urlopen", fake_urlopen)
    client = RemoteDirectoryClient("https://example.test/v1.0/", "site", "list", "token")

    people = client.fetch_personnel()

    assert captured["url"] == "https://example.test/v1.0/sites/site/lists/list/items?expand=fields"
    assert captured["auth"] == "Bearer token"
    assert people == [RemotePerson("1", "Anna Müller", department="OP")]


@pytest.mark.parametrize("error", [
    HTTPError("https://example.test", 503, "Unavailable", {}, io.BytesIO(b"down")),
    URLError("no route"),
])
def test_client_wraps_transport_errors(monkeypatch, error):
    def fake_urlopen(req, timeout):
        raise error

    monkeypatch.setattr(directory_sync, "urlopen", fake_urlopen)
    client = RemoteDirectoryClient("https://example.test", "site", "list", "token")

    with pytest.raises(RemoteSyncError):
        client.delete_item("1")


def test_client_configuration_check():
    assert not RemoteDirectoryClient("https://example.test", "", "", "").is_configured()
    assert RemoteDirectoryClient("https://example.test", "s", "l", "t").is_configured()
