"""Unit tests for readlist.sync module."""

import pytest

from readlist.errors import RemoteStoreError, StoreError
from readlist.models import Bookmark
from readlist.remote import RemoteStore, doc_id
from readlist.store import LocalStore
from readlist.sync import SyncService, SyncStatus, reconcile


class FakeRemote(RemoteStore):
    """In-memory remote keyed by document id."""

    def __init__(self, bookmarks=(), fail_urls=(), down=False):
        self.docs = {doc_id(b): b.copy() for b in bookmarks}
        self.fail_urls = set(fail_urls)
        self.down = down
        self.puts = []
        self.deleted = []
        self.callback = None

    def get_all(self):
        if self.down:
            raise RemoteStoreError("network unreachable")
        return [b.copy() for b in self.docs.values()]

    def put(self, b):
        if self.down or b.url in self.fail_urls:
            raise RemoteStoreError(f"write rejected: {b.url}")
        self.puts.append(b.url)
        self.docs[doc_id(b)] = b.copy(id=None)

    def delete(self, document_id):
        if self.down:
            raise RemoteStoreError("network unreachable")
        self.deleted.append(document_id)
        self.docs.pop(document_id, None)

    def subscribe(self, callback, interval=30.0):
        self.callback = callback
        callback(self.get_all())

        def unsubscribe():
            self.callback = None

        return unsubscribe


@pytest.fixture
def store(tmp_path):
    return LocalStore(tmp_path / "bookmarks.json")


def _urls(bookmarks):
    return sorted(b.url for b in bookmarks)


class TestReconcile:
    """Test reconcile function."""

    def test_remote_newer_wins(self):
        """Should use the remote record and schedule a local update only."""
        local = [Bookmark(url="https://x.com", title="local", last_modified=100)]
        remote = [Bookmark(url="https://x.com", title="remote", last_modified=200)]
        plan = reconcile(local, remote)
        assert [b.title for b in plan.unified] == ["remote"]
        assert [b.title for b in plan.local_updates] == ["remote"]
        assert plan.remote_writes == []
        assert plan.local_inserts == []

    def test_local_only_pushed(self):
        """Should schedule exactly one remote write for a local-only record."""
        loc = Bookmark(url="https://y.com", last_modified=50)
        plan = reconcile([loc], [])
        assert plan.remote_writes == [loc]
        assert plan.unified == [loc]
        assert plan.local_writes == []

    def test_local_newer_wins(self):
        """Should push the local record when it is newer."""
        local = [Bookmark(url="https://x.com", title="local", last_modified=300)]
        remote = [Bookmark(url="https://x.com", title="remote", last_modified=200)]
        plan = reconcile(local, remote)
        assert [b.title for b in plan.unified] == ["local"]
        assert [b.title for b in plan.remote_writes] == ["local"]
        assert plan.local_writes == []

    def test_equal_stamps_keep_local(self):
        """Should keep local and schedule nothing on a tie."""
        local = [Bookmark(url="https://x.com", title="local", add_date=10)]
        remote = [Bookmark(url="https://x.com", title="remote", add_date=5, last_modified=10)]
        plan = reconcile(local, remote)
        assert [b.title for b in plan.unified] == ["local"]
        assert plan.remote_writes == []
        assert plan.local_writes == []

    def test_stamp_falls_back_to_add_date(self):
        """Should compare add_date when last_modified is unset."""
        local = [Bookmark(url="https://x.com", title="local", add_date=10)]
        remote = [Bookmark(url="https://x.com", title="remote", add_date=20)]
        assert [b.title for b in reconcile(local, remote).unified] == ["remote"]

    def test_remote_only_inserted(self):
        """Should insert remote-only records locally."""
        rem = Bookmark(url="https://r.com", add_date=1)
        plan = reconcile([], [rem])
        assert plan.local_inserts == [rem]
        assert plan.unified == [rem]
        assert plan.remote_writes == []

    def test_one_record_per_url(self):
        """Should produce the union of urls without duplicates."""
        local = [Bookmark(url=u, add_date=1) for u in ("a", "b", "c")]
        remote = [Bookmark(url=u, add_date=1) for u in ("b", "c", "d")]
        plan = reconcile(local, remote)
        assert _urls(plan.unified) == ["a", "b", "c", "d"]
        assert len(plan.unified) == 4
        assert _urls(plan.remote_writes) == ["a"]
        assert _urls(plan.local_inserts) == ["d"]


class TestMerge:
    """Test SyncService.merge."""

    def test_applies_both_directions(self, store):
        """Should update local and remote and report synced."""
        store.bulk_put([
            Bookmark(url="https://x.com", title="old", last_modified=100),
            Bookmark(url="https://y.com", last_modified=50),
        ])
        remote = FakeRemote([
            Bookmark(url="https://x.com", title="new", last_modified=200),
            Bookmark(url="https://z.com", add_date=7),
        ])
        service = SyncService(store, remote)
        report = service.merge()
        assert report.status is SyncStatus.SYNCED
        assert service.status is SyncStatus.SYNCED
        assert (report.pushed, report.pulled) == (1, 2)
        assert remote.puts == ["https://y.com"]
        assert store.get("https://x.com").title == "new"
        assert store.get("https://x.com").id == 1
        assert _urls(store.all()) == ["https://x.com", "https://y.com", "https://z.com"]

    def test_remote_unavailable(self, store):
        """Should report error and leave local data intact."""
        store.add(Bookmark(url="https://a.com"))
        service = SyncService(store, FakeRemote(down=True))
        report = service.merge()
        assert report.status is SyncStatus.ERROR
        assert "network unreachable" in service.error
        assert _urls(store.all()) == ["https://a.com"]

    def test_failed_write_does_not_stop_others(self, store):
        """Should keep pushing after one record fails."""
        store.bulk_put([Bookmark(url=u, add_date=1) for u in ("https://a.com", "https://b.com", "https://c.com")])
        remote = FakeRemote(fail_urls={"https://b.com"})
        report = SyncService(store, remote).merge()
        assert remote.puts == ["https://a.com", "https://c.com"]
        assert report.pushed == 2
        assert [u for u, _ in report.failures] == ["https://b.com"]
        assert report.status is SyncStatus.ERROR

    def test_status_transitions(self, store):
        """Should go through syncing to synced."""
        service = SyncService(store, FakeRemote())
        seen = []
        service.subscribe(lambda status, error: seen.append(status))
        service.merge()
        assert seen == [SyncStatus.SYNCING, SyncStatus.SYNCED]

    def test_session_end_discards_result(self, store):
        """Should drop local writes when the session ends mid-sync."""
        store.add(Bookmark(url="https://a.com", title="local", last_modified=1))
        remote = FakeRemote([Bookmark(url="https://a.com", title="remote", last_modified=9)])
        service = SyncService(store, remote)
        original_get_all = remote.get_all

        def get_all_then_logout():
            result = original_get_all()
            service.end_session()
            return result

        remote.get_all = get_all_then_logout
        report = service.merge()
        assert report.discarded
        assert store.get("https://a.com").title == "local"
        assert service.status is SyncStatus.IDLE


class TestPushPull:
    """Test push, pull and delete."""

    def test_push_all(self, store):
        """Should write every local record."""
        store.bulk_put([Bookmark(url="https://a.com"), Bookmark(url="https://b.com")])
        remote = FakeRemote()
        report = SyncService(store, remote).push()
        assert report.pushed == 2
        assert _urls(remote.get_all()) == ["https://a.com", "https://b.com"]

    def test_pull_replaces_local(self, store):
        """Should mirror the remote collection locally."""
        store.add(Bookmark(url="https://old.com"))
        remote = FakeRemote([Bookmark(url="https://a.com")])
        report = SyncService(store, remote).pull()
        assert report.pulled == 1
        assert _urls(store.all()) == ["https://a.com"]

    def test_pull_failure_keeps_local(self, store):
        """Should not touch local data when the remote is down."""
        store.add(Bookmark(url="https://old.com"))
        report = SyncService(store, FakeRemote(down=True)).pull()
        assert report.status is SyncStatus.ERROR
        assert _urls(store.all()) == ["https://old.com"]

    def test_pull_store_failure_is_status(self, store, monkeypatch):
        """Should report a failed local write instead of raising."""
        store.add(Bookmark(url="https://old.com"))

        def broken_replace(bookmarks):
            raise StoreError("disk full")

        monkeypatch.setattr(store, "replace_all", broken_replace)
        service = SyncService(store, FakeRemote([Bookmark(url="https://a.com")]))
        report = service.pull()
        assert report.status is SyncStatus.ERROR
        assert "disk full" in service.error
        assert report.pulled == 0

    def test_delete_both_sides(self, store):
        """Should delete locally and remotely."""
        b = Bookmark(url="https://a.com")
        store.add(b)
        remote = FakeRemote([b])
        SyncService(store, remote).delete("https://a.com")
        assert len(store) == 0
        assert remote.deleted == [doc_id(b)]

    def test_delete_remote_failure_is_status(self, store):
        """Should surface a remote delete failure as status."""
        store.add(Bookmark(url="https://a.com"))
        service = SyncService(store, FakeRemote(down=True))
        service.delete("https://a.com")
        assert len(store) == 0
        assert service.status is SyncStatus.ERROR


    def test_delete_remote_only(self, store):
        """Should drop the remote document and leave local data alone."""
        store.add(Bookmark(url="https://new.com"))
        old = Bookmark(url="https://old.com")
        remote = FakeRemote([old])
        assert SyncService(store, remote).delete_remote(old.url)
        assert remote.deleted == [doc_id(old)]
        assert _urls(store.all()) == ["https://new.com"]

    def test_delete_remote_failure(self, store):
        """Should report a failed remote delete as status."""
        service = SyncService(store, FakeRemote(down=True))
        assert not service.delete_remote("https://old.com")
        assert service.status is SyncStatus.ERROR

    def test_renamed_url_not_resurrected(self, store):
        """Should not bring back the old url after a rename and remote cleanup."""
        store.add(Bookmark(url="https://old.com", add_date=1))
        remote = FakeRemote()
        service = SyncService(store, remote)
        service.merge()
        store.update("https://old.com", url="https://new.com", last_modified=100)
        service.delete_remote("https://old.com")
        service.merge()
        assert _urls(store.all()) == ["https://new.com"]
        assert _urls(remote.get_all()) == ["https://new.com"]


class TestSubscription:
    """Test start, stop and snapshot application."""

    def test_snapshot_replaces_local(self, store):
        """Should replace the local collection on each pushed snapshot."""
        store.add(Bookmark(url="https://old.com"))
        remote = FakeRemote([Bookmark(url="https://a.com")])
        service = SyncService(store, remote)
        service.start()
        assert _urls(store.all()) == ["https://a.com"]
        remote.callback([Bookmark(url="https://b.com"), Bookmark(url="https://c.com")])
        assert _urls(store.all()) == ["https://b.com", "https://c.com"]
        assert service.status is SyncStatus.SYNCED
        service.stop()
        assert remote.callback is None

    def test_stale_session_snapshot_ignored(self, store):
        """Should ignore snapshots delivered after the session ended."""
        store.add(Bookmark(url="https://keep.com"))
        service = SyncService(store, FakeRemote())
        service.apply_snapshot([Bookmark(url="https://x.com")], session=service._session - 1)
        assert _urls(store.all()) == ["https://keep.com"]
