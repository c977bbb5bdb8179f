"""Unit tests for readlist.remote module."""

import json
import queue
import threading
from unittest.mock import MagicMock, patch

import pytest
import requests

from readlist.config import Settings
from readlist.errors import RemoteStoreError
from readlist.models import Bookmark, Ogp
from readlist.remote import (
    FileRemoteStore, HttpRemoteStore, coerce_stamp, doc_id, from_document,
    open_remote, snapshot_key, to_document
)
from readlist.utils import rid


class TestDocuments:
    """Test document conversion helpers."""

    def test_doc_id_is_url_hash(self):
        """Should address documents by the stable url hash."""
        assert doc_id(Bookmark(url="https://a.com")) == rid("https://a.com")

    def test_to_document_fills_last_modified(self):
        """Should always write lastModified and drop the local id."""
        doc = to_document(Bookmark(url="https://a.com", add_date=5, id=3))
        assert doc["lastModified"] == 5
        assert "id" not in doc

    def test_from_document_timestamps(self):
        """Should accept numbers, strings and seconds mappings."""
        b = from_document({"url": "https://a.com", "addDate": {"seconds": 10}, "lastModified": "20"})
        assert (b.add_date, b.last_modified) == (10, 20)

    def test_from_document_missing_last_modified(self):
        """Should leave lastModified unset when absent."""
        b = from_document({"url": "https://a.com", "addDate": 10})
        assert b.last_modified is None
        assert b.stamp == 10

    def test_coerce_unknown_is_now(self):
        """Should use the current time for unknown shapes."""
        with patch("readlist.remote.now_epoch", return_value=1234):
            assert coerce_stamp(None) == 1234
            assert coerce_stamp("soon") == 1234
        assert coerce_stamp(12.7) == 12

    def test_snapshot_key_covers_every_field(self):
        """Should tell snapshots apart that differ only in preview data."""
        plain = Bookmark(url="https://a.com", add_date=1)
        enriched = plain.copy(icon="data:x", ogp=Ogp(title="t", loaded=True))
        assert snapshot_key([plain]) != snapshot_key([enriched])
        other = Bookmark(url="https://b.com", add_date=2)
        assert snapshot_key([plain, other]) == snapshot_key([other, plain])


class TestFileRemoteStore:
    """Test FileRemoteStore."""

    def test_put_get_delete(self, tmp_path):
        """Should store one JSON document per bookmark."""
        remote = FileRemoteStore(tmp_path, "alice")
        b = Bookmark(url="https://a.com", title="A", add_date=1, tags=["x"])
        remote.put(b)
        path = tmp_path / "users" / "alice" / "bookmarks" / f"{doc_id(b)}.json"
        assert path.exists()
        got = remote.get_all()
        assert [(g.url, g.title, g.tags, g.last_modified) for g in got] == [("https://a.com", "A", ["x"], 1)]
        remote.delete(doc_id(b))
        assert remote.get_all() == []

    def test_empty_collection(self, tmp_path):
        """Should return nothing for a new user."""
        assert FileRemoteStore(tmp_path, "bob").get_all() == []

    def test_delete_missing_is_noop(self, tmp_path):
        """Should ignore deleting an unknown document."""
        FileRemoteStore(tmp_path, "bob").delete("nothing")

    def test_corrupt_document(self, tmp_path):
        """Should raise RemoteStoreError for unreadable documents."""
        remote = FileRemoteStore(tmp_path, "bob")
        remote.collection.mkdir(parents=True)
        (remote.collection / "bad.json").write_text("{oops")
        with pytest.raises(RemoteStoreError):
            remote.get_all()

    def test_subscribe_polls(self, tmp_path):
        """Should deliver the first snapshot and stop on unsubscribe."""
        remote = FileRemoteStore(tmp_path, "bob")
        remote.put(Bookmark(url="https://a.com"))
        got = threading.Event()
        snapshots = []

        def callback(snapshot):
            snapshots.append(snapshot)
            got.set()

        unsubscribe = remote.subscribe(callback, interval=0.05)
        assert got.wait(5)
        unsubscribe()
        assert [b.url for b in snapshots[0]] == ["https://a.com"]

    def test_subscribe_delivers_metadata_change(self, tmp_path):
        """Should deliver a snapshot when only icon or preview data changed."""
        remote = FileRemoteStore(tmp_path, "bob")
        b = Bookmark(url="https://a.com", add_date=5)
        remote.put(b)
        snapshots = queue.Queue()
        unsubscribe = remote.subscribe(snapshots.put, interval=0.05)
        try:
            assert snapshots.get(timeout=5)[0].ogp is None
            remote.put(b.copy(icon="data:x", ogp=Ogp(title="t", loaded=True)))
            changed = snapshots.get(timeout=5)[0]
        finally:
            unsubscribe()
        assert changed.icon == "data:x"
        assert changed.ogp.title == "t"
        assert changed.stamp == 5

    def test_non_string_tags(self, tmp_path):
        """Should read documents whose tags are not strings."""
        remote = FileRemoteStore(tmp_path, "bob")
        remote.collection.mkdir(parents=True)
        doc = {"url": "https://a.com", "addDate": 1, "tags": [5, "x"]}
        (remote.collection / "a.json").write_text(json.dumps(doc))
        assert remote.get_all()[0].tags == ["5", "x"]


class TestHttpRemoteStore:
    """Test HttpRemoteStore with a mocked session."""

    def _remote(self, session):
        return HttpRemoteStore("https://api.example/v1/", "alice", token="tok", session=session)

    def test_auth_header(self):
        """Should send the bearer token."""
        session = MagicMock()
        session.headers = {}
        self._remote(session)
        assert session.headers["Authorization"] == "Bearer tok"

    def test_get_all(self):
        """Should GET the collection and decode documents."""
        session = MagicMock()
        session.headers = {}
        resp = MagicMock()
        resp.json.return_value = [{"id": "x", "url": "https://a.com", "title": "A", "addDate": 3}]
        session.request.return_value = resp
        got = self._remote(session).get_all()
        session.request.assert_called_once_with(
            "GET", "https://api.example/v1/users/alice/bookmarks", timeout=5.0
        )
        assert [(b.url, b.title, b.add_date, b.id) for b in got] == [("https://a.com", "A", 3, None)]

    def test_put(self):
        """Should PUT the document under its stable id."""
        session = MagicMock()
        session.headers = {}
        b = Bookmark(url="https://a.com", add_date=3)
        self._remote(session).put(b)
        method, url = session.request.call_args[0]
        assert method == "PUT"
        assert url.endswith(f"/users/alice/bookmarks/{doc_id(b)}")
        assert session.request.call_args[1]["json"]["lastModified"] == 3

    def test_transport_error(self):
        """Should wrap requests errors in RemoteStoreError."""
        session = MagicMock()
        session.headers = {}
        session.request.side_effect = requests.exceptions.ConnectionError("down")
        with pytest.raises(RemoteStoreError):
            self._remote(session).get_all()

    def test_http_error(self):
        """Should treat non-2xx responses as failures."""
        session = MagicMock()
        session.headers = {}
        resp = MagicMock()
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError("403")
        session.request.return_value = resp
        with pytest.raises(RemoteStoreError):
            self._remote(session).delete("abc")


    def test_unexpected_shape(self):
        """Should reject a response that is not a document list."""
        session = MagicMock()
        session.headers = {}
        session.request.return_value.json.return_value = "oops"
        with pytest.raises(RemoteStoreError):
            self._remote(session).get_all()


class TestOpenRemote:
    """Test open_remote function."""

    def test_none(self):
        """Should return None without a remote setting."""
        assert open_remote(Settings()) is None

    def test_file(self, tmp_path):
        """Should pick the file store for paths."""
        remote = open_remote(Settings(remote=str(tmp_path), user="u"))
        assert isinstance(remote, FileRemoteStore)
        assert remote.user == "u"

    def test_http(self):
        """Should pick the HTTP store for URLs."""
        assert isinstance(open_remote(Settings(remote="https://api.example")), HttpRemoteStore)
