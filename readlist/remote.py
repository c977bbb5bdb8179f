"""Remote document-store clients.

A remote store keeps one document per bookmark under
``users/<user>/bookmarks/<doc id>``, where the document id is the stable
hash of the bookmark url.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import requests

from .errors import RemoteStoreError
from .io import load_json, write_json
from .models import Bookmark
from .utils import now_epoch, rid

log = logging.getLogger(__name__)

Snapshot = List[Bookmark]


def doc_id(b: Bookmark) -> str:
    return rid(b.url)


def coerce_stamp(value: Any) -> int:
    """Interpret a stored timestamp; unknown shapes become the current time."""
    if isinstance(value, dict) and "seconds" in value:
        value = value["seconds"]
    if isinstance(value, bool):
        return now_epoch()
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            pass
    return now_epoch()


def to_document(b: Bookmark) -> Dict[str, Any]:
    """Remote document for ``b``; ``lastModified`` is always filled in."""
    doc = b.to_dict()
    doc.pop("id", None)
    doc["lastModified"] = b.stamp
    return doc


def from_document(data: Dict[str, Any]) -> Bookmark:
    data = dict(data)
    data.pop("id", None)
    data["addDate"] = coerce_stamp(data.get("addDate"))
    if data.get("lastModified") is not None:
        data["lastModified"] = coerce_stamp(data["lastModified"])
    return Bookmark.from_dict(data)


def snapshot_key(snapshot: Snapshot) -> List[str]:
    """Order-independent fingerprint of every field in a snapshot."""
    return sorted(json.dumps(to_document(b), sort_keys=True) for b in snapshot)


class RemoteStore:
    """Keyed bookmark collection belonging to one user."""

    def get_all(self) -> Snapshot:
        raise NotImplementedError

    def put(self, b: Bookmark) -> None:
        raise NotImplementedError

    def delete(self, document_id: str) -> None:
        raise NotImplementedError

    def subscribe(self, callback: Callable[[Snapshot], None], interval: float = 30.0) -> Callable[[], None]:
        """Poll the store and call ``callback`` whenever the snapshot changes.

        The first snapshot is delivered immediately. Polling errors are
        logged and retried on the next tick.

        Returns:
            A function that stops the polling thread.
        """
        stop = threading.Event()

        def run() -> None:
            last = None
            while not stop.is_set():
                try:
                    snapshot = self.get_all()
                except RemoteStoreError as e:
                    log.warning("remote poll failed: %s", e)
                else:
                    key = snapshot_key(snapshot)
                    if key != last and not stop.is_set():
                        last = key
                        callback(snapshot)
                stop.wait(interval)

        t = threading.Thread(target=run, name="readlist-remote-poll", daemon=True)
        t.start()

        def unsubscribe() -> None:
            stop.set()
            if t is not threading.current_thread():
                t.join(timeout=interval + 1)

        return unsubscribe


class FileRemoteStore(RemoteStore):
    """Remote store kept as JSON documents in a (shared) directory."""

    def __init__(self, root: Path, user: str):
        self.root = Path(root)
        self.user = user

    @property
    def collection(self) -> Path:
        return self.root / "users" / self.user / "bookmarks"

    def get_all(self) -> Snapshot:
        if not self.collection.exists():
            return []
        out = []
        try:
            for p in sorted(self.collection.glob("*.json")):
                out.append(from_document(load_json(p)))
        except (OSError, TypeError, ValueError) as e:
            raise RemoteStoreError(f"cannot read remote collection: {e}")
        return [b for b in out if b.url]

    def put(self, b: Bookmark) -> None:
        try:
            write_json(self.collection / f"{doc_id(b)}.json", to_document(b))
        except OSError as e:
            raise RemoteStoreError(f"cannot write {b.url}: {e}")

    def delete(self, document_id: str) -> None:
        try:
            (self.collection / f"{document_id}.json").unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise RemoteStoreError(f"cannot delete {document_id}: {e}")


class HttpRemoteStore(RemoteStore):
    """Remote store reached over a JSON REST API."""

    def __init__(self, base_url: str, user: str, token: Optional[str] = None,
                 timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.user = user
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def _url(self, document_id: str = "") -> str:
        url = f"{self.base_url}/users/{quote(self.user, safe='')}/bookmarks"
        return f"{url}/{document_id}" if document_id else url

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise RemoteStoreError(f"{method} {url} failed: {e}")
        return resp

    def get_all(self) -> Snapshot:
        resp = self._request("GET", self._url())
        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteStoreError(f"remote returned invalid JSON: {e}")
        if isinstance(data, dict):
            data = data.get("documents", [])
        if not isinstance(data, list):
            raise RemoteStoreError("remote returned an unexpected document shape")
        try:
            out = [from_document(d) for d in data if isinstance(d, dict)]
        except (TypeError, ValueError) as e:
            raise RemoteStoreError(f"remote returned a malformed document: {e}")
        return [b for b in out if b.url]

    def put(self, b: Bookmark) -> None:
        self._request("PUT", self._url(doc_id(b)), json=to_document(b))

    def delete(self, document_id: str) -> None:
        self._request("DELETE", self._url(document_id))


def open_remote(settings) -> Optional[RemoteStore]:
    """Build the remote client named by ``settings.remote`` (None if unset)."""
    target = settings.remote
    if not target:
        return None
    if target.startswith(("http://", "https://")):
        return HttpRemoteStore(target, settings.user, settings.token, settings.timeout)
    return FileRemoteStore(Path(target).expanduser(), settings.user)
