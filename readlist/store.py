"""Local persistent bookmark store.

The whole collection lives in one JSON document inside the store directory.
Every mutation builds a new url-keyed mapping and swaps it in under a lock
before persisting, so a reader holding a snapshot never sees a half-applied
change (for example a cleared collection that is still being refilled).
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from .errors import BookmarkNotFoundError, DuplicateBookmarkError, StoreError
from .io import load_json, write_json
from .models import Bookmark
from .utils import rid

log = logging.getLogger(__name__)

SCHEMA_VERSION = 1

Listener = Callable[[List[Bookmark]], None]


class LocalStore:
    """Url-keyed bookmark collection persisted to ``path``."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._next_id = 1
        self._items: Dict[str, Bookmark] = {}
        self._load()

    # ---------------------------
    # Persistence
    # ---------------------------

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            doc = load_json(self.path)
        except (OSError, ValueError) as e:
            raise StoreError(f"cannot read store {self.path}: {e}")
        if not isinstance(doc, dict) or doc.get("version") != SCHEMA_VERSION:
            raise StoreError(f"unsupported store format in {self.path}")
        items = {}
        for raw in doc.get("bookmarks", []):
            b = Bookmark.from_dict(raw)
            if b.url:
                items[b.url] = b
        self._items = items
        self._next_id = max([int(doc.get("next_id", 1))] + [(b.id or 0) + 1 for b in items.values()])

    def _save(self) -> None:
        doc = {
            "version": SCHEMA_VERSION,
            "next_id": self._next_id,
            "bookmarks": [b.to_dict() for b in self._items.values()],
        }
        try:
            write_json(self.path, doc)
        except OSError as e:
            raise StoreError(f"cannot write store {self.path}: {e}")

    def _commit(self, items: Dict[str, Bookmark]) -> None:
        """Swap in a new mapping, persist it and notify listeners."""
        self._items = items
        self._save()
        snapshot = self.all()
        for listener in list(self._listeners):
            listener(snapshot)

    def _assign_id(self, b: Bookmark, items: Dict[str, Bookmark],
                   previous: Optional[Bookmark] = None) -> Bookmark:
        """Copy ``b`` with a local id that no other record in ``items`` uses."""
        b = b.copy()
        if previous is not None and previous.id is not None:
            b.id = previous.id
        taken = {o.id for o in items.values() if o.url != b.url}
        if not isinstance(b.id, int) or b.id in taken:
            b.id = self._next_id
        self._next_id = max(self._next_id, b.id + 1)
        return b

    # ---------------------------
    # Reads
    # ---------------------------

    def all(self) -> List[Bookmark]:
        """Full scan; returns copies in insertion order."""
        with self._lock:
            return [b.copy() for b in self._items.values()]

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, url: str) -> bool:
        return url in self._items

    def get(self, url: str) -> Optional[Bookmark]:
        with self._lock:
            b = self._items.get(url)
            return b.copy() if b else None

    def get_by_id(self, bookmark_id: int) -> Optional[Bookmark]:
        with self._lock:
            for b in self._items.values():
                if b.id == bookmark_id:
                    return b.copy()
        return None

    def find(self, token: str) -> Optional[Bookmark]:
        """Resolve a local id, a url, or a stable url hash."""
        token = token.strip()
        if token.isdigit():
            hit = self.get_by_id(int(token))
            if hit:
                return hit
        hit = self.get(token)
        if hit:
            return hit
        with self._lock:
            for b in self._items.values():
                if rid(b.url) == token:
                    return b.copy()
        return None

    # ---------------------------
    # Writes
    # ---------------------------

    def add(self, b: Bookmark) -> Bookmark:
        """Insert a new record; fails if the url is already stored."""
        b.validate()
        with self._lock:
            if b.url in self._items:
                raise DuplicateBookmarkError(f"bookmark exists: {b.url}")
            stored = self._assign_id(b, self._items)
            items = dict(self._items)
            items[b.url] = stored
            self._commit(items)
            return stored.copy()

    def put(self, b: Bookmark) -> Bookmark:
        """Insert or replace the record with the same url."""
        return self.bulk_put([b])[0]

    def bulk_put(self, bookmarks: Iterable[Bookmark]) -> List[Bookmark]:
        """Upsert many records in one commit; later duplicates win."""
        bookmarks = [b.validate() for b in bookmarks]
        with self._lock:
            items = dict(self._items)
            stored = []
            for b in bookmarks:
                s = self._assign_id(b, items, items.get(b.url))
                items[b.url] = s
                stored.append(s.copy())
            if stored:
                self._commit(items)
            return stored

    def update(self, key: str, /, **changes) -> Bookmark:
        """Replace fields of the record stored under url ``key``.

        A ``url`` among ``changes`` re-keys the record.
        """
        with self._lock:
            current = self._items.get(key)
            if current is None:
                raise BookmarkNotFoundError(f"not found: {key}")
            updated = current.copy(**changes).validate()
            items = dict(self._items)
            if updated.url != key:
                if updated.url in items:
                    raise DuplicateBookmarkError(f"bookmark exists: {updated.url}")
                del items[key]
            items[updated.url] = updated
            self._commit(items)
            return updated.copy()

    def delete(self, url: str) -> None:
        with self._lock:
            if url not in self._items:
                raise BookmarkNotFoundError(f"not found: {url}")
            items = dict(self._items)
            del items[url]
            self._commit(items)

    def clear(self) -> None:
        with self._lock:
            self._commit({})

    def replace_all(self, bookmarks: Iterable[Bookmark]) -> None:
        """Atomically replace the whole collection (remote snapshot apply)."""
        bookmarks = [b for b in bookmarks if b.url]
        with self._lock:
            items: Dict[str, Bookmark] = {}
            for b in bookmarks:
                items[b.url] = self._assign_id(b, items, self._items.get(b.url))
            self._commit(items)
            log.debug("replaced local collection with %d bookmarks", len(items))

    # ---------------------------
    # Observers
    # ---------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with a snapshot after every change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
