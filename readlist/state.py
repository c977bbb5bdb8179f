"""Explicit state container tying the store to a filtered view."""

from typing import Callable, List, Optional

from .models import Bookmark, FilterSpec
from .query import apply_filter
from .store import LocalStore

ViewListener = Callable[[List[Bookmark]], None]


class ReadingList:
    """Current filter plus the derived, sorted view of the store.

    Listeners receive the recomputed view whenever the store changes or
    the filter is replaced.
    """

    def __init__(self, store: LocalStore, spec: Optional[FilterSpec] = None):
        self.store = store
        self.spec = spec or FilterSpec()
        self._listeners: List[ViewListener] = []
        self._unsubscribe = store.subscribe(self._on_store_change)

    def view(self) -> List[Bookmark]:
        return apply_filter(self.store.all(), self.spec)

    def set_filter(self, **changes) -> List[Bookmark]:
        self.spec = self.spec.replace(**changes)
        return self._notify()

    def subscribe(self, listener: ViewListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def close(self) -> None:
        self._unsubscribe()
        self._listeners.clear()

    def _on_store_change(self, _snapshot: List[Bookmark]) -> None:
        self._notify()

    def _notify(self) -> List[Bookmark]:
        current = self.view()
        for listener in list(self._listeners):
            listener(current)
        return current
