"""Reconciliation of the local collection with a remote store.

Conflicts are resolved last-write-wins on the record stamp
(``last_modified``, falling back to ``add_date``).
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .errors import ReadlistError, RemoteStoreError
from .models import Bookmark
from .remote import RemoteStore, doc_id
from .store import LocalStore

log = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"
    ERROR = "error"


@dataclass
class MergePlan:
    """Outcome of reconciling two collections.

    Attributes:
        unified: One record per distinct url across both sides.
        remote_writes: Local records the remote side must store.
        local_updates: Remote records replacing older local ones.
        local_inserts: Remote records missing locally.
    """

    unified: List[Bookmark] = field(default_factory=list)
    remote_writes: List[Bookmark] = field(default_factory=list)
    local_updates: List[Bookmark] = field(default_factory=list)
    local_inserts: List[Bookmark] = field(default_factory=list)

    @property
    def local_writes(self) -> List[Bookmark]:
        return self.local_updates + self.local_inserts


def reconcile(local: Iterable[Bookmark], remote: Iterable[Bookmark]) -> MergePlan:
    """Merge two url-keyed collections, newer stamp wins.

    Each remote record is compared at most once; equal stamps keep the
    local record and schedule no write.
    """
    pool: Dict[str, Bookmark] = {}
    for r in remote:
        pool[r.url] = r
    plan = MergePlan()
    seen = set()
    for loc in local:
        if loc.url in seen:
            continue
        seen.add(loc.url)
        rem = pool.pop(loc.url, None)
        if rem is None:
            plan.remote_writes.append(loc)
            plan.unified.append(loc)
        elif rem.stamp > loc.stamp:
            plan.local_updates.append(rem)
            plan.unified.append(rem)
        elif loc.stamp > rem.stamp:
            plan.remote_writes.append(loc)
            plan.unified.append(loc)
        else:
            plan.unified.append(loc)
    for rem in pool.values():
        plan.local_inserts.append(rem)
        plan.unified.append(rem)
    return plan


@dataclass
class SyncReport:
    status: SyncStatus
    pushed: int = 0
    pulled: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)
    error: Optional[str] = None
    discarded: bool = False


StatusListener = Callable[[SyncStatus, Optional[str]], None]


class SyncService:
    """Runs merges, pushes and pulls and tracks the sync status.

    Failures never propagate out of :meth:`merge`, :meth:`push` or
    :meth:`pull`; they end in :attr:`SyncStatus.ERROR` with the message in
    :attr:`error`, and the local store keeps whatever was applied.
    """

    def __init__(self, store: LocalStore, remote: RemoteStore):
        self.store = store
        self.remote = remote
        self.status = SyncStatus.IDLE
        self.error: Optional[str] = None
        self._listeners: List[StatusListener] = []
        self._session = 0
        self._run_lock = threading.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ---------------------------
    # Status
    # ---------------------------

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _set_status(self, status: SyncStatus, error: Optional[str] = None) -> None:
        self.status = status
        self.error = error
        for listener in list(self._listeners):
            listener(status, error)

    def _finish(self, report: SyncReport) -> SyncReport:
        if report.failures and report.error is None:
            report.error = f"{len(report.failures)} bookmark(s) failed to sync"
        report.status = SyncStatus.ERROR if report.error else SyncStatus.SYNCED
        self._set_status(report.status, report.error)
        if report.error:
            log.warning("sync finished with errors: %s", report.error)
        else:
            log.info("sync ok: %d pushed, %d pulled", report.pushed, report.pulled)
        return report

    def end_session(self) -> None:
        """Forget the current user context.

        Stops the subscription; a sync still in flight completes but its
        local writes are dropped.
        """
        self._session += 1
        self.stop()
        self._set_status(SyncStatus.IDLE)

    # ---------------------------
    # Operations
    # ---------------------------

    def _push_each(self, bookmarks: Iterable[Bookmark], report: SyncReport) -> None:
        for b in bookmarks:
            try:
                self.remote.put(b)
            except RemoteStoreError as e:
                log.debug("remote write failed for %s: %s", b.url, e)
                report.failures.append((b.url, str(e)))
            else:
                report.pushed += 1

    def merge(self) -> SyncReport:
        """Two-way reconcile of the local store and the remote store."""
        with self._run_lock:
            session = self._session
            self._set_status(SyncStatus.SYNCING)
            report = SyncReport(SyncStatus.SYNCING)
            try:
                remote = self.remote.get_all()
            except RemoteStoreError as e:
                report.error = str(e)
                return self._finish(report)
            plan = reconcile(self.store.all(), remote)
            if session != self._session:
                log.info("session ended during sync; discarding merge result")
                report.discarded = True
                report.status = self.status
                return report
            try:
                if plan.local_writes:
                    self.store.bulk_put(plan.local_writes)
                    report.pulled = len(plan.local_writes)
            except ReadlistError as e:
                report.error = f"local update failed: {e}"
            self._push_each(plan.remote_writes, report)
            return self._finish(report)

    def push(self) -> SyncReport:
        """Write every local record to the remote store."""
        with self._run_lock:
            self._set_status(SyncStatus.SYNCING)
            report = SyncReport(SyncStatus.SYNCING)
            self._push_each(self.store.all(), report)
            return self._finish(report)

    def pull(self) -> SyncReport:
        """Replace the local collection with the remote one."""
        with self._run_lock:
            session = self._session
            self._set_status(SyncStatus.SYNCING)
            report = SyncReport(SyncStatus.SYNCING)
            try:
                remote = self.remote.get_all()
            except RemoteStoreError as e:
                report.error = str(e)
                return self._finish(report)
            if session != self._session:
                report.discarded = True
                report.status = self.status
                return report
            try:
                self.store.replace_all(remote)
                report.pulled = len(remote)
            except ReadlistError as e:
                report.error = f"local update failed: {e}"
            return self._finish(report)

    def delete(self, url: str) -> None:
        """Delete one record locally, then remotely.

        The local delete raises if the url is unknown; a remote failure
        only changes the status.
        """
        self.store.delete(url)
        self.delete_remote(url)

    def delete_remote(self, url: str) -> bool:
        """Remove the remote document for ``url``, e.g. after a url edit.

        A failure only changes the status. Returns True on success.
        """
        try:
            self.remote.delete(doc_id(Bookmark(url=url)))
        except RemoteStoreError as e:
            self._set_status(SyncStatus.ERROR, str(e))
            log.warning("remote delete failed for %s: %s", url, e)
            return False
        return True

    # ---------------------------
    # Subscription
    # ---------------------------

    def apply_snapshot(self, snapshot: List[Bookmark], session: Optional[int] = None) -> None:
        """Replace the local collection with a pushed remote snapshot."""
        if session is not None and session != self._session:
            return
        try:
            self.store.replace_all(snapshot)
        except ReadlistError as e:
            log.error("applying remote snapshot failed: %s", e)
            return
        self._set_status(SyncStatus.SYNCED)

    def start(self, interval: float = 30.0) -> None:
        if self._unsubscribe is not None:
            return
        session = self._session
        self._unsubscribe = self.remote.subscribe(
            lambda snapshot: self.apply_snapshot(snapshot, session), interval
        )

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
