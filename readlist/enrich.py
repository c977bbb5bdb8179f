"""Background enrichment of bookmarks with page metadata.

Records are fetched in small batches on a bounded thread pool with a pause
between batches, so the fetch proxy is never hit by more than
``batch_size`` requests at once.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from tqdm import tqdm

from .errors import BookmarkNotFoundError, FetchError, ReadlistError
from .models import Bookmark, Ogp
from .ogp import MetadataFetcher
from .store import LocalStore

log = logging.getLogger(__name__)


@dataclass
class EnrichReport:
    enriched: int = 0
    failed: int = 0
    skipped: int = 0


def needs_enrichment(b: Bookmark) -> bool:
    return b.ogp is None or not b.ogp.loaded


class Enricher:
    """Fills in ``ogp`` (and ``image``) for stored bookmarks.

    A failed fetch stores ``Ogp(loaded=True)`` so the record is not retried
    on the next run. ``last_modified`` is never changed, so enrichment does
    not count as an edit for sync purposes.
    """

    def __init__(self, store: LocalStore, fetcher: MetadataFetcher, batch_size: int = 3,
                 delay: float = 1.0, sleep: Callable[[float], None] = time.sleep):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.fetcher = fetcher
        self.batch_size = batch_size
        self.delay = delay
        self._sleep = sleep
        self._lock = threading.Lock()
        self._in_flight = set()

    def pending(self) -> List[Bookmark]:
        return [b for b in self.store.all() if needs_enrichment(b)]

    def _claim(self, url: str) -> bool:
        with self._lock:
            if url in self._in_flight:
                return False
            self._in_flight.add(url)
            return True

    def _release(self, url: str) -> None:
        with self._lock:
            self._in_flight.discard(url)

    def enrich_one(self, b: Bookmark) -> bool:
        """Fetch and store metadata for one record; True on success."""
        ok = True
        try:
            ogp = self.fetcher.fetch_ogp(b.url)
        except FetchError as e:
            log.debug("metadata fetch failed for %s: %s", b.url, e)
            ogp, ok = Ogp(loaded=True), False
        except Exception:
            log.exception("unexpected error enriching %s", b.url)
            ogp, ok = Ogp(loaded=True), False
        changes = {"ogp": ogp}
        if ogp.image:
            changes["image"] = ogp.image
        try:
            self.store.update(b.url, **changes)
        except BookmarkNotFoundError:
            log.debug("%s was removed while being enriched", b.url)
        except ReadlistError as e:
            log.warning("could not save metadata for %s: %s", b.url, e)
            ok = False
        return ok

    def _process(self, b: Bookmark) -> bool:
        try:
            return self.enrich_one(b)
        finally:
            self._release(b.url)

    def run(self, bookmarks: Optional[Iterable[Bookmark]] = None, limit: Optional[int] = None,
            progress: bool = False) -> EnrichReport:
        """Enrich ``bookmarks`` (default: every pending record).

        Args:
            bookmarks: Records to process; already-loaded ones are fetched again.
            limit: Process at most this many records.
            progress: Show a tqdm progress bar on stderr.
        """
        work = list(bookmarks) if bookmarks is not None else self.pending()
        if limit is not None:
            work = work[:limit]
        report = EnrichReport()
        batches = [work[i:i + self.batch_size] for i in range(0, len(work), self.batch_size)]
        with ThreadPoolExecutor(max_workers=self.batch_size) as executor, \
                tqdm(total=len(work), desc="Enriching", unit="link", disable=not progress) as bar:
            for n, batch in enumerate(batches):
                if n:
                    self._sleep(self.delay)
                futures = []
                for b in batch:
                    if self._claim(b.url):
                        futures.append(executor.submit(self._process, b))
                    else:
                        report.skipped += 1
                        bar.update(1)
                done, _ = wait(futures)
                for f in done:
                    if f.result():
                        report.enriched += 1
                    else:
                        report.failed += 1
                bar.update(len(done))
        log.info("enrichment done: %d enriched, %d failed, %d skipped",
                 report.enriched, report.failed, report.skipped)
        return report
