"""Filtering and sorting of bookmark collections."""

import locale
from typing import Callable, Iterable, List, Optional, Set

from .models import Bookmark, FilterSpec
from .utils import end_of_day, parse_day, split_terms, start_of_day

# Upper bound when no end date is given; larger than any real timestamp.
FAR_FUTURE = 8_640_000_000_000


def tokenize(search: str) -> Set[str]:
    """Lowercase search terms split on ASCII and full-width whitespace."""
    return {t.lower() for t in split_terms(search)}


def matches_search(b: Bookmark, terms: Set[str]) -> bool:
    """Every term must occur in the title, the url or one of the tags."""
    if not terms:
        return True
    fields = [b.title.lower(), b.url.lower()] + [t.lower() for t in b.tags]
    return all(any(term in f for f in fields) for term in terms)


def date_bounds(spec: FilterSpec) -> Optional[tuple]:
    """Inclusive (low, high) Unix-second bounds, or None for no date filter."""
    start = parse_day(spec.start_date)
    end = parse_day(spec.end_date)
    if start is None and end is None:
        return None
    low = start_of_day(start) if start else 0
    high = end_of_day(end) if end else FAR_FUTURE
    return low, high


def matches_tag(b: Bookmark, tag: Optional[str]) -> bool:
    return not tag or tag in b.tags


def _sort_key(spec: FilterSpec) -> Callable[[Bookmark], object]:
    if spec.sort_by == "title":
        return lambda b: (locale.strxfrm(b.display_title.casefold()), b.display_title)
    return lambda b: b.add_date


def apply_filter(bookmarks: Iterable[Bookmark], spec: FilterSpec) -> List[Bookmark]:
    """Return the records matching ``spec``, sorted as it asks.

    The sort is stable in both directions: records with equal keys keep
    their input order for ``asc`` and for ``desc``.
    """
    terms = tokenize(spec.search)
    bounds = date_bounds(spec)
    kept = []
    for b in bookmarks:
        if not matches_search(b, terms):
            continue
        if bounds and not (bounds[0] <= b.add_date <= bounds[1]):
            continue
        if not matches_tag(b, spec.selected_tag):
            continue
        kept.append(b)
    return sorted(kept, key=_sort_key(spec), reverse=spec.sort_order == "desc")


def collect_tags(bookmarks: Iterable[Bookmark]) -> List[str]:
    """All distinct tags in the collection, sorted."""
    tags = set()
    for b in bookmarks:
        tags.update(b.tags)
    return sorted(tags)
