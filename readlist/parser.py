"""Import parsers for Netscape bookmark exports and JSON dumps.

Every anchor with an ``HREF`` becomes a record. Missing or malformed
attributes fall back to defaults instead of raising.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import List

from bs4 import BeautifulSoup

from .errors import ImportFormatError
from .models import Bookmark
from .utils import clean_tags, parse_int

log = logging.getLogger(__name__)


@dataclass
class ParseResult:
    bookmarks: List[Bookmark] = field(default_factory=list)
    skipped: int = 0


def _anchor_to_bookmark(a) -> Bookmark:
    add_date = parse_int(a.get("add_date"))
    return Bookmark(
        url=a.get("href") or "",
        title=a.get_text() or "",
        add_date=add_date if add_date is not None else 0,
        last_modified=parse_int(a.get("last_modified")),
        icon=a.get("icon") or None,
        tags=clean_tags((a.get("tags") or "").split(",")),
    )


def parse_document(text: str) -> ParseResult:
    """Parse a Netscape bookmark document.

    Args:
        text: Document markup; may be partial or malformed.

    Returns:
        The records in document order plus the number of anchors skipped
        for lacking a url.
    """
    soup = BeautifulSoup(text or "", "html.parser")
    result = ParseResult()
    for a in soup.find_all("a"):
        bm = _anchor_to_bookmark(a)
        if not bm.url:
            result.skipped += 1
            continue
        result.bookmarks.append(bm)
    log.debug("parsed %d bookmarks (%d skipped)", len(result.bookmarks), result.skipped)
    return result


def parse_bookmarks(text: str) -> List[Bookmark]:
    """Parse a Netscape bookmark document into records."""
    return parse_document(text).bookmarks


def parse_json(text: str) -> ParseResult:
    """Parse a JSON export (an array of record objects)."""
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ImportFormatError(f"not a JSON document: {e}")
    if not isinstance(data, list):
        raise ImportFormatError("JSON export must be an array of bookmarks")
    result = ParseResult()
    for item in data:
        if not isinstance(item, dict) or not item.get("url"):
            result.skipped += 1
            continue
        result.bookmarks.append(Bookmark.from_dict(item))
    return result
