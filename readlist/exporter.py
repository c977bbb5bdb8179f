"""Export bookmarks as Netscape HTML or JSON."""

import html
from typing import Iterable

from .io import dump_json
from .models import Bookmark

NETSCAPE_HEADER = """<!DOCTYPE NETSCAPE-Bookmark-file-1>
<!-- This is an automatically generated file.
It will be read and overwritten.
DO NOT EDIT! -->
<META HTTP-EQUIV="Content-Type" CONTENT="text/html; charset=UTF-8">
<TITLE>Reading List Export</TITLE>
<H1>Reading List Export</H1>
<DL><p>
"""
NETSCAPE_FOOTER = "</DL><p>\n"


def _attr(value: str) -> str:
    return html.escape(value, quote=True)


def format_entry(b: Bookmark) -> str:
    """Render one bookmark as a ``<DT><A ...>`` line."""
    parts = [
        f'HREF="{_attr(b.url)}"',
        f'ADD_DATE="{b.add_date}"',
        f'LAST_MODIFIED="{b.stamp}"',
    ]
    if b.icon:
        parts.append(f'ICON="{_attr(b.icon)}"')
    if b.tags:
        parts.append(f'TAGS="{_attr(",".join(b.tags))}"')
    title = html.escape(b.title, quote=False)
    return f"    <DT><A {' '.join(parts)}>{title}</A>\n"


def format_netscape(bookmarks: Iterable[Bookmark]) -> str:
    """Serialize bookmarks to a document the Netscape parser reads back."""
    out = [NETSCAPE_HEADER]
    out.extend(format_entry(b) for b in bookmarks)
    out.append(NETSCAPE_FOOTER)
    return "".join(out)


def format_json(bookmarks: Iterable[Bookmark]) -> str:
    """Lossless JSON dump of the collection."""
    return dump_json([b.to_dict() for b in bookmarks])
