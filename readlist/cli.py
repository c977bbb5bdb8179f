"""Command-line entry point for rl."""

import argparse
import locale
import logging

from .commands import (
    cmd_add,
    cmd_clear,
    cmd_edit,
    cmd_enrich,
    cmd_export,
    cmd_import,
    cmd_init,
    cmd_list,
    cmd_open,
    cmd_proxy,
    cmd_rm,
    cmd_search,
    cmd_show,
    cmd_sync,
    cmd_tag,
    cmd_tags,
)
from .errors import ReadlistError
from .proxy import DEFAULT_PORT
from .utils import die


def _output_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--json", action="store_true", help="Emit JSON array")
    p.add_argument("--jsonl", action="store_true", help="Emit JSON Lines (NDJSON)")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="rl", description="Reading list for browser bookmark exports")
    ap.add_argument("--store", help="Path to bookmark store (default: $READLIST_DIR or ~/.readlist.d)")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    sp = ap.add_subparsers(dest="cmd", required=True)

    p = sp.add_parser("init", help="Create a new store")
    p.set_defaults(func=cmd_init)

    p = sp.add_parser("add", help="Add a bookmark")
    p.add_argument("url")
    p.add_argument("-n", "--name", help="Title")
    p.add_argument("-t", "--tags", help="Comma-separated tags")
    p.add_argument("-f", "--force", action="store_true", help="Overwrite if exists")
    p.set_defaults(func=cmd_add)

    p = sp.add_parser("show", help="Show an entry")
    p.add_argument("id", help="Local id, URL or stable ID")
    p.set_defaults(func=cmd_show)

    p = sp.add_parser("open", help="Open in browser")
    p.add_argument("id", help="Local id, URL or stable ID")
    p.set_defaults(func=cmd_open)

    p = sp.add_parser("list", help="List entries (filter and sort)")
    p.add_argument("-s", "--search", help="Terms that must all appear in title, URL or tags")
    p.add_argument("--sort", choices=["date", "title"], default="date")
    p.add_argument("--order", choices=["asc", "desc"], default="desc")
    p.add_argument("--from", dest="since", help="First day to include (YYYY-MM-DD)")
    p.add_argument("--to", dest="until", help="Last day to include (YYYY-MM-DD)")
    p.add_argument("-t", "--tag", help="Only entries carrying this exact tag")
    _output_flags(p)
    p.set_defaults(func=cmd_list)

    p = sp.add_parser("search", help="Search over title/url/tags")
    p.add_argument("query")
    _output_flags(p)
    p.set_defaults(func=cmd_search)

    p = sp.add_parser("edit", help="Change title, URL or tags")
    p.add_argument("id")
    p.add_argument("--title")
    p.add_argument("--url")
    p.add_argument("--tags", help="Comma-separated tags (replaces current)")
    p.set_defaults(func=cmd_edit)

    p = sp.add_parser("rm", help="Remove an entry")
    p.add_argument("id")
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    p.set_defaults(func=cmd_rm)

    p = sp.add_parser("clear", help="Remove all entries")
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    p.set_defaults(func=cmd_clear)

    p = sp.add_parser("tags", help="List all tags")
    p.set_defaults(func=cmd_tags)

    p = sp.add_parser("tag", help="Mutate tags without editing")
    p.add_argument("action", choices=["add", "rm"])
    p.add_argument("id")
    p.add_argument("tags", nargs="+")
    p.set_defaults(func=cmd_tag)

    p = sp.add_parser("export", help="Export bookmarks")
    spx = p.add_subparsers(dest="fmt", required=True)
    for fmt, help_text in (("netscape", "Export as Netscape bookmarks HTML"), ("json", "Export as JSON array")):
        pe = spx.add_parser(fmt, help=help_text)
        pe.add_argument("-o", "--output", help="Write to file instead of stdout")
        pe.set_defaults(func=cmd_export)

    p = sp.add_parser("import", help="Import bookmarks")
    spm = p.add_subparsers(dest="fmt", required=True)
    for fmt, help_text in (("netscape", "Import from Netscape bookmarks HTML"), ("json", "Import a JSON export")):
        pn = spm.add_parser(fmt, help=help_text)
        pn.add_argument("file")
        pn.add_argument("--replace", action="store_true", help="Replace the whole collection")
        pn.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
        pn.set_defaults(func=cmd_import)

    p = sp.add_parser("sync", help="Sync with the remote store")
    p.add_argument("mode", nargs="?", choices=["merge", "push", "pull"], default="merge")
    p.add_argument("--watch", action="store_true", help="Keep applying remote changes")
    p.add_argument("--interval", type=float, default=30.0, help="Poll interval for --watch")
    p.set_defaults(func=cmd_sync)

    p = sp.add_parser("enrich", help="Fetch page previews")
    p.add_argument("--limit", type=int, help="Process at most N bookmarks")
    p.add_argument("-q", "--quiet", action="store_true", help="No progress bar")
    p.set_defaults(func=cmd_enrich)

    p = sp.add_parser("proxy", help="Run the metadata-fetch proxy")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=DEFAULT_PORT)
    p.set_defaults(func=cmd_proxy)

    return ap


def main() -> None:
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        logging.getLogger(__name__).debug("system collation locale unavailable")
    try:
        args.func(args)
    except ReadlistError as e:
        die(str(e))


if __name__ == "__main__":
    main()
