"""Command implementations for the reading-list manager."""

import json
import sys
import textwrap
import time
import webbrowser
from pathlib import Path
from typing import Any, Dict, List

from .config import Settings
from .enrich import Enricher
from .exporter import format_json, format_netscape
from .io import atomic_write, read_text
from .models import Bookmark, FilterSpec
from .ogp import MetadataFetcher
from .parser import parse_document, parse_json
from .proxy import serve
from .query import collect_tags
from .remote import open_remote
from .state import ReadingList
from .store import LocalStore
from .sync import SyncService, SyncStatus
from .utils import confirm, die, fmt_epoch, now_epoch, parse_day, rid, split_tags


def load_settings(args) -> Settings:
    """Environment settings with the ``--store`` flag applied."""
    return Settings.from_env().override(store_dir=Path(args.store) if args.store else None)


def open_store(settings: Settings, create: bool = False) -> LocalStore:
    if not create and not settings.store_path.exists():
        die(f"store not found: {settings.store_dir}. Run `rl init` first.")
    return LocalStore(settings.store_path)


def open_sync(settings: Settings, store: LocalStore) -> SyncService:
    remote = open_remote(settings)
    if remote is None:
        die("no remote configured; set READLIST_REMOTE", code=2)
    return SyncService(store, remote)


def resolve(store: LocalStore, token: str) -> Bookmark:
    """Accept a local id, a URL or a stable ID (hash of the URL)."""
    b = store.find(token)
    if b is None:
        die("not found")
    return b


def _row(b: Bookmark) -> Dict[str, Any]:
    row = b.to_dict()
    row["rid"] = rid(b.url)
    return row


def _emit(bookmarks: List[Bookmark], args) -> None:
    if args.json:
        print(json.dumps([_row(b) for b in bookmarks], ensure_ascii=False))
    elif args.jsonl:
        for b in bookmarks:
            print(json.dumps(_row(b), ensure_ascii=False))
    else:
        for b in bookmarks:
            day = fmt_epoch(b.add_date)[:10]
            tags = f"  [{', '.join(b.tags)}]" if b.tags else ""
            print(f"{b.id:>4}  {day}  {b.display_title} <{b.url}>{tags}")


def cmd_init(args) -> None:
    """Initialize a new bookmark store.

    Creates the store directory with an empty collection and a README.

    Args:
        args: Parsed command line arguments.
    """
    settings = load_settings(args)
    settings.store_dir.mkdir(parents=True, exist_ok=True)
    if settings.store_path.exists():
        print(f"Store already exists at: {settings.store_dir}")
    else:
        open_store(settings, create=True).clear()
        print(f"Initialized store at: {settings.store_dir}")
    readme = settings.store_dir / "README.txt"
    if not readme.exists():
        readme.write_text(
            textwrap.dedent("""\
            rl store
            ========
            * bookmarks.json holds the whole reading list.
            * Import a browser export:  rl import netscape bookmarks.html
            * Export it again:          rl export netscape -o out.html

            Record fields:
              url, title, addDate, lastModified, tags, icon, image, ogp
        """),
            encoding="utf-8",
        )


def cmd_add(args) -> None:
    """Add a single bookmark by URL."""
    store = open_store(load_settings(args))
    url = args.url.strip()
    if not url:
        die("url must not be empty")
    existing = store.get(url)
    if existing and not args.force:
        die(f"bookmark exists: {existing.id} (use --force to overwrite)")
    now = now_epoch()
    b = Bookmark(
        url=url,
        title=(args.name or "").strip(),
        add_date=existing.add_date if existing else now,
        last_modified=now,
        tags=split_tags(args.tags),
    )
    stored = store.put(b)
    print(rid(stored.url))


def cmd_show(args) -> None:
    """Show a bookmark entry."""
    store = open_store(load_settings(args))
    b = resolve(store, args.id)
    print(f"# {b.id} ({rid(b.url)})")
    print(f"url: {b.url}")
    if b.title:
        print(f"title: {b.title}")
    if b.tags:
        print(f"tags: {', '.join(b.tags)}")
    print(f"added: {fmt_epoch(b.add_date)}")
    if b.last_modified is not None:
        print(f"modified: {fmt_epoch(b.last_modified)}")
    if b.ogp and b.ogp.loaded:
        if b.ogp.title:
            print(f"preview title: {b.ogp.title}")
        if b.ogp.description:
            print("\n" + textwrap.fill(b.ogp.description, width=78))


def cmd_open(args) -> None:
    """Open bookmark in browser."""
    store = open_store(load_settings(args))
    b = resolve(store, args.id)
    ok = webbrowser.open(b.url)
    print(b.url)
    if not ok:
        print("rl: warning: system did not acknowledge opening browser", file=sys.stderr)


def cmd_list(args) -> None:
    """List bookmarks through the filter/sort pipeline."""
    store = open_store(load_settings(args))
    for flag, value in (("--from", args.since), ("--to", args.until)):
        if value and parse_day(value) is None:
            die(f"{flag} expects YYYY-MM-DD, got {value!r}")
    try:
        spec = FilterSpec(
            search=args.search or "",
            sort_by=args.sort,
            sort_order=args.order,
            start_date=args.since,
            end_date=args.until,
            selected_tag=args.tag,
        )
    except ValueError as e:
        die(str(e))
    view = ReadingList(store, spec)
    try:
        _emit(view.view(), args)
    finally:
        view.close()


def cmd_search(args) -> None:
    """Search bookmarks by title, URL and tags, newest first."""
    store = open_store(load_settings(args))
    view = ReadingList(store, FilterSpec(search=args.query))
    try:
        _emit(view.view(), args)
    finally:
        view.close()


def cmd_edit(args) -> None:
    """Edit title, URL or tags of a bookmark.

    A changed URL also removes the old document from the remote store, so
    the next sync does not bring the old record back.
    """
    settings = load_settings(args)
    store = open_store(settings)
    b = resolve(store, args.id)
    changes: Dict[str, Any] = {}
    if args.title is not None:
        changes["title"] = args.title.strip()
    if args.url is not None:
        changes["url"] = args.url.strip()
    if args.tags is not None:
        changes["tags"] = split_tags(args.tags)
    if not changes:
        die("nothing to change (use --title, --url or --tags)")
    changes["last_modified"] = now_epoch()
    updated = store.update(b.url, **changes)
    if updated.url != b.url and settings.remote:
        service = open_sync(settings, store)
        if not service.delete_remote(b.url):
            print(f"rl: warning: remote delete failed: {service.error}", file=sys.stderr)


def cmd_rm(args) -> None:
    """Remove bookmark (asks first unless --yes)."""
    settings = load_settings(args)
    store = open_store(settings)
    b = resolve(store, args.id)
    if not confirm(f"Delete {b.display_title} <{b.url}>?", args.yes):
        print("aborted")
        return
    if settings.remote:
        service = open_sync(settings, store)
        service.delete(b.url)
        if service.status is SyncStatus.ERROR:
            print(f"rl: warning: remote delete failed: {service.error}", file=sys.stderr)
    else:
        store.delete(b.url)


def cmd_clear(args) -> None:
    """Delete every bookmark in the local store."""
    store = open_store(load_settings(args))
    if not confirm(f"Delete all {len(store)} bookmarks?", args.yes):
        print("aborted")
        return
    store.clear()


def cmd_tags(args) -> None:
    """List all tags."""
    store = open_store(load_settings(args))
    for t in collect_tags(store.all()):
        print(t)


def cmd_tag(args) -> None:
    """Add or remove tags."""
    store = open_store(load_settings(args))
    b = resolve(store, args.id)
    if args.action == "add":
        b.add_tags(args.tags)
    else:
        b.remove_tags(args.tags)
    store.update(b.url, tags=b.tags, last_modified=b.last_modified)


def cmd_export(args) -> None:
    """Export bookmarks."""
    store = open_store(load_settings(args))
    bookmarks = store.all()
    if args.fmt == "netscape":
        text = format_netscape(bookmarks)
    elif args.fmt == "json":
        text = format_json(bookmarks)
    else:
        die("unknown export format")
    if args.output:
        atomic_write(Path(args.output), text)
        print(f"exported {len(bookmarks)} bookmarks to {args.output}")
    else:
        sys.stdout.write(text)


def cmd_import(args) -> None:
    """Import bookmarks (upsert by URL)."""
    settings = load_settings(args)
    store = open_store(settings, create=True)
    text = read_text(Path(args.file))
    if args.fmt == "netscape":
        result = parse_document(text)
    elif args.fmt == "json":
        result = parse_json(text)
    else:
        die("unknown import format")
    if args.replace:
        if not confirm(f"Replace all {len(store)} stored bookmarks?", args.yes):
            print("aborted")
            return
        store.replace_all(result.bookmarks)
    else:
        store.bulk_put(result.bookmarks)
    msg = f"imported {len(result.bookmarks)} bookmarks"
    if result.skipped:
        msg += f" ({result.skipped} skipped without URL)"
    print(msg)


def cmd_sync(args) -> None:
    """Sync with the remote store."""
    settings = load_settings(args)
    store = open_store(settings)
    service = open_sync(settings, store)
    if args.mode == "push":
        report = service.push()
    elif args.mode == "pull":
        report = service.pull()
    else:
        report = service.merge()
    print(f"sync {report.status.value}: {report.pushed} pushed, {report.pulled} pulled")
    for url, err in report.failures:
        print(f"  failed: {url}: {err}", file=sys.stderr)
    if report.status is SyncStatus.ERROR:
        die(report.error or "sync failed")
    if args.watch:
        service.start(interval=args.interval)
        print("watching remote changes (Ctrl-C to stop)")
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            service.stop()


def cmd_enrich(args) -> None:
    """Fetch page previews for bookmarks that have none yet."""
    settings = load_settings(args)
    store = open_store(settings)
    fetcher = MetadataFetcher(settings.proxy_url, settings.timeout)
    enricher = Enricher(store, fetcher, settings.batch_size, settings.batch_delay)
    report = enricher.run(limit=args.limit, progress=not args.quiet)
    print(f"enriched {report.enriched}, failed {report.failed}")


def cmd_proxy(args) -> None:
    """Run the metadata-fetch proxy."""
    settings = load_settings(args)
    serve(host=args.host, port=args.port, timeout=settings.timeout)
