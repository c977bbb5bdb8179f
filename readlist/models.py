"""Data models for the reading-list manager."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional

from .errors import InvalidBookmarkError
from .utils import clean_tags, now_epoch

SORT_FIELDS = ("date", "title")
SORT_ORDERS = ("asc", "desc")


@dataclass
class Ogp:
    """Open Graph preview data fetched for a bookmark."""

    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    loaded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {}
        for key in ("title", "description", "image"):
            value = getattr(self, key)
            if value is not None:
                d[key] = value
        d["loaded"] = self.loaded
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Ogp":
        return cls(
            title=data.get("title"),
            description=data.get("description"),
            image=data.get("image"),
            loaded=bool(data.get("loaded", False)),
        )


@dataclass
class Bookmark:
    """A saved link plus its metadata.

    ``url`` is the identity of a record within a collection. Timestamps are
    Unix seconds; ``last_modified`` falls back to ``add_date`` when unset.
    """

    url: str
    title: str = ""
    add_date: int = 0
    last_modified: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    icon: Optional[str] = None
    image: Optional[str] = None
    ogp: Optional[Ogp] = None
    id: Optional[int] = None

    @property
    def display_title(self) -> str:
        return self.title or self.url

    @property
    def stamp(self) -> int:
        """Timestamp used for last-write-wins comparisons."""
        return self.last_modified if self.last_modified is not None else self.add_date

    def validate(self) -> "Bookmark":
        if not self.url:
            raise InvalidBookmarkError("bookmark has no url")
        return self

    def touch(self, now: Optional[int] = None) -> None:
        self.last_modified = now if now is not None else now_epoch()

    def add_tags(self, tags: Iterable[str], now: Optional[int] = None) -> None:
        self.tags = clean_tags(list(self.tags) + [str(t).strip() for t in tags])
        self.touch(now)

    def remove_tags(self, tags: Iterable[str], now: Optional[int] = None) -> None:
        drop = set(clean_tags(str(t).strip() for t in tags))
        self.tags = [t for t in self.tags if t not in drop]
        self.touch(now)

    def copy(self, **changes) -> "Bookmark":
        """Return an independent copy, optionally with fields replaced."""
        changes.setdefault("tags", list(self.tags))
        if "ogp" not in changes and self.ogp is not None:
            changes["ogp"] = replace(self.ogp)
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON export shape, omitting unset optional fields."""
        d: Dict[str, Any] = {}
        if self.id is not None:
            d["id"] = self.id
        d["title"] = self.title
        d["url"] = self.url
        d["addDate"] = self.add_date
        if self.last_modified is not None:
            d["lastModified"] = self.last_modified
        if self.icon:
            d["icon"] = self.icon
        if self.tags:
            d["tags"] = list(self.tags)
        if self.image:
            d["image"] = self.image
        if self.ogp is not None:
            d["ogp"] = self.ogp.to_dict()
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Bookmark":
        ogp = data.get("ogp")
        tags = data.get("tags")
        last_modified = data.get("lastModified")
        return cls(
            url=data.get("url") or "",
            title=data.get("title") or "",
            add_date=int(data.get("addDate") or 0),
            last_modified=int(last_modified) if last_modified is not None else None,
            tags=clean_tags(tags) if isinstance(tags, list) else [],
            icon=data.get("icon") or None,
            image=data.get("image") or None,
            ogp=Ogp.from_dict(ogp) if isinstance(ogp, dict) else None,
            id=data.get("id"),
        )


@dataclass(frozen=True)
class FilterSpec:
    """Search, date range, tag and sort settings for a list view."""

    search: str = ""
    sort_by: str = "date"
    sort_order: str = "desc"
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    selected_tag: Optional[str] = None

    def __post_init__(self):
        if self.sort_by not in SORT_FIELDS:
            raise ValueError(f"sort_by must be one of {SORT_FIELDS}, not {self.sort_by!r}")
        if self.sort_order not in SORT_ORDERS:
            raise ValueError(f"sort_order must be one of {SORT_ORDERS}, not {self.sort_order!r}")

    def replace(self, **changes) -> "FilterSpec":
        return replace(self, **changes)
