from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, AbstractSet, Iterable, Mapping, Optional, Sequence

from BirdboxSearch.errors import InvalidArgument
from BirdboxSearch.utils.hashtags import parse_hashtags
from BirdboxSearch.utils.ids import resource_id
from BirdboxSearch.utils.timeutil import format_datetime, parse_optional_datetime, to_utc

SORTABLE_FIELDS = frozenset({"uploaded_at", "created_at", "updated_at", "taken_at", "external_id"})

_TIMESTAMP_FIELDS = ("created_at", "updated_at", "uploaded_at", "taken_at")
_CORE_FIELDS = frozenset(
    {
        "id",
        "provider",
        "external_id",
        "owner_uid",
        "title",
        "description",
        "tags",
        "albums",
        "people",
        "nests",
        "removed",
        "remove_albums",
        *_TIMESTAMP_FIELDS,
    }
)


@dataclass(frozen=True, slots=True)
class Album:
    """A provider album a resource belongs to."""

    id: str
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "name", "" if self.name is None else str(self.name))

    @classmethod
    def coerce(cls, value: Album | Mapping[str, Any]) -> Album:
        if isinstance(value, Album):
            return value
        return cls(id=value["id"], name=value.get("name", ""))

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True, slots=True)
class Person:
    """A person tagged in a resource."""

    id: str
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "name", "" if self.name is None else str(self.name))

    @classmethod
    def coerce(cls, value: Person | Mapping[str, Any]) -> Person:
        if isinstance(value, Person):
            return value
        return cls(id=value["id"], name=value.get("name", ""))

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True, slots=True)
class Resource:
    """A single media item as stored in the `resources` index.

    Resources are keyed by provider + external id (see `id`). They are never
    hard-deleted: a resource that disappears from a provider is tombstoned
    with `removed=True` or loses albums through a merge.

    Attributes:
        provider: Lower-case provider name (e.g. "facebook").
        external_id: Provider-assigned identifier; also the pagination cursor.
        owner_uid: Provider user id of the owner.
        title: Title text.
        description: Description text.
        tags: Tags, de-duplicated in first-seen order.
        albums: Albums the resource is in.
        people: People tagged in the resource.
        nests: Ids of the nests the resource has been collected into.
        removed: Tombstone flag; removed resources never match nest queries.
        created_at: First persist time (sticky).
        updated_at: Last write time.
        uploaded_at: Upload time at the provider (sticky, primary sort key).
        taken_at: Capture time (sticky).
        remove_albums: Ingestion flag: `albums` lists albums the resource left.
            Never written to the index.
        extra: Remaining mapped properties (url, type, dimensions...).
    """

    provider: str
    external_id: str
    owner_uid: str = ""
    title: str = ""
    description: str = ""
    tags: Sequence[str] = ()
    albums: Sequence[Album] = ()
    people: Sequence[Person] = ()
    nests: AbstractSet[int] = frozenset()
    removed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    uploaded_at: Optional[datetime] = None
    taken_at: Optional[datetime] = None
    remove_albums: bool = False
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "provider", str(self.provider).strip().lower())
        object.__setattr__(self, "external_id", str(self.external_id))
        object.__setattr__(self, "owner_uid", "" if self.owner_uid is None else str(self.owner_uid))
        object.__setattr__(self, "title", self.title or "")
        object.__setattr__(self, "description", self.description or "")
        object.__setattr__(self, "tags", _unique_strings(self.tags or ()))
        object.__setattr__(self, "albums", _unique_by_id(Album.coerce(a) for a in self.albums or ()))
        object.__setattr__(self, "people", tuple(Person.coerce(p) for p in self.people or ()))
        object.__setattr__(self, "nests", frozenset(int(n) for n in self.nests or ()))
        object.__setattr__(self, "removed", bool(self.removed))
        for name in _TIMESTAMP_FIELDS:
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_utc(value))
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra or {})))

    @property
    def id(self) -> str:
        return resource_id(self.provider, self.external_id)

    def with_hashtags(self) -> Resource:
        """Return a copy whose tags include the hashtags of title/description."""
        return replace(self, tags=parse_hashtags(self.title, self.description, self.tags))

    def to_document(self) -> dict[str, Any]:
        """Serialize into an index document."""
        doc: dict[str, Any] = dict(self.extra)
        doc.update(
            {
                "id": self.id,
                "provider": self.provider,
                "external_id": self.external_id,
                "owner_uid": self.owner_uid,
                "title": self.title,
                "description": self.description,
                "tags": list(self.tags),
                "albums": [a.to_dict() for a in self.albums],
                "people": [p.to_dict() for p in self.people],
                "nests": sorted(self.nests),
                "removed": self.removed,
            }
        )
        for name in _TIMESTAMP_FIELDS:
            doc[name] = format_datetime(getattr(self, name))
        return doc

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> Resource:
        """Build a resource from an index document or an ingestion record.

        Unknown keys are kept in `extra`.
        """
        if "provider" not in doc or "external_id" not in doc:
            raise ValueError("Resource document requires provider and external_id")
        return cls(
            provider=doc["provider"],
            external_id=doc["external_id"],
            owner_uid=doc.get("owner_uid") or "",
            title=doc.get("title") or "",
            description=doc.get("description") or "",
            tags=doc.get("tags") or (),
            albums=doc.get("albums") or (),
            people=doc.get("people") or (),
            nests=doc.get("nests") or (),
            removed=bool(doc.get("removed", False)),
            created_at=parse_optional_datetime(doc.get("created_at")),
            updated_at=parse_optional_datetime(doc.get("updated_at")),
            uploaded_at=parse_optional_datetime(doc.get("uploaded_at")),
            taken_at=parse_optional_datetime(doc.get("taken_at")),
            remove_albums=bool(doc.get("remove_albums", False)),
            extra={k: v for k, v in doc.items() if k not in _CORE_FIELDS},
        )


@dataclass(frozen=True, slots=True)
class FetchOptions:
    """Paging, ordering and filtering options for a nest query.

    Attributes:
        sort_by: Primary sort field.
        sort_direction: `asc` or `desc`; applies to the primary field and the
            `external_id` tie-break alike.
        page: 1-based page index (offset paging).
        page_size: Number of results per page.
        since: Exclusive lower bound on `uploaded_at` (datetime, epoch
            seconds or ISO-8601 string).
        until: Exclusive upper bound on `uploaded_at`.
        exclude: Resource ids that must not be returned.
        external_id_cursor: `external_id` of the last row already seen.
        id: Membership-check mode: restrict to this resource id.
    """

    sort_by: str = "uploaded_at"
    sort_direction: str = "desc"
    page: int = 1
    page_size: int = 10
    since: Any = None
    until: Any = None
    exclude: AbstractSet[str] = frozenset()
    external_id_cursor: Optional[str] = None
    id: Optional[str] = None

    def __post_init__(self) -> None:
        direction = str(self.sort_direction or "desc").strip().lower()
        if direction not in ("asc", "desc"):
            raise InvalidArgument(f"sort_direction must be asc or desc, got {self.sort_direction!r}")
        object.__setattr__(self, "sort_direction", direction)
        if self.sort_by not in SORTABLE_FIELDS:
            raise InvalidArgument(f"sort_by must be one of {sorted(SORTABLE_FIELDS)}, got {self.sort_by!r}")
        if isinstance(self.page, bool) or not isinstance(self.page, int) or self.page < 1:
            raise InvalidArgument(f"page must be an integer >= 1, got {self.page!r}")
        if isinstance(self.page_size, bool) or not isinstance(self.page_size, int) or self.page_size < 1:
            raise InvalidArgument(f"page_size must be an integer >= 1, got {self.page_size!r}")
        object.__setattr__(self, "exclude", frozenset(str(i) for i in self.exclude or ()))
        if self.external_id_cursor is not None:
            object.__setattr__(self, "external_id_cursor", str(self.external_id_cursor))
            if self.page > 1:
                raise InvalidArgument("page must be 1 when external_id_cursor is set")

    @property
    def descending(self) -> bool:
        return self.sort_direction == "desc"

    @property
    def start(self) -> int:
        """Offset of the first row of this page."""
        return self.page_size * (self.page - 1)

    def after(self, page: Page) -> FetchOptions | None:
        """Return options for the page that follows `page` in sort order.

        Sorted by `uploaded_at`, the next page is bounded by the last hit's
        `uploaded_at` and `external_id`, so rows sharing a timestamp are
        neither skipped nor repeated. Sorted by `external_id`, only the
        `external_id` cursor moves. Any other sort field continues by offset.
        Returns None when `page` is empty.
        """
        if not page.hits:
            return None
        last = page.hits[-1]
        if self.sort_by == "external_id":
            return replace(self, page=1, external_id_cursor=last.external_id)
        if self.sort_by == "uploaded_at" and last.uploaded_at is not None:
            if self.descending:
                return replace(self, page=1, until=last.uploaded_at, external_id_cursor=last.external_id)
            return replace(self, page=1, since=last.uploaded_at, external_id_cursor=last.external_id)
        if self.external_id_cursor is not None:
            raise InvalidArgument(f"cannot continue an external_id cursor sorted by {self.sort_by!r}")
        return replace(self, page=self.page + 1)


@dataclass(frozen=True, slots=True)
class Page:
    """One page of nest results."""

    hits: Sequence[Resource]
    total: int
    options: FetchOptions = FetchOptions()

    def __post_init__(self) -> None:
        object.__setattr__(self, "hits", tuple(self.hits))

    def __len__(self) -> int:
        return len(self.hits)

    def __iter__(self):
        return iter(self.hits)

    def next_options(self) -> FetchOptions | None:
        return self.options.after(self)


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Outcome of merging an observation into the stored document.

    Attributes:
        resource: Merged resource (what is, or would be, written).
        changed: Whether the merge differs from the stored document.
        new_albums: Albums that were not on the stored document.
    """

    resource: Resource
    changed: bool
    new_albums: Sequence[Album] = ()


def _unique_strings(values: Iterable[Any]) -> tuple[str, ...]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        text = str(value).strip()
        if not text or text in seen:
            continue
        seen.add(text)
        out.append(text)
    return tuple(out)


def _unique_by_id(albums: Iterable[Album]) -> tuple[Album, ...]:
    seen: set[str] = set()
    out: list[Album] = []
    for album in albums:
        if album.id in seen:
            continue
        seen.add(album.id)
        out.append(album)
    return tuple(out)
