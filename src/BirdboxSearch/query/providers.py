"""Provider registry and per-provider filter statements.

Each provider contributes a fragment of the nest filter. Facebook nests can be
defined by albums and/or owner tags; every other provider is tag-only.

Statement shapes
- tags, one owner   -> And(provider, owner_uid, Terms(tags))
- tags, many owners -> And(provider, Or(And(owner_uid, Terms(tags)) ...))
- albums            -> And(provider, Terms(albums.id))
- albums + tags     -> Or(tag statement, album statement)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Sequence

from BirdboxSearch.core.filters import And, FilterTree, Or, Term, Terms
from BirdboxSearch.errors import InvalidSpecification


class Provider(str, Enum):
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    BIRDBOX = "birdbox"
    EMAIL = "email"

    @classmethod
    def parse(cls, name: Any) -> Provider:
        """Resolve a provider from its case-insensitive name.

        Raises:
            InvalidSpecification: If the name is not a registered provider.
        """
        key = str(name).strip().lower()
        try:
            return cls(key)
        except ValueError:
            raise InvalidSpecification(f"Unsupported provider: {name}") from None


@dataclass(frozen=True, slots=True)
class ProviderFilter:
    """Validated filter description for one provider.

    Attributes:
        albums: Album ids.
        tags: Mapping of owner uid to the tags collected from that owner.
    """

    albums: Sequence[str] = ()
    tags: Mapping[str, Sequence[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "albums", tuple(self.albums))
        object.__setattr__(self, "tags", MappingProxyType({k: tuple(v) for k, v in self.tags.items()}))

    @classmethod
    def parse(cls, provider: str, raw: Any) -> ProviderFilter:
        """Normalize a raw `{albums: [...], tags: {owner: [...]}}` mapping.

        Album ids and owner uids become strings, blank tags are dropped and
        owners left without tags are dropped.

        Raises:
            InvalidSpecification: If the shape of `raw` is wrong.
        """
        if isinstance(raw, ProviderFilter):
            return raw
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise InvalidSpecification(f"{provider} filter must be an object with albums/tags")

        unknown = {str(k) for k in raw.keys()} - {"albums", "tags"}
        if unknown:
            raise InvalidSpecification(f"{provider} filter has unknown keys: {sorted(unknown)}")

        albums_raw = raw.get("albums") or []
        if isinstance(albums_raw, (str, bytes)) or not isinstance(albums_raw, (list, tuple, set, frozenset)):
            raise InvalidSpecification(f"{provider}.albums must be a list")
        albums = _dedup_preserve_order(str(a).strip() for a in albums_raw)

        tags_raw = raw.get("tags") or {}
        if not isinstance(tags_raw, Mapping):
            raise InvalidSpecification(f"{provider}.tags must map owner uids to tag lists")
        tags: dict[str, tuple[str, ...]] = {}
        for owner, owner_tags in tags_raw.items():
            if isinstance(owner_tags, str):
                owner_tags = [owner_tags]
            if not isinstance(owner_tags, (list, tuple, set, frozenset)):
                raise InvalidSpecification(f"{provider}.tags[{owner}] must be a list of tags")
            normalized = _dedup_preserve_order(str(t).strip() for t in owner_tags)
            if normalized:
                tags[str(owner).strip()] = normalized

        return cls(albums=albums, tags=tags)


StatementBuilder = Callable[[Provider, ProviderFilter], FilterTree]


def build_statement(provider: Any, spec: Any) -> FilterTree:
    """Build the filter fragment selecting one provider's resources.

    Args:
        provider: Provider name (case-insensitive) or `Provider`.
        spec: Raw filter mapping or `ProviderFilter`.

    Returns:
        FilterTree fragment for this provider.

    Raises:
        InvalidSpecification: If the provider is unknown or its mandatory
            filter is missing or empty.
    """
    resolved = provider if isinstance(provider, Provider) else Provider.parse(provider)
    builder = _statement_builders()[resolved]
    return builder(resolved, ProviderFilter.parse(resolved.value, spec))


def build_provider_statements(sources: Mapping[Any, Any]) -> FilterTree:
    """Combine every provider fragment of a source description.

    A single provider is wrapped in `And`; several are joined with `Or`.

    Raises:
        InvalidSpecification: If `sources` names no provider.
    """
    statements = [build_statement(name, spec) for name, spec in sources.items()]
    if not statements:
        raise InvalidSpecification("A nest requires at least one provider")
    if len(statements) == 1:
        return And(statements)
    return Or(statements)


def supported_provider_names() -> tuple[str, ...]:
    """Return provider names in registry order."""
    return tuple(p.value for p in _statement_builders())


def _statement_builders() -> dict[Provider, StatementBuilder]:
    """Return provider statement builder registry."""
    return {
        Provider.FACEBOOK: _build_album_or_tag_statement,
        Provider.INSTAGRAM: _build_tag_only_statement,
        Provider.BIRDBOX: _build_tag_only_statement,
        Provider.EMAIL: _build_tag_only_statement,
    }


def _build_album_or_tag_statement(provider: Provider, spec: ProviderFilter) -> FilterTree:
    """Albums and/or owner tags; at least one must be present."""
    if not spec.albums and not spec.tags:
        raise InvalidSpecification(f"{provider.value} requires albums or tags")
    if spec.albums and spec.tags:
        return Or([_tag_statement(provider, spec.tags), _album_statement(provider, spec.albums)])
    if spec.albums:
        return _album_statement(provider, spec.albums)
    return _tag_statement(provider, spec.tags)


def _build_tag_only_statement(provider: Provider, spec: ProviderFilter) -> FilterTree:
    """Owner tags only."""
    if not spec.tags:
        raise InvalidSpecification(f"{provider.value} requires tags")
    return _tag_statement(provider, spec.tags)


def _tag_statement(provider: Provider, tags: Mapping[str, Sequence[str]]) -> FilterTree:
    provider_term = Term("provider", provider.value)
    if len(tags) == 1:
        ((owner, owner_tags),) = tags.items()
        return And([provider_term, Term("owner_uid", owner), Terms("tags", owner_tags)])
    return And(
        [
            provider_term,
            Or([And([Term("owner_uid", owner), Terms("tags", owner_tags)]) for owner, owner_tags in tags.items()]),
        ]
    )


def _album_statement(provider: Provider, albums: Sequence[str]) -> FilterTree:
    return And([Term("provider", provider.value), Terms("albums.id", albums)])


def _dedup_preserve_order(values) -> tuple[str, ...]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        if not value or value in seen:
            continue
        seen.add(value)
        out.append(value)
    return tuple(out)
