"""Resource index schema.

The schema is a plain value built once and handed to adapters; adapters use
it to create indices (Elasticsearch) or to know which fields hold dates
(in-memory evaluation).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class IndexSchema:
    """Index name, document type and field mapping.

    Attributes:
        name: Default index (or alias) name.
        document_type: Logical document type.
        properties: Field name -> mapping properties.
    """

    name: str
    document_type: str
    properties: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "properties",
            MappingProxyType({k: MappingProxyType(dict(v)) for k, v in self.properties.items()}),
        )

    @property
    def date_fields(self) -> frozenset[str]:
        return frozenset(k for k, v in self.properties.items() if v.get("type") == "date")

    def to_mapping(self) -> dict[str, Any]:
        """Render the mapping body accepted by the index creation API."""
        return {"mappings": {"properties": _plain(self.properties)}}


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    return value


_KEYWORD = {"type": "keyword"}
_TEXT = {"type": "text", "analyzer": "standard"}
_DATE = {"type": "date"}
_STORED_INT = {"type": "integer", "index": False}
_STORED_STR = {"type": "keyword", "index": False}
_ID_NAME = {"type": "object", "properties": {"id": _KEYWORD, "name": _KEYWORD}}

RESOURCE_SCHEMA = IndexSchema(
    name="resources",
    document_type="resource",
    properties={
        "provider": _KEYWORD,
        "external_id": _KEYWORD,
        "owner_uid": _KEYWORD,
        "owner_nickname": _KEYWORD,
        "title": _TEXT,
        "description": _TEXT,
        "url": _KEYWORD,
        "type": _KEYWORD,
        "tags": _KEYWORD,
        "albums": _ID_NAME,
        "people": _ID_NAME,
        "nests": {"type": "integer"},
        "removed": {"type": "boolean"},
        "height": _STORED_INT,
        "width": _STORED_INT,
        "created_at": _DATE,
        "updated_at": _DATE,
        "uploaded_at": _DATE,
        "taken_at": _DATE,
        "download_url": _STORED_STR,
        "thumbnail_url": _STORED_STR,
        "thumbnail_height": _STORED_INT,
        "thumbnail_width": _STORED_INT,
        "html": _STORED_STR,
        "owned": {"type": "boolean"},
    },
)
