"""Deterministic resource identifiers."""

from __future__ import annotations

import hashlib


def resource_id(provider: str, external_id: str) -> str:
    """Return the content-addressed id of a resource.

    The same provider + external id pair always maps to the same id, so
    ingesters never need to look the id up before writing.

    Args:
        provider: Provider name (case-insensitive).
        external_id: Provider-specific identifier.

    Returns:
        Hex MD5 digest of ``"<provider>:<external_id>"``.
    """
    key = f"{provider.strip().lower()}:{external_id}"
    return hashlib.md5(key.encode("utf-8")).hexdigest()
