"""Content addresses for per-entity lookup files."""

from __future__ import annotations

import hashlib


def content_address(value: str) -> str:
    """Return the hex SHA-1 digest used as a lookup file name.

    Args:
        value: An entityID or endpoint location, hashed as UTF-8.

    Returns:
        Forty character lower-case hex digest.
    """
    return hashlib.sha1(value.encode("utf-8")).hexdigest()
