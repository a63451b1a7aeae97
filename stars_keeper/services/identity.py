"""Deterministic star identifiers for replay-safe upserts."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Union

from dateutil import parser as date_parser

Timestamp = Union[datetime, str]

RFC3339_UTC_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_rfc3339(value: Timestamp) -> str:
    """Normalize a datetime or ISO-8601 string to second-precision RFC3339 UTC."""

    if isinstance(value, str):
        try:
            moment = date_parser.isoparse(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid timestamp: {value!r}") from exc
    else:
        moment = value

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(RFC3339_UTC_FORMAT)


def canonical_star_key(repository_id: object, starred_at: Timestamp) -> str:
    return f"{repository_id}:{format_rfc3339(starred_at)}"


def build_star_id(repository_id: object, starred_at: Timestamp, *, legacy: bool = False) -> str:
    """Hex-encoded SHA-512 of `"<repository_id>:<starred_at RFC3339>"`.

    With `legacy=True` the canonical input bytes are emitted in front of the
    digest before hex-encoding, which is what databases written by older
    builds contain.
    """

    canonical = canonical_star_key(repository_id, starred_at).encode("utf-8")
    digest = hashlib.sha512(canonical).digest()
    if legacy:
        return (canonical + digest).hex()
    return digest.hex()
