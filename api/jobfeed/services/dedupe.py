from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from jobfeed.services.listings import CanonicalListing

_WHITESPACE_RE = re.compile(r"\s+")

FuzzyKey = tuple[str, str, str]
IdentityKey = tuple[str, str]


@dataclass(slots=True)
class IdentityDedupeResult:
    listings: list[CanonicalListing]
    dropped_without_identity: int
    collapsed_duplicates: int


def identity_key(listing: CanonicalListing) -> IdentityKey | None:
    if not listing.apply_link:
        return None
    return listing.identity_key


def dedupe_by_identity(listings: Iterable[CanonicalListing]) -> IdentityDedupeResult:
    """Collapse a persistence batch on ``(source, external_id)``.

    Records without an apply link or external id cannot be reconciled on the
    next ingestion run and are dropped. Repeats inside one batch keep the last
    occurrence, matching the overwrite semantics of the store upsert, while the
    output keeps first-seen order.
    """
    by_key: dict[IdentityKey, CanonicalListing] = {}
    dropped = 0
    seen = 0
    for listing in listings:
        key = identity_key(listing)
        if key is None:
            dropped += 1
            continue
        seen += 1
        by_key[key] = listing
    return IdentityDedupeResult(
        listings=list(by_key.values()),
        dropped_without_identity=dropped,
        collapsed_duplicates=seen - len(by_key),
    )


def fuzzy_key(listing: CanonicalListing) -> FuzzyKey:
    return (_fold(listing.title), _fold(listing.company), _fold(listing.location))


def dedupe_fuzzy(listings: Iterable[CanonicalListing]) -> list[CanonicalListing]:
    """First-seen wins; callers pass sources in priority order."""
    seen: set[FuzzyKey] = set()
    deduped: list[CanonicalListing] = []
    for listing in listings:
        key = fuzzy_key(listing)
        if key in seen:
            continue
        seen.add(key)
        deduped.append(listing)
    return deduped


def _fold(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", value).strip().casefold()
