from __future__ import annotations

import math
from dataclasses import dataclass

from jobfeed.services.listings import CanonicalListing, Geography

MIN_LIMIT = 1
MAX_LIMIT = 100
MAX_TEXT_LENGTH = 200


class QueryValidationError(ValueError):
    """Raised for malformed caller input before any upstream call is made."""


@dataclass(frozen=True, slots=True)
class FeedFilters:
    q: str | None = None
    industry: str | None = None
    min_wage: float | None = None
    location: str | None = None
    approved_only: bool = True
    limit: int = 20

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int):
            raise QueryValidationError("limit must be an integer")
        if not MIN_LIMIT <= self.limit <= MAX_LIMIT:
            raise QueryValidationError(f"limit must be between {MIN_LIMIT} and {MAX_LIMIT}")
        if self.min_wage is not None and (not math.isfinite(self.min_wage) or self.min_wage < 0):
            raise QueryValidationError("min_wage must be a non-negative number")
        for name in ("q", "industry", "location"):
            value = getattr(self, name)
            if value is not None and len(value) > MAX_TEXT_LENGTH:
                raise QueryValidationError(f"{name} must be at most {MAX_TEXT_LENGTH} characters")

    @classmethod
    def create(
        cls,
        *,
        q: str | None = None,
        industry: str | None = None,
        min_wage: float | None = None,
        location: str | None = None,
        approved_only: bool = True,
        limit: int = 20,
    ) -> FeedFilters:
        return cls(
            q=_clean(q),
            industry=_clean(industry),
            # A zero floor filters nothing.
            min_wage=min_wage or None,
            location=_clean(location),
            approved_only=approved_only,
            limit=limit,
        )

    def matches(self, listing: CanonicalListing, geography: Geography) -> bool:
        """Same predicate the store query applies, for records served from memory or live sources."""
        if listing.geography != geography or not listing.is_active:
            return False
        if self.approved_only and not listing.approved:
            return False
        if self.industry and listing.industry != self.industry:
            return False
        if self.min_wage is not None and (listing.wage is None or listing.wage < self.min_wage):
            return False
        if self.location and self.location.casefold() not in listing.location.casefold():
            return False
        if self.q:
            needle = self.q.casefold()
            haystacks = (listing.title, listing.company, listing.industry or "", listing.location)
            if not any(needle in haystack.casefold() for haystack in haystacks):
                return False
        return True


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None
