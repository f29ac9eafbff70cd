from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

PLACEHOLDER_TITLE = "No Title Provided"
PLACEHOLDER_COMPANY = "Company Not Listed"
PLACEHOLDER_LOCATION = "Location Not Specified"
PLACEHOLDER_DESCRIPTION = "No description available."


class ListingSource(str, Enum):
    EXTERNAL = "external"
    INTERNAL = "internal"


@dataclass(frozen=True, slots=True)
class Geography:
    state: str
    county: str


@dataclass(slots=True)
class CanonicalListing:
    title: str
    company: str
    location: str
    description: str
    source: ListingSource
    geography: Geography
    external_id: str | None = None
    industry: str | None = None
    wage: float | None = None
    apply_link: str | None = None
    created_at_external: datetime | None = None
    created_at: datetime | None = None
    is_active: bool = True
    reviewed: bool = False
    approved: bool = False
    flagged_reasons: set[str] = field(default_factory=set)
    id: str | None = None

    @property
    def identity_key(self) -> tuple[str, str] | None:
        if not self.external_id:
            return None
        return (self.source.value, self.external_id)

    @property
    def recency(self) -> datetime | None:
        return self.created_at_external or self.created_at

    def to_row(self) -> dict[str, Any]:
        """Flatten to the `jobs` table column layout."""
        return {
            "source": self.source.value,
            "external_id": self.external_id,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "description": self.description,
            "industry": self.industry,
            "wage": self.wage,
            "apply_link": self.apply_link,
            "created_at_external": self.created_at_external,
            "state": self.geography.state,
            "county": self.geography.county,
            "is_active": self.is_active,
            "reviewed": self.reviewed,
            "approved": self.approved,
            "flagged_reasons": sorted(self.flagged_reasons),
        }

    def to_public(self) -> dict[str, Any]:
        row = self.to_row()
        row["id"] = self.id
        row["created_at"] = self.created_at
        return row
