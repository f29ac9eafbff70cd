"""Raw record schemas and the single total normalization function.

Every upstream shape is first read into an explicit raw schema whose fields all
have defaults, then mapped to ``CanonicalListing`` through ordered coalescing
rules. Nothing in here raises on bad input: malformed values degrade to the
documented default for that field.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from jobfeed.core.urls import canonical_hash, normalize_url
from jobfeed.services.listings import (
    PLACEHOLDER_COMPANY,
    PLACEHOLDER_DESCRIPTION,
    PLACEHOLDER_LOCATION,
    PLACEHOLDER_TITLE,
    CanonicalListing,
    Geography,
    ListingSource,
)

HOURS_PER_YEAR = 2080


@dataclass(slots=True)
class WageFields:
    annual_min: float | None = None
    annual_max: float | None = None
    annual: float | None = None
    hourly: float | None = None


@dataclass(slots=True)
class AdzunaRawRecord:
    id: str | None = None
    title: str | None = None
    company_name: str | None = None
    location_name: str | None = None
    description: str | None = None
    category_label: str | None = None
    redirect_url: str | None = None
    salary_min: float | None = None
    salary_max: float | None = None
    created: datetime | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> AdzunaRawRecord:
        if not isinstance(payload, dict):
            return cls()
        return cls(
            id=_as_text(payload.get("id")),
            title=_as_text(payload.get("title")),
            company_name=_as_text(_nested(payload, "company", "display_name")),
            location_name=_as_text(_nested(payload, "location", "display_name")),
            description=_as_text(payload.get("description")),
            category_label=_as_text(_nested(payload, "category", "label")),
            redirect_url=_as_text(payload.get("redirect_url")),
            salary_min=_as_positive_float(payload.get("salary_min")),
            salary_max=_as_positive_float(payload.get("salary_max")),
            created=_as_datetime(payload.get("created")),
        )

    def wage_fields(self) -> WageFields:
        return WageFields(annual_min=self.salary_min, annual_max=self.salary_max)


@dataclass(slots=True)
class StoredRawRecord:
    id: str | None = None
    source: ListingSource = ListingSource.INTERNAL
    external_id: str | None = None
    title: str | None = None
    company: str | None = None
    location: str | None = None
    description: str | None = None
    industry: str | None = None
    wage: float | None = None
    salary: float | None = None
    apply_link: str | None = None
    created_at_external: datetime | None = None
    created_at: datetime | None = None
    state: str | None = None
    county: str | None = None
    is_active: bool = True
    reviewed: bool = False
    approved: bool = False
    flagged_reasons: set[str] = field(default_factory=set)

    @classmethod
    def from_payload(cls, payload: Any) -> StoredRawRecord:
        if not isinstance(payload, dict):
            return cls()
        return cls(
            id=_as_text(payload.get("id")),
            source=_as_source(payload.get("source")),
            external_id=_as_text(payload.get("external_id")),
            title=_as_text(payload.get("title")),
            company=_as_text(payload.get("company")),
            location=_as_text(payload.get("location")),
            description=_as_text(payload.get("description")),
            industry=_as_text(payload.get("industry")),
            wage=_as_positive_float(payload.get("wage")),
            salary=_as_positive_float(payload.get("salary")),
            apply_link=_as_text(payload.get("apply_link")),
            created_at_external=_as_datetime(payload.get("created_at_external")),
            created_at=_as_datetime(payload.get("created_at")),
            state=_as_text(payload.get("state")),
            county=_as_text(payload.get("county")),
            is_active=_as_bool(payload.get("is_active"), default=True),
            reviewed=_as_bool(payload.get("reviewed"), default=False),
            approved=_as_bool(payload.get("approved"), default=False),
            flagged_reasons=_as_text_set(payload.get("flagged_reasons")),
        )

    def wage_fields(self) -> WageFields:
        return WageFields(annual=self.salary, hourly=self.wage)


WageRule = Callable[[WageFields], float | None]


def annual_to_hourly(annual: float) -> float:
    return annual / HOURS_PER_YEAR


def _wage_from_annual_pair(fields: WageFields) -> float | None:
    if fields.annual_min is None or fields.annual_max is None:
        return None
    return (annual_to_hourly(fields.annual_min) + annual_to_hourly(fields.annual_max)) / 2


def _wage_from_annual_single(fields: WageFields) -> float | None:
    for value in (fields.annual_min, fields.annual_max, fields.annual):
        if value is not None:
            return annual_to_hourly(value)
    return None


def _wage_from_hourly(fields: WageFields) -> float | None:
    return fields.hourly


# Ordered: the first rule that yields a value wins.
WAGE_RULES: tuple[WageRule, ...] = (
    _wage_from_annual_pair,
    _wage_from_annual_single,
    _wage_from_hourly,
)


def coalesce_wage(fields: WageFields, rules: Sequence[WageRule] = WAGE_RULES) -> float | None:
    for rule in rules:
        value = rule(fields)
        if value is not None:
            return round(value, 2)
    return None


def normalize(raw: Any, source: ListingSource, *, geography: Geography) -> CanonicalListing:
    if source is ListingSource.EXTERNAL:
        return _normalize_adzuna(AdzunaRawRecord.from_payload(raw), geography=geography)
    return _normalize_stored(StoredRawRecord.from_payload(raw), geography=geography)


def normalize_many(raws: Sequence[Any], source: ListingSource, *, geography: Geography) -> list[CanonicalListing]:
    return [normalize(raw, source, geography=geography) for raw in raws]


def _normalize_adzuna(record: AdzunaRawRecord, *, geography: Geography) -> CanonicalListing:
    return CanonicalListing(
        title=_first_text(record.title, default=PLACEHOLDER_TITLE),
        company=_first_text(record.company_name, default=PLACEHOLDER_COMPANY),
        location=_first_text(record.location_name, default=PLACEHOLDER_LOCATION),
        description=_first_text(record.description, default=PLACEHOLDER_DESCRIPTION),
        source=ListingSource.EXTERNAL,
        geography=geography,
        external_id=record.id or _link_identity(record.redirect_url),
        industry=record.category_label,
        wage=coalesce_wage(record.wage_fields()),
        apply_link=record.redirect_url,
        created_at_external=record.created,
    )


def _normalize_stored(record: StoredRawRecord, *, geography: Geography) -> CanonicalListing:
    stored_geography = geography
    if record.state and record.county:
        stored_geography = Geography(state=record.state, county=record.county)
    return CanonicalListing(
        id=record.id,
        title=_first_text(record.title, default=PLACEHOLDER_TITLE),
        company=_first_text(record.company, default=PLACEHOLDER_COMPANY),
        location=_first_text(record.location, default=PLACEHOLDER_LOCATION),
        description=_first_text(record.description, default=PLACEHOLDER_DESCRIPTION),
        source=record.source,
        geography=stored_geography,
        external_id=record.external_id or _link_identity(record.apply_link),
        industry=record.industry,
        wage=coalesce_wage(record.wage_fields()),
        apply_link=record.apply_link,
        created_at_external=record.created_at_external,
        created_at=record.created_at,
        is_active=record.is_active,
        reviewed=record.reviewed,
        approved=record.approved,
        flagged_reasons=set(record.flagged_reasons),
    )


def _link_identity(apply_link: str | None) -> str | None:
    if not apply_link:
        return None
    try:
        return canonical_hash(normalize_url(apply_link))
    except ValueError:
        return None


def _first_text(*values: str | None, default: str) -> str:
    for value in values:
        if value:
            return value
    return default


def _nested(payload: dict[str, Any], key: str, inner: str) -> Any:
    value = payload.get(key)
    if isinstance(value, dict):
        return value.get(inner)
    return None


def _as_text(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, (int, float)):
        try:
            return str(value)
        except ValueError:
            # int past the interpreter's digit limit
            return None
    return None


def _as_positive_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(parsed) or parsed <= 0:
        return None
    return parsed


def _as_bool(value: Any, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        return None


def _as_source(value: Any) -> ListingSource:
    if isinstance(value, ListingSource):
        return value
    if isinstance(value, str):
        try:
            return ListingSource(value.strip().lower())
        except ValueError:
            return ListingSource.INTERNAL
    return ListingSource.INTERNAL


def _as_text_set(value: Any) -> set[str]:
    if isinstance(value, str):
        stripped = value.strip()
        return {stripped} if stripped else set()
    if not isinstance(value, (list, tuple, set, frozenset)):
        return set()
    return {item.strip() for item in value if isinstance(item, str) and item.strip()}
