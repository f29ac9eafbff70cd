from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from jobfeed.core.config import Settings
from jobfeed.core.urls import host_from_url
from jobfeed.services.listings import CanonicalListing

BAD_TITLE_FLAG = "bad_title_words"
UNTRUSTED_SOURCE_PREFIX = "untrusted_source:"
IMPLAUSIBLE_WAGE_FLAG = "implausible_wage"


@dataclass(frozen=True, slots=True)
class IntegrityVerdict:
    flags: frozenset[str]
    approved: bool


@dataclass(frozen=True, slots=True)
class IntegrityPolicy:
    bad_title_words: tuple[str, ...]
    trusted_hosts: frozenset[str]
    locality_tokens: tuple[str, ...]
    min_hourly: float
    max_hourly: float
    outside_geography_flag: str = "outside_target_geography"
    _lowered_words: tuple[str, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_lowered_words", tuple(word.lower() for word in self.bad_title_words if word))

    @classmethod
    def from_settings(cls, settings: Settings) -> IntegrityPolicy:
        return cls(
            bad_title_words=tuple(settings.bad_title_words),
            trusted_hosts=frozenset(host.strip().lower() for host in settings.trusted_hosts if host.strip()),
            locality_tokens=tuple(token.strip().lower() for token in settings.locality_tokens if token.strip()),
            min_hourly=settings.min_hourly_wage,
            max_hourly=settings.max_hourly_wage,
            outside_geography_flag=settings.outside_geography_flag,
        )

    def evaluate(self, listing: CanonicalListing) -> IntegrityVerdict:
        flags: set[str] = set()

        if self._has_bad_title(listing.title):
            flags.add(BAD_TITLE_FLAG)

        host = host_from_url(listing.apply_link)
        if listing.apply_link and host and host not in self.trusted_hosts:
            flags.add(f"{UNTRUSTED_SOURCE_PREFIX}{host}")

        if not self._in_target_geography(listing.location):
            flags.add(self.outside_geography_flag)

        if not self._plausible_hourly(listing.wage):
            flags.add(IMPLAUSIBLE_WAGE_FLAG)

        return IntegrityVerdict(flags=frozenset(flags), approved=not flags)

    def apply(self, listings: Iterable[CanonicalListing]) -> list[CanonicalListing]:
        """Stamp each listing with its flags and auto-approval verdict."""
        scored: list[CanonicalListing] = []
        for listing in listings:
            verdict = self.evaluate(listing)
            listing.flagged_reasons = set(verdict.flags)
            listing.approved = verdict.approved
            scored.append(listing)
        return scored

    def _has_bad_title(self, title: str) -> bool:
        lowered = (title or "").lower()
        return any(word in lowered for word in self._lowered_words)

    def _in_target_geography(self, location: str) -> bool:
        lowered = (location or "").lower()
        return any(token in lowered for token in self.locality_tokens)

    def _plausible_hourly(self, wage: float | None) -> bool:
        if wage is None:
            return True
        return self.min_hourly <= wage <= self.max_hourly
