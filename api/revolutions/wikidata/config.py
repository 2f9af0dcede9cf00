from __future__ import annotations

from dataclasses import dataclass, field

from django.conf import settings

WIKIDATA_SPARQL = "https://query.wikidata.org/sparql"
DEFAULT_USER_AGENT = "RevolutionAtlas/1.0 (Python; revolution-atlas)"
DEFAULT_TIMEOUT = 120
DEFAULT_PAGE_SIZE = 1000
DEFAULT_MIN_YEAR = 1900
DEFAULT_PAGE_DELAY_SECONDS = 1.0
DEFAULT_MAX_ATTEMPTS = 4
DEFAULT_BACKOFF_SECONDS = 2.0


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_delay: float = DEFAULT_BACKOFF_SECONDS
    multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after the given (1-based) failed attempt."""
        return self.initial_delay * self.multiplier ** max(attempt - 1, 0)


@dataclass(frozen=True)
class ImportConfig:
    endpoint: str = WIKIDATA_SPARQL
    user_agent: str = DEFAULT_USER_AGENT
    timeout: int = DEFAULT_TIMEOUT
    page_size: int = DEFAULT_PAGE_SIZE
    min_year: int = DEFAULT_MIN_YEAR
    page_delay: float = DEFAULT_PAGE_DELAY_SECONDS
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    @classmethod
    def from_settings(cls) -> "ImportConfig":
        conf = getattr(settings, "REVOLUTIONS_IMPORT", {}) or {}
        return cls(
            endpoint=conf.get("ENDPOINT", WIKIDATA_SPARQL),
            user_agent=conf.get("USER_AGENT", DEFAULT_USER_AGENT),
            timeout=int(conf.get("TIMEOUT", DEFAULT_TIMEOUT)),
            page_size=int(conf.get("PAGE_SIZE", DEFAULT_PAGE_SIZE)),
            min_year=int(getattr(settings, "REVOLUTIONS_MIN_YEAR", DEFAULT_MIN_YEAR)),
            page_delay=float(conf.get("PAGE_DELAY", DEFAULT_PAGE_DELAY_SECONDS)),
            retry=RetryPolicy(
                max_attempts=int(conf.get("MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)),
                initial_delay=float(
                    conf.get("BACKOFF_SECONDS", DEFAULT_BACKOFF_SECONDS)
                ),
            ),
        )
