import logging
import math
import re
import time
from dataclasses import dataclass
from datetime import date
from http.client import HTTPException
from typing import Any, Callable
from urllib.error import HTTPError

from SPARQLWrapper import JSON, POST, SPARQLWrapper
from SPARQLWrapper.SPARQLExceptions import SPARQLWrapperException

from api.revolutions.countries import to_alpha2
from api.revolutions.wikidata.config import ImportConfig
from api.revolutions.wikidata.exceptions import (
    SparqlRateLimitError,
    SparqlRequestError,
    SparqlResponseError,
    SparqlUnavailableError,
)

logger = logging.getLogger(__name__)

REVOLUTION_QID = "Q10931"
EVENT_TYPE = "Revolution/Uprising"
EVENT_SOURCES = "Wikidata"
SPARQL_RESULTS_JSON = "application/sparql-results+json"
RETRYABLE_STATUSES = (429, 503)
# Largest value every database backend accepts for a PositiveIntegerField.
MAX_COUNT = 2147483647

# Wikidata time literals: "+1956-10-23T00:00:00Z"; year/month precision values
# may carry "00" for the unknown parts.
_WIKIDATA_DATE_RE = re.compile(r"^\+?(\d{4})(?:-(\d{2})(?:-(\d{2}))?)?")


def extract_wikidata_id(uri: str) -> str | None:
    if not uri:
        return None
    m = re.search(r"entity/(Q\d+)$", uri)
    return m.group(1) if m else None


def parse_wikidata_date(raw_value: str | None) -> date | None:
    if not raw_value:
        return None
    m = _WIKIDATA_DATE_RE.match(raw_value.strip())
    if not m:
        return None
    year = int(m.group(1))
    month = int(m.group(2) or 1) or 1
    day = int(m.group(3) or 1) or 1
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _parse_float(raw_value: str) -> float | None:
    if not raw_value:
        return None
    try:
        value = float(raw_value)
    except (ValueError, TypeError):
        return None
    return value if math.isfinite(value) else None


def _parse_count(raw_value: str) -> int | None:
    value = _parse_float(raw_value)
    if value is None or value < 0 or value > MAX_COUNT:
        return None
    return int(value)


def _get_http_error(exc: BaseException) -> HTTPError | None:
    if isinstance(exc, HTTPError):
        return exc
    cause = getattr(exc, "__cause__", None)
    return cause if isinstance(cause, HTTPError) else None


def _retry_after_seconds(http_err: HTTPError | None) -> float | None:
    if http_err is None or http_err.headers is None:
        return None
    ra = http_err.headers.get("Retry-After")
    if ra is None:
        return None
    try:
        return max(float(int(ra)), 0.0)
    except (ValueError, TypeError):
        return None


@dataclass
class EventCandidate:
    external_id: str
    name: str
    start_date: date
    end_date: date | None = None
    country: str = ""
    country_iso: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    description: str = ""
    estimated_deaths: int | None = None
    type: str = EVENT_TYPE
    sources: str = EVENT_SOURCES


def binding_value(binding: Any, name: str) -> str:
    cell = binding.get(name) if isinstance(binding, dict) else None
    value = cell.get("value") if isinstance(cell, dict) else None
    return value if isinstance(value, str) else ""


def parse_binding(binding: Any) -> EventCandidate | None:
    """Turn one result row into an event candidate, or None when unusable."""
    if not isinstance(binding, dict):
        logger.debug("Skipping malformed binding %r", binding)
        return None
    qid = binding_value(binding, "qid").strip()
    if not qid:
        qid = extract_wikidata_id(binding_value(binding, "item")) or ""
    label = binding_value(binding, "itemLabel").strip()
    if not qid and not label:
        logger.debug("Skipping binding without identifier or label")
        return None
    start_raw = binding_value(binding, "startDate")
    start_date = parse_wikidata_date(start_raw)
    if start_date is None:
        logger.debug(
            "Skipping %s: unparseable start date %r", qid or label, start_raw
        )
        return None
    return EventCandidate(
        external_id=qid,
        name=(label or qid)[:500],
        start_date=start_date,
        end_date=parse_wikidata_date(binding_value(binding, "endDate")),
        country=binding_value(binding, "countryLabel").strip()[:500],
        country_iso=to_alpha2(binding_value(binding, "countryIso")),
        latitude=_parse_float(binding_value(binding, "lat")),
        longitude=_parse_float(binding_value(binding, "lon")),
        description=binding_value(binding, "itemDescription").strip(),
        estimated_deaths=_parse_count(binding_value(binding, "deaths")),
    )


class WikidataSparqlClient:
    def __init__(
        self,
        config: ImportConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
        wrapper_factory: Callable[..., SPARQLWrapper] = SPARQLWrapper,
    ) -> None:
        self.config = config or ImportConfig()
        self.sleep = sleep
        self.wrapper_factory = wrapper_factory

    @staticmethod
    def build_query(min_year: int, limit: int, offset: int) -> str:
        return f"""
PREFIX wd: <http://www.wikidata.org/entity/>
PREFIX wdt: <http://www.wikidata.org/prop/direct/>
PREFIX p: <http://www.wikidata.org/prop/>
PREFIX psv: <http://www.wikidata.org/prop/statement/value/>
PREFIX wikibase: <http://wikiba.se/ontology#>
PREFIX bd: <http://www.bigdata.com/rdf#>

SELECT DISTINCT ?item ?qid ?itemLabel ?itemDescription ?startDate ?endDate ?countryLabel ?countryIso ?lat ?lon ?deaths
WHERE {{
  ?item wdt:P31/wdt:P279* wd:{REVOLUTION_QID} .
  ?item wdt:P580 ?startDate .
  FILTER(YEAR(?startDate) >= {min_year})
  OPTIONAL {{ ?item wdt:P582 ?endDate . }}
  OPTIONAL {{
    ?item wdt:P17 ?country .
    OPTIONAL {{ ?country wdt:P297 ?countryIso . }}
    OPTIONAL {{ ?country p:P625/psv:P625 [wikibase:geoLatitude ?countryLat; wikibase:geoLongitude ?countryLon] . }}
  }}
  OPTIONAL {{ ?item p:P625/psv:P625 [wikibase:geoLatitude ?itemLat; wikibase:geoLongitude ?itemLon] . }}
  OPTIONAL {{ ?item wdt:P1120 ?deaths . }}
  BIND(COALESCE(?itemLat, ?countryLat) AS ?lat)
  BIND(COALESCE(?itemLon, ?countryLon) AS ?lon)
  BIND(STRAFTER(STR(?item), "http://www.wikidata.org/entity/") AS ?qid)
  SERVICE wikibase:label {{ bd:serviceParam wikibase:language "[AUTO_LANGUAGE],en". }}
}}
ORDER BY ?startDate ?item
LIMIT {limit}
OFFSET {offset}
"""

    def _new_wrapper(self, config: ImportConfig) -> SPARQLWrapper:
        sparql = self.wrapper_factory(config.endpoint, agent=config.user_agent)
        sparql.setMethod(POST)
        sparql.setReturnFormat(JSON)
        sparql.setTimeout(config.timeout)
        sparql.addCustomHttpHeader("Accept", SPARQL_RESULTS_JSON)
        return sparql

    def _execute(self, sparql: SPARQLWrapper, config: ImportConfig) -> Any:
        policy = config.retry
        attempts = max(policy.max_attempts, 1)
        last_exc: Exception | None = None
        last_status: int | None = None
        for attempt in range(1, attempts + 1):
            try:
                result = sparql.query().convert()
            except SPARQLWrapperException as e:
                raise SparqlRequestError(
                    f"SPARQL endpoint rejected the request: {e}"
                ) from e
            except (OSError, HTTPException) as e:
                http_err = _get_http_error(e)
                status = http_err.code if http_err is not None else None
                if status is not None and status not in RETRYABLE_STATUSES:
                    raise SparqlRequestError(
                        f"SPARQL endpoint returned HTTP {status}", status=status
                    ) from e
                last_exc = e
                last_status = status
                if attempt < attempts:
                    delay = _retry_after_seconds(http_err)
                    if delay is None:
                        delay = policy.delay_for(attempt)
                    logger.warning(
                        "SPARQL request failed (attempt %d/%d, status %s): %s; "
                        "retrying in %.1fs",
                        attempt,
                        attempts,
                        status if status is not None else "n/a",
                        e,
                        delay,
                    )
                    self.sleep(delay)
                continue
            except ValueError as e:
                raise SparqlResponseError(f"Invalid SPARQL JSON payload: {e}") from e
            if attempt > 1:
                logger.info("SPARQL query succeeded on attempt %d", attempt)
            return result
        if last_status == 429:
            raise SparqlRateLimitError(
                f"Still rate limited after {attempts} attempts", status=last_status
            ) from last_exc
        raise SparqlUnavailableError(
            f"SPARQL endpoint unavailable after {attempts} attempts: {last_exc}",
            status=last_status,
        ) from last_exc

    @staticmethod
    def _extract_bindings(raw: Any) -> list[dict[str, Any]]:
        results = raw.get("results") if isinstance(raw, dict) else None
        bindings = results.get("bindings") if isinstance(results, dict) else None
        if not isinstance(bindings, list):
            raise SparqlResponseError("Response has no results.bindings array")
        return bindings

    def fetch_page(
        self,
        min_year: int,
        limit: int,
        offset: int,
        config: ImportConfig | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch one page of bindings; ``config`` overrides the client's for this call."""
        config = config or self.config
        logger.info(
            "Querying Wikidata (min_year=%d, limit=%d, offset=%d)",
            min_year,
            limit,
            offset,
        )
        sparql = self._new_wrapper(config)
        sparql.setQuery(self.build_query(min_year, limit, offset))
        rows = self._extract_bindings(self._execute(sparql, config))
        logger.info("Retrieved %d bindings from Wikidata", len(rows))
        return rows
