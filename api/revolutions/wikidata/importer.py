import logging
import threading
from dataclasses import dataclass

from django.db import transaction

from api.revolutions.models import Event
from api.revolutions.wikidata.config import ImportConfig
from api.revolutions.wikidata.exceptions import (
    SparqlRequestError,
    SparqlResponseError,
)
from api.revolutions.wikidata.sparql import (
    EventCandidate,
    WikidataSparqlClient,
    parse_binding,
)

logger = logging.getLogger(__name__)

OVERWRITTEN_FIELDS = (
    "name",
    "start_date",
    "end_date",
    "country",
    "country_iso",
    "latitude",
    "longitude",
    "description",
    "type",
    "sources",
)


@dataclass
class ImportResult:
    imported_count: int = 0
    pages: int = 0
    skipped: int = 0
    error: str | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def upsert_event(candidate: EventCandidate) -> tuple[Event, bool]:
    """
    Resolve the stored Event for a candidate and overwrite it.

    Lookup order is external id, then exact name plus start year; a record
    found by name and year without an external id adopts the candidate's.
    Returns (event, created).
    """
    event = None
    if candidate.external_id:
        event = Event.objects.filter(external_id=candidate.external_id).first()
    if event is None:
        event = Event.objects.find_duplicate(
            candidate.name, candidate.start_date.year
        )
        if event is not None and not event.external_id and candidate.external_id:
            logger.info(
                "Event id=%s (%r): backfilling external id %s",
                event.pk,
                event.name,
                candidate.external_id,
            )
            event.external_id = candidate.external_id
    created = event is None
    if created:
        event = Event(external_id=candidate.external_id or None)

    for field_name in OVERWRITTEN_FIELDS:
        setattr(event, field_name, getattr(candidate, field_name))
    if candidate.estimated_deaths is not None:
        event.estimated_deaths = candidate.estimated_deaths
    event.save()
    return event, created


class EventImporter:
    """
    Pages through the revolutions query and upserts every usable binding.

    Pages are fetched strictly one after another. Each page is written in
    its own transaction, so an aborted run keeps every page committed
    before it. Runs are not coordinated with each other: two concurrent
    imports may race on the upsert lookups.
    """

    def __init__(
        self,
        config: ImportConfig | None = None,
        sparql_client: WikidataSparqlClient | None = None,
    ) -> None:
        self.config = config or ImportConfig.from_settings()
        self.sparql_client = sparql_client or WikidataSparqlClient(self.config)

    @staticmethod
    def _save_page(bindings: list[dict]) -> tuple[int, int, int]:
        imported = 0
        created = 0
        skipped = 0
        with transaction.atomic():
            for binding in bindings:
                candidate = parse_binding(binding)
                if candidate is None:
                    skipped += 1
                    continue
                _, was_created = upsert_event(candidate)
                imported += 1
                if was_created:
                    created += 1
        return imported, created, skipped

    def import_all(
        self,
        config: ImportConfig | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ImportResult:
        config = config or self.config
        cancel_event = cancel_event or threading.Event()
        result = ImportResult()
        offset = 0
        while True:
            if cancel_event.is_set():
                logger.info("Import cancelled before fetching offset %d", offset)
                result.cancelled = True
                break
            try:
                bindings = self.sparql_client.fetch_page(
                    min_year=config.min_year,
                    limit=config.page_size,
                    offset=offset,
                    config=config,
                )
            except SparqlResponseError as e:
                logger.warning(
                    "Unexpected response at offset %d, treating as end of data: %s",
                    offset,
                    e,
                )
                break
            except SparqlRequestError as e:
                logger.error(
                    "Import aborted at offset %d after %d imported: %s",
                    offset,
                    result.imported_count,
                    e,
                )
                result.error = str(e)
                break

            imported, created, skipped = self._save_page(bindings)
            result.pages += 1
            result.imported_count += imported
            result.skipped += skipped
            logger.info(
                "Committed page at offset %d: %d imported (%d new), %d skipped",
                offset,
                imported,
                created,
                skipped,
            )

            if len(bindings) < config.page_size:
                break
            offset += config.page_size
            if config.page_delay > 0 and cancel_event.wait(config.page_delay):
                logger.info("Import cancelled during delay before offset %d", offset)
                result.cancelled = True
                break

        logger.info(
            "Wikidata import finished: %d imported over %d page(s), %d skipped%s",
            result.imported_count,
            result.pages,
            result.skipped,
            f", error: {result.error}" if result.error else "",
        )
        return result
