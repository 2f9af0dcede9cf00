"""Tests for the paged Wikidata import and the Event upsert rules."""

import threading
from datetime import date
from email.message import Message
from unittest.mock import MagicMock, call, patch
from urllib.error import HTTPError

from django.db import DatabaseError
from django.test import TestCase

from api.revolutions.models import Event
from api.revolutions.tests.stubs import (
    CARNATION_1974,
    HUNGARY_1956,
    IRANIAN_1979,
    MAY_1968,
    UNDATED,
    VELVET_1989,
    make_binding,
)
from api.revolutions.wikidata import (
    EventImporter,
    ImportConfig,
    RetryPolicy,
    WikidataSparqlClient,
)
from api.revolutions.wikidata.exceptions import (
    SparqlRateLimitError,
    SparqlRequestError,
    SparqlResponseError,
)
from api.revolutions.wikidata.importer import upsert_event
from api.revolutions.wikidata.sparql import parse_binding

PAGE_SIZE = 2
TEST_CONFIG = ImportConfig(page_size=PAGE_SIZE, min_year=1950, page_delay=0)


def _importer(*pages) -> tuple[EventImporter, MagicMock]:
    sparql_client = MagicMock()
    sparql_client.fetch_page.side_effect = list(pages)
    return EventImporter(config=TEST_CONFIG, sparql_client=sparql_client), sparql_client


class EventImporterTest(TestCase):
    def test_import_stores_events_from_single_page(self) -> None:
        importer, sparql_client = _importer([HUNGARY_1956])

        result = importer.import_all()

        self.assertTrue(result.ok)
        self.assertEqual(result.imported_count, 1)
        self.assertEqual(result.pages, 1)
        sparql_client.fetch_page.assert_called_once_with(
            min_year=1950, limit=PAGE_SIZE, offset=0, config=TEST_CONFIG
        )
        event = Event.objects.get(external_id="Q11209")
        self.assertEqual(event.name, "Hungarian Revolution of 1956")
        self.assertEqual(event.start_date, date(1956, 10, 23))
        self.assertEqual(event.end_date, date(1956, 11, 10))
        self.assertEqual(event.country, "Hungary")
        self.assertEqual(event.country_iso, "HU")
        self.assertEqual(event.country_key, "hungary")
        self.assertAlmostEqual(event.latitude, 47.4925)
        self.assertAlmostEqual(event.longitude, 19.051389)
        self.assertEqual(event.type, "Revolution/Uprising")
        self.assertEqual(event.sources, "Wikidata")
        self.assertEqual(event.estimated_deaths, 3000)
        self.assertIn("revolution", event.description)

    def test_full_pages_advance_offset_until_short_page(self) -> None:
        importer, sparql_client = _importer(
            [HUNGARY_1956, CARNATION_1974],
            [VELVET_1989, IRANIAN_1979],
            [MAY_1968],
        )

        result = importer.import_all()

        self.assertEqual(result.imported_count, 5)
        self.assertEqual(result.pages, 3)
        self.assertEqual(
            sparql_client.fetch_page.call_args_list,
            [
                call(min_year=1950, limit=PAGE_SIZE, offset=0, config=TEST_CONFIG),
                call(min_year=1950, limit=PAGE_SIZE, offset=2, config=TEST_CONFIG),
                call(min_year=1950, limit=PAGE_SIZE, offset=4, config=TEST_CONFIG),
            ],
        )
        self.assertEqual(Event.objects.count(), 5)

    def test_exactly_full_page_then_empty_page_terminates(self) -> None:
        importer, sparql_client = _importer([HUNGARY_1956, CARNATION_1974], [])

        result = importer.import_all()

        self.assertEqual(result.imported_count, 2)
        self.assertEqual(sparql_client.fetch_page.call_count, 2)
        self.assertTrue(result.ok)

    def test_reimport_is_idempotent(self) -> None:
        page = [HUNGARY_1956, CARNATION_1974]
        first, _ = _importer(page, [])
        first.import_all()
        snapshot = list(
            Event.objects.order_by("external_id").values(
                "id", "external_id", "name", "start_date", "country_iso", "latitude"
            )
        )

        second, _ = _importer(page, [])
        result = second.import_all()

        self.assertEqual(result.imported_count, 2)
        self.assertEqual(Event.objects.count(), 2)
        self.assertEqual(
            list(
                Event.objects.order_by("external_id").values(
                    "id", "external_id", "name", "start_date", "country_iso", "latitude"
                )
            ),
            snapshot,
        )

    def test_invalid_start_date_is_skipped_without_counting(self) -> None:
        importer, _ = _importer([UNDATED])

        result = importer.import_all()

        self.assertTrue(result.ok)
        self.assertEqual(result.imported_count, 0)
        self.assertEqual(result.skipped, 1)
        self.assertFalse(Event.objects.exists())

    def test_alpha3_country_code_is_stored_as_alpha2(self) -> None:
        importer, _ = _importer([MAY_1968])

        importer.import_all()

        self.assertEqual(Event.objects.get(external_id="Q212271").country_iso, "FR")

    def test_request_failure_keeps_committed_pages(self) -> None:
        importer, sparql_client = _importer(
            [HUNGARY_1956, CARNATION_1974],
            SparqlRateLimitError("Still rate limited after 4 attempts", status=429),
        )

        result = importer.import_all()

        self.assertFalse(result.ok)
        self.assertIn("rate limited", result.error)
        self.assertEqual(result.imported_count, 2)
        self.assertEqual(Event.objects.count(), 2)
        self.assertEqual(sparql_client.fetch_page.call_count, 2)

    def test_non_retryable_status_aborts_with_nothing_imported(self) -> None:
        importer, _ = _importer(
            SparqlRequestError("SPARQL endpoint returned HTTP 403", status=403)
        )

        result = importer.import_all()

        self.assertEqual(result.imported_count, 0)
        self.assertEqual(result.error, "SPARQL endpoint returned HTTP 403")

    def test_malformed_response_ends_run_without_error(self) -> None:
        importer, _ = _importer(
            [HUNGARY_1956, CARNATION_1974],
            SparqlResponseError("Response has no results.bindings array"),
        )

        result = importer.import_all()

        self.assertTrue(result.ok)
        self.assertEqual(result.imported_count, 2)

    def test_cancelled_before_first_page_fetches_nothing(self) -> None:
        importer, sparql_client = _importer([HUNGARY_1956])
        cancel_event = threading.Event()
        cancel_event.set()

        result = importer.import_all(cancel_event=cancel_event)

        self.assertTrue(result.cancelled)
        self.assertEqual(result.imported_count, 0)
        sparql_client.fetch_page.assert_not_called()

    def test_cancel_during_page_delay_stops_before_next_page(self) -> None:
        cancel_event = threading.Event()

        def fetch_page(**kwargs):
            cancel_event.set()
            return [HUNGARY_1956, CARNATION_1974]

        sparql_client = MagicMock()
        sparql_client.fetch_page.side_effect = fetch_page
        config = ImportConfig(page_size=PAGE_SIZE, min_year=1950, page_delay=30)
        importer = EventImporter(config=config, sparql_client=sparql_client)

        result = importer.import_all(cancel_event=cancel_event)

        self.assertTrue(result.cancelled)
        self.assertEqual(result.imported_count, 2)
        self.assertEqual(sparql_client.fetch_page.call_count, 1)

    def test_config_passed_to_import_all_overrides_paging(self) -> None:
        importer, sparql_client = _importer([HUNGARY_1956])
        override = ImportConfig(page_size=10, min_year=1900, page_delay=0)

        importer.import_all(config=override)

        sparql_client.fetch_page.assert_called_once_with(
            min_year=1900, limit=10, offset=0, config=override
        )

    def test_config_passed_to_import_all_overrides_retry_policy(self) -> None:
        wrapper_factory = MagicMock()
        wrapper_factory.return_value.query.side_effect = HTTPError(
            "https://query.example.org/sparql", 429, "Too Many Requests", Message(), None
        )
        sleep = MagicMock()
        client = WikidataSparqlClient(
            ImportConfig(), sleep=sleep, wrapper_factory=wrapper_factory
        )
        importer = EventImporter(config=TEST_CONFIG, sparql_client=client)
        override = ImportConfig(
            endpoint="https://query.example.org/sparql",
            page_size=PAGE_SIZE,
            page_delay=0,
            retry=RetryPolicy(max_attempts=1),
        )

        result = importer.import_all(config=override)

        self.assertFalse(result.ok)
        self.assertEqual(wrapper_factory.return_value.query.call_count, 1)
        wrapper_factory.assert_called_once_with(
            "https://query.example.org/sparql", agent=override.user_agent
        )
        sleep.assert_not_called()

    def test_malformed_bindings_are_skipped(self) -> None:
        bad_label = make_binding("Q424242", "Placeholder", "1990-01-01T00:00:00Z")
        bad_label["itemLabel"] = {"type": "literal", "value": 5}
        importer, _ = _importer([HUNGARY_1956, None], [bad_label, "row"], [])

        result = importer.import_all()

        self.assertTrue(result.ok)
        self.assertEqual(result.imported_count, 2)
        self.assertEqual(result.skipped, 2)
        self.assertEqual(Event.objects.get(external_id="Q424242").name, "Q424242")

    def test_out_of_range_deaths_do_not_abort_the_page(self) -> None:
        huge = make_binding(
            "Q999001", "Huge uprising", "1990-01-01T00:00:00Z", deaths="1e30"
        )
        importer, _ = _importer([huge, HUNGARY_1956], [])

        result = importer.import_all()

        self.assertTrue(result.ok)
        self.assertEqual(result.imported_count, 2)
        self.assertIsNone(Event.objects.get(external_id="Q999001").estimated_deaths)

    def test_store_failure_propagates(self) -> None:
        importer, _ = _importer([HUNGARY_1956])

        with patch(
            "api.revolutions.wikidata.importer.upsert_event",
            side_effect=DatabaseError("disk full"),
        ):
            with self.assertRaises(DatabaseError):
                importer.import_all()


class UpsertEventTest(TestCase):
    def test_external_id_match_preserves_pk_and_overwrites_fields(self) -> None:
        existing = Event.objects.create(
            external_id="Q11209",
            name="Hungarian uprising",
            start_date=date(1956, 1, 1),
            country="Hungarian People's Republic",
            description="old",
        )

        event, created = upsert_event(parse_binding(HUNGARY_1956))

        self.assertFalse(created)
        self.assertEqual(event.pk, existing.pk)
        existing.refresh_from_db()
        self.assertEqual(existing.name, "Hungarian Revolution of 1956")
        self.assertEqual(existing.start_date, date(1956, 10, 23))
        self.assertEqual(existing.country, "Hungary")
        self.assertEqual(Event.objects.count(), 1)

    def test_name_and_year_match_backfills_external_id(self) -> None:
        existing = Event.objects.create(
            name="Carnation Revolution",
            start_date=date(1974, 1, 1),
            country="Portugal",
        )
        self.assertIsNone(existing.external_id)

        event, created = upsert_event(parse_binding(CARNATION_1974))

        self.assertFalse(created)
        self.assertEqual(event.pk, existing.pk)
        existing.refresh_from_db()
        self.assertEqual(existing.external_id, "Q208202")
        self.assertEqual(existing.start_date, date(1974, 4, 25))
        self.assertEqual(existing.country_iso, "PT")

    def test_name_match_in_other_year_creates_new_event(self) -> None:
        Event.objects.create(name="Carnation Revolution", start_date=date(1975, 1, 1))

        _, created = upsert_event(parse_binding(CARNATION_1974))

        self.assertTrue(created)
        self.assertEqual(Event.objects.count(), 2)

    def test_no_match_creates_event(self) -> None:
        event, created = upsert_event(parse_binding(VELVET_1989))

        self.assertTrue(created)
        self.assertEqual(event.external_id, "Q189018")
        self.assertIsNone(event.country_iso)

    def test_missing_deaths_keep_stored_estimate_and_tags(self) -> None:
        Event.objects.create(
            external_id="Q189018",
            name="Velvet Revolution",
            start_date=date(1989, 11, 17),
            estimated_deaths=1,
            tags=["peaceful"],
        )

        event, _ = upsert_event(parse_binding(VELVET_1989))

        event.refresh_from_db()
        self.assertEqual(event.estimated_deaths, 1)
        self.assertEqual(event.tags, ["peaceful"])

    def test_last_write_wins_on_descriptive_fields(self) -> None:
        upsert_event(parse_binding(HUNGARY_1956))
        updated = make_binding(
            "Q11209",
            "Hungarian Revolution of 1956",
            "1956-10-23T00:00:00Z",
            countryLabel="Hungary",
        )

        event, _ = upsert_event(parse_binding(updated))

        event.refresh_from_db()
        self.assertIsNone(event.end_date)
        self.assertIsNone(event.latitude)
        self.assertIsNone(event.country_iso)
        self.assertEqual(event.description, "")
        self.assertEqual(event.estimated_deaths, 3000)
