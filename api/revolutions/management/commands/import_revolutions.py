import dataclasses
import logging
import signal
import threading

from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError

from api.revolutions.wikidata import EventImporter, ImportConfig


class Command(BaseCommand):
    help = (
        "Import revolutions and uprisings from Wikidata, page by page, "
        "upserting them into the database."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--page-size",
            type=int,
            default=None,
            help="Bindings per SPARQL page (default from settings, 1000).",
        )
        parser.add_argument(
            "--min-year",
            type=int,
            default=None,
            help="Only import events starting in or after this year.",
        )
        parser.add_argument(
            "--delay",
            type=float,
            default=None,
            help="Seconds to wait between pages (default 1).",
        )
        parser.add_argument(
            "--max-attempts",
            type=int,
            default=None,
            help="Attempts per page on 429/503 or network errors (default 4).",
        )

    def handle(self, *args, **options):
        logging.basicConfig(
            level=logging.INFO,
            format="%(levelname)s: %(message)s",
        )
        config = ImportConfig.from_settings()
        overrides = {}
        if options["page_size"] is not None:
            if options["page_size"] <= 0:
                raise CommandError("--page-size must be positive.")
            overrides["page_size"] = options["page_size"]
        if options["min_year"] is not None:
            overrides["min_year"] = options["min_year"]
        if options["delay"] is not None:
            overrides["page_delay"] = max(options["delay"], 0.0)
        if options["max_attempts"] is not None:
            overrides["retry"] = dataclasses.replace(
                config.retry, max_attempts=max(options["max_attempts"], 1)
            )
        config = dataclasses.replace(config, **overrides)

        cancel_event = threading.Event()
        previous_handler = signal.getsignal(signal.SIGINT)

        def _cancel(signum, frame):
            self.stderr.write("Interrupt received; stopping after the current page.")
            cancel_event.set()

        signal.signal(signal.SIGINT, _cancel)
        try:
            result = EventImporter(config=config).import_all(cancel_event=cancel_event)
        except DatabaseError as e:
            raise CommandError(f"Import failed while writing to the database: {e}") from e
        finally:
            signal.signal(signal.SIGINT, previous_handler)

        summary = (
            f"Imported {result.imported_count} event(s) over {result.pages} "
            f"page(s); {result.skipped} binding(s) skipped."
        )
        if result.ok:
            self.stdout.write(self.style.SUCCESS(summary))
        else:
            self.stdout.write(self.style.WARNING(summary))
            self.stderr.write(self.style.ERROR(f"Import ended early: {result.error}"))
        if result.cancelled:
            self.stdout.write(self.style.WARNING("Import was cancelled."))
