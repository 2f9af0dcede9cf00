from datetime import date

from django.core.management.base import BaseCommand

from api.revolutions.models import Event


class Command(BaseCommand):
    help = "Insert a placeholder event when the events table is empty."

    def handle(self, *args, **options):
        if Event.objects.exists():
            self.stdout.write("Events already present; nothing to seed.")
            return
        Event.objects.create(
            name="Example Revolution",
            start_date=date(1900, 1, 1),
            end_date=date(1900, 12, 31),
            country="Exampleland",
            type="Political",
            description="Seed item for initial DB",
        )
        self.stdout.write(self.style.SUCCESS("Seeded 1 placeholder event."))
