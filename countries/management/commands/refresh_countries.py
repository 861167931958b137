import random

from django.apps import apps
from django.core.management.base import BaseCommand, CommandError

from countries import services
from countries.exceptions import SourceUnavailable, StorageError


class Command(BaseCommand):
    help = "Fetch countries and exchange rates and refresh the stored GDP estimates."

    def add_arguments(self, parser):
        parser.add_argument(
            "--seed",
            type=int,
            default=None,
            help="Seed for the GDP multiplier generator (for reproducible runs).",
        )

    def handle(self, *args, **options):
        rng = random.Random(options["seed"]) if options["seed"] is not None else None
        store = apps.get_app_config("countries").store

        try:
            result = services.refresh_countries(store, rng=rng)
        except SourceUnavailable as e:
            raise CommandError(f"External data source unavailable: {e}") from e
        except StorageError as e:
            raise CommandError(f"Refresh stopped by a storage error: {e}") from e

        self.stdout.write(self.style.SUCCESS(
            f"Countries refreshed successfully: {result.committed} saved, {result.skipped} skipped"
        ))
        if not result.snapshot_generated:
            self.stderr.write("Summary snapshot could not be generated")
