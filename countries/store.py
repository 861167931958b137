import logging
from dataclasses import asdict

from django.db import DatabaseError
from django.db.models import Max
from django.utils import timezone

from .exceptions import NotFound, StorageError
from .models import Country

logger = logging.getLogger(__name__)


class CountryStore:
    """
    Persistence for reconciled countries, keyed by exact country name.

    Every database failure surfaces as ``StorageError``. One instance is
    created by ``CountriesConfig.ready()``; tests may build their own.
    """

    def __init__(self, using="default"):
        self.using = using

    @property
    def countries(self):
        return Country.objects.using(self.using)

    def upsert(self, reconciled):
        """Insert the country or overwrite every field of the existing row."""
        defaults = asdict(reconciled)
        name = defaults.pop("name")
        defaults["last_refreshed_at"] = timezone.now()
        try:
            country, created = self.countries.update_or_create(name=name, defaults=defaults)
        except (DatabaseError, OverflowError) as e:
            logger.error("Failed to upsert country %s: %s", name, e)
            raise StorageError(f"Could not save country {name}") from e
        logger.debug("%s country %s", "Created" if created else "Updated", name)
        return country

    def find_by_name(self, name):
        try:
            return self.countries.filter(name=name).first()
        except DatabaseError as e:
            raise StorageError(f"Could not read country {name}") from e

    def get_by_name(self, name):
        country = self.find_by_name(name)
        if country is None:
            raise NotFound(name)
        return country

    def list_all(self, region=None, currency_code=None, gdp_desc=False):
        """
        Countries filtered by exact region/currency code.

        With ``gdp_desc`` the result is ordered by estimated GDP, highest
        first, ties broken by name; otherwise by name.
        """
        queryset = self.countries.all()
        if region:
            queryset = queryset.filter(region=region)
        if currency_code:
            queryset = queryset.filter(currency_code=currency_code)
        if gdp_desc:
            queryset = queryset.order_by('-estimated_gdp', 'name')
        try:
            return list(queryset)
        except DatabaseError as e:
            raise StorageError("Could not list countries") from e

    def delete_by_name(self, name):
        """Delete the named country; return False when there was none."""
        try:
            deleted, _ = self.countries.filter(name=name).delete()
        except DatabaseError as e:
            raise StorageError(f"Could not delete country {name}") from e
        return deleted > 0

    def count_and_last_refresh(self):
        try:
            stats = self.countries.aggregate(last_refreshed_at=Max('last_refreshed_at'))
            total = self.countries.count()
        except DatabaseError as e:
            raise StorageError("Could not read refresh status") from e
        return total, stats['last_refreshed_at']

    def top_by_gdp(self, limit=5):
        try:
            return list(self.countries.order_by('-estimated_gdp', 'name')[:limit])
        except DatabaseError as e:
            raise StorageError("Could not read top countries") from e
