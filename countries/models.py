from django.db import models
from django.utils import timezone


class Country(models.Model):
    name = models.CharField(max_length=255, unique=True)
    capital = models.CharField(max_length=255, null=True, blank=True)
    region = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    population = models.BigIntegerField(default=0)
    currency_code = models.CharField(max_length=10, null=True, blank=True, db_index=True)
    exchange_rate = models.FloatField(null=True, blank=True)
    estimated_gdp = models.FloatField(default=0, db_index=True)
    flag_url = models.URLField(max_length=500, null=True, blank=True)
    # set explicitly by CountryStore.upsert on insert and update
    last_refreshed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name_plural = "countries"
        ordering = ['name']

    def __str__(self):
        return self.name
