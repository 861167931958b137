import logging
import random
from dataclasses import dataclass

from .reconcile import reconcile
from .sources import fetch_sources
from .summary import generate_summary

logger = logging.getLogger(__name__)


@dataclass
class RefreshResult:
    committed: int
    skipped: int
    snapshot_generated: bool


def refresh_countries(store, fetch=None, rng=None, reporter=None):
    """
    Fetch both upstream sources, reconcile them and upsert every country.

    ``SourceUnavailable`` from ``fetch`` propagates before anything is
    written. Commits are sequential and not rolled back: a ``StorageError``
    stops the batch and leaves the countries saved so far in place. The
    summary snapshot is regenerated last; if that fails the refresh still
    succeeds.
    """
    fetch = fetch or fetch_sources
    reporter = reporter or generate_summary
    rng = rng or random.Random()

    logger.info("Refreshing countries")
    raw_countries, rates = fetch()
    logger.info("Fetched %d countries and %d exchange rates", len(raw_countries), len(rates))

    committed = 0
    for country in reconcile(raw_countries, rates, rng):
        store.upsert(country)
        committed += 1
    skipped = len(raw_countries) - committed

    snapshot_generated = True
    try:
        reporter(store)
    except Exception:
        logger.exception("Summary snapshot generation failed")
        snapshot_generated = False

    logger.info("Refresh complete: %d committed, %d skipped", committed, skipped)
    return RefreshResult(committed=committed, skipped=skipped, snapshot_generated=snapshot_generated)
