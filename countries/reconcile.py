"""
Join raw country records with the exchange-rate table and derive GDP.

Nothing here touches the database or the network; ``services`` feeds the
output into the store.
"""
import logging
import math
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Optional

logger = logging.getLogger(__name__)

MULTIPLIER_MIN = 1000
MULTIPLIER_MAX = 2000
# largest value a BigIntegerField column holds
MAX_POPULATION = 2**63 - 1


@dataclass
class ReconciledCountry:
    name: str
    capital: Optional[str]
    region: Optional[str]
    population: int
    currency_code: Optional[str]
    exchange_rate: Optional[float]
    estimated_gdp: float
    flag_url: Optional[str]


def _clean_str(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def first_currency_code(currencies) -> Optional[str]:
    """First currency code of the record, or None. Entries are ``{"code": ...}`` or bare codes."""
    if not currencies or isinstance(currencies, (str, Mapping)):
        return None
    first = currencies[0]
    if isinstance(first, Mapping):
        first = first.get("code")
    return _clean_str(first)


def lookup_rate(rates: Mapping, code: Optional[str]) -> Optional[float]:
    # only absence means "no rate"; a zero rate is returned as 0.0
    if code is None or code not in rates:
        return None
    value = rates[code]
    if value is None or isinstance(value, bool):
        return None
    try:
        rate = float(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring unparseable rate %r for %s", value, code)
        return None
    if not math.isfinite(rate):
        return None
    return rate


def draw_multiplier(rng) -> float:
    """Uniform draw from [MULTIPLIER_MIN, MULTIPLIER_MAX)."""
    return MULTIPLIER_MIN + rng.random() * (MULTIPLIER_MAX - MULTIPLIER_MIN)


def derive_gdp(population: int, exchange_rate: Optional[float], multiplier: float) -> float:
    """
    Estimated GDP for one country.

    Placeholder model: ``population * multiplier / exchange_rate``. Without a
    usable rate (missing, zero or negative) the estimate is 0, as is any
    result that overflows to infinity.
    """
    if exchange_rate is None or exchange_rate <= 0:
        return 0.0
    gdp = population * multiplier / exchange_rate
    if not math.isfinite(gdp):
        return 0.0
    return gdp


def coerce_population(value) -> int:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, str):
        value = value.strip()
        try:
            value = int(value)
        except ValueError:
            try:
                value = float(value)
            except ValueError:
                return 0
    if isinstance(value, float):
        if not math.isfinite(value):
            return 0
        value = int(value)
    if not isinstance(value, int) or value < 0 or value > MAX_POPULATION:
        return 0
    return value


def reconcile_country(raw: Mapping, rates: Mapping, rng) -> ReconciledCountry:
    currency_code = first_currency_code(raw.get("currencies"))
    exchange_rate = lookup_rate(rates, currency_code)
    multiplier = draw_multiplier(rng)
    population = coerce_population(raw.get("population"))

    return ReconciledCountry(
        name=raw["name"],
        capital=_clean_str(raw.get("capital")),
        region=_clean_str(raw.get("region")),
        population=population,
        currency_code=currency_code,
        exchange_rate=exchange_rate,
        estimated_gdp=derive_gdp(population, exchange_rate, multiplier),
        flag_url=_clean_str(raw.get("flag")),
    )


def reconcile(raw_countries: Iterable[Mapping], rates: Mapping, rng) -> Iterator[ReconciledCountry]:
    """Reconcile a fetched batch in source order, skipping records without a name."""
    for raw in raw_countries:
        if not isinstance(raw, Mapping) or not _clean_str(raw.get("name")):
            logger.warning("Skipping country record without a name: %r", raw)
            continue
        yield reconcile_country(raw, rates, rng)
