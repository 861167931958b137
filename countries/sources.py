import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait

import requests
from django.conf import settings

from .exceptions import SourceUnavailable

logger = logging.getLogger(__name__)


def _get_json(session, url, timeout):
    try:
        resp = session.get(url, timeout=timeout)
        resp.raise_for_status()
        return resp.json()
    except requests.exceptions.RequestException as e:
        raise SourceUnavailable(url, str(e)) from e
    except ValueError as e:
        # body was not valid JSON
        raise SourceUnavailable(url, "invalid JSON payload") from e


def fetch_countries(session, url=None, timeout=None):
    """Return the raw country records from the countries provider."""
    url = url or settings.COUNTRIES_API_URL
    timeout = timeout or settings.SOURCE_TIMEOUT

    payload = _get_json(session, url, timeout)
    if not isinstance(payload, list):
        raise SourceUnavailable(url, "expected a list of countries")
    logger.debug("Fetched %d country records from %s", len(payload), url)
    return payload


def fetch_rates(session, url=None, timeout=None):
    """
    Return the ``{currency_code: rate}`` table from the exchange-rate provider.

    Rates are relative to the provider's base currency. A provider response
    with ``"result": "error"`` or without a ``rates`` mapping is treated as
    unavailable rather than as an empty table.
    """
    url = url or settings.EXCHANGE_RATES_API_URL
    timeout = timeout or settings.SOURCE_TIMEOUT

    payload = _get_json(session, url, timeout)
    if not isinstance(payload, dict):
        raise SourceUnavailable(url, "expected a JSON object")
    if payload.get("result") == "error":
        raise SourceUnavailable(url, payload.get("error-type") or "provider reported an error")
    rates = payload.get("rates")
    if not isinstance(rates, dict):
        raise SourceUnavailable(url, "missing rates table")
    logger.debug("Fetched %d exchange rates from %s", len(rates), url)
    return rates


def fetch_sources(session=None):
    """
    Fetch countries and rates concurrently.

    Returns ``(countries, rates)``. Fails fast: the first
    ``SourceUnavailable`` is raised as soon as either fetch fails, without
    waiting for the other one.
    """
    session = session or requests
    executor = ThreadPoolExecutor(max_workers=2)
    try:
        countries_future = executor.submit(fetch_countries, session)
        rates_future = executor.submit(fetch_rates, session)
        done, pending = wait([countries_future, rates_future], return_when=FIRST_EXCEPTION)

        for future in (countries_future, rates_future):
            if future in done and future.exception() is not None:
                for other in pending:
                    other.cancel()
                raise future.exception()

        return countries_future.result(), rates_future.result()
    finally:
        # don't block on a fetch that is still running after a failure
        executor.shutdown(wait=False)
