"""HTTP helpers with retry/backoff/jitter and simple metrics for letterbox.

This module centralizes logic for performing HTTP requests with
configurable timeouts, retries, and exponential backoff. Rate-limited
responses (429) honour the server's ``Retry-After`` header. Simple metrics
counters are kept so callers can log them after a run.
"""
from __future__ import annotations

import logging
import random
import time

import requests

from . import config

logger = logging.getLogger("letterbox.http")

# Simple in-process metrics counters (module-level).
metrics = {
    'requests_total': 0,
    'requests_failed': 0,
    'requests_retried': 0,
}


def _inc(metric: str, n: int = 1):
    metrics[metric] = metrics.get(metric, 0) + n


def retry_after_seconds(resp, default: float = config.API_RATE_LIMIT_DEFAULT) -> float:
    """Return the number of seconds a 429 response asks us to wait."""
    headers = getattr(resp, 'headers', None) or {}
    raw = headers.get('Retry-After') if hasattr(headers, 'get') else None
    if raw is None:
        return float(default)
    try:
        return max(0.0, float(int(str(raw).strip())))
    except ValueError:
        return float(default)


def _backoff_delay(backoff: float, attempt: int) -> float:
    sleep_for = backoff * (2 ** (attempt - 1))
    return sleep_for * (0.8 + random.random() * 0.4)


def request_with_retries(method: str, url: str, params=None, headers=None, timeout=(5, 30), retries: int = 3, backoff: float = 0.3, status_forcelist=None, session=None, network_delay: float | None = None):
    """Perform an HTTP request with simple retry/backoff/jitter.

    Args:
        method: HTTP method
        url: URL to request
        params: optional query params
        headers: optional headers
        timeout: tuple (connect, read) or single float read timeout
        retries: number of retry attempts (total attempts = retries+1)
        backoff: base backoff factor for exponential backoff
        status_forcelist: iterable of status codes considered retryable
        session: optional requests.Session (or duck-typed object with .request)
        network_delay: fixed wait after a connection error or timeout;
            exponential backoff is used when None

    Returns:
        requests.Response. Responses with non-retryable error statuses are
        returned as-is so callers can build a meaningful error.

    Raises:
        The exception from the last failed attempt when retries are exhausted.
    """
    if status_forcelist is None:
        status_forcelist = config.API_STATUS_FORCELIST

    req = session if session is not None else requests
    attempts = max(1, int(retries) + 1)
    for attempt in range(1, attempts + 1):
        _inc('requests_total')
        try:
            resp = req.request(method, url, params=params, headers=headers, timeout=timeout)
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            logger.debug("HTTP request attempt %d/%d failed for %s: %s", attempt, attempts, url, e)
            if attempt < attempts:
                _inc('requests_retried')
                logger.warning("Network error, retrying... (%d attempts left)", attempts - attempt)
                time.sleep(network_delay if network_delay is not None else _backoff_delay(backoff, attempt))
                continue
            _inc('requests_failed')
            logger.warning("HTTP request failed after %d attempts for %s: %s", attempts, url, e)
            raise

        status_code = getattr(resp, 'status_code', 200)
        if status_code not in status_forcelist:
            return resp

        if attempt >= attempts:
            _inc('requests_failed')
            logger.warning("HTTP request failed after %d attempts for %s: status=%s", attempts, url, status_code)
            return resp

        _inc('requests_retried')
        if status_code == 429:
            wait = retry_after_seconds(resp)
            logger.warning("Rate limited. Retrying after %ss...", wait)
        else:
            wait = _backoff_delay(backoff, attempt)
            logger.debug("status=%s for %s, retrying in %.2fs", status_code, url, wait)
        time.sleep(wait)

    # unreachable: the loop always returns or raises
    raise RuntimeError("request_with_retries exhausted without a response")


def get_json(url: str, params=None, headers=None, timeout=(5, 30), retries: int = 3, backoff: float = 0.3, status_forcelist=None, session=None):
    resp = request_with_retries('GET', url, params=params, headers=headers, timeout=timeout, retries=retries, backoff=backoff, status_forcelist=status_forcelist, session=session)
    resp.raise_for_status()
    return resp.json()


def get_bytes(url: str, headers=None, timeout=(5, 30), retries: int = 2, backoff: float = 0.3, session=None):
    """GET a binary resource. Returns the response; callers check status."""
    return request_with_retries('GET', url, headers=headers, timeout=timeout, retries=retries, backoff=backoff, session=session)
