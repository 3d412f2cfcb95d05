"""
HTTP sessions for the tax-authority gateway with strict TLS.
Query-type calls retry on 500/502 and network failures.
Emission and cancellation go through a session without transport retries:
a resent POST could be processed twice by the authority.
Never uses verify=False.
"""

import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger("fiscal")

RETRY_STATUS_CODES = (500, 502)
QUERY_RETRIES = 3
BACKOFF_FACTOR = 2.0


def requests_session_with_retry(
    retries: int = QUERY_RETRIES,
    backoff_factor: float = BACKOFF_FACTOR,
    status_forcelist: tuple = RETRY_STATUS_CODES,
) -> requests.Session:
    """Create session with retry on 500/502. Exponential backoff."""
    session = requests.Session()
    retry = Retry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=status_forcelist,
        allowed_methods=["GET", "POST"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def requests_session_without_retry() -> requests.Session:
    """Session that sends each request exactly once."""
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=Retry(total=0, connect=0, read=0, redirect=0, status=0, raise_on_status=False))
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def gateway_request(
    method: str,
    url: str,
    *,
    json: dict | None = None,
    headers: dict | None = None,
    timeout: int = 30,
    retry: bool = True,
) -> requests.Response:
    """
    Send one gateway request. Raises requests.RequestException on transport
    failure; callers convert it into a failed GatewayResponse.
    """
    session = requests_session_with_retry() if retry else requests_session_without_retry()
    try:
        return session.request(
            method=method,
            url=url,
            json=json,
            headers=headers,
            timeout=timeout,
            verify=True,
        )
    finally:
        session.close()


def worst_case_request_seconds(timeout: int, retry: bool) -> float:
    """
    Upper bound for one gateway_request: the timeout applies to connect and
    read separately, per transport attempt, plus the backoff sleeps between
    attempts.
    """
    if not retry:
        return 2 * timeout
    backoff = sum(
        min(Retry.DEFAULT_BACKOFF_MAX, BACKOFF_FACTOR * 2 ** n) for n in range(QUERY_RETRIES)
    )
    return (QUERY_RETRIES + 1) * 2 * timeout + backoff
