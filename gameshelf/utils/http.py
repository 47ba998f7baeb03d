"""
Shared aiohttp plumbing for the third-party API clients.

Every client issues a single attempt per call. Transport failures, timeouts
and unexpected status codes become ExternalServiceUnavailableError; a 404 is
reported as None so callers can tell "no such record" from "service down".
"""
import asyncio
import logging
import ssl
from typing import Any, Dict, Optional

import aiohttp
import certifi

from ..errors import ExternalServiceUnavailableError

logger = logging.getLogger(__name__)

# User-Agent to avoid being blocked by store APIs
USER_AGENT = 'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'

DEFAULT_TIMEOUT = 10


def create_session(timeout: float = DEFAULT_TIMEOUT) -> aiohttp.ClientSession:
    """Create a ClientSession that verifies TLS against certifi's CA bundle."""
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context)
    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout),
        headers={'User-Agent': USER_AGENT},
    )


async def request_json(
    session: aiohttp.ClientSession,
    service: str,
    method: str,
    url: str,
    **kwargs,
) -> Optional[Any]:
    """
    Perform one HTTP request and decode its JSON body.

    Args:
        session: Shared aiohttp session
        service: Service name used in logs and errors (e.g. 'ITAD')
        method: HTTP method
        url: Request URL
        **kwargs: Passed through to session.request (params, json, data, headers)

    Returns:
        Decoded JSON, or None when the service answered 404

    Raises:
        ExternalServiceUnavailableError: on transport errors, timeouts, non-JSON
            bodies and any non-2xx status other than 404
    """
    try:
        async with session.request(method, url, **kwargs) as resp:
            if resp.status == 404:
                logger.debug(f"[{service}] 404 for {url}")
                return None
            if resp.status >= 400:
                body = await resp.text()
                logger.warning(f"[{service}] HTTP {resp.status} for {url}: {body[:200]}")
                raise ExternalServiceUnavailableError(service, f"HTTP {resp.status}", status=resp.status)
            return await resp.json(content_type=None)
    except asyncio.TimeoutError as e:
        logger.warning(f"[{service}] Timeout for {url}")
        raise ExternalServiceUnavailableError(service, "request timed out") from e
    except aiohttp.ClientError as e:
        logger.warning(f"[{service}] Request error for {url}: {e}")
        raise ExternalServiceUnavailableError(service, str(e)) from e
    except ValueError as e:
        # Body was not JSON
        raise ExternalServiceUnavailableError(service, f"invalid JSON response: {e}") from e


async def request_text(
    session: aiohttp.ClientSession,
    service: str,
    method: str,
    url: str,
    **kwargs,
) -> str:
    """Perform one HTTP request and return its body as text (same error mapping as request_json)."""
    try:
        async with session.request(method, url, **kwargs) as resp:
            if resp.status >= 400:
                raise ExternalServiceUnavailableError(service, f"HTTP {resp.status}", status=resp.status)
            return await resp.text()
    except asyncio.TimeoutError as e:
        raise ExternalServiceUnavailableError(service, "request timed out") from e
    except aiohttp.ClientError as e:
        raise ExternalServiceUnavailableError(service, str(e)) from e


def json_headers(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    headers = {'Accept': 'application/json', 'Content-Type': 'application/json'}
    if extra:
        headers.update(extra)
    return headers
