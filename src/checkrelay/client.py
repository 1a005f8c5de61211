"""
Registry Client

Fetches the agent check listing from the registry and decodes it into a
check set. Makes exactly one attempt per call; retrying is left to the
caller (and in practice softened by the cache).
"""

import logging
import time
from typing import Dict, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from .checks import CheckRecord, CheckSet
from .config import ClientConfig
from .errors import RegistryUnavailableError, UnprocessableResponseError
from .metrics import CLIENT_IN_FLIGHT, record_client_request

logger = logging.getLogger(__name__)

# A registry with no checks may answer with a literal null
_CHECK_SET_ADAPTER = TypeAdapter(Optional[Dict[str, CheckRecord]])


def decode_check_set(body: bytes) -> Dict[str, CheckRecord]:
    """
    Decode a registry response body.

    Raises:
        UnprocessableResponseError: body is not JSON, or not a mapping of
            check id to check record
    """
    try:
        decoded = _CHECK_SET_ADAPTER.validate_json(body)
    except ValidationError as e:
        raise UnprocessableResponseError(_describe_validation_error(e)) from e
    return decoded or {}


def _describe_validation_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    if location:
        return f"Invalid registry response at {location}: {first['msg']}"
    return f"Invalid registry response: {first['msg']}"


class RegistryClient:
    """
    Async client for the registry check listing.

    Usage:
        client = RegistryClient(ClientConfig())
        checks = await client.fetch("http://localhost:8500/v1/agent/checks")
        await client.close()
    """

    def __init__(self, config: Optional[ClientConfig] = None):
        self.config = config or ClientConfig()
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the pooled HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.config.query_timeout,
                limits=httpx.Limits(
                    max_keepalive_connections=self.config.query_max_idle_connection_count,
                    keepalive_expiry=self.config.query_idle_connection_timeout,
                ),
            )
        return self._client

    async def fetch(self, url: str) -> CheckSet:
        """
        Fetch and decode the check listing at url.

        Raises:
            RegistryUnavailableError: transport failure or timeout
            UnprocessableResponseError: the body could not be decoded
        """
        client = self._get_client()
        start = time.perf_counter()
        CLIENT_IN_FLIGHT.inc()
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            record_client_request("GET", 0, time.perf_counter() - start)
            message = str(e) or type(e).__name__
            logger.warning("Registry request failed", extra={"url": url, "error": message})
            raise RegistryUnavailableError(message) from e
        finally:
            CLIENT_IN_FLIGHT.dec()

        record_client_request("GET", response.status_code, time.perf_counter() - start)
        logger.debug(
            "Registry responded",
            extra={"url": url, "status_code": response.status_code},
        )
        return decode_check_set(response.content)

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
