"""Store REST Admin API client.

WHAT:
    Wrapper for the storefront REST Admin API with:
    - Access-token authentication
    - Cursor-based pagination (Link header, page_info) with a page ceiling
    - Per-call timeout and bounded retries for transient failures
    - Error translation into a single StoreAPIError type

WHY:
    Encapsulates all upstream API interaction for the entity synchronizers.
    A fetch is all-or-nothing: any failure aborts the whole paginated call so
    callers never upsert a silently truncated page set.

REFERENCES:
    - REST pagination: https://shopify.dev/docs/api/usage/pagination-rest
    - Rate limits: https://shopify.dev/docs/api/usage/rate-limits
    - storesync/services/entity_sync.py (consumer)
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse, parse_qs

import httpx

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2023-10"
DEFAULT_PAGE_SIZE = 250
DEFAULT_MAX_PAGES = 10

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


class StoreAPIError(Exception):
    """Raised when a store API call fails after retries or with a non-retryable status."""

    def __init__(self, message: str, status_code: Optional[int] = None, endpoint: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


def normalize_store_domain(raw: str) -> str:
    """Reduce a configured store domain to a bare lower-cased host.

    "HTTPS://MyStore.myshopify.com/admin" -> "mystore.myshopify.com"
    """
    domain = _SCHEME_RE.sub("", (raw or "").strip())
    domain = domain.split("/", 1)[0]
    return domain.lower()


def _error_detail(response: httpx.Response) -> str:
    """Extract a readable error detail from an upstream error response.

    The API reports errors as {"errors": "..."}, {"errors": [...]} or
    {"errors": {"field": [...]}}; anything else falls back to the raw body.
    """
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase

    errors = payload.get("errors") if isinstance(payload, dict) else None
    if errors is None:
        return response.text.strip() or response.reason_phrase
    if isinstance(errors, list):
        return "; ".join(str(e) for e in errors)
    if isinstance(errors, dict):
        return "; ".join(f"{field}: {messages}" for field, messages in errors.items())
    return str(errors)


def _next_page_info(response: httpx.Response) -> Optional[str]:
    """Return the page_info cursor of the rel="next" link, if any."""
    next_link = response.links.get("next")
    if not next_link or not next_link.get("url"):
        return None

    query = parse_qs(urlparse(next_link["url"]).query)
    values = query.get("page_info")
    return values[0] if values else None


class StoreClient:
    """REST client for one tenant's store.

    Usage:
        client = StoreClient(store_domain="mystore.myshopify.com", access_token="shpat_xxx")
        customers = await client.get_customers()
    """

    def __init__(
        self,
        store_domain: str,
        access_token: str,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
        max_pages: int = DEFAULT_MAX_PAGES,
        page_size: int = DEFAULT_PAGE_SIZE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize store client.

        Args:
            store_domain: Store domain; scheme, path and case are normalized away
            access_token: Admin API access token
            api_version: API version segment of the base URL
            timeout: Per-request timeout in seconds
            max_retries: Attempts per page request for transient failures
            retry_backoff: Base delay in seconds between attempts (linear)
            max_pages: Page ceiling for paginated fetches
            page_size: Default page size for the first request
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.store_domain = normalize_store_domain(store_domain)
        self.access_token = access_token
        self.api_version = api_version
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_backoff = retry_backoff
        self.max_pages = max_pages
        self.page_size = page_size
        self._transport = transport
        self.base_url = f"https://{self.store_domain}/admin/api/{api_version}"

    @classmethod
    def for_tenant(cls, tenant, settings=None, **overrides) -> "StoreClient":
        """Build a client from a Tenant row and application settings."""
        if settings is None:
            from storesync.deps import get_settings
            settings = get_settings()

        options = {
            "api_version": settings.STORE_API_VERSION,
            "timeout": settings.STORE_API_TIMEOUT_SECONDS,
            "max_retries": settings.STORE_API_MAX_RETRIES,
            "retry_backoff": settings.STORE_API_RETRY_BACKOFF_SECONDS,
            "max_pages": settings.STORE_API_MAX_PAGES,
            "page_size": settings.STORE_API_PAGE_SIZE,
        }
        options.update(overrides)
        return cls(tenant.store_domain, tenant.access_token, **options)

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
        }

    async def _sleep_before_retry(self, attempt: int, delay: Optional[float] = None) -> None:
        if attempt >= self.max_retries - 1:
            return
        wait = delay if delay is not None else self.retry_backoff * (attempt + 1)
        if wait > 0:
            await asyncio.sleep(wait)

    async def _get(self, endpoint: str, params: Dict[str, Any]) -> httpx.Response:
        """GET one page with retry logic.

        Transport errors (including timeouts), 429 and 5xx are retried up to
        max_retries attempts. Any other non-2xx status fails immediately.

        Raises:
            StoreAPIError: If the request fails after all retries
        """
        url = f"{self.base_url}{endpoint}"
        last_error: Optional[str] = None
        last_status: Optional[int] = None

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.get(url, params=params, headers=self._headers)
            except httpx.RequestError as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    f"[STORE_CLIENT] Request error on {endpoint}: {last_error} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                await self._sleep_before_retry(attempt)
                continue

            if response.is_success:
                return response

            last_status = response.status_code
            last_error = f"HTTP {response.status_code}: {_error_detail(response)}"

            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                try:
                    delay = float(retry_after) if retry_after is not None else None
                except ValueError:
                    delay = None
                if delay is not None:
                    # Capped at one request timeout
                    delay = min(max(delay, 0.0), self.timeout)
                logger.warning(
                    f"[STORE_CLIENT] Rate limited on {endpoint} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                await self._sleep_before_retry(attempt, delay)
                continue

            if response.status_code >= 500:
                logger.warning(
                    f"[STORE_CLIENT] Server error on {endpoint}: {last_error} "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                await self._sleep_before_retry(attempt)
                continue

            raise StoreAPIError(
                f"Failed to fetch {endpoint}: {last_error}",
                status_code=response.status_code,
                endpoint=endpoint,
            )

        raise StoreAPIError(
            f"Failed to fetch {endpoint} after {self.max_retries} attempts: {last_error}",
            status_code=last_status,
            endpoint=endpoint,
        )

    async def _get_json(self, endpoint: str, params: Dict[str, Any]) -> tuple[Dict[str, Any], httpx.Response]:
        response = await self._get(endpoint, params)
        try:
            payload = response.json()
        except ValueError as e:
            raise StoreAPIError(
                f"Failed to fetch {endpoint}: invalid JSON response ({e})",
                status_code=response.status_code,
                endpoint=endpoint,
            ) from e
        if not isinstance(payload, dict):
            raise StoreAPIError(
                f"Failed to fetch {endpoint}: unexpected response body",
                status_code=response.status_code,
                endpoint=endpoint,
            )
        return payload, response

    # =========================================================================
    # PAGINATION
    # =========================================================================

    async def fetch_paginated(
        self,
        endpoint: str,
        key: str,
        limit: Optional[int] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch every page of a collection endpoint.

        WHAT: Follow rel="next" cursors until exhausted or max_pages reached
        WHY: Entity synchronizers need the full record set before upserting

        The first request carries `limit` plus any filters; every later
        request carries only the `page_info` cursor, since the API rejects
        filters alongside a cursor.

        Args:
            endpoint: Path such as "/customers.json"
            key: Top-level JSON key holding the records
            limit: Page size for the first request
            params: Extra filters for the first request

        Returns:
            Records from all fetched pages, in page order

        Raises:
            StoreAPIError: If any page fails; no partial result is returned
        """
        request_params: Dict[str, Any] = {"limit": limit or self.page_size, **(params or {})}
        items: List[Dict[str, Any]] = []
        pages = 0
        cursor: Optional[str] = None

        while pages < self.max_pages:
            payload, response = await self._get_json(endpoint, request_params)
            pages += 1

            records = payload.get(key)
            if isinstance(records, list):
                items.extend(records)

            cursor = _next_page_info(response)
            if not cursor:
                break
            request_params = {"page_info": cursor}

        if cursor:
            logger.warning(
                f"[STORE_CLIENT] {self.store_domain}{endpoint}: stopped at page ceiling "
                f"({self.max_pages} pages, {len(items)} records); remaining pages not fetched"
            )

        logger.info(f"[STORE_CLIENT] Fetched {len(items)} {key} from {self.store_domain} in {pages} page(s)")
        return items

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    async def get_customers(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return await self.fetch_paginated("/customers.json", "customers", params=params)

    async def get_orders(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Fetch orders in every status (open, closed, cancelled)."""
        return await self.fetch_paginated("/orders.json", "orders", params={"status": "any", **(params or {})})

    async def get_products(self, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return await self.fetch_paginated("/products.json", "products", params=params)

    async def get_shop(self) -> Dict[str, Any]:
        """Fetch shop metadata; used to verify a tenant's credentials."""
        payload, _ = await self._get_json("/shop.json", {})
        shop = payload.get("shop") or {}
        return {
            "id": shop.get("id"),
            "name": shop.get("name"),
            "domain": shop.get("domain"),
            "email": shop.get("email"),
            "currency": shop.get("currency", "USD"),
            "timezone": shop.get("iana_timezone"),
            "plan_name": shop.get("plan_name"),
        }
