"""360Giving API client - GET /org/ endpoints.

API Docs: https://api.threesixtygiving.org/api/v1/swagger-ui/

Every request goes through the shared RateLimiter. The client never retries;
callers decide what a failure means for their batch.
"""

import logging
import time
from typing import Any, AsyncIterator, Dict, List, Optional, Type, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from ..errors import NotFound, RemoteAPIError
from ..models import GrantPage, OrganisationDetail, OrganisationPage
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.threesixtygiving.org/api/v1"

# Standard timeout: 30s connect, 60s read
API_TIMEOUT = httpx.Timeout(connect=30.0, read=60.0, write=30.0, pool=30.0)

ORGANISATION_PAGE_SIZE = 1000
GRANT_PAGE_SIZE = 100

PageT = TypeVar("PageT", bound=BaseModel)


class ThreeSixtyGivingClient:
    """Typed, rate-limited accessors for the 360Giving organisation API.

    Construct one per process and share it (and its RateLimiter) between
    callers so the 2 req/s limit holds globally.
    """

    source_name = "360giving"

    def __init__(
        self,
        rate_limiter: RateLimiter,
        base_url: str = DEFAULT_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._limiter = rate_limiter
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=API_TIMEOUT,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "ThreeSixtyGivingClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Atomic operations
    # ------------------------------------------------------------------

    async def list_organisations(
        self, limit: int = ORGANISATION_PAGE_SIZE, offset: int = 0
    ) -> OrganisationPage:
        """One page of raw ``{org_id, name}`` entries plus count and next-page cursor."""
        return await self._get("/org/", OrganisationPage, {"limit": limit, "offset": offset})

    async def get_organisation_detail(self, org_id: str) -> OrganisationDetail:
        """Funder/recipient stats for ``org_id``; raises NotFound on 404."""
        return await self._get(f"/org/{_quote(org_id)}/", OrganisationDetail)

    async def list_grants_made(
        self, org_id: str, limit: int = GRANT_PAGE_SIZE, offset: int = 0
    ) -> GrantPage:
        return await self._get(
            f"/org/{_quote(org_id)}/grants_made/", GrantPage, {"limit": limit, "offset": offset}
        )

    async def list_grants_received(
        self, org_id: str, limit: int = GRANT_PAGE_SIZE, offset: int = 0
    ) -> GrantPage:
        return await self._get(
            f"/org/{_quote(org_id)}/grants_received/", GrantPage, {"limit": limit, "offset": offset}
        )

    # ------------------------------------------------------------------
    # Lazy page sequences
    # ------------------------------------------------------------------

    async def iter_organisations(
        self, page_size: int = ORGANISATION_PAGE_SIZE
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        """Yield every page of raw organisation entries until the cursor runs out."""
        offset = 0
        while True:
            page = await self.list_organisations(page_size, offset)
            yield page.results
            if not page.has_next:
                return
            offset += page_size

    async def iter_grants_made(
        self, org_id: str, page_size: int = GRANT_PAGE_SIZE
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        offset = 0
        while True:
            page = await self.list_grants_made(org_id, page_size, offset)
            yield page.results
            if not page.has_next:
                return
            offset += page_size

    async def iter_grants_received(
        self, org_id: str, page_size: int = GRANT_PAGE_SIZE
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        offset = 0
        while True:
            page = await self.list_grants_received(org_id, page_size, offset)
            yield page.results
            if not page.has_next:
                return
            offset += page_size

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _get(
        self, path: str, model: Type[PageT], params: Optional[Dict[str, Any]] = None
    ) -> PageT:
        data = await self._limiter.submit(lambda: self._request(path, params))
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.error(f"[{self.source_name}] path={path} malformed payload: {exc}")
            raise RemoteAPIError(200, f"Malformed 360Giving payload for {path}") from exc

    async def _request(self, path: str, params: Optional[Dict[str, Any]]) -> Any:
        url = f"{self.base_url}{path}"
        start = time.monotonic()
        try:
            response = await self._http.get(path, params=params)
        except httpx.HTTPError as exc:
            duration = time.monotonic() - start
            logger.error(
                f"[{self.source_name}] url={url} status=unreachable "
                f"duration={duration:.2f}s result=failure error='{exc}'"
            )
            raise RemoteAPIError(None, f"360Giving API unreachable: {exc}") from exc

        duration = time.monotonic() - start
        status_code = response.status_code
        if response.is_success:
            logger.info(
                f"[{self.source_name}] url={url} status={status_code} "
                f"duration={duration:.2f}s result=success"
            )
            try:
                return response.json()
            except ValueError as exc:
                raise RemoteAPIError(status_code, f"Invalid JSON from {path}") from exc

        logger.warning(
            f"[{self.source_name}] url={url} status={status_code} "
            f"duration={duration:.2f}s result=failure"
        )
        if status_code == 404:
            raise NotFound()
        raise RemoteAPIError(status_code)


def _quote(org_id: str) -> str:
    return quote(org_id, safe="")
