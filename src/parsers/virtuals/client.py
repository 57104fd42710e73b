"""Best-effort client for the public Virtuals API: prototype metadata and launch listings."""

import httpx
from loguru import logger
from pydantic import ValidationError

from src.parsers.rate_limiter import RateLimiter
from src.parsers.virtuals.models import VirtualsPrototype

BASE_URL = "https://api.virtuals.io"

# filters[status] value the app uses for its "new launches" listing
NEW_LAUNCH_STATUS = 3
DETAIL_POPULATE = ("image", "tokenomics", "creator.userSocials", "socials")


class VirtualsApiClient:
    """Async REST client for the public Virtuals API (no auth required)."""

    def __init__(self, rate_limiter: RateLimiter | None = None, max_rps: float = 2.0) -> None:
        self._client = httpx.AsyncClient(
            base_url=BASE_URL,
            timeout=10.0,
            headers={"Accept": "application/json"},
        )
        self._rate_limiter = rate_limiter or RateLimiter(max_rps)

    async def _get_data(self, path: str, params: dict, what: str):
        await self._rate_limiter.acquire()
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json().get("data")
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"[VIRTUALS] {what} failed: {e}")
            return None

    async def get_prototype(self, token_address: str) -> VirtualsPrototype | None:
        """Prototype entry whose pre-token is ``token_address``; None if absent or on any error."""
        params = {
            "filters[preToken]": token_address,
            "pagination[page]": 1,
            "pagination[pageSize]": 1,
        }
        data = await self._get_data("/api/virtuals", params, f"Lookup for {token_address}")
        if not data:
            logger.debug(f"[VIRTUALS] No prototype for {token_address}")
            return None
        try:
            return VirtualsPrototype.model_validate(data[0])
        except ValidationError as e:
            logger.debug(f"[VIRTUALS] Unexpected payload for {token_address}: {e}")
            return None

    async def list_launches(
        self, *, page: int = 1, page_size: int = 20, status: int = NEW_LAUNCH_STATUS
    ) -> list[VirtualsPrototype]:
        """Newest launches first. Entries that do not parse are dropped."""
        params = {
            "filters[status]": status,
            "sort[0]": "createdAt:desc",
            "populate[0]": "image",
            "pagination[page]": page,
            "pagination[pageSize]": page_size,
            "isGrouped": 1,
        }
        data = await self._get_data("/api/virtuals", params, "Launch listing")
        launches: list[VirtualsPrototype] = []
        for entry in data or []:
            try:
                launches.append(VirtualsPrototype.model_validate(entry))
            except ValidationError as e:
                logger.debug(f"[VIRTUALS] Skipping unparseable listing entry: {e}")
        return launches

    async def get_launch_detail(self, virtual_id: int) -> VirtualsPrototype | None:
        params = {f"populate[{i}]": field for i, field in enumerate(DETAIL_POPULATE)}
        data = await self._get_data(f"/api/virtuals/{virtual_id}", params, f"Detail for {virtual_id}")
        if not data:
            return None
        try:
            return VirtualsPrototype.model_validate(data)
        except ValidationError as e:
            logger.debug(f"[VIRTUALS] Unexpected detail payload for {virtual_id}: {e}")
            return None

    async def close(self) -> None:
        await self._client.aclose()
