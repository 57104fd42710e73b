"""Periodic sweep of the Virtuals API launch listing.

The chain listeners are the primary source. The sweep catches launches they
missed (listener down, backfill not configured) by locating each listed
token's launch transaction on chain and running it through the normal
pipeline, so API-found launches get the same on-chain figures.
"""

from datetime import datetime
from typing import Protocol

from loguru import logger

from src.parsers.exceptions import RpcError
from src.parsers.models import Chain, LaunchEvent
from src.parsers.pipeline import LaunchPipeline
from src.parsers.publisher import LaunchPublisher, UpsertResult
from src.parsers.virtuals.client import VirtualsApiClient
from src.parsers.virtuals.models import VirtualsPrototype


class LaunchLocator(Protocol):
    chain: Chain

    async def event_for_token(
        self, token: str, launched_at: datetime | None = None
    ) -> LaunchEvent | None: ...


class VirtualsLaunchPoller:
    def __init__(
        self,
        client: VirtualsApiClient,
        publisher: LaunchPublisher,
        pipeline: LaunchPipeline,
        locators: dict[Chain, LaunchLocator],
        *,
        page_size: int = 20,
    ) -> None:
        self._client = client
        self._publisher = publisher
        self._pipeline = pipeline
        self._locators = locators
        self._page_size = page_size
        self._known: set[int] = set()

    async def _is_known(self, launch: VirtualsPrototype) -> bool:
        if launch.id in self._known:
            return True
        if await self._publisher.exists_launchpad_id(str(launch.id)):
            self._known.add(launch.id)
            return True
        return False

    async def poll_once(self) -> dict[str, int]:
        counts = {"new": 0, "known": 0, "pending": 0, "failed": 0}
        launches = await self._client.list_launches(page_size=self._page_size)
        if not launches:
            logger.debug("[VIRTUALS] Listing returned no launches")
            return counts

        for launch in launches:
            if await self._is_known(launch):
                counts["known"] += 1
                continue
            try:
                result = await self.process_launch(launch.id)
            except RpcError as e:
                counts["failed"] += 1
                logger.warning(f"[VIRTUALS] launch {launch.id} failed: {e}")
                continue
            except Exception as e:
                counts["failed"] += 1
                logger.opt(exception=True).error(
                    f"[VIRTUALS] launch {launch.id} unexpected error: {type(e).__name__}: {e}"
                )
                continue
            if result is None:
                counts["pending"] += 1
            elif result is UpsertResult.INSERTED:
                counts["new"] += 1
            else:
                counts["known"] += 1

        logger.info(
            f"[VIRTUALS] sweep: {counts['new']} new, {counts['known']} known, "
            f"{counts['pending']} pending, {counts['failed']} failed"
        )
        return counts

    async def process_launch(self, virtual_id: int, overwrite: bool = False) -> UpsertResult | None:
        """Fetch one listed launch and run it through the pipeline.

        Returns None while the launch cannot be processed yet (no token, chain not
        followed, launch transaction not found); it is retried on the next sweep.
        """
        detail = await self._client.get_launch_detail(virtual_id)
        if detail is None:
            logger.debug(f"[VIRTUALS] No detail for launch {virtual_id}")
            return None

        token = detail.pre_token
        chain = detail.launch_chain
        if not token:
            logger.debug(f"[VIRTUALS] {detail.name} ({virtual_id}) has no token yet ({detail.status})")
            return None
        locator = self._locators.get(chain) if chain else None
        if locator is None:
            logger.debug(f"[VIRTUALS] {detail.name} ({virtual_id}) on unfollowed chain {detail.chain}")
            return None

        if not overwrite and await self._publisher.exists(token):
            self._known.add(virtual_id)
            return UpsertResult.SKIPPED

        event = await locator.event_for_token(token, detail.created_at)
        if event is None:
            logger.info(f"[VIRTUALS] Launch tx of {detail.name} ({token}) not found on {chain.value}")
            return None

        result = await self._pipeline.process(event, overwrite)
        self._known.add(virtual_id)
        logger.info(f"[VIRTUALS] {detail.name} ({virtual_id}) from API listing: {result.value}")
        return result
