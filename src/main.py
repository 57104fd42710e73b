"""Entry point for the launch scanner: python -m src.main"""

import asyncio
import signal

from loguru import logger

from config.settings import Settings, settings
from src.db.database import async_session_factory, init_db
from src.parsers.address_registry import AddressRegistry
from src.parsers.backfill import HistoricalBacklogProcessor
from src.parsers.evm.balance import EvmBalanceResolver
from src.parsers.evm.event_source import EvmLaunchSource
from src.parsers.evm.rpc_client import EvmRpcClient
from src.parsers.evm.transfers import EvmTransferScanner
from src.parsers.models import Chain
from src.parsers.movement_classifier import TokenMovementClassifier
from src.parsers.pipeline import ChainAdapter, LaunchPipeline
from src.parsers.publisher import SqlLaunchPublisher
from src.parsers.rate_limiter import RateLimitedRpcClient, RetryPolicy
from src.parsers.solana.balance import SolanaBalanceResolver
from src.parsers.solana.decoder import InstructionDecoder
from src.parsers.solana.event_source import SolanaLaunchSource
from src.parsers.solana.rpc_client import SolanaRpcClient
from src.parsers.solana.transfers import SolanaTransferScanner
from src.parsers.virtuals.client import VirtualsApiClient
from src.parsers.virtuals.poller import VirtualsLaunchPoller
from src.parsers.worker import ChainRunner, stats_refresh_loop, virtuals_poll_loop
from src.utils.logger import setup_logger


def _limiter(cfg: Settings, name: str) -> RateLimitedRpcClient:
    policy = RetryPolicy(
        max_retries=cfg.rpc_retry_max_retries,
        initial_delay=cfg.rpc_retry_initial_delay_sec,
        backoff_factor=cfg.rpc_retry_backoff_factor,
        max_delay=cfg.rpc_retry_max_delay_sec,
    )
    return RateLimitedRpcClient(cfg.rpc_max_rps, cfg.rpc_min_delay_sec, policy, name=name)


async def main() -> None:
    setup_logger(level="INFO")
    logger.info("Starting launch scanner...")
    await init_db()

    reconnect = {
        "reconnect_base_delay": settings.reconnect_base_delay_sec,
        "reconnect_max_delay": settings.reconnect_max_delay_sec,
    }
    registry = AddressRegistry.with_defaults()
    publisher = SqlLaunchPublisher(async_session_factory)
    classifier = TokenMovementClassifier(registry, top_n=settings.movement_top_n)
    virtuals = VirtualsApiClient() if settings.enable_virtuals_api else None

    adapters: dict[Chain, ChainAdapter] = {}
    sources: list[tuple[SolanaLaunchSource | EvmLaunchSource, int | None, int | None]] = []
    closers = []

    if settings.enable_solana:
        svm_rpc = SolanaRpcClient(
            settings.effective_solana_rpc_url,
            _limiter(settings, "SVM"),
            commitment=settings.solana_commitment,
            timeout=settings.rpc_timeout_sec,
        )
        closers.append(svm_rpc.close)
        adapters[Chain.SOLANA] = ChainAdapter(
            Chain.SOLANA,
            SolanaBalanceResolver(svm_rpc),
            SolanaTransferScanner(svm_rpc, history_limit=settings.movement_history_limit),
        )
        svm_source = SolanaLaunchSource(
            svm_rpc,
            InstructionDecoder.from_idl(),
            program_id=settings.virtuals_solana_program_id,
            ws_url=settings.effective_solana_ws_url,
            commitment=settings.solana_commitment,
            reconnect=reconnect,
        )
        sources.append(
            (svm_source, settings.backfill_solana_from_slot, settings.backfill_solana_to_slot)
        )

    if settings.enable_base:
        evm_rpc = EvmRpcClient(
            settings.base_rpc_url, _limiter(settings, "EVM"), timeout=settings.rpc_timeout_sec
        )
        closers.append(evm_rpc.close)
        adapters[Chain.BASE] = ChainAdapter(
            Chain.BASE,
            EvmBalanceResolver(evm_rpc),
            EvmTransferScanner(evm_rpc, block_window=settings.backfill_block_window),
        )
        evm_source = EvmLaunchSource(
            evm_rpc,
            factory_address=settings.virtuals_base_factory_address,
            ws_url=settings.effective_base_ws_url,
            reconnect=reconnect,
        )
        sources.append(
            (evm_source, settings.backfill_base_from_block, settings.backfill_base_to_block)
        )

    if not sources:
        logger.error("Both chains disabled (ENABLE_SOLANA / ENABLE_BASE), nothing to do")
        return

    pipeline = LaunchPipeline(
        publisher=publisher,
        registry=registry,
        classifier=classifier,
        adapters=adapters,
        virtuals=virtuals,
    )
    runners = []
    for source, start, end in sources:
        backfill = HistoricalBacklogProcessor(
            source,
            pipeline,
            publisher,
            page_size=(
                settings.backfill_block_window
                if source.chain is Chain.BASE
                else settings.backfill_page_size
            ),
            page_delay=settings.backfill_page_delay_sec,
            item_delay=settings.backfill_item_delay_sec,
        )
        runners.append(
            ChainRunner(
                source,
                pipeline,
                backfill=backfill,
                backfill_start=start,
                backfill_end=end,
                backfill_overwrite=settings.backfill_overwrite,
            )
        )

    # Graceful shutdown on SIGINT/SIGTERM
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received")
        shutdown_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    runner_tasks = [asyncio.create_task(runner.run(), name=runner.name) for runner in runners]
    background = []
    if settings.stats_refresh_interval_sec > 0:
        background.append(
            asyncio.create_task(stats_refresh_loop(pipeline, settings.stats_refresh_interval_sec))
        )
    if virtuals is not None and settings.virtuals_poll_interval_sec > 0:
        poller = VirtualsLaunchPoller(
            virtuals, publisher, pipeline, {source.chain: source for source, _, _ in sources}
        )
        background.append(
            asyncio.create_task(virtuals_poll_loop(poller, settings.virtuals_poll_interval_sec))
        )

    # Wait for a runner to die or a shutdown signal
    done, pending = await asyncio.wait(
        [*runner_tasks, asyncio.create_task(shutdown_event.wait())],
        return_when=asyncio.FIRST_COMPLETED,
    )
    for task in done:
        if task in runner_tasks and task.exception() is not None:
            logger.opt(exception=task.exception()).error(f"Runner {task.get_name()} crashed")

    for runner in runners:
        await runner.stop()
    for task in [*pending, *background]:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    if virtuals is not None:
        await virtuals.close()
    for close in closers:
        await close()
    logger.info("Shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
