import os
import sys

from loguru import logger

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)


def _is_balance_provenance(record: dict) -> bool:
    return record["message"].startswith("[BALANCE")


def setup_logger(*, json_logs: bool = False, level: str = "INFO", log_dir: str = "logs") -> None:
    """Configure loguru for the scanner.

    Console level comes from LOG_LEVEL (default ``level``). The daily file
    keeps DEBUG for post-mortems; a second file collects only the balance
    provenance lines so approximate records can be audited later.
    """
    console_level = os.getenv("LOG_LEVEL", level).upper()
    logger.remove()

    if json_logs:
        logger.add(sys.stdout, serialize=True, level=console_level)
    else:
        logger.add(sys.stdout, format=_CONSOLE_FORMAT, level=console_level, colorize=True)

    logger.add(
        f"{log_dir}/scanner_{{time:YYYY-MM-DD}}.log",
        rotation="50 MB",
        retention="3 days",
        compression="gz",
        level="DEBUG",
        serialize=json_logs,
    )
    logger.add(
        f"{log_dir}/balance_provenance.log",
        rotation="20 MB",
        retention="14 days",
        level="DEBUG",
        filter=_is_balance_provenance,
    )
