"""Delete job state from the store, optionally including the dedup ledger.

Usage:
    poetry run python -m pagewatch.cli.reset_state [--full]
"""

import argparse
import asyncio

from pagewatch.jobs.job_repo import JobRepository
from pagewatch.jobs.ledger import DedupLedger
from pagewatch.kv import create_kv_store
from pagewatch.main.config import get_settings
from pagewatch.main.logging import get_logger

logger = get_logger(__name__)


async def reset_state(full: bool = False) -> int:
    settings = get_settings()
    kv = create_kv_store(settings)

    try:
        deleted = await JobRepository(kv, settings.job_ttl_seconds).delete_all_jobs()
        logger.info(f"Deleted {deleted} job keys")

        if full:
            await DedupLedger(kv).clear()
            logger.info("Cleared seen items and last run timestamp")
    finally:
        await kv.close()

    return deleted


def main():
    """Entry point for CLI script."""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--full",
        action="store_true",
        help="also clear the dedup ledger, so every recent item is reported again",
    )
    args = parser.parse_args()

    try:
        asyncio.run(reset_state(full=args.full))
    except KeyboardInterrupt:
        logger.info("Reset interrupted by user")
    except Exception as e:
        logger.error(f"Reset failed: {e}")
        exit(1)


if __name__ == "__main__":
    main()
