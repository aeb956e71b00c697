"""Remove properties left in ``sold`` state. Suitable for a cron job."""

import argparse
import asyncio
import logging
import os
import sys

from db import close_db, init_db, session_scope
from services.media_store import CloudinaryMediaStore
from services.sale_log import SaleLog
from services.sold_properties import SoldPropertyWorkflow


async def run_cleanup(sale_log_path: str | None = None) -> int:
    logger = logging.getLogger(__name__)
    await init_db()
    media_store = CloudinaryMediaStore()
    await media_store.start()
    try:
        with SaleLog(sale_log_path) as sale_log:
            async with session_scope() as session:
                workflow = SoldPropertyWorkflow(
                    session=session,
                    media_store=media_store,
                    sale_log=sale_log,
                )
                result = await workflow.cleanup_sold()
    finally:
        await media_store.stop()
        await close_db()

    logger.info("%s", result.message)
    for error in result.errors:
        logger.warning("  - %s (%s): %s", error.id, error.title, error.error)
    return 1 if result.errors else 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Remove sold properties and their images")
    parser.add_argument(
        "--sale-log",
        default=None,
        help="Path of the sale log (defaults to SALE_LOG_PATH)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    try:
        return asyncio.run(run_cleanup(args.sale_log))
    except Exception:
        logging.getLogger(__name__).exception("Sold property cleanup failed")
        return 1


if __name__ == "__main__":
    sys.exit(main())
