"""
fintrack entry point.

Prints a summary and the latest page of transactions from the backend,
falling back to the guest ledger's dashboard when the backend cannot be
reached.
"""

import asyncio
import sys
from datetime import date

from loguru import logger

from fintrack.api import TransactionService
from fintrack.guest import LocalLedger
from fintrack.services import ServiceError, close_api_client, describe_error, get_api_client
from fintrack.settings import global_settings


async def main() -> None:
    """Main function."""
    logger.remove()
    logger.add(sys.stderr, level=global_settings.log_level)

    logger.info(f"Connecting to {global_settings.api_url}...")
    service = TransactionService(get_api_client())

    try:
        if global_settings.feature_stats:
            summary = await service.get_statistics()
            logger.info(f"Summary: {summary}")

        page = await service.get_transactions({"limit": 5})
        for tx in page["data"]:
            logger.info(
                f"{tx.get('date')} {tx.get('type', ''):>7} {tx.get('amount', 0):>10} "
                f"{tx.get('category')} - {tx.get('description')}"
            )
        logger.info(f"Pagination: {page['pagination']}")

    except ServiceError as e:
        logger.error(describe_error(e)["user_message"])
        logger.info("Backend unavailable, showing guest dashboard")
        today = date.today()
        dashboard = LocalLedger().compute_dashboard(today.month, today.year)
        logger.info(f"Guest summary: {dashboard['summary']}")

    finally:
        logger.info(f"Client stats: {service.client.get_stats()}")
        await close_api_client()


if __name__ == "__main__":
    asyncio.run(main())
