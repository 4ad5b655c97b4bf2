"""Worker process for scheduled balance jobs.

Runs an asyncio loop that recomputes leave accrual for every user once a day
and resets entitlements once per calendar year. The last reset year is kept
in the store, so a reset missed on January 1st runs on the next pass.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, time, timedelta
from typing import TYPE_CHECKING

from staffdesk.config import get_settings
from staffdesk.db import open_store
from staffdesk.services.balance import last_yearly_reset, recalculate_all, record_yearly_reset, reset_yearly_balances
from staffdesk.services.clock import get_clock

if TYPE_CHECKING:
    from staffdesk.schemas.balance import AccrualRunResponse, YearlyResetResponse
    from staffdesk.services.clock import Clock
    from staffdesk.services.store import DocumentStore

logger = logging.getLogger(__name__)


def is_new_year(clock: Clock) -> bool:
    today = clock.today()
    return today.month == 1 and today.day == 1


async def yearly_reset_due(store: DocumentStore, clock: Clock) -> bool:
    """True when no reset has run yet this calendar year.

    Before the first recorded reset only January 1st counts: balances granted
    at registration already cover the current year.
    """
    last_year = await last_yearly_reset(store)
    if last_year is None:
        return is_new_year(clock)
    return last_year < clock.today().year


def seconds_until_next_run(clock: Clock, interval_seconds: int) -> float:
    """Sleep for the interval, but wake up at the next midnight if that comes first."""
    now = clock.now()
    next_midnight = datetime.combine(now.date() + timedelta(days=1), time(), tzinfo=now.tzinfo)
    return max(1.0, min(float(interval_seconds), (next_midnight - now).total_seconds()))


async def run_daily_jobs(
    store: DocumentStore,
    clock: Clock,
) -> tuple[YearlyResetResponse | None, AccrualRunResponse]:
    """One pass of the scheduled jobs: yearly reset when due, then accrual."""
    reset_result = None
    if await yearly_reset_due(store, clock):
        reset_result = await reset_yearly_balances(store, clock)
    elif await last_yearly_reset(store) is None:
        await record_yearly_reset(store, clock, clock.today().year)
    accrual_result = await recalculate_all(store, clock)
    return reset_result, accrual_result


async def run_balance_loop() -> None:
    """Main worker loop."""
    settings = get_settings()
    clock = get_clock()
    logger.info("Balance worker started (interval=%ds)", settings.worker_interval_seconds)

    while True:
        today = clock.today()
        logger.info("Running balance jobs for %s", today)
        try:
            async with open_store() as store:
                reset_result, accrual_result = await run_daily_jobs(store, clock)
            if reset_result is not None:
                logger.info(
                    "Yearly reset for %d: processed=%d errors=%d",
                    reset_result.year,
                    reset_result.processed,
                    reset_result.errors,
                )
            logger.info(
                "Accrual run complete for %s: processed=%d updated=%d skipped=%d errors=%d",
                today,
                accrual_result.processed,
                accrual_result.updated,
                accrual_result.skipped,
                accrual_result.errors,
            )
        except Exception:
            logger.exception("Balance jobs failed for %s", today)

        await asyncio.sleep(seconds_until_next_run(clock, settings.worker_interval_seconds))


def main() -> None:
    """Entry point for the worker process."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    asyncio.run(run_balance_loop())


if __name__ == "__main__":
    main()
