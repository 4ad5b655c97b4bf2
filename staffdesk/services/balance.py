from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from staffdesk.config import get_settings
from staffdesk.exceptions import AppError, GuardViolation, NotFoundError
from staffdesk.models.enums import Collection, Role
from staffdesk.schemas.balance import AccrualRunResponse, BalanceResponse, LeaveBalance, YearlyResetResponse
from staffdesk.schemas.user import UserProfile
from staffdesk.services.dates import accrual_from_elapsed_days, prorated_annual_entitlement

if TYPE_CHECKING:
    from datetime import date

    from staffdesk.config import Settings
    from staffdesk.schemas.auth import Actor
    from staffdesk.services.clock import Clock
    from staffdesk.services.dates import AccrualSplit
    from staffdesk.services.store import DocumentStore

logger = logging.getLogger(__name__)

_BALANCE_VIEWERS = frozenset({Role.ADMIN, Role.HR})

# Document in the jobRuns collection recording the last yearly reset.
YEARLY_RESET_JOB = "yearlyReset"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _annual_entitlement(hire_date: date | None, today: date, settings: Settings) -> int:
    if hire_date is None:
        return settings.annual_entitlement_days
    return prorated_annual_entitlement(hire_date, today, settings.annual_entitlement_days)


def build_balance_response(user_id: str, balance: LeaveBalance) -> BalanceResponse:
    """Map a stored balance to its response schema."""
    return BalanceResponse(
        user_id=user_id,
        annual=balance.annual,
        sick=balance.sick,
        maternity=balance.maternity,
        unpaid=balance.unpaid,
        personal=balance.personal,
        total_days_accounted=balance.total_days_accounted,
        last_updated=balance.last_updated,
    )


async def _load_user(store: DocumentStore, user_id: str) -> UserProfile | None:
    record = await store.get(Collection.USERS, user_id)
    return UserProfile.from_record(record) if record is not None else None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def initial_balance(hire_date: date | None, clock: Clock, settings: Settings | None = None) -> LeaveBalance:
    """Balance given to a newly registered user."""
    settings = settings or get_settings()
    now = clock.now()
    return LeaveBalance(
        annual=_annual_entitlement(hire_date, clock.today(), settings),
        sick=settings.default_sick_days,
        maternity=settings.default_maternity_days,
        unpaid=settings.default_unpaid_days,
        personal=0,
        total_days_accounted=0,
        last_updated=now,
    )


async def get_balance(store: DocumentStore, user_id: str) -> LeaveBalance | None:
    """Read the stored balance as-is. Returns None if the user has none yet."""
    record = await store.get(Collection.LEAVE_BALANCE, user_id)
    return LeaveBalance.from_record(record) if record is not None else None


async def ensure_balance(
    store: DocumentStore,
    user_id: str,
    hire_date: date | None,
    clock: Clock,
) -> LeaveBalance:
    """Return the user's balance, creating the initial one if absent."""
    existing = await get_balance(store, user_id)
    if existing is not None:
        return existing

    balance = initial_balance(hire_date, clock)
    record = await store.put(Collection.LEAVE_BALANCE, user_id, balance.to_record())
    logger.info("Created initial leave balance for user %s (annual=%d)", user_id, balance.annual)
    return LeaveBalance.from_record(record)


async def recalculate_accrual(store: DocumentStore, user_id: str, clock: Clock) -> AccrualSplit | None:
    """Overwrite annual, sick and personal from days elapsed since hire.

    Only applies when more days have elapsed than the balance has already
    accounted for, so totalDaysAccounted never decreases. The write is
    conditional on the value read, so two concurrent runs cannot both apply.
    Returns the split that was written, or None when nothing changed.
    """
    user = await _load_user(store, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    if user.hire_date is None:
        logger.debug("Skipping accrual for user %s: no hire date", user_id)
        return None

    balance = await get_balance(store, user_id)
    if balance is None:
        raise NotFoundError(f"Leave balance for user {user_id} not found")

    now = clock.now()
    split = accrual_from_elapsed_days(user.hire_date, now)
    if split.days_since_hire <= balance.total_days_accounted:
        return None

    await store.update(
        Collection.LEAVE_BALANCE,
        user_id,
        {
            "annual": split.annual,
            "sick": split.sick,
            "personal": split.personal,
            "totalDaysAccounted": split.days_since_hire,
            "lastAutoUpdate": now,
            "lastUpdated": now,
        },
        expected={"totalDaysAccounted": balance.total_days_accounted},
    )
    logger.info(
        "Accrued leave for user %s: %d days since hire, %d earned (annual=%d sick=%d personal=%d)",
        user_id,
        split.days_since_hire,
        split.leave_days_earned,
        split.annual,
        split.sick,
        split.personal,
    )
    return split


async def get_current_balance(store: DocumentStore, user_id: str, clock: Clock) -> BalanceResponse:
    """Best-effort accrual refresh followed by a read.

    A failed refresh is logged and the stored balance is returned unchanged.
    A user without a balance record reads as all zeros.
    """
    try:
        await recalculate_accrual(store, user_id, clock)
    except AppError as exc:
        logger.warning("Accrual refresh failed for user %s: %s", user_id, exc.message)

    balance = await get_balance(store, user_id)
    return build_balance_response(user_id, balance or LeaveBalance())


async def recalculate_all(store: DocumentStore, clock: Clock) -> AccrualRunResponse:
    """Run :func:`recalculate_accrual` for every user.

    A failure for one user is logged and does not stop the run.
    """
    records = await store.query(Collection.USERS)
    updated = skipped = errors = 0
    for record in records:
        user_id = record["id"]
        try:
            split = await recalculate_accrual(store, user_id, clock)
        except AppError:
            logger.exception("Accrual recompute failed for user %s", user_id)
            errors += 1
            continue
        if split is None:
            skipped += 1
        else:
            updated += 1

    logger.info(
        "Accrual run complete: %d users, %d updated, %d skipped, %d errors",
        len(records),
        updated,
        skipped,
        errors,
    )
    return AccrualRunResponse(processed=len(records), updated=updated, skipped=skipped, errors=errors)


async def last_yearly_reset(store: DocumentStore) -> int | None:
    """Year of the most recent yearly reset, or None before the first one is recorded."""
    record = await store.get(Collection.JOB_RUNS, YEARLY_RESET_JOB)
    return record.get("year") if record is not None else None


async def record_yearly_reset(store: DocumentStore, clock: Clock, year: int) -> None:
    await store.put(Collection.JOB_RUNS, YEARLY_RESET_JOB, {"year": year, "at": clock.now()})


async def reset_yearly_balances(store: DocumentStore, clock: Clock) -> YearlyResetResponse:
    """Restore every user's entitlements for the new year.

    Annual leave is reset to the full or prorated entitlement, the fixed
    buckets to their defaults and personal to zero. totalDaysAccounted is
    left untouched so the accrual guard stays monotonic across the reset.
    """
    settings = get_settings()
    today = clock.today()
    now = clock.now()
    records = await store.query(Collection.USERS)
    errors = 0
    for record in records:
        user = UserProfile.from_record(record)
        user_id = record["id"]
        try:
            await store.put(
                Collection.LEAVE_BALANCE,
                user_id,
                {
                    "annual": _annual_entitlement(user.hire_date, today, settings),
                    "sick": settings.default_sick_days,
                    "maternity": settings.default_maternity_days,
                    "unpaid": settings.default_unpaid_days,
                    "personal": 0,
                    "lastUpdated": now,
                },
                merge=True,
            )
        except AppError:
            logger.exception("Yearly reset failed for user %s", user_id)
            errors += 1

    await record_yearly_reset(store, clock, today.year)

    logger.info("Yearly reset for %d complete: %d users, %d errors", today.year, len(records), errors)
    return YearlyResetResponse(year=today.year, processed=len(records), errors=errors)


async def get_user_balance(store: DocumentStore, clock: Clock, actor: Actor, user_id: str) -> BalanceResponse:
    """Balance of another user: admin and HR see everyone, managers their department."""
    if actor.id != user_id and actor.role not in _BALANCE_VIEWERS:
        user = await _load_user(store, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if not (actor.is_manager and actor.in_department(user.department)):
            raise GuardViolation("Not authorized to view this balance")
    return await get_current_balance(store, user_id, clock)
