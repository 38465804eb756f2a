"""
Entitlement service: turning a confirmed payment into a Right.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Problem:
  Two payments for the last slot of a title are confirmed at the same time.
  Both webhook deliveries read purchased_count=4 (limit 5), both write 5 and
  both create a Right. Result: six holders of a five-slot title.

Solution:
  The same `version` column the admin edits use.

  1. Read the title (count, limit, version)
  2. UPDATE titles
        SET purchased_count = purchased_count + 1,
            version = version + 1,
            status = <sold_out if the new count reaches the limit>
      WHERE title_id = :id
        AND version = :read_version
        AND purchased_count < purchasable_limit
  3. rows_affected == 0 -> someone else got there first: back off, re-read, retry
  4. INSERT the Right and COMMIT both together

  The CHECK constraint purchased_count <= purchasable_limit is the final
  safety net.

IDEMPOTENCY:
  Stripe redelivers events. A Right already carrying the Checkout Session id
  means this payment was already applied. The unique index on
  rights.stripe_session_id covers two deliveries racing past that check: the
  loser's INSERT fails and its counter increment rolls back with it.
"""

import asyncio
import math
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.config import get_settings
from katagaki.core.errors import ConflictError
from katagaki.core.logging import get_logger
from katagaki.core.metrics import entitlement_retries, record_entitlement
from katagaki.core.security import Caller
from katagaki.db.base import as_utc
from katagaki.models import Right, Title, TitleStatus
from katagaki.schemas.right import HeldRightResponse, RightResponse, RightState
from katagaki.schemas.title import TitleResponse
from katagaki.services import entity_store
from katagaki.services.entity_store import translate_store_errors

logger = get_logger(__name__)
settings = get_settings()

GRANTED = "granted"
DUPLICATE = "duplicate"
SOLD_OUT = "sold_out"
MISSING_TITLE = "missing_title"


@dataclass
class GrantOutcome:
    result: str
    right: Optional[Right] = None
    title: Optional[Title] = None

    @property
    def granted(self) -> bool:
        return self.result == GRANTED


def right_term_end(start: datetime, years: Optional[int] = None) -> datetime:
    """start + N calendar years; Feb 29 lands on Feb 28."""
    return start + relativedelta(years=years or settings.RIGHT_TERM_YEARS)


async def find_right_by_session(db: AsyncSession, session_id: str) -> Optional[Right]:
    with translate_store_errors("Right.by_session"):
        result = await db.execute(select(Right).where(Right.stripe_session_id == session_id))
    return result.scalar_one_or_none()


async def _read_title(db: AsyncSession, title_id: str) -> Optional[Title]:
    with translate_store_errors("Title.get"):
        result = await db.execute(
            select(Title)
            .where(Title.title_id == title_id)
            .execution_options(populate_existing=True)
        )
    return result.scalar_one_or_none()


async def _backoff(attempt: int) -> None:
    await asyncio.sleep(0.005 * (2 ** (attempt - 1)) + random.uniform(0, 0.005))


async def grant_right(
    db: AsyncSession,
    *,
    title_id: str,
    user_id: str,
    session_id: str,
    now: Optional[datetime] = None,
) -> GrantOutcome:
    """
    Apply one confirmed payment: one new Right plus the title's counter step.

    Returns an outcome instead of raising for the non-retryable cases
    (duplicate delivery, deleted title, title already full). Raises
    ConflictError when every optimistic attempt lost, so the webhook answers
    5xx and the processor redelivers later.
    """
    if await find_right_by_session(db, session_id) is not None:
        logger.info("entitlement_duplicate", session_id=session_id, title_id=title_id, user_id=user_id)
        record_entitlement(DUPLICATE)
        return GrantOutcome(DUPLICATE)

    max_attempts = settings.ENTITLEMENT_MAX_RETRIES
    for attempt in range(1, max_attempts + 1):
        title = await _read_title(db, title_id)

        if title is None:
            # Deleted after checkout started
            logger.error("entitlement_title_missing", title_id=title_id, user_id=user_id, session_id=session_id)
            record_entitlement(MISSING_TITLE)
            return GrantOutcome(MISSING_TITLE)

        if title.purchased_count >= title.purchasable_limit:
            logger.warning(
                "entitlement_rejected_sold_out",
                title_id=title_id,
                user_id=user_id,
                session_id=session_id,
                purchased=title.purchased_count,
                limit=title.purchasable_limit,
            )
            record_entitlement(SOLD_OUT)
            return GrantOutcome(SOLD_OUT, title=title)

        new_count = title.purchased_count + 1
        new_status = (
            TitleStatus.SOLD_OUT.value if new_count >= title.purchasable_limit else title.status
        )

        with translate_store_errors("Title.increment"):
            update_result = await db.execute(
                update(Title)
                .where(
                    Title.title_id == title_id,
                    Title.version == title.version,
                    Title.purchased_count < Title.purchasable_limit,
                )
                .values(
                    purchased_count=Title.purchased_count + 1,
                    version=Title.version + 1,
                    status=new_status,
                    updated_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )

        if update_result.rowcount == 0:
            logger.info(
                "entitlement_retry",
                title_id=title_id,
                attempt=attempt,
                reason="version_conflict",
            )
            entitlement_retries.inc()
            await db.rollback()
            if attempt == max_attempts:
                raise ConflictError(
                    "Title counter update kept conflicting",
                    details={"title_id": title_id, "attempts": attempt},
                )
            await _backoff(attempt)
            continue

        start = now or datetime.now(timezone.utc)
        right = Right(
            title_id=title_id,
            user_id=user_id,
            start_date=start,
            end_date=right_term_end(start),
            is_active=True,
            stripe_session_id=session_id,
        )
        db.add(right)

        try:
            with translate_store_errors("Right.create"):
                await db.commit()
        except IntegrityError as e:
            await db.rollback()
            # Only the session-id unique index means a concurrent delivery won
            if await find_right_by_session(db, session_id) is None:
                logger.error(
                    "entitlement_insert_failed",
                    session_id=session_id,
                    title_id=title_id,
                    user_id=user_id,
                    error=str(e.orig),
                )
                raise
            logger.info("entitlement_duplicate", session_id=session_id, title_id=title_id, race=True)
            record_entitlement(DUPLICATE)
            return GrantOutcome(DUPLICATE)

        title = await _read_title(db, title_id)
        logger.info(
            "entitlement_granted",
            right_id=right.right_id,
            title_id=title_id,
            user_id=user_id,
            session_id=session_id,
            purchased=new_count,
            status=new_status,
            attempt=attempt,
        )
        record_entitlement(GRANTED)
        return GrantOutcome(GRANTED, right=right, title=title)

    # Loop always returns or raises
    raise ConflictError("Entitlement could not be applied")


# ===== Read side =====

def days_remaining(right: Right, now: datetime) -> int:
    """Whole days left, rounded up."""
    remaining = as_utc(right.end_date) - now
    return math.ceil(remaining.total_seconds() / 86400)


def is_expired(right: Right, now: datetime) -> bool:
    return as_utc(right.end_date) < now


def is_expiring_soon(right: Right, now: datetime, window_days: Optional[int] = None) -> bool:
    window = window_days if window_days is not None else settings.EXPIRING_SOON_DAYS
    return bool(right.is_active) and 0 < days_remaining(right, now) <= window


def classify_right(right: Right, now: Optional[datetime] = None) -> RightState:
    """Derived state; never written back to the store."""
    now = now or datetime.now(timezone.utc)
    if not right.is_active:
        return RightState.REVOKED
    if is_expired(right, now):
        return RightState.EXPIRED
    if is_expiring_soon(right, now):
        return RightState.EXPIRING_SOON
    return RightState.ACTIVE


async def list_held_rights(db: AsyncSession, caller: Caller) -> list[HeldRightResponse]:
    """The caller's rights, newest first, each with its derived state and title."""
    now = datetime.now(timezone.utc)
    rights = await entity_store.rights(db).query(user_id=caller.user_id)
    title_store = entity_store.titles(db)

    held: list[HeldRightResponse] = []
    titles: dict[str, Optional[Title]] = {}
    for right in rights:
        if right.title_id not in titles:
            titles[right.title_id] = await title_store.get(right.title_id)
        title = titles[right.title_id]
        held.append(
            HeldRightResponse(
                **RightResponse.model_validate(right).model_dump(),
                state=classify_right(right, now),
                is_expired=is_expired(right, now),
                is_expiring_soon=is_expiring_soon(right, now),
                days_remaining=days_remaining(right, now),
                title=TitleResponse.model_validate(title) if title else None,
            )
        )
    return held


async def revoke_right(db: AsyncSession, right_id: str, admin: Caller) -> Right:
    right = await entity_store.rights(db).update(right_id, is_active=False)
    logger.info("right_revoked", right_id=right_id, revoked_by=admin.user_id)
    return right
