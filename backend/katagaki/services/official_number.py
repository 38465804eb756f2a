"""
Official-number allocation for new titles.

Format: "ktgk_" + sequence zero-padded to 6 digits (ktgk_000001, ...).

ALLOCATION STRATEGY: Atomic counter row
=======================================

Problem:
  Scanning every title for the highest number and adding one is a
  read-then-write. Two admins creating titles at the same moment both read
  max=41 and both issue ktgk_000042.

Solution:
  A dedicated `official_number_sequences` row per prefix.

  1. UPDATE official_number_sequences SET last_value = last_value + 1
     WHERE prefix = 'ktgk_'
  2. SELECT last_value in the same transaction (the row is now write-locked
     by us, so we read our own increment)
  3. The caller inserts the title and commits

  If the caller rolls back, the increment rolls back with it, so a number
  is only ever published together with its title. Deleting a title never
  touches the counter, so numbers are not recycled.

  The legacy scan survives only to seed the row the first time, so a store
  holding titles numbered before the counter existed continues after them.
"""

import re
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from katagaki.core.logging import get_logger
from katagaki.core.metrics import official_numbers_allocated
from katagaki.models import OfficialNumberSequence, Title
from katagaki.services.entity_store import translate_store_errors

logger = get_logger(__name__)

OFFICIAL_NUMBER_PREFIX = "ktgk_"
OFFICIAL_NUMBER_WIDTH = 6
MAX_SEED_ATTEMPTS = 3

_NUMBER_PATTERN = re.compile(rf"^{OFFICIAL_NUMBER_PREFIX}(\d+)$")


def format_official_number(value: int) -> str:
    return f"{OFFICIAL_NUMBER_PREFIX}{value:0{OFFICIAL_NUMBER_WIDTH}d}"


def parse_official_number(official_number: Optional[str]) -> Optional[int]:
    """Numeric part of a ktgk_ number, or None for anything else."""
    if not official_number:
        return None
    match = _NUMBER_PATTERN.match(official_number)
    if not match:
        return None
    return int(match.group(1))


async def scan_max_official_number(db: AsyncSession) -> int:
    """Highest ktgk_ number held by any title, 0 if none."""
    with translate_store_errors("official_number.scan"):
        result = await db.execute(
            select(Title.official_number).where(
                Title.official_number.like(f"{OFFICIAL_NUMBER_PREFIX}%")
            )
        )
    numbers = (parse_official_number(value) for value in result.scalars())
    return max((n for n in numbers if n is not None), default=0)


async def ensure_sequence(db: AsyncSession) -> None:
    """Create the counter row, seeded from existing titles. Commits on its own."""
    seed = await scan_max_official_number(db)
    db.add(OfficialNumberSequence(prefix=OFFICIAL_NUMBER_PREFIX, last_value=seed))
    try:
        with translate_store_errors("official_number.seed"):
            await db.commit()
        logger.info("official_number_sequence_seeded", prefix=OFFICIAL_NUMBER_PREFIX, seed=seed)
    except IntegrityError:
        # Another request seeded it first
        await db.rollback()
        logger.info("official_number_sequence_seed_lost", prefix=OFFICIAL_NUMBER_PREFIX)


async def allocate_official_number(db: AsyncSession) -> str:
    """
    Reserve the next official number inside the caller's transaction.

    Must run before any other write of that transaction: seeding the counter
    may commit or roll back the session.
    """
    for attempt in range(1, MAX_SEED_ATTEMPTS + 1):
        with translate_store_errors("official_number.increment"):
            result = await db.execute(
                update(OfficialNumberSequence)
                .where(OfficialNumberSequence.prefix == OFFICIAL_NUMBER_PREFIX)
                .values(last_value=OfficialNumberSequence.last_value + 1)
                .execution_options(synchronize_session=False)
            )

        if result.rowcount == 1:
            with translate_store_errors("official_number.read"):
                value = (
                    await db.execute(
                        select(OfficialNumberSequence.last_value).where(
                            OfficialNumberSequence.prefix == OFFICIAL_NUMBER_PREFIX
                        )
                    )
                ).scalar_one()
            official_number = format_official_number(value)
            official_numbers_allocated.inc()
            logger.info("official_number_allocated", official_number=official_number)
            return official_number

        logger.info("official_number_sequence_missing", attempt=attempt)
        await db.rollback()
        await ensure_sequence(db)

    raise RuntimeError("Official number sequence could not be initialised")
