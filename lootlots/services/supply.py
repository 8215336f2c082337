"""Per-option open counters and cap enforcement.

Counters are read and written with column-level statements rather than ORM
entities so concurrent writers never act on a stale identity map.
"""
from __future__ import annotations

import logging
import sys

import sqlalchemy as sa

from ..errors import SupplyExhausted
from ..models import db, SupplyCounter

logger = logging.getLogger(__name__)

# Reported by ``remaining`` for options without a cap
UNLIMITED = sys.maxsize


def amount_opened(option_id: int) -> int:
    opened = db.session.execute(
        sa.select(SupplyCounter.amount_opened).where(SupplyCounter.option_id == option_id)
    ).scalar_one_or_none()
    return int(opened or 0)


def lock_counter(option_id: int) -> int:
    """
    Row-lock the counter for the rest of the transaction and return its value.

    Creates the row when missing. ``FOR UPDATE`` is a no-op on SQLite, where
    the database write lock serializes writers instead.
    """
    opened = db.session.execute(
        sa.select(SupplyCounter.amount_opened)
        .where(SupplyCounter.option_id == option_id)
        .with_for_update()
    ).scalar_one_or_none()
    if opened is None:
        db.session.execute(sa.insert(SupplyCounter).values(option_id=option_id, amount_opened=0))
        return 0
    return int(opened)


def can_open(option, amount: int) -> bool:
    if amount <= 0:
        return False
    if option.capacity == 0:
        return True
    return amount_opened(option.option_id) + amount <= option.capacity


def remaining(option) -> int:
    if not option.enabled:
        return 0
    if option.capacity == 0:
        return UNLIMITED
    opened = amount_opened(option.option_id)
    if opened > option.capacity:
        return 0
    return option.capacity - opened


def commit(option_id: int, amount: int) -> None:
    """Unconditionally add ``amount`` opens. Callers validate ``can_open`` first."""
    result = db.session.execute(
        sa.update(SupplyCounter)
        .where(SupplyCounter.option_id == option_id)
        .values(amount_opened=SupplyCounter.amount_opened + amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.session.execute(sa.insert(SupplyCounter).values(option_id=option_id, amount_opened=amount))


def reserve(option, amount: int) -> None:
    """
    Compare-and-increment: add ``amount`` only if the cap still allows it.

    Raises SupplyExhausted when another writer consumed the supply between the
    caller's check and this statement.
    """
    stmt = (
        sa.update(SupplyCounter)
        .where(SupplyCounter.option_id == option.option_id)
        .values(amount_opened=SupplyCounter.amount_opened + amount)
        .execution_options(synchronize_session=False)
    )
    if option.capacity:
        stmt = stmt.where(SupplyCounter.amount_opened + amount <= option.capacity)
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        logger.warning(
            "reserve rejected option_id=%s amount=%s capacity=%s",
            option.option_id,
            amount,
            option.capacity,
        )
        raise SupplyExhausted(f"option {option.option_id} cannot open {amount} more")
