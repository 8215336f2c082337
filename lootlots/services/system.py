"""Pause switch and treasury held on the singleton system row."""
from __future__ import annotations

import logging

import sqlalchemy as sa

from ..models import db, SystemState, Withdrawal, SYSTEM_ROW_ID
from ..security_rbac import audit

logger = logging.getLogger(__name__)


def ensure_state() -> None:
    """Create the singleton row if missing (staged, caller commits)."""
    if db.session.get(SystemState, SYSTEM_ROW_ID) is None:
        db.session.add(SystemState(id=SYSTEM_ROW_ID, paused=False, treasury_balance=0))
        db.session.flush()


def is_paused() -> bool:
    paused = db.session.execute(
        sa.select(SystemState.paused).where(SystemState.id == SYSTEM_ROW_ID)
    ).scalar_one_or_none()
    return bool(paused)


def treasury_balance() -> int:
    bal = db.session.execute(
        sa.select(SystemState.treasury_balance).where(SystemState.id == SYSTEM_ROW_ID)
    ).scalar_one_or_none()
    return int(bal or 0)


def credit(amount: int) -> None:
    """Add ``amount`` to the treasury inside the caller's transaction."""
    if amount <= 0:
        return
    ensure_state()
    db.session.execute(
        sa.update(SystemState)
        .where(SystemState.id == SYSTEM_ROW_ID)
        .values(treasury_balance=SystemState.treasury_balance + amount)
        .execution_options(synchronize_session=False)
    )


def set_paused(actor, paused: bool) -> bool:
    from .guards import require_privileged

    require_privileged(actor)
    try:
        ensure_state()
        db.session.execute(
            sa.update(SystemState)
            .where(SystemState.id == SYSTEM_ROW_ID)
            .values(paused=bool(paused))
            .execution_options(synchronize_session=False)
        )
        audit(actor.account, "pause" if paused else "resume", "system", SYSTEM_ROW_ID)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("set_paused paused=%s actor=%s", paused, actor.account)
    return bool(paused)


def withdraw(actor, recipient: str) -> int:
    """Move the whole treasury to ``recipient``; returns the amount withdrawn."""
    from .guards import require_privileged

    require_privileged(actor)
    try:
        amount = db.session.execute(
            sa.select(SystemState.treasury_balance)
            .where(SystemState.id == SYSTEM_ROW_ID)
            .with_for_update()
        ).scalar_one_or_none() or 0
        if amount:
            db.session.execute(
                sa.update(SystemState)
                .where(SystemState.id == SYSTEM_ROW_ID)
                .values(treasury_balance=SystemState.treasury_balance - amount)
                .execution_options(synchronize_session=False)
            )
            db.session.add(Withdrawal(actor=actor.account, recipient=recipient, amount=amount))
            audit(actor.account, "withdraw", "system", SYSTEM_ROW_ID, {"amount": amount, "recipient": recipient})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("withdraw amount=%s recipient=%s actor=%s", amount, recipient, actor.account)
    return int(amount)
