"""Owner-managed table of option definitions and class bindings."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import sqlalchemy as sa
from flask import current_app

from ..config import COMMON, NUM_CLASSES
from ..errors import InvalidProbabilityTable, NotAuthorizedForTransfer, UnknownClass, UnknownOption
from ..models import db, LootOption, ClassRecord, SupplyCounter
from ..schemas import OptionSettingsIn
from ..security_rbac import audit
from .guards import require_privileged

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptionSettings:
    option_id: int
    quantity_per_open: int = 0
    capacity: int = 0
    class_probabilities: Tuple[int, ...] = field(default_factory=lambda: (0,) * NUM_CLASSES)
    price: int = 0

    @property
    def enabled(self) -> bool:
        return self.quantity_per_open > 0

    def to_dict(self) -> dict:
        return {
            "option_id": self.option_id,
            "quantity_per_open": self.quantity_per_open,
            "capacity": self.capacity,
            "class_probabilities": list(self.class_probabilities),
            "price": self.price,
            "enabled": self.enabled,
        }


def _from_row(row: LootOption) -> OptionSettings:
    return OptionSettings(
        option_id=row.option_id,
        quantity_per_open=int(row.quantity_per_open or 0),
        capacity=int(row.capacity or 0),
        class_probabilities=tuple(int(p) for p in (row.class_probabilities or [0] * NUM_CLASSES)),
        price=int(row.price or 0),
    )


def _total() -> int:
    return int(current_app.config["LOOT_PROBABILITY_TOTAL"])


def _check_option_id(option_id: int) -> None:
    allowed = current_app.config.get("LOOT_OPTION_IDS")
    if option_id < 0 or (allowed is not None and option_id not in allowed):
        raise UnknownOption(f"option {option_id} is not configured for this deployment")


def validate_probabilities(probabilities: Sequence[int], total: int, exact: bool = False) -> List[int]:
    """
    Configuration-time check for a probability table.

    Rejects the wrong length, negative weights, and weighted classes (1..5)
    summing above ``total``. With ``exact`` the weighted classes must sum to
    ``total``, leaving Common unreachable. Returns the table as a list.
    """
    probs = [int(p) for p in probabilities]
    if len(probs) != NUM_CLASSES:
        raise InvalidProbabilityTable(f"expected {NUM_CLASSES} class weights, got {len(probs)}")
    if any(p < 0 for p in probs):
        raise InvalidProbabilityTable("class weights must be non-negative")
    weighted = sum(probs[COMMON + 1:])
    if weighted > total:
        raise InvalidProbabilityTable(f"class weights sum to {weighted}, above the total of {total}")
    if exact and weighted != total:
        raise InvalidProbabilityTable(f"class weights sum to {weighted}, expected exactly {total}")
    return probs


def get_option(option_id: int) -> OptionSettings:
    """Settings for ``option_id``; unknown ids read as a disabled option."""
    row = db.session.get(LootOption, option_id)
    if row is None:
        return OptionSettings(option_id=option_id)
    return _from_row(row)


def list_options() -> List[OptionSettings]:
    rows = LootOption.query.order_by(LootOption.option_id.asc()).all()
    return [_from_row(r) for r in rows]


def set_option(actor, option_id: int, settings: OptionSettingsIn) -> OptionSettings:
    """Overwrite the full settings record for ``option_id``."""
    require_privileged(actor)
    _check_option_id(option_id)
    total = _total()
    probs = validate_probabilities(settings.class_probabilities, total)
    weighted = sum(probs[COMMON + 1:])
    try:
        row = db.session.get(LootOption, option_id)
        if row is None:
            row = LootOption(option_id=option_id)
            db.session.add(row)
        row.quantity_per_open = settings.quantity_per_open
        row.capacity = settings.capacity
        row.class_probabilities = probs
        row.price = settings.price
        if db.session.get(SupplyCounter, option_id) is None:
            db.session.add(SupplyCounter(option_id=option_id, amount_opened=0))
        audit(actor.account, "set_option", "option", option_id, settings.model_dump())
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(
        "set_option option_id=%s quantity_per_open=%s capacity=%s price=%s weighted=%s/%s",
        option_id,
        settings.quantity_per_open,
        settings.capacity,
        settings.price,
        weighted,
        total,
    )
    if weighted < total:
        logger.info("set_option option_id=%s common_share=%s", option_id, total - weighted)
    return get_option(option_id)


# ---------------------- Class records ----------------------

def ensure_class_records() -> None:
    """Seed one record per class (staged, caller commits)."""
    have = set(db.session.execute(sa.select(ClassRecord.class_id)).scalars())
    for class_id in range(NUM_CLASSES):
        if class_id not in have:
            db.session.add(ClassRecord(class_id=class_id, preminted=False, token_id=0))
    db.session.flush()


def get_class_records() -> Dict[int, dict]:
    rows = db.session.execute(
        sa.select(ClassRecord.class_id, ClassRecord.preminted, ClassRecord.token_id)
        .order_by(ClassRecord.class_id.asc())
    ).all()
    return {cid: {"class_id": cid, "preminted": bool(pre), "token_id": int(tok)} for cid, pre, tok in rows}


def set_class_binding(actor, class_id: int, token_id: int, issuer=None) -> dict:
    """Bind a preminted token pool to ``class_id``."""
    require_privileged(actor)
    if not 0 <= class_id < NUM_CLASSES:
        raise UnknownClass(f"class {class_id} does not exist")
    if issuer is None:
        from . import current_services
        issuer = current_services().issuer
    pool_owner = current_app.config["LOOT_POOL_OWNER"]
    operator = current_app.config["LOOT_OPERATOR"]
    if not issuer.is_authorized_for(pool_owner, operator):
        raise NotAuthorizedForTransfer(f"{pool_owner} has not approved {operator} to move its tokens")
    try:
        ensure_class_records()
        db.session.execute(
            sa.update(ClassRecord)
            .where(ClassRecord.class_id == class_id)
            .values(token_id=int(token_id), preminted=True)
            .execution_options(synchronize_session=False)
        )
        audit(actor.account, "bind_class", "class", class_id, {"token_id": int(token_id)})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("bind_class class_id=%s token_id=%s actor=%s", class_id, token_id, actor.account)
    return get_class_records()[class_id]
