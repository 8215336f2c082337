"""Open orchestration: one buyer request from validation to commit.

An open is a single database unit of work. Draws, issuances, first-time class
bindings, the supply increment, payment settlement and the event row are all
staged in the session and committed together, or rolled back together when
anything raises.
"""
from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..errors import InvalidQuantity, OptionDisabled, SupplyExhausted
from ..models import db, OpenEvent
from . import registry, supply
from .guards import Actor, non_reentrant, require_not_paused
from .issuance import IssuanceDispatcher, Issuer
from .locks import LockTable
from .payment import PaymentPolicy
from .rng import RandomSource
from .selector import draw, effective_odds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenResult:
    event_id: int
    option_id: int
    recipient: str
    quantity: int
    items_issued: int
    classes: Tuple[int, ...] = field(default_factory=tuple)
    token_ids: Tuple[int, ...] = field(default_factory=tuple)
    payment: int = 0

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "option_id": self.option_id,
            "recipient": self.recipient,
            "quantity": self.quantity,
            "items_issued": self.items_issued,
            "classes": list(self.classes),
            "token_ids": list(self.token_ids),
            "payment": self.payment,
        }


class OpenOrchestrator:
    def __init__(
        self,
        *,
        issuer: Issuer,
        random_source: RandomSource,
        payment_policy: PaymentPolicy,
        pool_owner: str,
        total: int,
        locks: Optional[LockTable] = None,
    ):
        self.issuer = issuer
        self.random_source = random_source
        self.payment_policy = payment_policy
        self.total = total
        self.locks = locks or LockTable()
        self.dispatcher = IssuanceDispatcher(issuer, pool_owner, self.locks)

    def open(
        self,
        option_id: int,
        recipient: str,
        quantity: int,
        *,
        actor: Optional[Actor] = None,
        payment: Optional[int] = None,
    ) -> OpenResult:
        """Open ``quantity`` lots of ``option_id`` for ``recipient``."""
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidQuantity(f"quantity must be an integer, got {quantity!r}")
        with non_reentrant("open"):
            require_not_paused()
            self.payment_policy.authorize(actor)
            with self.locks.option(option_id), ExitStack() as stack:
                try:
                    result = self._run(stack, option_id, recipient, quantity, payment)
                    db.session.commit()
                except Exception as e:
                    db.session.rollback()
                    logger.warning(
                        "open_option failed option_id=%s recipient=%s quantity=%s error=%s",
                        option_id,
                        recipient,
                        quantity,
                        getattr(e, "code", type(e).__name__),
                    )
                    raise
        logger.info(
            "open_option option_id=%s recipient=%s quantity=%s items_issued=%s event_id=%s",
            result.option_id,
            result.recipient,
            result.quantity,
            result.items_issued,
            result.event_id,
        )
        return result

    def _run(self, stack: ExitStack, option_id: int, recipient: str, quantity: int,
             payment: Optional[int]) -> OpenResult:
        option = registry.get_option(option_id)
        if not option.enabled:
            raise OptionDisabled(f"option {option_id} is disabled")
        # binding lock before any write: option lock, binding lock, then rows
        reachable = [c for c, share in enumerate(effective_odds(option.class_probabilities, self.total)) if share]
        if self.dispatcher.needs_binding_lock(reachable):
            stack.enter_context(self.locks.bindings())
        supply.lock_counter(option_id)
        if not supply.can_open(option, quantity):
            raise SupplyExhausted(f"option {option_id} cannot open {quantity} more")
        settled = self.payment_policy.validate(option, quantity, payment)

        classes: List[int] = []
        token_ids: List[int] = []
        for _ in range(quantity):
            for _ in range(option.quantity_per_open):
                class_id = draw(option.class_probabilities, self.random_source, self.total)
                token_ids.append(self.dispatcher.issue(class_id, recipient))
                classes.append(class_id)

        supply.reserve(option, quantity)
        self.payment_policy.settle(settled)

        items_issued = quantity * option.quantity_per_open
        event = OpenEvent(
            option_id=option_id,
            recipient=recipient,
            quantity=quantity,
            items_issued=items_issued,
            classes=classes,
            token_ids=token_ids,
            payment=settled,
        )
        db.session.add(event)
        db.session.flush()
        return OpenResult(
            event_id=int(event.id),
            option_id=option_id,
            recipient=recipient,
            quantity=quantity,
            items_issued=items_issued,
            classes=tuple(classes),
            token_ids=tuple(token_ids),
            payment=settled,
        )


def list_events(option_id: Optional[int] = None, recipient: Optional[str] = None,
                limit: int = 50, offset: int = 0):
    q = OpenEvent.query
    if option_id is not None:
        q = q.filter(OpenEvent.option_id == option_id)
    if recipient is not None:
        q = q.filter(OpenEvent.recipient == recipient)
    total = q.count()
    rows = q.order_by(OpenEvent.id.desc()).limit(limit).offset(offset).all()
    return total, [
        dict(
            event_id=r.id,
            option_id=r.option_id,
            recipient=r.recipient,
            quantity=r.quantity,
            items_issued=r.items_issued,
            classes=r.classes or [],
            token_ids=r.token_ids or [],
            payment=r.payment,
            created_at=r.created_at.isoformat() if r.created_at else None,
        )
        for r in rows
    ]
