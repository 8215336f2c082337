"""Item ledger seam and the per-class issuance rule.

``Issuer`` is the narrow interface the loot core needs from the item ledger.
``LedgerIssuer`` implements it on the ledger tables of this database, writing
through the caller's session so issuances commit or roll back together with
the open that caused them.
"""
from __future__ import annotations

import logging
from typing import Iterable, Protocol

import sqlalchemy as sa

from ..errors import BindingConflict, IssuanceFailed, LootError, UnknownClass
from ..models import db, ClassRecord, OperatorApproval, TokenBalance, TokenLot
from .locks import LockTable

logger = logging.getLogger(__name__)


class Issuer(Protocol):
    def is_authorized_for(self, owner: str, operator: str) -> bool: ...

    def transfer(self, src: str, dst: str, token_id: int, amount: int) -> None: ...

    def create_lot(self, owner: str, amount: int) -> int: ...

    def mint_into(self, dst: str, token_id: int, amount: int) -> None: ...


class LedgerIssuer:
    """Token lots and balances kept in the service database."""

    def is_authorized_for(self, owner: str, operator: str) -> bool:
        approved = db.session.execute(
            sa.select(OperatorApproval.approved).where(
                OperatorApproval.owner == owner, OperatorApproval.operator == operator
            )
        ).scalar_one_or_none()
        return bool(approved)

    def approve_operator(self, owner: str, operator: str, approved: bool = True) -> None:
        row = db.session.get(OperatorApproval, (owner, operator))
        if row is None:
            row = OperatorApproval(owner=owner, operator=operator)
            db.session.add(row)
        row.approved = bool(approved)
        db.session.flush()

    def balance_of(self, owner: str, token_id: int) -> int:
        amount = db.session.execute(
            sa.select(TokenBalance.amount).where(
                TokenBalance.owner == owner, TokenBalance.token_id == token_id
            )
        ).scalar_one_or_none()
        return int(amount or 0)

    def _add(self, owner: str, token_id: int, amount: int) -> None:
        result = db.session.execute(
            sa.update(TokenBalance)
            .where(TokenBalance.owner == owner, TokenBalance.token_id == token_id)
            .values(amount=TokenBalance.amount + amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.session.execute(sa.insert(TokenBalance).values(owner=owner, token_id=token_id, amount=amount))

    def _lot_exists(self, token_id: int) -> bool:
        return db.session.execute(
            sa.select(TokenLot.token_id).where(TokenLot.token_id == token_id)
        ).scalar_one_or_none() is not None

    def transfer(self, src: str, dst: str, token_id: int, amount: int) -> None:
        if amount <= 0:
            raise IssuanceFailed("transfer amount must be positive")
        result = db.session.execute(
            sa.update(TokenBalance)
            .where(
                TokenBalance.owner == src,
                TokenBalance.token_id == token_id,
                TokenBalance.amount >= amount,
            )
            .values(amount=TokenBalance.amount - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise IssuanceFailed(f"{src} holds fewer than {amount} of token {token_id}")
        self._add(dst, token_id, amount)

    def create_lot(self, owner: str, amount: int) -> int:
        if amount <= 0:
            raise IssuanceFailed("lot amount must be positive")
        lot = TokenLot(creator=owner, total_supply=amount)
        db.session.add(lot)
        db.session.flush()
        self._add(owner, lot.token_id, amount)
        return int(lot.token_id)

    def mint_into(self, dst: str, token_id: int, amount: int) -> None:
        if amount <= 0:
            raise IssuanceFailed("mint amount must be positive")
        if not self._lot_exists(token_id):
            raise IssuanceFailed(f"token {token_id} does not exist")
        db.session.execute(
            sa.update(TokenLot)
            .where(TokenLot.token_id == token_id)
            .values(total_supply=TokenLot.total_supply + amount)
            .execution_options(synchronize_session=False)
        )
        self._add(dst, token_id, amount)


class IssuanceDispatcher:
    """
    Issues one unit of a drawn class.

    - preminted class: transfer from the pool owner
    - unbound class:   create a lot for the recipient and bind it
    - bound class:     mint another unit into the bound lot

    First-time binds are serialized by the caller: an open that may bind takes
    ``locks.bindings()`` before its first write (see ``needs_binding_lock``),
    so the binding lock is never requested while database locks are held.
    """

    def __init__(self, issuer: Issuer, pool_owner: str, locks: LockTable):
        self.issuer = issuer
        self.pool_owner = pool_owner
        self.locks = locks

    def _record(self, class_id: int):
        row = db.session.execute(
            sa.select(ClassRecord.preminted, ClassRecord.token_id).where(ClassRecord.class_id == class_id)
        ).one_or_none()
        if row is None:
            raise UnknownClass(f"class {class_id} has no record")
        return bool(row[0]), int(row[1])

    def _call(self, op: str, fn, *args):
        try:
            return fn(*args)
        except LootError:
            raise
        except Exception as e:
            raise IssuanceFailed(f"{op} failed: {e}") from e

    def needs_binding_lock(self, reachable: Iterable[int]) -> bool:
        """True when any of the ``reachable`` classes is still unbound."""
        reachable = list(reachable)
        if not reachable:
            return False
        unbound = db.session.execute(
            sa.select(ClassRecord.class_id)
            .where(ClassRecord.class_id.in_(reachable), ClassRecord.token_id == 0)
            .limit(1)
        ).scalar_one_or_none()
        return unbound is not None

    def issue(self, class_id: int, recipient: str) -> int:
        """Issue one unit of ``class_id`` to ``recipient`` and return its token id."""
        preminted, token_id = self._record(class_id)
        if preminted:
            self._call("transfer", self.issuer.transfer, self.pool_owner, recipient, token_id, 1)
            return token_id
        if token_id == 0:
            token_id = int(self._call("create_lot", self.issuer.create_lot, recipient, 1))
            self._bind(class_id, token_id)
            logger.info("bind_first class_id=%s token_id=%s recipient=%s", class_id, token_id, recipient)
            return token_id
        self._call("mint_into", self.issuer.mint_into, recipient, token_id, 1)
        return token_id

    def _bind(self, class_id: int, token_id: int) -> None:
        result = db.session.execute(
            sa.update(ClassRecord)
            .where(ClassRecord.class_id == class_id, ClassRecord.token_id == 0)
            .values(token_id=token_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise BindingConflict(f"class {class_id} was bound by another writer")
