"""Payment policies for opens, picked once per deployment.

- ``AdminIssuance``: privileged callers issue lots to a recipient; no payment.
- ``ExactPricePayment``: any authenticated buyer pays exactly price x quantity,
  credited to the treasury in the same transaction as the open.
"""
from __future__ import annotations

from typing import Optional

from ..errors import InvalidPayment, Unauthorized
from . import system
from .guards import Actor, require_privileged


class PaymentPolicy:
    name = "base"

    def authorize(self, actor: Optional[Actor]) -> None:
        raise NotImplementedError

    def validate(self, option, quantity: int, payment: Optional[int]) -> int:
        """Return the amount to settle, or raise InvalidPayment."""
        raise NotImplementedError

    def settle(self, amount: int) -> None:
        pass


class AdminIssuance(PaymentPolicy):
    name = "admin"

    def authorize(self, actor):
        require_privileged(actor)

    def validate(self, option, quantity, payment):
        if payment:
            raise InvalidPayment("admin issuance does not take payment")
        return 0


class ExactPricePayment(PaymentPolicy):
    name = "paid"

    def authorize(self, actor):
        if actor is None:
            raise Unauthorized("login required")

    def validate(self, option, quantity, payment):
        required = option.price * quantity
        if isinstance(payment, bool) or not isinstance(payment, int) or payment != required:
            raise InvalidPayment(f"payment must be exactly {required}, got {payment!r}")
        return required

    def settle(self, amount):
        system.credit(amount)


def policy_for(mode: str) -> PaymentPolicy:
    if mode == "admin":
        return AdminIssuance()
    if mode == "paid":
        return ExactPricePayment()
    raise ValueError(f"unknown payment mode {mode!r}")
