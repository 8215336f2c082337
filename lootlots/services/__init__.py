"""Loot services wired from app config."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flask import Flask, current_app

from .issuance import Issuer, LedgerIssuer
from .locks import LockTable
from .opener import OpenOrchestrator
from .payment import policy_for
from .rng import RandomSource, build_random_source


@dataclass
class LootServices:
    issuer: Issuer
    orchestrator: OpenOrchestrator


def init_services(app: Flask, issuer: Optional[Issuer] = None,
                  random_source: Optional[RandomSource] = None) -> LootServices:
    cfg = app.config
    issuer = issuer or LedgerIssuer()
    orchestrator = OpenOrchestrator(
        issuer=issuer,
        random_source=random_source or build_random_source(cfg["LOOT_RANDOM_SOURCE"]),
        payment_policy=policy_for(cfg["LOOT_PAYMENT_MODE"]),
        pool_owner=cfg["LOOT_POOL_OWNER"],
        total=int(cfg["LOOT_PROBABILITY_TOTAL"]),
        locks=LockTable(),
    )
    services = LootServices(issuer=issuer, orchestrator=orchestrator)
    app.extensions["lootlots"] = services
    return services


def current_services() -> LootServices:
    return current_app.extensions["lootlots"]
