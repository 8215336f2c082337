from itertools import cycle

import pytest

from lootlots import create_app
from lootlots.models import db
from lootlots.services.guards import Actor
from lootlots.services.issuance import LedgerIssuer

ADMIN = Actor(account="ops", role="admin")
BUYER = Actor(account="buyer-1", role="user")

TEST_CONFIG = {
    "TESTING": True,
    "SECRET_KEY": "test-secret",
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "AUTO_CREATE_TABLES": True,
    "LOOT_PROBABILITY_TOTAL": 10_000,
    "LOOT_PAYMENT_MODE": "paid",
    "LOOT_RANDOM_SOURCE": "keyed:1234",
    "LOOT_POOL_OWNER": "treasury",
    "LOOT_OPERATOR": "lootlots",
    "LOOT_OPTION_IDS": None,
}


class ScriptedSource:
    """Random source that replays a fixed list of values, cycling."""

    def __init__(self, values):
        self._values = cycle(list(values))
        self.calls = 0

    def randbelow(self, n):
        self.calls += 1
        return next(self._values) % n


class FailingIssuer(LedgerIssuer):
    """Ledger issuer whose ``fail_on``-th issuance call raises."""

    def __init__(self, fail_on: int):
        self.fail_on = fail_on
        self.calls = 0

    def _tick(self):
        self.calls += 1
        if self.calls == self.fail_on:
            raise RuntimeError("ledger unavailable")

    def transfer(self, src, dst, token_id, amount):
        self._tick()
        return super().transfer(src, dst, token_id, amount)

    def create_lot(self, owner, amount):
        self._tick()
        return super().create_lot(owner, amount)

    def mint_into(self, dst, token_id, amount):
        self._tick()
        return super().mint_into(dst, token_id, amount)


def make_app(issuer=None, random_source=None, **overrides):
    config = dict(TEST_CONFIG)
    config.update(overrides)
    return create_app(config, issuer=issuer, random_source=random_source)


@pytest.fixture
def app():
    app = make_app()
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def services(app):
    return app.extensions["lootlots"]
