from contextlib import contextmanager

import pytest

from lootlots.errors import (
    InvalidPayment,
    InvalidQuantity,
    IssuanceFailed,
    OptionDisabled,
    Paused,
    ReentrantCall,
    SupplyExhausted,
    Unauthorized,
)
from lootlots.models import db, ClassRecord, OpenEvent, TokenLot
from lootlots.schemas import OptionSettingsIn
from lootlots.services import registry, supply, system
from lootlots.services.issuance import LedgerIssuer
from lootlots.services.opener import list_events

from conftest import ADMIN, BUYER, FailingIssuer, ScriptedSource, make_app

TABLE = [0, 0, 2000, 3000, 4000, 1000]


@contextmanager
def running(source=None, issuer=None, **overrides):
    app = make_app(issuer=issuer, random_source=source, **overrides)
    with app.app_context():
        yield app.extensions["lootlots"]
        db.session.remove()


def _configure(option_id=1, qpo=3, capacity=10, table=TABLE, price=10):
    return registry.set_option(
        ADMIN,
        option_id,
        OptionSettingsIn(quantity_per_open=qpo, capacity=capacity, class_probabilities=table, price=price),
    )


def _bound_tokens():
    return {r.class_id: r.token_id for r in ClassRecord.query.all() if r.token_id}


def test_open_issues_quantity_times_per_open():
    source = ScriptedSource([0, 1000, 5000, 8000, 0, 1000])
    with running(source) as svc:
        _configure()
        result = svc.orchestrator.open(1, "alice", 2, actor=BUYER, payment=20)

        assert result.items_issued == 6
        assert list(result.classes) == [5, 4, 3, 2, 5, 4]
        assert source.calls == 6
        assert supply.amount_opened(1) == 2
        assert system.treasury_balance() == 20

        bound = _bound_tokens()
        assert set(bound) == {2, 3, 4, 5}
        assert svc.issuer.balance_of("alice", bound[5]) == 2
        assert svc.issuer.balance_of("alice", bound[2]) == 1
        assert list(result.token_ids) == [bound[c] for c in result.classes]


def test_under_allocated_table_falls_back_to_common():
    with running(ScriptedSource([500, 50])) as svc:
        _configure(qpo=2, table=[0, 0, 0, 0, 0, 100])
        result = svc.orchestrator.open(1, "alice", 1, actor=BUYER, payment=10)
        assert list(result.classes) == [0, 5]


def test_second_open_mints_into_existing_binding():
    with running(ScriptedSource([0])) as svc:
        _configure(qpo=1, table=[0, 0, 0, 0, 0, 10_000])
        first = svc.orchestrator.open(1, "alice", 1, actor=BUYER, payment=10)
        second = svc.orchestrator.open(1, "bob", 1, actor=BUYER, payment=10)
        assert first.token_ids == second.token_ids
        assert TokenLot.query.count() == 1
        assert db.session.get(TokenLot, first.token_ids[0]).total_supply == 2
        assert svc.issuer.balance_of("bob", first.token_ids[0]) == 1


def test_cap_reached_rejects_and_leaves_counter():
    with running(ScriptedSource([0])) as svc:
        _configure(capacity=5)
        supply.commit(1, 5)
        db.session.commit()
        with pytest.raises(SupplyExhausted):
            svc.orchestrator.open(1, "alice", 1, actor=BUYER, payment=10)
        assert supply.amount_opened(1) == 5
        assert OpenEvent.query.count() == 0


def test_open_larger_than_remaining_rejected():
    with running(ScriptedSource([0])) as svc:
        _configure(capacity=5)
        supply.commit(1, 4)
        db.session.commit()
        with pytest.raises(SupplyExhausted):
            svc.orchestrator.open(1, "alice", 2, actor=BUYER, payment=20)
        svc.orchestrator.open(1, "alice", 1, actor=BUYER, payment=10)
        assert supply.amount_opened(1) == 5


def test_disabled_and_unknown_options(app, services):
    _configure(qpo=0)
    with pytest.raises(OptionDisabled):
        services.orchestrator.open(1, "alice", 1, actor=BUYER, payment=10)
    with pytest.raises(OptionDisabled):
        services.orchestrator.open(42, "alice", 1, actor=BUYER, payment=0)


def test_quantity_checks(app, services):
    _configure()
    with pytest.raises(InvalidQuantity):
        services.orchestrator.open(1, "alice", "2", actor=BUYER, payment=20)
    with pytest.raises(InvalidQuantity):
        services.orchestrator.open(1, "alice", True, actor=BUYER, payment=10)
    with pytest.raises(SupplyExhausted):
        services.orchestrator.open(1, "alice", 0, actor=BUYER, payment=0)


def test_exact_payment_required(app, services):
    _configure(price=25)
    for bad in (None, 0, 49, 51, 50.0, 50.9, "50", "abc", True):
        with pytest.raises(InvalidPayment):
            services.orchestrator.open(1, "alice", 2, actor=BUYER, payment=bad)
    _configure(option_id=2, price=1)
    with pytest.raises(InvalidPayment):
        services.orchestrator.open(2, "alice", 1, actor=BUYER, payment=True)
    assert system.treasury_balance() == 0
    assert supply.amount_opened(1) == 0
    with pytest.raises(Unauthorized):
        services.orchestrator.open(1, "alice", 2, actor=None, payment=50)


def test_admin_issuance_mode():
    with running(LOOT_PAYMENT_MODE="admin") as svc:
        _configure(price=25)
        with pytest.raises(Unauthorized):
            svc.orchestrator.open(1, "alice", 1, actor=BUYER)
        with pytest.raises(InvalidPayment):
            svc.orchestrator.open(1, "alice", 1, actor=ADMIN, payment=25)
        result = svc.orchestrator.open(1, "alice", 1, actor=ADMIN)
        assert result.payment == 0
        assert system.treasury_balance() == 0
        assert supply.amount_opened(1) == 1


def test_preminted_class_transfers_from_pool():
    with running(ScriptedSource([0])) as svc:
        _configure(qpo=2, table=[0, 0, 0, 0, 0, 10_000])
        pool = svc.issuer.create_lot("treasury", 10)
        svc.issuer.approve_operator("treasury", "lootlots")
        db.session.commit()
        registry.set_class_binding(ADMIN, 5, pool)

        result = svc.orchestrator.open(1, "alice", 1, actor=BUYER, payment=10)
        assert list(result.token_ids) == [pool, pool]
        assert svc.issuer.balance_of("alice", pool) == 2
        assert svc.issuer.balance_of("treasury", pool) == 8
        assert db.session.get(TokenLot, pool).total_supply == 10


def test_empty_pool_rolls_back_whole_open():
    with running(ScriptedSource([0])) as svc:
        _configure(qpo=2, table=[0, 0, 0, 0, 0, 10_000])
        pool = svc.issuer.create_lot("treasury", 1)
        svc.issuer.approve_operator("treasury", "lootlots")
        db.session.commit()
        registry.set_class_binding(ADMIN, 5, pool)

        with pytest.raises(IssuanceFailed):
            svc.orchestrator.open(1, "alice", 1, actor=BUYER, payment=10)
        assert svc.issuer.balance_of("treasury", pool) == 1
        assert svc.issuer.balance_of("alice", pool) == 0
        assert supply.amount_opened(1) == 0
        assert system.treasury_balance() == 0
        assert OpenEvent.query.count() == 0


def test_failed_issuance_leaves_no_bindings():
    issuer = FailingIssuer(fail_on=2)
    with running(ScriptedSource([0, 1000]), issuer=issuer) as svc:
        _configure(qpo=2)
        with pytest.raises(IssuanceFailed):
            svc.orchestrator.open(1, "alice", 1, actor=BUYER, payment=10)
        assert _bound_tokens() == {}
        assert TokenLot.query.count() == 0
        assert supply.amount_opened(1) == 0
        assert OpenEvent.query.count() == 0

        # the lock table is free again; the next open succeeds
        result = svc.orchestrator.open(1, "alice", 1, actor=BUYER, payment=10)
        assert set(_bound_tokens()) == set(result.classes)


def test_paused_blocks_opens(app, services):
    _configure()
    system.set_paused(ADMIN, True)
    with pytest.raises(Paused):
        services.orchestrator.open(1, "alice", 1, actor=BUYER, payment=10)
    with pytest.raises(Unauthorized):
        system.set_paused(BUYER, False)
    system.set_paused(ADMIN, False)
    services.orchestrator.open(1, "alice", 1, actor=BUYER, payment=10)


class ReenteringIssuer(LedgerIssuer):
    orchestrator = None

    def create_lot(self, owner, amount):
        self.orchestrator.open(1, owner, 1, actor=BUYER, payment=10)
        return super().create_lot(owner, amount)


def test_reentrant_open_rejected():
    issuer = ReenteringIssuer()
    with running(ScriptedSource([0]), issuer=issuer) as svc:
        issuer.orchestrator = svc.orchestrator
        _configure(qpo=1)
        with pytest.raises(ReentrantCall):
            svc.orchestrator.open(1, "alice", 1, actor=BUYER, payment=10)
        assert supply.amount_opened(1) == 0
        assert OpenEvent.query.count() == 0


def test_event_recorded_once_per_open(app, services):
    _configure()
    result = services.orchestrator.open(1, "alice", 2, actor=BUYER, payment=20)
    total, rows = list_events(recipient="alice")
    assert total == 1
    assert rows[0]["event_id"] == result.event_id
    assert rows[0]["items_issued"] == 6
    assert rows[0]["classes"] == list(result.classes)
    assert list_events(option_id=2)[0] == 0


def test_keyed_source_replays_same_classes():
    runs = []
    for _ in range(2):
        with running(LOOT_RANDOM_SOURCE="keyed:99") as svc:
            _configure()
            runs.append(svc.orchestrator.open(1, "alice", 3, actor=BUYER, payment=30).classes)
    assert runs[0] == runs[1]
    assert len(runs[0]) == 9
