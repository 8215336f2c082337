import threading
import time

import pytest
import sqlalchemy as sa

from lootlots.errors import BindingConflict, SupplyExhausted
from lootlots.models import db, ClassRecord, OpenEvent, TokenLot
from lootlots.schemas import OptionSettingsIn
from lootlots.services import registry, supply, system
from lootlots.services.issuance import LedgerIssuer
from lootlots.services.opener import OpenResult

from conftest import ADMIN, BUYER, ScriptedSource, make_app


def _file_app(tmp_path):
    return make_app(
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{tmp_path / 'loot.db'}",
        SQLALCHEMY_ENGINE_OPTIONS={"connect_args": {"timeout": 30}},
    )


def _run_threads(app, jobs):
    results, errors = [], []
    barrier = threading.Barrier(len(jobs))

    def worker(option_id, recipient):
        with app.app_context():
            barrier.wait()
            try:
                results.append(app.extensions["lootlots"].orchestrator.open(
                    option_id, recipient, 1, actor=BUYER, payment=5))
            except SupplyExhausted as e:
                errors.append(e)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=job) for job in jobs]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


def test_parallel_opens_never_exceed_capacity(tmp_path):
    app = _file_app(tmp_path)
    with app.app_context():
        registry.set_option(ADMIN, 1, OptionSettingsIn(
            quantity_per_open=1, capacity=5, class_probabilities=[0, 0, 0, 0, 0, 10_000], price=5))

    results, errors = _run_threads(app, [(1, f"buyer-{i}") for i in range(12)])

    assert len(results) == 5
    assert len(errors) == 7
    with app.app_context():
        assert supply.amount_opened(1) == 5
        db.session.remove()


def test_first_binding_happens_once_across_options(tmp_path):
    app = _file_app(tmp_path)
    with app.app_context():
        for option_id in (1, 2, 3):
            registry.set_option(ADMIN, option_id, OptionSettingsIn(
                quantity_per_open=1, capacity=0, class_probabilities=[0, 0, 0, 0, 0, 10_000], price=5))

    results, errors = _run_threads(app, [(1 + i % 3, f"buyer-{i}") for i in range(9)])

    assert errors == []
    assert len({r.token_ids[0] for r in results}) == 1
    with app.app_context():
        assert TokenLot.query.count() == 1
        record = db.session.get(ClassRecord, 5)
        assert record.token_id == results[0].token_ids[0]
        assert db.session.get(TokenLot, record.token_id).total_supply == 9
        db.session.remove()


class PausingIssuer(LedgerIssuer):
    """Holds the first mint open until a second open has started."""

    def __init__(self):
        self.minted = threading.Event()
        self.other_started = threading.Event()

    def mint_into(self, dst, token_id, amount):
        super().mint_into(dst, token_id, amount)
        if not self.minted.is_set():
            self.minted.set()
            self.other_started.wait(timeout=5)
            time.sleep(0.2)


def test_bound_mint_then_first_bind_does_not_block_other_binder(tmp_path):
    # rare (2) is bound; epic (3) and legendary (4) are not
    issuer = PausingIssuer()
    table = [0, 0, 3000, 3000, 4000, 0]
    app = make_app(
        issuer=issuer,
        random_source=ScriptedSource([8000, 0, 5000]),
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{tmp_path / 'loot.db'}",
        SQLALCHEMY_ENGINE_OPTIONS={"connect_args": {"timeout": 3}},
    )
    with app.app_context():
        registry.set_option(ADMIN, 1, OptionSettingsIn(
            quantity_per_open=2, capacity=0, class_probabilities=table, price=5))
        registry.set_option(ADMIN, 2, OptionSettingsIn(
            quantity_per_open=1, capacity=0, class_probabilities=table, price=5))
        rare = issuer.create_lot("treasury", 1)
        db.session.get(ClassRecord, 2).token_id = rare
        db.session.commit()

    outcomes = {}

    def first():
        with app.app_context():
            try:
                outcomes["first"] = app.extensions["lootlots"].orchestrator.open(
                    1, "alice", 1, actor=BUYER, payment=5)
            except Exception as e:
                outcomes["first"] = e
            finally:
                db.session.remove()

    def second():
        issuer.minted.wait(timeout=5)
        with app.app_context():
            issuer.other_started.set()
            try:
                outcomes["second"] = app.extensions["lootlots"].orchestrator.open(
                    2, "bob", 1, actor=BUYER, payment=5)
            except Exception as e:
                outcomes["second"] = e
            finally:
                db.session.remove()

    threads = [threading.Thread(target=first), threading.Thread(target=second)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert not any(t.is_alive() for t in threads)
    assert isinstance(outcomes["first"], OpenResult), outcomes["first"]
    assert isinstance(outcomes["second"], OpenResult), outcomes["second"]
    assert list(outcomes["first"].classes) == [2, 4]
    assert list(outcomes["second"].classes) == [3]
    with app.app_context():
        bound = {r.class_id: r.token_id for r in ClassRecord.query.all() if r.token_id}
        assert set(bound) == {2, 3, 4}
        assert TokenLot.query.count() == 3
        db.session.remove()


class RacedIssuer(LedgerIssuer):
    """Another process binds the class between the record read and our bind."""

    rival_token = None

    def create_lot(self, owner, amount):
        with db.engine.begin() as conn:
            conn.execute(
                sa.update(ClassRecord)
                .where(ClassRecord.class_id == 5, ClassRecord.token_id == 0)
                .values(token_id=self.rival_token)
            )
        return super().create_lot(owner, amount)


def test_lost_bind_race_rolls_back_open(tmp_path):
    issuer = RacedIssuer()
    app = make_app(
        issuer=issuer,
        random_source=ScriptedSource([0]),
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{tmp_path / 'loot.db'}",
    )
    with app.app_context():
        registry.set_option(ADMIN, 1, OptionSettingsIn(
            quantity_per_open=1, capacity=3, class_probabilities=[0, 0, 0, 0, 0, 10_000], price=5))
        issuer.rival_token = LedgerIssuer().create_lot("rival", 1)
        db.session.commit()

        with pytest.raises(BindingConflict):
            app.extensions["lootlots"].orchestrator.open(1, "alice", 1, actor=BUYER, payment=5)

        assert db.session.get(ClassRecord, 5).token_id == issuer.rival_token
        assert TokenLot.query.count() == 1
        assert issuer.balance_of("alice", issuer.rival_token) == 0
        assert supply.amount_opened(1) == 0
        assert system.treasury_balance() == 0
        assert OpenEvent.query.count() == 0
        db.session.remove()
