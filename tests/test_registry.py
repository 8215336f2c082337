import pytest

from lootlots.errors import (
    InvalidProbabilityTable,
    NotAuthorizedForTransfer,
    Unauthorized,
    UnknownClass,
    UnknownOption,
)
from lootlots.models import db, AdminAuditLog, SupplyCounter
from lootlots.schemas import OptionSettingsIn
from lootlots.services import registry

from conftest import ADMIN, BUYER, make_app


def _settings(**kw):
    base = dict(quantity_per_open=1, capacity=0, class_probabilities=[0, 5000, 3000, 1500, 400, 100], price=10)
    base.update(kw)
    return OptionSettingsIn(**base)


def test_unknown_option_reads_as_disabled(app):
    opt = registry.get_option(77)
    assert opt.option_id == 77
    assert opt.quantity_per_open == 0
    assert not opt.enabled
    assert opt.class_probabilities == (0, 0, 0, 0, 0, 0)


def test_set_option_overwrites_and_seeds_counter(app):
    registry.set_option(ADMIN, 1, _settings())
    opt = registry.set_option(ADMIN, 1, _settings(quantity_per_open=3, capacity=10, price=50))
    assert (opt.quantity_per_open, opt.capacity, opt.price) == (3, 10, 50)
    assert db.session.get(SupplyCounter, 1).amount_opened == 0
    assert AdminAuditLog.query.filter_by(action="set_option", target_id="1").count() == 2


def test_disable_by_zero_quantity(app):
    registry.set_option(ADMIN, 1, _settings())
    opt = registry.set_option(ADMIN, 1, _settings(quantity_per_open=0))
    assert not opt.enabled


def test_set_option_requires_privileged_actor(app):
    with pytest.raises(Unauthorized):
        registry.set_option(BUYER, 1, _settings())
    with pytest.raises(Unauthorized):
        registry.set_option(None, 1, _settings())
    assert registry.list_options() == []


def test_over_allocated_table_rejected(app):
    with pytest.raises(InvalidProbabilityTable):
        registry.set_option(ADMIN, 1, _settings(class_probabilities=[0, 5000, 5000, 1, 0, 0]))
    assert registry.list_options() == []


def test_common_weight_not_counted_in_sum(app):
    opt = registry.set_option(ADMIN, 1, _settings(class_probabilities=[10_000, 0, 0, 0, 0, 10_000]))
    assert opt.class_probabilities[5] == 10_000


def test_validate_probabilities_policies():
    assert registry.validate_probabilities([0, 50, 0, 0, 0, 0], 100) == [0, 50, 0, 0, 0, 0]
    with pytest.raises(InvalidProbabilityTable):
        registry.validate_probabilities([0, 50, 0, 0, 0, 0], 100, exact=True)
    with pytest.raises(InvalidProbabilityTable):
        registry.validate_probabilities([0, -1, 0, 0, 0, 0], 100)
    with pytest.raises(InvalidProbabilityTable):
        registry.validate_probabilities([0, 1, 2], 100)


def test_option_ids_limited_by_config():
    app = make_app(LOOT_OPTION_IDS=(0, 1, 2))
    with app.app_context():
        registry.set_option(ADMIN, 2, _settings())
        with pytest.raises(UnknownOption):
            registry.set_option(ADMIN, 3, _settings())
        # reads never fail
        assert not registry.get_option(3).enabled


def test_class_binding_requires_operator_approval(app, services):
    issuer = services.issuer
    token_id = issuer.create_lot("treasury", 100)
    db.session.commit()
    with pytest.raises(NotAuthorizedForTransfer):
        registry.set_class_binding(ADMIN, 4, token_id)
    assert registry.get_class_records()[4] == {"class_id": 4, "preminted": False, "token_id": 0}

    issuer.approve_operator("treasury", "lootlots")
    db.session.commit()
    rec = registry.set_class_binding(ADMIN, 4, token_id)
    assert rec == {"class_id": 4, "preminted": True, "token_id": token_id}


def test_class_binding_checks(app, services):
    services.issuer.approve_operator("treasury", "lootlots")
    db.session.commit()
    with pytest.raises(Unauthorized):
        registry.set_class_binding(BUYER, 1, 5)
    with pytest.raises(UnknownClass):
        registry.set_class_binding(ADMIN, 6, 5)
