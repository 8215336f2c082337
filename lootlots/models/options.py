import datetime as dt

from .base import db, Model


class LootOption(Model):
    """A configured lootbox type."""
    __tablename__ = "loot_options"

    option_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    quantity_per_open = db.Column(db.Integer, nullable=False, default=0)   # 0 = disabled
    capacity = db.Column(db.Integer, nullable=False, default=0)            # 0 = unlimited
    class_probabilities = db.Column(db.JSON, nullable=False, default=list)
    price = db.Column(db.Integer, nullable=False, default=0)               # minor units
    updated_at = db.Column(db.DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow)


class ClassRecord(Model):
    __tablename__ = "class_records"

    class_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    preminted = db.Column(db.Boolean, nullable=False, default=False)
    token_id = db.Column(db.Integer, nullable=False, default=0)            # 0 = unbound


class SupplyCounter(Model):
    __tablename__ = "supply_counters"

    option_id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    amount_opened = db.Column(db.Integer, nullable=False, default=0)
