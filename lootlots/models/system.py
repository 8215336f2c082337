import datetime as dt

from .base import db, Model

SYSTEM_ROW_ID = 1


class SystemState(Model):
    """Singleton row: pause switch and accumulated payments."""
    __tablename__ = "system_state"

    id = db.Column(db.Integer, primary_key=True, default=SYSTEM_ROW_ID)
    paused = db.Column(db.Boolean, nullable=False, default=False)
    treasury_balance = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow)


class Withdrawal(Model):
    __tablename__ = "withdrawals"

    id = db.Column(db.Integer, primary_key=True)
    actor = db.Column(db.String(64))
    recipient = db.Column(db.String(64), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=dt.datetime.utcnow)
