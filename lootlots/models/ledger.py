"""Item ledger tables backing the bundled issuer."""
import datetime as dt

from .base import db, Model


class TokenLot(Model):
    __tablename__ = "token_lots"

    token_id = db.Column(db.Integer, primary_key=True)
    creator = db.Column(db.String(64), nullable=False)
    total_supply = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=dt.datetime.utcnow)


class TokenBalance(Model):
    __tablename__ = "token_balances"
    __table_args__ = (db.UniqueConstraint("owner", "token_id", name="uq_balance_owner_token"),)

    id = db.Column(db.Integer, primary_key=True)
    owner = db.Column(db.String(64), nullable=False, index=True)
    token_id = db.Column(db.Integer, db.ForeignKey("token_lots.token_id"), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False, default=0)


class OperatorApproval(Model):
    __tablename__ = "operator_approvals"

    owner = db.Column(db.String(64), primary_key=True)
    operator = db.Column(db.String(64), primary_key=True)
    approved = db.Column(db.Boolean, nullable=False, default=False)
