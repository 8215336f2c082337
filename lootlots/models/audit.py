import datetime as dt

from .base import db, Model


class AdminAuditLog(Model):
    __tablename__ = "admin_audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    actor = db.Column(db.String(64))
    action = db.Column(db.String(128), nullable=False)
    target_type = db.Column(db.String(64))
    target_id = db.Column(db.String(64))
    payload = db.Column(db.JSON)
    ip = db.Column(db.String(64))
    created_at = db.Column(
        db.DateTime, nullable=False, default=dt.datetime.utcnow
    )


class OpenEvent(Model):
    """One row per committed open; the audit trail of draw outcomes."""
    __tablename__ = "open_events"

    id = db.Column(db.Integer, primary_key=True)
    option_id = db.Column(db.Integer, nullable=False, index=True)
    recipient = db.Column(db.String(64), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    items_issued = db.Column(db.Integer, nullable=False)
    classes = db.Column(db.JSON, nullable=False, default=list)
    token_ids = db.Column(db.JSON, nullable=False, default=list)
    payment = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime, nullable=False, default=dt.datetime.utcnow
    )
