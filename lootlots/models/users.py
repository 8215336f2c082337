import uuid, datetime as dt
from flask_login import UserMixin

from .base import db, Model


class User(Model, UserMixin):
    """A buyer account. Its ``user_id`` is the recipient of every open it makes."""
    __tablename__ = "users"

    user_id = db.Column(db.String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(64))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    role = db.Column(db.String(16), nullable=False, default="user")
    scopes = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, nullable=False, default=dt.datetime.utcnow)
    last_login_at = db.Column(db.DateTime)

    def get_id(self):
        return self.user_id

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_login_at": self.last_login_at.isoformat() if self.last_login_at else None,
        }
