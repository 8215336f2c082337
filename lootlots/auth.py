"""Buyer sessions via Flask-Login.

Accounts are identified by email only; there are no passwords in this
service. The session user's ``user_id`` becomes the recipient of its opens.
"""
import datetime as dt
import logging

from flask import Blueprint, jsonify, request
from flask_login import LoginManager, current_user, login_required, login_user, logout_user

from .models import db, User
from .schemas import LoginIn, RegisterIn

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth_bp", __name__)
login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, user_id)


@login_manager.unauthorized_handler
def _unauthorized():
    return jsonify(error="unauthorized"), 401


def _start_session(u: User):
    login_user(u, remember=True)
    u.last_login_at = dt.datetime.utcnow()
    db.session.commit()
    return jsonify(u.to_dict()), 200


@auth_bp.post("/register")
def register():
    body = RegisterIn.model_validate(request.get_json(force=True, silent=True) or {})
    if User.query.filter_by(email=body.email).first():
        return jsonify(error="Email already registered."), 409
    u = User(email=body.email, display_name=body.display_name.strip())
    db.session.add(u)
    db.session.commit()
    logger.info("register user_id=%s", u.user_id)
    return _start_session(u)


@auth_bp.post("/login")
def login():
    body = LoginIn.model_validate(request.get_json(force=True, silent=True) or {})
    u = User.query.filter_by(email=body.email).first()
    if not u:
        return jsonify(error="User not found."), 404
    if not u.is_active:
        return jsonify(error="Account disabled."), 403
    return _start_session(u)


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(current_user.to_dict()), 200


@auth_bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify(ok=True), 200
