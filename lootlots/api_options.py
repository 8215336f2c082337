"""Buyer-facing loot API.

Routes live under ``/api``: browse options and class bindings, open an option
as the logged-in user, and read your own open history.
"""
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from .config import CLASS_NAMES
from .schemas import OpenIn
from .services import current_services, registry, supply
from .services.guards import actor_from_user
from .services.opener import list_events
from .services.selector import effective_odds

bp = Blueprint("options_api", __name__, url_prefix="/api")


def _pg():
    # default limit 50; cap at 500
    try: page = max(1, int(request.args.get("page", 1)))
    except ValueError: page = 1
    try: limit = int(request.args.get("limit", 50))
    except ValueError: limit = 50
    limit = max(1, min(limit, 500))
    offset = (page - 1) * limit
    return page, limit, offset


def _meta(total, page, limit):
    pages = (total + limit - 1) // limit if total else 1
    return {"total": int(total), "page": page, "limit": limit, "pages": int(max(1, pages))}


def serialize_option(option, total: int) -> dict:
    data = option.to_dict()
    data["amount_opened"] = supply.amount_opened(option.option_id)
    data["remaining"] = supply.remaining(option)
    data["unlimited"] = option.capacity == 0
    data["odds"] = {
        CLASS_NAMES[i]: share for i, share in enumerate(effective_odds(option.class_probabilities, total))
    }
    data["total"] = total
    return data


def _total() -> int:
    return int(current_app.config["LOOT_PROBABILITY_TOTAL"])


@bp.get("/options")
def options_list():
    total = _total()
    return jsonify(options=[serialize_option(o, total) for o in registry.list_options()])


@bp.get("/options/<int:option_id>")
def option_detail(option_id: int):
    return jsonify(serialize_option(registry.get_option(option_id), _total()))


@bp.get("/classes")
def classes_list():
    records = registry.get_class_records()
    out = []
    for class_id, rec in records.items():
        out.append({**rec, "name": CLASS_NAMES[class_id]})
    return jsonify(classes=out)


@bp.post("/options/<int:option_id>/open")
@login_required
def open_option(option_id: int):
    body = OpenIn.model_validate(request.get_json(force=True, silent=True) or {})
    result = current_services().orchestrator.open(
        option_id,
        current_user.user_id,
        body.quantity,
        actor=actor_from_user(current_user),
        payment=body.payment,
    )
    return jsonify(result.to_dict()), 201


@bp.get("/events/me")
@login_required
def my_events():
    page, limit, offset = _pg()
    total, rows = list_events(recipient=current_user.user_id, limit=limit, offset=offset)
    return jsonify(events=rows, meta=_meta(total, page, limit))
