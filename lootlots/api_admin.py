# lootlots/api_admin.py
from flask import Blueprint, current_app, g, jsonify, request

from .config import ADMIN_SCOPE
from .api_options import _meta, _pg, serialize_option
from .schemas import ClassBindingIn, IssueIn, OptionSettingsIn, ValidateTableIn, WithdrawIn
from .security import admin_guard
from .services import current_services, registry, system
from .services.guards import actor_from_token
from .services.opener import list_events
from .services.selector import effective_odds

admin_api = Blueprint("admin_api", __name__, url_prefix="/api/admin")


@admin_api.before_request
def _require_admin():
    # allow CORS preflight if needed
    if request.method == "OPTIONS":
        return
    admin_guard([ADMIN_SCOPE])


def _actor():
    return actor_from_token(g.admin)


def _body():
    return request.get_json(force=True, silent=True) or {}


# ---------------- Options ----------------
@admin_api.put("/options/<int:option_id>")
def option_put(option_id: int):
    settings = OptionSettingsIn.model_validate(_body())
    option = registry.set_option(_actor(), option_id, settings)
    return jsonify(serialize_option(option, int(current_app.config["LOOT_PROBABILITY_TOTAL"])))


@admin_api.post("/options/validate")
def option_validate():
    body = ValidateTableIn.model_validate(_body())
    total = int(current_app.config["LOOT_PROBABILITY_TOTAL"])
    probs = registry.validate_probabilities(body.class_probabilities, total, exact=body.exact)
    return jsonify(ok=True, total=total, odds=effective_odds(probs, total))


@admin_api.post("/options/<int:option_id>/issue")
def option_issue(option_id: int):
    body = IssueIn.model_validate(_body())
    result = current_services().orchestrator.open(
        option_id, body.recipient, body.quantity, actor=_actor()
    )
    return jsonify(result.to_dict()), 201


# ---------------- Classes ----------------
@admin_api.put("/classes/<int:class_id>")
def class_put(class_id: int):
    body = ClassBindingIn.model_validate(_body())
    record = registry.set_class_binding(_actor(), class_id, body.token_id)
    return jsonify(record)


# ---------------- System ----------------
@admin_api.post("/pause")
def pause():
    return jsonify(paused=system.set_paused(_actor(), True))


@admin_api.post("/resume")
def resume():
    return jsonify(paused=system.set_paused(_actor(), False))


@admin_api.get("/treasury")
def treasury():
    return jsonify(balance=system.treasury_balance(), paused=system.is_paused())


@admin_api.post("/withdraw")
def withdraw():
    body = WithdrawIn.model_validate(_body())
    recipient = body.recipient or current_app.config["LOOT_POOL_OWNER"]
    amount = system.withdraw(_actor(), recipient)
    return jsonify(withdrawn=amount, recipient=recipient)


# ---------------- Events ----------------
@admin_api.get("/events")
def events():
    page, limit, offset = _pg()
    option_id = request.args.get("option_id", type=int)
    recipient = request.args.get("recipient")
    total, rows = list_events(option_id=option_id, recipient=recipient, limit=limit, offset=offset)
    return jsonify(events=rows, meta=_meta(total, page, limit))
