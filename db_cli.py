# db_cli.py: lootlots admin/DB CLI
import os, sys, json, argparse
from typing import List, Optional

# App + models
from lootlots import create_app
from lootlots.config import CLASS_NAMES, NUM_CLASSES
from lootlots.models import db, User
from lootlots.schemas import OptionSettingsIn
from lootlots.security import issue_admin_token
from lootlots.security_rbac import ROLE_ORDER
from lootlots.services import current_services, registry, supply, system
from lootlots.services.guards import Actor
from lootlots.services.opener import list_events

CLI_ACTOR = Actor(account="cli", role="admin")


def print_rows(rows: List[tuple], headers: List[str]) -> None:
    if not rows:
        print("(no rows)")
        return
    widths = [len(h) for h in headers]
    for r in rows:
        for i, v in enumerate(r):
            widths[i] = max(widths[i], len("" if v is None else str(v)))
    line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    print(line)
    print("-+-".join("-" * w for w in widths))
    for r in rows:
        print(" | ".join(("" if v is None else str(v)).ljust(widths[i]) for i, v in enumerate(r)))


def _probs(raw: str) -> List[int]:
    parts = [p.strip() for p in (raw or "").split(",") if p.strip()]
    return [int(p) for p in parts]


# --------------------
# Commands
# --------------------

def cmd_init_db(args):
    db.create_all()
    registry.ensure_class_records()
    system.ensure_state()
    db.session.commit()
    print(json.dumps({"ok": True}, indent=2))


def cmd_options(args):
    rows = []
    for o in registry.list_options():
        rem = supply.remaining(o)
        rows.append((
            o.option_id, o.quantity_per_open, o.capacity or "unlimited",
            supply.amount_opened(o.option_id),
            "unlimited" if o.capacity == 0 else rem,
            ",".join(str(p) for p in o.class_probabilities), o.price,
        ))
    print_rows(rows, ["option_id", "per_open", "capacity", "opened", "remaining", "probabilities", "price"])


def cmd_set_option(args):
    settings = OptionSettingsIn(
        quantity_per_open=args.per_open,
        capacity=args.capacity,
        class_probabilities=_probs(args.probabilities),
        price=args.price,
    )
    opt = registry.set_option(CLI_ACTOR, args.id, settings)
    print(json.dumps(opt.to_dict(), indent=2))


def cmd_seed_options(args):
    path = args.file
    if not os.path.exists(path):
        print(f"Seed file not found: {path}")
        return
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    count = 0
    for entry in payload.get("options") or []:
        option_id = int(entry.pop("option_id"))
        registry.set_option(CLI_ACTOR, option_id, OptionSettingsIn.model_validate(entry))
        count += 1
    print(json.dumps({"ok": True, "options": count}, indent=2))


def cmd_validate(args):
    from flask import current_app
    total = int(current_app.config["LOOT_PROBABILITY_TOTAL"])
    probs = registry.validate_probabilities(_probs(args.probabilities), total, exact=args.exact)
    print(json.dumps({"ok": True, "total": total, "weighted": sum(probs[1:])}, indent=2))


def cmd_classes(args):
    rows = [
        (cid, CLASS_NAMES[cid], "yes" if rec["preminted"] else "no", rec["token_id"] or None)
        for cid, rec in registry.get_class_records().items()
    ]
    print_rows(rows, ["class_id", "name", "preminted", "token_id"])


def cmd_bind_class(args):
    if not 0 <= args.class_id < NUM_CLASSES:
        raise SystemExit(f"class_id must be in 0..{NUM_CLASSES - 1}")
    rec = registry.set_class_binding(CLI_ACTOR, args.class_id, args.token_id)
    print(json.dumps(rec, indent=2))


def cmd_approve(args):
    from flask import current_app
    issuer = current_services().issuer
    owner = args.owner or current_app.config["LOOT_POOL_OWNER"]
    operator = current_app.config["LOOT_OPERATOR"]
    issuer.approve_operator(owner, operator, not args.revoke)
    db.session.commit()
    print(json.dumps({"ok": True, "owner": owner, "operator": operator, "approved": not args.revoke}, indent=2))


def cmd_events(args):
    _, rows = list_events(option_id=args.option, recipient=args.recipient, limit=args.limit)
    print_rows(
        [(e["event_id"], e["option_id"], e["recipient"], e["quantity"], e["items_issued"],
          ",".join(str(c) for c in e["classes"]), e["created_at"]) for e in rows],
        ["event_id", "option_id", "recipient", "qty", "items", "classes", "created_at"],
    )


def cmd_pause(args):
    system.set_paused(CLI_ACTOR, True)
    print(json.dumps({"ok": True, "paused": True}, indent=2))


def cmd_resume(args):
    system.set_paused(CLI_ACTOR, False)
    print(json.dumps({"ok": True, "paused": False}, indent=2))


def cmd_treasury(args):
    print(json.dumps({"balance": system.treasury_balance(), "paused": system.is_paused()}, indent=2))


def cmd_admin_token(args):
    print(issue_admin_token(uid=args.uid, ttl=args.ttl))


def cmd_user_role(args):
    u = User.query.filter_by(email=args.email).first()
    if not u:
        print("User not found.")
        return
    if not args.set:
        print(json.dumps(u.to_dict(), indent=2))
        return
    u.role = args.set
    db.session.commit()
    print(json.dumps({"ok": True, "user_id": u.user_id, "role": u.role}, indent=2))


def build_parser():
    p = argparse.ArgumentParser(description="lootlots DB CLI")
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("init-db", help="Create tables and seed class records")
    s.set_defaults(func=cmd_init_db)

    s = sub.add_parser("options", help="List options with supply")
    s.set_defaults(func=cmd_options)

    s = sub.add_parser("set-option", help="Create or replace an option")
    s.add_argument("--id", type=int, required=True)
    s.add_argument("--per-open", type=int, default=0, help="Items per open; 0 disables")
    s.add_argument("--capacity", type=int, default=0, help="Max opens; 0 is unlimited")
    s.add_argument("--probabilities", required=True, help=f"{NUM_CLASSES} comma-separated weights")
    s.add_argument("--price", type=int, default=0)
    s.set_defaults(func=cmd_set_option)

    s = sub.add_parser("seed-options", help="Load options from a JSON file")
    s.add_argument("--file", default="seeds/options.json")
    s.set_defaults(func=cmd_seed_options)

    s = sub.add_parser("validate", help="Check a probability table")
    s.add_argument("--probabilities", required=True)
    s.add_argument("--exact", action="store_true", help="Require weights to fill the total")
    s.set_defaults(func=cmd_validate)

    s = sub.add_parser("classes", help="List class bindings")
    s.set_defaults(func=cmd_classes)

    s = sub.add_parser("bind-class", help="Bind a preminted token pool to a class")
    s.add_argument("--class-id", type=int, required=True)
    s.add_argument("--token-id", type=int, required=True)
    s.set_defaults(func=cmd_bind_class)

    s = sub.add_parser("approve", help="Approve (or revoke) this service as operator of the pool")
    s.add_argument("--owner")
    s.add_argument("--revoke", action="store_true")
    s.set_defaults(func=cmd_approve)

    s = sub.add_parser("events", help="List open events")
    s.add_argument("--option", type=int)
    s.add_argument("--recipient")
    s.add_argument("--limit", type=int, default=50)
    s.set_defaults(func=cmd_events)

    s = sub.add_parser("pause", help="Pause opens")
    s.set_defaults(func=cmd_pause)
    s = sub.add_parser("resume", help="Resume opens")
    s.set_defaults(func=cmd_resume)
    s = sub.add_parser("treasury", help="Show treasury balance")
    s.set_defaults(func=cmd_treasury)

    s = sub.add_parser("admin-token", help="Issue a signed admin token")
    s.add_argument("--uid", default="ops")
    s.add_argument("--ttl", type=int)
    s.set_defaults(func=cmd_admin_token)

    s = sub.add_parser("user-role", help="Get or set a user's role")
    s.add_argument("--email", required=True)
    s.add_argument("--set", choices=ROLE_ORDER, help="Set a new role")
    s.set_defaults(func=cmd_user_role)

    return p


def main(argv: Optional[List[str]] = None, app=None):
    args = build_parser().parse_args(argv)
    app = app or create_app()
    with app.app_context():
        args.func(args)


if __name__ == "__main__":
    main(sys.argv[1:])
