"""Role ordering and the admin audit trail."""
from __future__ import annotations

from flask import has_request_context, request

ROLE_ORDER = ["user", "support", "admin", "dev"]


def role_gte(a: str, b: str) -> bool:
    try:
        return ROLE_ORDER.index(a) >= ROLE_ORDER.index(b)
    except ValueError:
        return False


def audit(actor: str | None, action: str, target_type: str | None = None,
          target_id: str | None = None, payload=None):
    """Stage an admin audit log entry in the caller's transaction."""
    from .models import db, AdminAuditLog

    log = AdminAuditLog(
        actor=actor,
        action=action,
        target_type=target_type,
        target_id=None if target_id is None else str(target_id),
        payload=payload,
        ip=request.remote_addr if has_request_context() else None,
    )
    db.session.add(log)
    return log
