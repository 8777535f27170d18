import json
from datetime import date, datetime, time, timedelta
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.gymadmin.models import AuditEvent, User

AUDIT_PAGE_SIZE = 200


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditEvent:
    """
    Append-only audit event helper. Works outside requests too (scripts), where
    request id and client address are left empty.
    """
    in_request = has_request_context()
    ev = AuditEvent(
        request_id=getattr(g, "request_id", None) if in_request else None,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=request.remote_addr if in_request else None,
    )
    s.add(ev)
    return ev


def query_events(
    s: Session,
    *,
    action: str = "",
    actor_email: str = "",
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = AUDIT_PAGE_SIZE,
) -> list[AuditEvent]:
    """Newest first. `action` and `actor_email` are substring matches; `date_to` is inclusive."""
    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))
    return q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit).all()
