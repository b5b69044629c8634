# Overview: Append-only audit trail written in the same transaction as the change.

from __future__ import annotations

from typing import Any

from flask import g, has_request_context, request

from ..extensions import db
from ..models import AuditLog
from phonepos.time_utils import parse_iso_datetime
from .pagination import paginate


def _actor_id() -> int | None:
    if not has_request_context():
        return None
    user = getattr(g, "current_user", None)
    return user.id if user else None


def _client_ip() -> str | None:
    if not has_request_context():
        return None
    return request.remote_addr


def record(
    *,
    action: str,
    entity: str,
    entity_id: int | None,
    old_data: dict[str, Any] | None = None,
    new_data: dict[str, Any] | None = None,
    user_id: int | None = None,
) -> AuditLog:
    """
    Stage an audit row on the current session. The caller commits.

    The acting user and client IP are taken from the request when not given.
    """
    entry = AuditLog(
        user_id=user_id if user_id is not None else _actor_id(),
        action=action,
        entity=entity,
        entity_id=entity_id,
        old_data=old_data,
        new_data=new_data,
        ip_address=_client_ip(),
    )
    db.session.add(entry)
    return entry


def list_audit_logs(
    *,
    action: str | None = None,
    entity: str | None = None,
    user_id: int | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(AuditLog)
    if action:
        query = query.filter(AuditLog.action == action)
    if entity:
        query = query.filter(AuditLog.entity == entity)
    if user_id:
        query = query.filter(AuditLog.user_id == user_id)
    start = parse_iso_datetime(date_from)
    if start:
        query = query.filter(AuditLog.created_at >= start)
    end = parse_iso_datetime(date_to)
    if end:
        query = query.filter(AuditLog.created_at <= end)

    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    return paginate(query, page=page, per_page=per_page)
