# Overview: Append-only activity log for order and payment actions.
"""
Activity log invariants:

- Append-only: rows are never updated or deleted.
- Written inside the same transaction as the action they describe.
- details is JSON; callers pass plain dicts.
"""

from __future__ import annotations

import json
from typing import Any

from ..extensions import db
from ..models import ActivityLog


def log_activity(
    *,
    user_email: str,
    action: str,
    user_role: str | None = None,
    entity_type: str | None = None,
    entity_id: int | None = None,
    details: dict[str, Any] | None = None,
) -> ActivityLog:
    entry = ActivityLog(
        user_email=user_email or "unknown",
        user_role=user_role,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=json.dumps(details, default=str) if details else None,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_activity(*, action: str | None = None, limit: int = 100) -> list[ActivityLog]:
    query = db.session.query(ActivityLog)
    if action:
        query = query.filter_by(action=action)
    return query.order_by(ActivityLog.id.desc()).limit(limit).all()
