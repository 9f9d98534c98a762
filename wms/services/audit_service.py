from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import select
from sqlalchemy.orm import Session

from wms.models import AuditLog, AuthEvent
from wms.services.time_utils import epoch_ms

logger = logging.getLogger(__name__)


def _json_safe(value):
    if isinstance(value, dict):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return epoch_ms(value)
    return value


def log_auth_event(
    db: Session,
    *,
    attempted_username: str,
    success: bool,
    ip: str | None,
    user_agent: str | None,
    user_id: int | None = None,
    failure_reason: str | None = None,
) -> None:
    db.add(
        AuthEvent(
            attempted_username=attempted_username[:150],
            success=success,
            failure_reason=failure_reason,
            user_id=user_id,
            ip=ip,
            user_agent=user_agent,
        )
    )
    if not success:
        logger.warning('login_failed', extra={'username': attempted_username, 'reason': failure_reason})


def log_audit(
    db: Session,
    *,
    actor_user_id: int | None,
    action: str,
    entity_type: str | None,
    entity_id: int | None,
    ip: str | None,
    metadata: dict | None = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction.

    The row is committed together with the mutation it describes, so a
    rolled back request leaves no trail behind.
    """
    entry = AuditLog(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        ip=ip,
        meta=_json_safe(metadata or {}),
    )
    db.add(entry)
    logger.info(
        'audit_recorded',
        extra={'action': action, 'entity_type': entity_type, 'entity_id': entity_id, 'user_id': actor_user_id},
    )
    return entry


def list_audit_entries(db: Session, *, entity_type: str, entity_id: int) -> list[dict]:
    rows = db.execute(
        select(AuditLog)
        .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
        .order_by(AuditLog.id.asc())
    ).scalars().all()
    return [
        {
            'id': row.id,
            'action': row.action,
            'actor_user_id': row.actor_user_id,
            'metadata': row.meta or {},
            'created_at': epoch_ms(row.created_at),
        }
        for row in rows
    ]
