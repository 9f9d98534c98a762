from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastapi import Request
from sqlalchemy import select

from wms.config import settings
from wms.models import User, UserRole, WebSession
from wms.services.time_utils import as_utc

if TYPE_CHECKING:
    from wms.auth import Principal


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _session_expiry() -> datetime:
    return _now() + timedelta(minutes=settings.session_ttl_minutes)


def bearer_token(request: Request) -> str | None:
    header = request.headers.get('authorization') or ''
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def create_web_session(db, user_id: int, ip: str | None, user_agent: str | None) -> WebSession:
    web_session = WebSession(
        session_token=secrets.token_urlsafe(48),
        user_id=user_id,
        ip=ip,
        user_agent=user_agent,
        expires_at=_session_expiry(),
    )
    db.add(web_session)
    db.flush()
    return web_session


def revoke_web_session(db, token: str) -> None:
    session = db.execute(select(WebSession).where(WebSession.session_token == token)).scalar_one_or_none()
    if not session or session.revoked_at is not None:
        return
    session.revoked_at = _now()


def load_principal_from_token(db, token: str | None) -> Principal | None:
    from wms.auth import Principal

    if not token:
        return None

    row = db.execute(
        select(WebSession, User)
        .join(User, User.id == WebSession.user_id)
        .where(WebSession.session_token == token)
    ).one_or_none()
    if not row:
        return None

    web_session, user = row
    now = _now()
    if web_session.revoked_at is not None or as_utc(web_session.expires_at) <= now:
        return None

    web_session.last_seen_at = now
    web_session.expires_at = _session_expiry()
    return Principal(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        role=UserRole(user.role),
        organization_id=user.organization_id,
        branch_id=user.branch_id,
        active=user.active,
    )
