from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from wms.auth import Principal, get_current_principal
from wms.db import get_db
from wms.dependencies import get_client_ip, get_user_agent
from wms.errors import build_error_envelope
from wms.models import User
from wms.schemas import LoginIn
from wms.security.passwords import verify_and_rehash
from wms.security.sessions import bearer_token, create_web_session, revoke_web_session
from wms.services.audit_service import log_audit, log_auth_event
from wms.services.time_utils import epoch_ms

router = APIRouter(prefix='/auth', tags=['auth'])


def _invalid_login() -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content=build_error_envelope(
            code='invalid_credentials',
            message='Invalid username or password',
            status_code=401,
        ),
    )


@router.post('/login')
def login(payload: LoginIn, request: Request, db: Session = Depends(get_db)):
    username = payload.username.strip()
    ip = get_client_ip(request)
    user_agent = get_user_agent(request)

    user = db.execute(select(User).where(User.username == username)).scalar_one_or_none()
    failure_reason = None
    upgraded_hash = None
    if not user:
        failure_reason = 'UNKNOWN_USERNAME'
    elif not user.active:
        failure_reason = 'INACTIVE_USER'
    else:
        valid, upgraded_hash = verify_and_rehash(payload.password, user.password_hash)
        if not valid:
            failure_reason = 'BAD_PASSWORD'

    if failure_reason:
        log_auth_event(
            db,
            attempted_username=username,
            success=False,
            failure_reason=failure_reason,
            user_id=user.id if user else None,
            ip=ip,
            user_agent=user_agent,
        )
        db.commit()
        return _invalid_login()

    if upgraded_hash:
        user.password_hash = upgraded_hash
    web_session = create_web_session(db, user.id, ip=ip, user_agent=user_agent)
    log_auth_event(
        db,
        attempted_username=username,
        success=True,
        failure_reason=None,
        user_id=user.id,
        ip=ip,
        user_agent=user_agent,
    )
    log_audit(
        db,
        actor_user_id=user.id,
        action='AUTH_LOGIN',
        entity_type='user',
        entity_id=user.id,
        ip=ip,
        metadata={'username': username},
    )
    db.commit()

    return {
        'success': True,
        'token': web_session.session_token,
        'token_type': 'bearer',
        'expires_at': epoch_ms(web_session.expires_at),
        'user': {
            'id': user.id,
            'full_name': user.full_name,
            'role': user.role.value,
            'organization_id': user.organization_id,
            'branch_id': user.branch_id,
        },
    }


@router.post('/logout')
def logout(
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    token = bearer_token(request)
    if token:
        revoke_web_session(db, token)

    log_audit(
        db,
        actor_user_id=principal.id,
        action='AUTH_LOGOUT',
        entity_type='user',
        entity_id=principal.id,
        ip=get_client_ip(request),
        metadata={},
    )
    db.commit()
    return {'success': True}


@router.get('/me')
def me(principal: Principal = Depends(get_current_principal)):
    return {
        'id': principal.id,
        'username': principal.username,
        'full_name': principal.full_name,
        'role': principal.role.value,
        'organization_id': principal.organization_id,
        'branch_id': principal.branch_id,
    }
