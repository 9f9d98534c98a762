from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from wms.auth import Principal, Role, get_current_principal, require_role
from wms.db import get_db
from wms.dependencies import get_client_ip
from wms.services import lookup_service
from wms.services.audit_service import log_audit

router = APIRouter(prefix='/lookups', tags=['lookups'])


@router.get('')
def get_lookups_by_type(
    lookup_type: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    rows = lookup_service.get_lookups_by_type(db, lookup_type=lookup_type)
    return [lookup_service.serialize_lookup(row) for row in rows]


@router.get('/return-reasons')
def list_return_reasons(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return [lookup_service.serialize_lookup(row) for row in lookup_service.list_return_reasons(db)]


@router.post('/seed')
def seed_lookups(
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role(Role.ADMIN)),
):
    touched = lookup_service.seed_default_lookups(db)
    log_audit(
        db,
        actor_user_id=principal.id,
        action='LOOKUPS_SEEDED',
        entity_type='system_lookup',
        entity_id=None,
        ip=get_client_ip(request),
        metadata={'rows': touched},
    )
    db.commit()
    return {'success': True, 'rows': touched}
