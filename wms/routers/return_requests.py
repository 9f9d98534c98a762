from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from wms.auth import (
    Principal,
    Role,
    assert_branch_scope,
    assert_organization_scope,
    get_current_principal,
    require_manager,
)
from wms.db import get_db
from wms.dependencies import get_client_ip
from wms.models import ReturnStatus
from wms.schemas import CreateReturnRequestIn, ReturnRequestRefIn, SetReturnRequestStatusIn
from wms.services import return_request_service
from wms.services.audit_service import log_audit
from wms.services.return_request_service import ReturnDetailInput

router = APIRouter(prefix='/return-requests', tags=['return-requests'])


def _scoped_request(db: Session, principal: Principal, return_request_id: int):
    request = return_request_service.get_return_request_row(db, return_request_id)
    assert_branch_scope(db, principal, request.branch_id)
    return request


def _audit(db: Session, request: Request, principal: Principal, action: str, entity_id: int, metadata: dict) -> None:
    log_audit(
        db,
        actor_user_id=principal.id,
        action=action,
        entity_type='return_request',
        entity_id=entity_id,
        ip=get_client_ip(request),
        metadata=metadata,
    )


@router.get('')
def list_return_requests(
    organization_id: int | None = None,
    status: ReturnStatus | None = None,
    branch_id: int | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    organization_id = organization_id or principal.organization_id
    assert_organization_scope(principal, organization_id)
    if branch_id is not None:
        assert_branch_scope(db, principal, branch_id)
    elif principal.role == Role.OPERATOR:
        branch_id = principal.branch_id
    return return_request_service.list_return_requests(
        db,
        organization_id=organization_id,
        status=status,
        branch_id=branch_id,
    )


@router.get('/{return_request_id}')
def get_return_request(
    return_request_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    result = return_request_service.get_return_request(db, return_request_id=return_request_id)
    if result is not None:
        assert_branch_scope(db, principal, result['branch_id'])
    return result


@router.post('/create')
def create_return_request(
    payload: CreateReturnRequestIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    assert_branch_scope(db, principal, payload.branch_id)
    return_request = return_request_service.create_return_request(
        db,
        branch_id=payload.branch_id,
        supplier_id=payload.supplier_id,
        requested_by_user_id=principal.id,
        details=[
            ReturnDetailInput(
                sku_id=detail.sku_id,
                quantity_to_return=detail.quantity_to_return,
                reason_id=detail.reason_id,
                custom_reason_notes=detail.custom_reason_notes,
                batch_id=detail.batch_id,
            )
            for detail in payload.details
        ],
    )
    _audit(
        db,
        request,
        principal,
        'RETURN_REQUEST_CREATED',
        return_request.id,
        {'code': return_request.code, 'item_count': len(payload.details)},
    )
    db.commit()
    return {'success': True, 'return_request_id': return_request.id, 'code': return_request.code}


@router.post('/set-status')
def set_return_request_status(
    payload: SetReturnRequestStatusIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_manager),
):
    return_request = _scoped_request(db, principal, payload.return_request_id)
    previous = return_request.status.value
    return_request = return_request_service.set_return_request_status(
        db,
        return_request_id=return_request.id,
        status=payload.status,
    )
    _audit(
        db,
        request,
        principal,
        'RETURN_REQUEST_STATUS_CHANGED',
        return_request.id,
        {'code': return_request.code, 'from': previous, 'to': return_request.status.value},
    )
    db.commit()
    return {'success': True, 'return_request_id': return_request.id, 'status': return_request.status.value}


@router.post('/delete')
def delete_return_request(
    payload: ReturnRequestRefIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_manager),
):
    return_request = _scoped_request(db, principal, payload.return_request_id)
    return_request_service.soft_delete_return_request(db, return_request_id=return_request.id)
    _audit(db, request, principal, 'RETURN_REQUEST_DELETED', return_request.id, {'code': return_request.code})
    db.commit()
    return {'success': True, 'return_request_id': return_request.id}
