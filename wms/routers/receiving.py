from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from wms.auth import Principal, assert_branch_scope, get_current_principal, require_manager
from wms.db import get_db
from wms.dependencies import get_client_ip
from wms.models import ReceiveSessionStatus
from wms.schemas import (
    CompleteReceiveSessionIn,
    CreateReceiveSessionIn,
    CreateReturnFromReceiveSessionIn,
    ProcessReceiveItemIn,
    ReceiveSessionRefIn,
    SetItemReturnRequestedIn,
    UpdateReceiveSessionStatusIn,
)
from wms.services import purchase_order_service, receive_session_service
from wms.services.audit_service import list_audit_entries, log_audit

router = APIRouter(prefix='/receive-sessions', tags=['receiving'])


def _scoped_session(db: Session, principal: Principal, receive_session_id: int):
    session = receive_session_service.get_receive_session_row(db, receive_session_id)
    assert_branch_scope(db, principal, session.branch_id)
    return session


def _scoped_detail(db: Session, principal: Principal, detail_id: int):
    detail = receive_session_service.get_detail_row(db, detail_id)
    _scoped_session(db, principal, detail.receive_session_id)
    return detail


def _audit(db: Session, request: Request, principal: Principal, action: str, entity_id: int, metadata: dict) -> None:
    log_audit(
        db,
        actor_user_id=principal.id,
        action=action,
        entity_type='receive_session',
        entity_id=entity_id,
        ip=get_client_ip(request),
        metadata=metadata,
    )


@router.get('')
def list_receive_sessions(
    branch_id: int,
    status: ReceiveSessionStatus | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    assert_branch_scope(db, principal, branch_id)
    return receive_session_service.list_receive_sessions(db, branch_id=branch_id, status=status)


@router.get('/{receive_session_id}')
def get_receive_session_by_id(
    receive_session_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    result = receive_session_service.get_receive_session_by_id(db, receive_session_id=receive_session_id)
    if result is not None:
        assert_branch_scope(db, principal, result['branch_id'])
    return result


@router.get('/{receive_session_id}/detailed')
def get_receive_session_detailed(
    receive_session_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    _scoped_session(db, principal, receive_session_id)
    return receive_session_service.get_receive_session_detailed(db, receive_session_id=receive_session_id)


@router.get('/{receive_session_id}/progress')
def get_receive_session_progress(
    receive_session_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    _scoped_session(db, principal, receive_session_id)
    return receive_session_service.get_receive_session_progress(db, receive_session_id=receive_session_id)


@router.get('/{receive_session_id}/history')
def get_receive_session_history(
    receive_session_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_manager),
):
    _scoped_session(db, principal, receive_session_id)
    return list_audit_entries(db, entity_type='receive_session', entity_id=receive_session_id)


@router.post('/create')
def create_receive_session(
    payload: CreateReceiveSessionIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    order = purchase_order_service.get_purchase_order(db, payload.purchase_order_id)
    assert_branch_scope(db, principal, order.branch_id)
    result = receive_session_service.create_receive_session(db, purchase_order_id=order.id, user_id=principal.id)
    _audit(
        db,
        request,
        principal,
        'RECEIVE_SESSION_CREATED',
        result['receive_session_id'],
        {'code': result['code'], 'purchase_order_id': order.id},
    )
    db.commit()
    return {'success': True, **result}


@router.post('/process-item')
def process_receive_item(
    payload: ProcessReceiveItemIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    detail = _scoped_detail(db, principal, payload.receive_session_detail_id)
    result = receive_session_service.process_receive_item(
        db,
        detail_id=detail.id,
        quantity_to_add=payload.quantity_to_add,
        notes=payload.notes,
    )
    _audit(
        db,
        request,
        principal,
        'RECEIVE_ITEM_PROCESSED',
        detail.receive_session_id,
        {'detail_id': detail.id, 'quantity_added': payload.quantity_to_add},
    )
    db.commit()
    return {'success': True, **result}


@router.post('/set-return-requested')
def set_item_return_requested(
    payload: SetItemReturnRequestedIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    detail = _scoped_detail(db, principal, payload.receive_session_detail_id)
    result = receive_session_service.set_item_return_requested(
        db,
        detail_id=detail.id,
        reason_id=payload.return_reason_id,
        notes=payload.notes,
    )
    _audit(
        db,
        request,
        principal,
        'RECEIVE_ITEM_RETURN_FLAGGED',
        detail.receive_session_id,
        {'detail_id': detail.id, 'reason_id': payload.return_reason_id},
    )
    db.commit()
    return {'success': True, **result}


@router.post('/create-return')
def create_return_from_receive_session(
    payload: CreateReturnFromReceiveSessionIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    detail = _scoped_detail(db, principal, payload.receive_session_detail_id)
    result = receive_session_service.create_return_from_receive_session(
        db,
        detail_id=detail.id,
        quantity_to_return=payload.quantity_to_return,
        reason_id=payload.return_reason_id,
        requested_by_user_id=principal.id,
        custom_reason_notes=payload.custom_reason_notes,
    )
    _audit(
        db,
        request,
        principal,
        'RECEIVE_ITEM_RETURNED',
        detail.receive_session_id,
        {'detail_id': detail.id, 'return_request_id': result['return_request_id']},
    )
    db.commit()
    return {'success': True, **result}


@router.post('/update-status')
def update_receive_session_status(
    payload: UpdateReceiveSessionStatusIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_manager),
):
    session = _scoped_session(db, principal, payload.receive_session_id)
    result = receive_session_service.update_receive_session_status(
        db,
        receive_session_id=session.id,
        status=payload.status_code,
        verified_by_user_id=principal.id,
    )
    _audit(db, request, principal, 'RECEIVE_SESSION_STATUS_OVERRIDDEN', session.id, {'status': result['status']})
    db.commit()
    return {'success': True, **result}


@router.post('/complete')
def complete_receive_session(
    payload: CompleteReceiveSessionIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    session = _scoped_session(db, principal, payload.receive_session_id)
    result = receive_session_service.complete_receive_session(
        db,
        receive_session_id=session.id,
        verified_by_user_id=payload.verified_by_user_id or principal.id,
    )
    _audit(db, request, principal, 'RECEIVE_SESSION_COMPLETED', session.id, {'code': session.code})
    db.commit()
    return {'success': True, **result}


@router.post('/force-complete')
def force_complete_receive_session(
    payload: CompleteReceiveSessionIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_manager),
):
    session = _scoped_session(db, principal, payload.receive_session_id)
    result = receive_session_service.force_complete_receive_session(
        db,
        receive_session_id=session.id,
        verified_by_user_id=payload.verified_by_user_id or principal.id,
    )
    _audit(
        db,
        request,
        principal,
        'RECEIVE_SESSION_FORCE_COMPLETED',
        session.id,
        {'code': session.code, 'all_items_handled': result['all_items_handled']},
    )
    db.commit()
    return {'success': True, **result}


@router.post('/save-state')
def save_receive_session_state(
    payload: ReceiveSessionRefIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    session = _scoped_session(db, principal, payload.receive_session_id)
    result = receive_session_service.save_receive_session_state(db, receive_session_id=session.id)
    _audit(db, request, principal, 'RECEIVE_SESSION_SAVED', session.id, {'status': result['status']})
    db.commit()
    return {'success': True, **result}
