from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from wms.auth import Principal, assert_branch_scope, get_current_principal, require_manager
from wms.db import get_db
from wms.dependencies import get_client_ip
from wms.errors import ValidationError
from wms.models import CycleCountStatus
from wms.schemas import (
    CreateCycleCountSessionIn,
    CycleCountSessionRefIn,
    RecordLineItemCountIn,
    ZoneAssignmentRefIn,
)
from wms.services import cycle_count_service
from wms.services.audit_service import log_audit
from wms.services.cycle_count_service import LineItemInput, ZoneAssignmentInput

router = APIRouter(prefix='/cycle-counts', tags=['cycle-count'])


def _scoped_session(db: Session, principal: Principal, session_id: int):
    session = cycle_count_service.get_session_row(db, session_id)
    assert_branch_scope(db, principal, session.branch_id)
    return session


def _scoped_assignment(db: Session, principal: Principal, assignment_id: int):
    assignment = cycle_count_service.get_assignment_row(db, assignment_id)
    _scoped_session(db, principal, assignment.session_id)
    return assignment


def _audit(db: Session, request: Request, principal: Principal, action: str, entity_id: int, metadata: dict) -> None:
    log_audit(
        db,
        actor_user_id=principal.id,
        action=action,
        entity_type='cycle_count_session',
        entity_id=entity_id,
        ip=get_client_ip(request),
        metadata=metadata,
    )


@router.get('')
def list_cycle_count_sessions(
    branch_id: int,
    status: CycleCountStatus | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    assert_branch_scope(db, principal, branch_id)
    return cycle_count_service.list_cycle_count_sessions(db, branch_id=branch_id, status=status)


@router.get('/mine')
def get_my_assigned_sessions(
    branch_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    assert_branch_scope(db, principal, branch_id)
    return cycle_count_service.get_my_assigned_sessions(db, user_id=principal.id, branch_id=branch_id)


@router.get('/zone-assignments/{assignment_id}')
def get_zone_assignment_detail(
    assignment_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    _scoped_assignment(db, principal, assignment_id)
    return cycle_count_service.get_zone_assignment_detail(db, assignment_id=assignment_id)


@router.get('/{session_id}/proceed')
def get_session_for_proceed(
    session_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    _scoped_session(db, principal, session_id)
    return cycle_count_service.get_session_for_proceed(db, session_id=session_id)


@router.get('/{session_id}/completion-status')
def get_session_completion_status(
    session_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    _scoped_session(db, principal, session_id)
    return cycle_count_service.get_session_completion_status(db, session_id=session_id)


@router.post('/create')
def create_cycle_count_session(
    payload: CreateCycleCountSessionIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    assert_branch_scope(db, principal, payload.branch_id)
    result = cycle_count_service.create_cycle_count_session(
        db,
        branch_id=payload.branch_id,
        name=payload.name,
        count_type=payload.count_type,
        zone_assignments=[
            ZoneAssignmentInput(zone_id=z.zone_id, assigned_user_id=z.assigned_user_id)
            for z in payload.zone_assignments
        ],
        created_by_user_id=principal.id,
        line_items=[
            LineItemInput(
                sku_id=item.sku_id,
                expected_quantity=item.expected_quantity,
                zone_id=item.zone_id,
                batch_id=item.batch_id,
            )
            for item in payload.line_items
        ]
        if payload.line_items
        else None,
        description=payload.description,
    )
    _audit(db, request, principal, 'CYCLE_COUNT_CREATED', result['session_id'], {'code': result['code']})
    db.commit()
    return {'success': True, **result}


@router.post('/start-zone')
def start_zone_assignment(
    payload: ZoneAssignmentRefIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    assignment = _scoped_assignment(db, principal, payload.assignment_id)
    result = cycle_count_service.start_zone_assignment(db, assignment_id=assignment.id)
    _audit(db, request, principal, 'ZONE_ASSIGNMENT_STARTED', assignment.session_id, {'assignment_id': assignment.id})
    db.commit()
    return {'success': True, **result}


@router.post('/record-count')
def record_line_item_count(
    payload: RecordLineItemCountIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    if cycle_count_service.parse_virtual_item_id(payload.line_item_id) is not None:
        if payload.session_id is None:
            raise ValidationError('Session and zone are required to count a batch item')
        session = _scoped_session(db, principal, payload.session_id)
    else:
        item = cycle_count_service.get_line_item_row(db, payload.line_item_id)
        session = _scoped_session(db, principal, item.session_id)
    result = cycle_count_service.record_line_item_count(
        db,
        line_item_id=payload.line_item_id,
        actual_quantity=payload.actual_quantity,
        scanned_by_user_id=principal.id,
        notes=payload.notes,
        session_id=payload.session_id,
        zone_id=payload.zone_id,
    )
    _audit(
        db,
        request,
        principal,
        'LINE_ITEM_COUNTED',
        session.id,
        {'line_item_id': result['line_item_id'], 'variance': result['variance']},
    )
    db.commit()
    return {'success': True, **result}


@router.post('/complete-zone')
def complete_zone_assignment(
    payload: ZoneAssignmentRefIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    assignment = _scoped_assignment(db, principal, payload.assignment_id)
    result = cycle_count_service.complete_zone_assignment(db, assignment_id=assignment.id)
    _audit(db, request, principal, 'ZONE_ASSIGNMENT_COMPLETED', assignment.session_id, {'assignment_id': assignment.id})
    db.commit()
    return {'success': True, **result}


@router.post('/force-complete-zone')
def force_complete_zone_assignment(
    payload: ZoneAssignmentRefIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_manager),
):
    assignment = _scoped_assignment(db, principal, payload.assignment_id)
    result = cycle_count_service.force_complete_zone_assignment(db, assignment_id=assignment.id)
    _audit(
        db,
        request,
        principal,
        'ZONE_ASSIGNMENT_FORCE_COMPLETED',
        assignment.session_id,
        {'assignment_id': assignment.id},
    )
    db.commit()
    return {'success': True, **result}


@router.post('/complete-session')
def complete_cycle_count_session(
    payload: CycleCountSessionRefIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    session = _scoped_session(db, principal, payload.session_id)
    result = cycle_count_service.complete_cycle_count_session(db, session_id=session.id)
    _audit(db, request, principal, 'CYCLE_COUNT_COMPLETED', session.id, result['metrics'])
    db.commit()
    return {'success': True, **result}
