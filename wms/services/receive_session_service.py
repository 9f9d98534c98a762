from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from wms.config import settings
from wms.errors import InvalidStateError, NotFoundError, ValidationError
from wms.models import (
    InventoryBatch,
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderStatus,
    ReceiveItemStatus,
    ReceiveSession,
    ReceiveSessionDetail,
    ReceiveSessionStatus,
    ReturnRequestDetail,
    Supplier,
)
from wms.services import code_service
from wms.services.catalog_service import serialize_zone, user_names_by_id, variant_label, variant_labels, zones_by_id
from wms.services.lookup_service import require_return_reason, status_label
from wms.services.provider_factory import get_zone_recommender
from wms.services.purchase_order_service import get_purchase_order, list_lines, mark_received, session_for_order
from wms.services.return_request_service import ReturnDetailInput, create_return_request
from wms.services.time_utils import epoch_ms
from wms.services.work_session_service import (
    WorkflowRef,
    complete_work_session,
    ensure_work_session,
    get_work_session_for,
)
from wms.status_rules import (
    ItemSnapshot,
    can_transition,
    derive_session_status,
    is_item_handled,
    item_status_after_receipt,
    item_status_for_quantity,
    progress_percent,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _append_note(existing: str | None, note: str | None) -> str | None:
    note = (note or '').strip()
    if not note:
        return existing
    if existing:
        return f'{existing}\n- {note}'
    return f'- {note}'


def get_receive_session_row(db: Session, receive_session_id: int) -> ReceiveSession:
    session = db.get(ReceiveSession, receive_session_id)
    if not session:
        raise NotFoundError(f'Receive session {receive_session_id} not found')
    return session


def get_detail_row(db: Session, detail_id: int) -> ReceiveSessionDetail:
    detail = db.get(ReceiveSessionDetail, detail_id)
    if not detail:
        raise NotFoundError(f'Receive session detail {detail_id} not found')
    return detail


def list_detail_rows(db: Session, receive_session_id: int) -> list[ReceiveSessionDetail]:
    return db.execute(
        select(ReceiveSessionDetail)
        .where(ReceiveSessionDetail.receive_session_id == receive_session_id)
        .order_by(ReceiveSessionDetail.id.asc())
    ).scalars().all()


def _require_open(session: ReceiveSession) -> None:
    if session.completed_at is not None:
        raise InvalidStateError(f'Receive session {session.code} is already completed')


def recompute_session_status(db: Session, session: ReceiveSession) -> ReceiveSessionStatus:
    """Re-derive the session status from a fresh read of all its details. A completed session keeps its status."""
    if session.completed_at is not None:
        return session.status
    details = list_detail_rows(db, session.id)
    session.status = derive_session_status(
        ItemSnapshot(status=detail.status, quantity_received=detail.quantity_received) for detail in details
    )
    db.flush()
    return session.status


def create_receive_session(db: Session, *, purchase_order_id: int, user_id: int) -> dict:
    order = get_purchase_order(db, purchase_order_id)
    if order.status in {PurchaseOrderStatus.CANCELLED, PurchaseOrderStatus.RECEIVED}:
        raise InvalidStateError(
            f'Purchase order {order.code} is {status_label(order.status)} and cannot be received'
        )

    existing = session_for_order(db, order.id)
    if existing is not None:
        raise InvalidStateError(f'A receive session already exists for this purchase order: {existing.code}')

    lines = list_lines(db, order.id)
    if not lines:
        raise ValidationError(f'Purchase order {order.code} has no line items to receive')

    now = _now()
    session = code_service.insert_with_code(
        db,
        code_service.RECEIVE_SESSION,
        branch_id=order.branch_id,
        moment=now,
        factory=lambda sequence: ReceiveSession(
            code=sequence.code(code_service.RECEIVE_SESSION.prefix),
            purchase_order_id=order.id,
            branch_id=order.branch_id,
            status=ReceiveSessionStatus.PENDING,
            received_at=now,
        ),
    )

    for line in lines:
        db.add(
            ReceiveSessionDetail(
                receive_session_id=session.id,
                purchase_order_line_id=line.id,
                sku_id=line.sku_id,
                quantity_expected=line.quantity_ordered,
                quantity_received=0,
                status=ReceiveItemStatus.PENDING,
                recommended_zone_id=line.recommended_zone_id,
            )
        )
    db.flush()

    work_session = ensure_work_session(
        db,
        organization_id=order.organization_id,
        branch_id=order.branch_id,
        ref=WorkflowRef(receive_session_id=session.id),
        assigned_user_id=user_id,
        name=f'Receive {order.code}',
        description=f'Receiving purchase order {order.code}',
    )

    logger.info(
        'receive_session_created',
        extra={'entity_id': session.id, 'code': session.code, 'user_id': user_id},
    )
    return {
        'receive_session_id': session.id,
        'code': session.code,
        'work_session_id': work_session.id,
        'work_session_code': work_session.code,
        'item_count': len(lines),
    }


def process_receive_item(
    db: Session,
    *,
    detail_id: int,
    quantity_to_add: int,
    notes: str | None = None,
) -> dict:
    if quantity_to_add <= 0:
        raise ValidationError('Quantity to add must be greater than 0')

    detail = get_detail_row(db, detail_id)
    session = get_receive_session_row(db, detail.receive_session_id)
    _require_open(session)
    if detail.status == ReceiveItemStatus.RETURN_REQUESTED and not settings.return_requested_accepts_receipts:
        raise InvalidStateError(f'Line {detail.id} of receive session {session.code} is marked for return')

    # Increment in SQL so concurrent receipts on the same line add up.
    db.execute(
        update(ReceiveSessionDetail)
        .where(ReceiveSessionDetail.id == detail.id)
        .values(quantity_received=ReceiveSessionDetail.quantity_received + quantity_to_add)
        .execution_options(synchronize_session=False)
    )
    if detail.purchase_order_line_id is not None:
        db.execute(
            update(PurchaseOrderLine)
            .where(PurchaseOrderLine.id == detail.purchase_order_line_id)
            .values(quantity_received=PurchaseOrderLine.quantity_received + quantity_to_add)
            .execution_options(synchronize_session=False)
        )
        line = db.get(PurchaseOrderLine, detail.purchase_order_line_id)
        if line is not None:
            db.refresh(line)
    db.refresh(detail)

    detail.status = item_status_after_receipt(
        detail.status,
        quantity_received=detail.quantity_received,
        quantity_expected=detail.quantity_expected,
    )
    detail.notes = _append_note(detail.notes, notes)

    zone = get_zone_recommender().recommend(db, branch_id=session.branch_id, sku_id=detail.sku_id)
    if zone is not None:
        detail.recommended_zone_id = zone.id
    elif detail.recommended_zone_id is not None:
        zone = zones_by_id(db, [detail.recommended_zone_id]).get(detail.recommended_zone_id)
    db.flush()

    session_status = recompute_session_status(db, session)
    logger.info(
        'receive_item_processed',
        extra={'entity_id': detail.id, 'code': session.code},
    )
    return {
        'detail_id': detail.id,
        'new_quantity_received': detail.quantity_received,
        'quantity_expected': detail.quantity_expected,
        'is_complete': detail.status == ReceiveItemStatus.COMPLETE,
        'item_status': detail.status.value,
        'status': session_status.value,
        'recommended_zone': serialize_zone(zone),
        'recommended_zone_id': zone.id if zone else None,
    }


def _mark_return_requested(detail: ReceiveSessionDetail, session: ReceiveSession, reason_id: int | None) -> None:
    if not can_transition(detail.status, ReceiveItemStatus.RETURN_REQUESTED):
        raise InvalidStateError(
            f'Line {detail.id} of receive session {session.code} is {status_label(detail.status)} and cannot be returned'
        )
    detail.status = ReceiveItemStatus.RETURN_REQUESTED
    detail.return_reason_id = reason_id


def set_item_return_requested(
    db: Session,
    *,
    detail_id: int,
    reason_id: int | None,
    notes: str | None = None,
) -> dict:
    """Flag a line for return without raising the return request yet; completion gathers flagged lines."""
    detail = get_detail_row(db, detail_id)
    session = get_receive_session_row(db, detail.receive_session_id)
    _require_open(session)
    require_return_reason(db, reason_id)

    _mark_return_requested(detail, session, reason_id)
    detail.notes = _append_note(detail.notes, notes)
    db.flush()
    session_status = recompute_session_status(db, session)
    logger.info('receive_item_return_flagged', extra={'entity_id': detail.id, 'code': session.code})
    return {
        'detail_id': detail.id,
        'item_status': detail.status.value,
        'status': session_status.value,
    }


def _returned_detail_ids(db: Session, detail_ids: list[int]) -> set[int]:
    if not detail_ids:
        return set()
    rows = db.execute(
        select(ReturnRequestDetail.receive_session_detail_id).where(
            ReturnRequestDetail.receive_session_detail_id.in_(detail_ids)
        )
    ).all()
    return {row[0] for row in rows}


def create_return_from_receive_session(
    db: Session,
    *,
    detail_id: int,
    quantity_to_return: int,
    reason_id: int | None,
    requested_by_user_id: int,
    custom_reason_notes: str | None = None,
) -> dict:
    if quantity_to_return <= 0:
        raise ValidationError('Quantity to return must be greater than 0')

    detail = get_detail_row(db, detail_id)
    session = get_receive_session_row(db, detail.receive_session_id)
    _require_open(session)
    if _returned_detail_ids(db, [detail.id]):
        raise InvalidStateError(f'Line {detail.id} of receive session {session.code} already has a return request')
    require_return_reason(db, reason_id)
    order = db.get(PurchaseOrder, session.purchase_order_id)

    _mark_return_requested(detail, session, reason_id)
    request = create_return_request(
        db,
        branch_id=session.branch_id,
        supplier_id=order.supplier_id,
        requested_by_user_id=requested_by_user_id,
        purchase_order_id=order.id,
        receive_session_id=session.id,
        details=[
            ReturnDetailInput(
                sku_id=detail.sku_id,
                quantity_to_return=quantity_to_return,
                reason_id=reason_id,
                custom_reason_notes=custom_reason_notes,
                receive_session_detail_id=detail.id,
            )
        ],
    )
    recompute_session_status(db, session)

    request_detail = db.execute(
        select(ReturnRequestDetail).where(ReturnRequestDetail.return_request_id == request.id)
    ).scalar_one()
    return {
        'return_request_id': request.id,
        'request_code': request.code,
        'quantity_to_return': quantity_to_return,
        'expected_credit_amount': str(request_detail.expected_credit_amount),
        'detail_status': detail.status.value,
    }


def _create_batches(db: Session, *, session: ReceiveSession, order: PurchaseOrder, details, now) -> list[InventoryBatch]:
    batches = []
    for detail in details:
        # Short lines from a forced completion are stocked with what actually arrived.
        if detail.status == ReceiveItemStatus.RETURN_REQUESTED or detail.recommended_zone_id is None:
            continue
        if detail.quantity_received <= 0:
            continue
        batch = code_service.insert_with_code(
            db,
            code_service.INVENTORY_BATCH,
            branch_id=session.branch_id,
            moment=now,
            factory=lambda sequence, detail=detail: InventoryBatch(
                organization_id=order.organization_id,
                branch_id=session.branch_id,
                sku_id=detail.sku_id,
                zone_id=detail.recommended_zone_id,
                quantity=detail.quantity_received,
                supplier_batch_number=sequence.code(code_service.SUPPLIER_BATCH_PREFIX),
                internal_batch_number=sequence.code(code_service.INVENTORY_BATCH.prefix),
                receive_session_id=session.id,
                received_at=now,
            ),
        )
        batches.append(batch)
    return batches


def _complete(
    db: Session,
    *,
    receive_session_id: int,
    verified_by_user_id: int | None,
    force: bool,
) -> dict:
    session = get_receive_session_row(db, receive_session_id)
    _require_open(session)
    order = db.get(PurchaseOrder, session.purchase_order_id)
    details = list_detail_rows(db, session.id)

    all_handled = all(
        is_item_handled(d.status, quantity_received=d.quantity_received, quantity_expected=d.quantity_expected)
        for d in details
    )
    if not force and not all_handled:
        pending = sum(
            1
            for d in details
            if not is_item_handled(d.status, quantity_received=d.quantity_received, quantity_expected=d.quantity_expected)
        )
        raise InvalidStateError(
            f'Receive session {session.code} has {pending} line(s) not fully received or flagged for return'
        )

    now = _now()
    for detail in details:
        if detail.status != ReceiveItemStatus.RETURN_REQUESTED:
            detail.status = item_status_for_quantity(detail.quantity_received, detail.quantity_expected)

    work_session = get_work_session_for(db, WorkflowRef(receive_session_id=session.id))
    requester_id = verified_by_user_id or (work_session.assigned_user_id if work_session else None)

    flagged = [d for d in details if d.status == ReceiveItemStatus.RETURN_REQUESTED]
    already_returned = _returned_detail_ids(db, [d.id for d in flagged])
    to_return = [d for d in flagged if d.id not in already_returned and d.quantity_expected > 0]
    return_request = None
    if to_return:
        if requester_id is None:
            raise ValidationError(f'Receive session {session.code} needs a verifier to raise its return request')
        return_request = create_return_request(
            db,
            branch_id=session.branch_id,
            supplier_id=order.supplier_id,
            requested_by_user_id=requester_id,
            purchase_order_id=order.id,
            receive_session_id=session.id,
            details=[
                ReturnDetailInput(
                    sku_id=d.sku_id,
                    quantity_to_return=d.quantity_expected,
                    reason_id=d.return_reason_id,
                    custom_reason_notes=d.notes,
                    receive_session_detail_id=d.id,
                )
                for d in to_return
            ],
        )

    batches = _create_batches(db, session=session, order=order, details=details, now=now)

    session.status = ReceiveSessionStatus.COMPLETE
    session.completed_at = now
    if work_session is not None:
        complete_work_session(db, work_session_id=work_session.id, verified_by_user_id=verified_by_user_id)
    mark_received(db, order)
    db.flush()

    logger.info(
        'receive_session_completed',
        extra={'entity_id': session.id, 'code': session.code, 'user_id': verified_by_user_id},
    )
    return {
        'receive_session_id': session.id,
        'status': session.status.value,
        'all_items_handled': all_handled,
        'forced': force,
        'return_request_id': return_request.id if return_request else None,
        'return_request_code': return_request.code if return_request else None,
        'batches_created': len(batches),
        'purchase_order_status': order.status.value,
    }


def complete_receive_session(db: Session, *, receive_session_id: int, verified_by_user_id: int | None = None) -> dict:
    return _complete(db, receive_session_id=receive_session_id, verified_by_user_id=verified_by_user_id, force=False)


def force_complete_receive_session(
    db: Session,
    *,
    receive_session_id: int,
    verified_by_user_id: int | None = None,
) -> dict:
    """Close the session even with lines outstanding; short shipments are accepted as final."""
    return _complete(db, receive_session_id=receive_session_id, verified_by_user_id=verified_by_user_id, force=True)


def update_receive_session_status(
    db: Session,
    *,
    receive_session_id: int,
    status: ReceiveSessionStatus,
    verified_by_user_id: int | None = None,
) -> dict:
    """Manual status override. COMPLETE closes the session the way a forced completion does."""
    status = ReceiveSessionStatus(status)
    if status == ReceiveSessionStatus.COMPLETE:
        return _complete(db, receive_session_id=receive_session_id, verified_by_user_id=verified_by_user_id, force=True)

    session = get_receive_session_row(db, receive_session_id)
    _require_open(session)
    session.status = status
    db.flush()
    logger.info('receive_session_status_overridden', extra={'entity_id': session.id, 'code': session.code})
    return {'receive_session_id': session.id, 'status': session.status.value}


def save_receive_session_state(db: Session, *, receive_session_id: int) -> dict:
    session = get_receive_session_row(db, receive_session_id)
    _require_open(session)
    details = list_detail_rows(db, session.id)
    any_received = any(d.quantity_received > 0 for d in details)
    session.status = ReceiveSessionStatus.IN_PROGRESS if any_received else ReceiveSessionStatus.PENDING
    session.saved_at = _now()
    db.flush()
    logger.info('receive_session_saved', extra={'entity_id': session.id, 'code': session.code})
    return {
        'receive_session_id': session.id,
        'status': session.status.value,
        'saved_at': epoch_ms(session.saved_at),
    }


def _serialize_detail(detail: ReceiveSessionDetail, labels: dict, zones: dict) -> dict:
    label = variant_label(labels, detail.sku_id)
    return {
        'detail_id': detail.id,
        'sku_id': detail.sku_id,
        'sku_code': label['sku_code'],
        'product_name': label['product_name'],
        'quantity_expected': detail.quantity_expected,
        'quantity_received': detail.quantity_received,
        'remaining_quantity': detail.quantity_expected - detail.quantity_received,
        'notes': detail.notes,
        'status': status_label(detail.status),
        'status_code': detail.status.value,
        'is_complete': detail.quantity_received >= detail.quantity_expected,
        'recommended_zone': serialize_zone(zones.get(detail.recommended_zone_id)),
        'return_reason_id': detail.return_reason_id,
    }


def _totals(details) -> dict:
    total_expected = sum(d.quantity_expected for d in details)
    total_received = sum(d.quantity_received for d in details)
    return {
        'total_items': len(details),
        'total_expected_quantity': total_expected,
        'total_received_quantity': total_received,
        'progress_percentage': progress_percent(total_received, total_expected),
    }


def get_receive_session_by_id(db: Session, *, receive_session_id: int) -> dict | None:
    session = db.get(ReceiveSession, receive_session_id)
    if session is None:
        return None
    return {
        'id': session.id,
        'code': session.code,
        'purchase_order_id': session.purchase_order_id,
        'branch_id': session.branch_id,
        'received_at': epoch_ms(session.received_at),
        'status': status_label(session.status),
        'status_code': session.status.value,
        'completed_at': epoch_ms(session.completed_at),
    }


def get_receive_session_detailed(db: Session, *, receive_session_id: int) -> dict:
    session = get_receive_session_row(db, receive_session_id)
    order = db.get(PurchaseOrder, session.purchase_order_id)
    supplier = db.get(Supplier, order.supplier_id) if order else None
    details = list_detail_rows(db, session.id)
    labels = variant_labels(db, [d.sku_id for d in details])
    zones = zones_by_id(db, [d.recommended_zone_id for d in details])

    work_session = get_work_session_for(db, WorkflowRef(receive_session_id=session.id))
    work_session_info = None
    if work_session is not None:
        names = user_names_by_id(db, [work_session.assigned_user_id])
        work_session_info = {
            'work_session_id': work_session.id,
            'session_code': work_session.code,
            'employee_id': work_session.assigned_user_id,
            'employee_name': names.get(work_session.assigned_user_id, 'Unknown'),
            'started_at': epoch_ms(work_session.started_at),
            'completed_at': epoch_ms(work_session.completed_at),
            'status': status_label(work_session.status),
        }

    totals = _totals(details)
    return {
        'receive_session_id': session.id,
        'receive_session_code': session.code,
        'purchase_order_id': session.purchase_order_id,
        'purchase_order_code': order.code if order else 'Unknown',
        'supplier_name': supplier.name if supplier else 'Unknown',
        'received_at': epoch_ms(session.received_at),
        'status': status_label(session.status),
        'status_code': session.status.value,
        'work_session': work_session_info,
        'summary': {
            'total_sku': totals['total_items'],
            'total_expected_quantity': totals['total_expected_quantity'],
            'total_received_quantity': totals['total_received_quantity'],
        },
        'items': [_serialize_detail(d, labels, zones) for d in details],
    }


def get_receive_session_progress(db: Session, *, receive_session_id: int) -> dict:
    session = get_receive_session_row(db, receive_session_id)
    order = db.get(PurchaseOrder, session.purchase_order_id)
    details = list_detail_rows(db, session.id)
    labels = variant_labels(db, [d.sku_id for d in details])
    zones = zones_by_id(db, [d.recommended_zone_id for d in details])
    items = [_serialize_detail(d, labels, zones) for d in details]
    return {
        'receive_session_code': session.code,
        'purchase_order_code': order.code if order else 'Unknown',
        'status': status_label(session.status),
        'status_code': session.status.value,
        **_totals(details),
        'completed_items': sum(1 for item in items if item['is_complete']),
        'items': items,
    }


def list_receive_sessions(
    db: Session,
    *,
    branch_id: int,
    status: ReceiveSessionStatus | None = None,
) -> list[dict]:
    query = (
        select(ReceiveSession, PurchaseOrder.code, Supplier.name)
        .join(PurchaseOrder, PurchaseOrder.id == ReceiveSession.purchase_order_id)
        .join(Supplier, Supplier.id == PurchaseOrder.supplier_id)
        .where(ReceiveSession.branch_id == branch_id)
    )
    if status is not None:
        query = query.where(ReceiveSession.status == status)
    rows = db.execute(query.order_by(ReceiveSession.received_at.desc(), ReceiveSession.id.desc())).all()

    results = []
    for session, order_code, supplier_name in rows:
        details = list_detail_rows(db, session.id)
        totals = _totals(details)
        results.append(
            {
                'id': session.id,
                'receive_session_code': session.code,
                'purchase_order_code': order_code,
                'supplier_name': supplier_name,
                'received_at': epoch_ms(session.received_at),
                'status': status_label(session.status),
                'status_code': session.status.value,
                'total_items': totals['total_items'],
                'total_expected': totals['total_expected_quantity'],
                'total_received': totals['total_received_quantity'],
                'progress_percentage': totals['progress_percentage'],
            }
        )
    return results
