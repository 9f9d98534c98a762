from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from wms.errors import InvalidStateError, NotFoundError, ValidationError
from wms.models import (
    InventoryBatch,
    ReturnRequest,
    ReturnRequestDetail,
    ReturnStatus,
    Supplier,
    SystemLookup,
    User,
)
from wms.services import code_service
from wms.services.catalog_service import get_branch, get_supplier, get_variant, variants_by_id
from wms.services.lookup_service import require_return_reason, status_label
from wms.services.time_utils import epoch_ms

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')

ALLOWED_STATUS_CHANGES = {
    ReturnStatus.PENDING: {ReturnStatus.APPROVED, ReturnStatus.REJECTED},
    ReturnStatus.APPROVED: set(),
    ReturnStatus.REJECTED: set(),
}


@dataclass(frozen=True)
class ReturnDetailInput:
    sku_id: int
    quantity_to_return: int
    reason_id: int | None = None
    custom_reason_notes: str | None = None
    batch_id: int | None = None
    receive_session_detail_id: int | None = None


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def expected_credit(quantity: int, unit_cost: Decimal) -> Decimal:
    return (Decimal(quantity) * Decimal(unit_cost)).quantize(CENT)


def create_return_request(
    db: Session,
    *,
    branch_id: int,
    supplier_id: int,
    requested_by_user_id: int,
    details: list[ReturnDetailInput],
    purchase_order_id: int | None = None,
    receive_session_id: int | None = None,
) -> ReturnRequest:
    """Create a Pending return request. Each credit is snapshotted from the variant's current cost price."""
    if not details:
        raise ValidationError('Return request must contain at least one item')

    branch = get_branch(db, branch_id)
    supplier = get_supplier(db, supplier_id)

    priced: list[tuple[ReturnDetailInput, Decimal]] = []
    for detail in details:
        if detail.quantity_to_return <= 0:
            raise ValidationError(f'Quantity to return for variant {detail.sku_id} must be greater than 0')
        variant = get_variant(db, detail.sku_id)
        require_return_reason(db, detail.reason_id)
        if detail.batch_id is not None:
            batch = db.get(InventoryBatch, detail.batch_id)
            if not batch or batch.is_deleted:
                raise NotFoundError(f'Inventory batch {detail.batch_id} not found')
        priced.append((detail, Decimal(variant.cost_price)))

    now = _now()
    request = code_service.insert_with_code(
        db,
        code_service.RETURN_REQUEST,
        branch_id=branch.id,
        moment=now,
        factory=lambda sequence: ReturnRequest(
            code=sequence.code(code_service.RETURN_REQUEST.prefix),
            organization_id=branch.organization_id,
            branch_id=branch.id,
            supplier_id=supplier.id,
            purchase_order_id=purchase_order_id,
            receive_session_id=receive_session_id,
            requested_by_user_id=requested_by_user_id,
            requested_at=now,
            status=ReturnStatus.PENDING,
        ),
    )

    for detail, unit_cost in priced:
        db.add(
            ReturnRequestDetail(
                return_request_id=request.id,
                batch_id=detail.batch_id,
                sku_id=detail.sku_id,
                quantity_to_return=detail.quantity_to_return,
                reason_id=detail.reason_id,
                custom_reason_notes=(detail.custom_reason_notes or '').strip() or None,
                unit_cost=unit_cost,
                expected_credit_amount=expected_credit(detail.quantity_to_return, unit_cost),
                receive_session_detail_id=detail.receive_session_detail_id,
            )
        )
    db.flush()
    logger.info(
        'return_request_created',
        extra={'entity_id': request.id, 'code': request.code, 'user_id': requested_by_user_id},
    )
    return request


def get_return_request_row(db: Session, return_request_id: int) -> ReturnRequest:
    request = db.get(ReturnRequest, return_request_id)
    if not request or request.is_deleted:
        raise NotFoundError(f'Return request {return_request_id} not found')
    return request


def list_details(db: Session, return_request_id: int) -> list[ReturnRequestDetail]:
    return db.execute(
        select(ReturnRequestDetail)
        .where(ReturnRequestDetail.return_request_id == return_request_id)
        .order_by(ReturnRequestDetail.id.asc())
    ).scalars().all()


def list_return_requests(
    db: Session,
    *,
    organization_id: int,
    status: ReturnStatus | None = None,
    branch_id: int | None = None,
) -> list[dict]:
    query = (
        select(ReturnRequest, Supplier.name)
        .join(Supplier, Supplier.id == ReturnRequest.supplier_id)
        .where(ReturnRequest.organization_id == organization_id, ReturnRequest.is_deleted.is_(False))
    )
    if status is not None:
        query = query.where(ReturnRequest.status == status)
    if branch_id is not None:
        query = query.where(ReturnRequest.branch_id == branch_id)
    rows = db.execute(query.order_by(ReturnRequest.requested_at.desc(), ReturnRequest.id.desc())).all()

    results = []
    for request, supplier_name in rows:
        details = list_details(db, request.id)
        summary = _request_summary(request, supplier_name)
        summary['total_items'] = len(details)
        summary['total_expected_credit'] = str(sum((d.expected_credit_amount for d in details), Decimal('0.00')))
        results.append(summary)
    return results


def _request_summary(request: ReturnRequest, supplier_name: str | None) -> dict:
    return {
        'id': request.id,
        'code': request.code,
        'branch_id': request.branch_id,
        'supplier_id': request.supplier_id,
        'supplier_name': supplier_name,
        'purchase_order_id': request.purchase_order_id,
        'receive_session_id': request.receive_session_id,
        'requested_by_user_id': request.requested_by_user_id,
        'requested_at': epoch_ms(request.requested_at),
        'status': request.status.value,
        'status_label': status_label(request.status),
    }


def get_return_request(db: Session, *, return_request_id: int) -> dict | None:
    request = db.get(ReturnRequest, return_request_id)
    if not request or request.is_deleted:
        return None

    supplier = db.get(Supplier, request.supplier_id)
    requester = db.get(User, request.requested_by_user_id)
    details = list_details(db, request.id)
    variants = variants_by_id(db, [d.sku_id for d in details])
    reason_ids = {d.reason_id for d in details if d.reason_id is not None}
    reasons = {}
    if reason_ids:
        reasons = {
            row.id: row
            for row in db.execute(select(SystemLookup).where(SystemLookup.id.in_(reason_ids))).scalars().all()
        }

    items = []
    for detail in details:
        variant = variants.get(detail.sku_id)
        reason = reasons.get(detail.reason_id)
        items.append(
            {
                'id': detail.id,
                'sku_id': detail.sku_id,
                'sku_code': variant.sku_code if variant else 'Unknown',
                'batch_id': detail.batch_id,
                'quantity_to_return': detail.quantity_to_return,
                'reason': {'id': reason.id, 'code': reason.lookup_code, 'label': reason.lookup_value} if reason else None,
                'custom_reason_notes': detail.custom_reason_notes,
                'unit_cost': str(detail.unit_cost),
                'expected_credit_amount': str(detail.expected_credit_amount),
                'receive_session_detail_id': detail.receive_session_detail_id,
            }
        )

    return {
        **_request_summary(request, supplier.name if supplier else None),
        'requested_by': {'full_name': requester.full_name} if requester else None,
        'status_changed_at': epoch_ms(request.status_changed_at),
        'items': items,
        'total_expected_credit': str(sum((d.expected_credit_amount for d in details), Decimal('0.00'))),
    }


def set_return_request_status(db: Session, *, return_request_id: int, status: ReturnStatus) -> ReturnRequest:
    request = get_return_request_row(db, return_request_id)
    status = ReturnStatus(status)
    if status not in ALLOWED_STATUS_CHANGES[request.status]:
        raise InvalidStateError(
            f'Return request {request.code} cannot move from {status_label(request.status)} to {status_label(status)}'
        )
    request.status = status
    request.status_changed_at = _now()
    db.flush()
    logger.info('return_request_status_changed', extra={'entity_id': request.id, 'code': request.code})
    return request


def soft_delete_return_request(db: Session, *, return_request_id: int) -> ReturnRequest:
    request = get_return_request_row(db, return_request_id)
    request.is_deleted = True
    db.flush()
    logger.info('return_request_deleted', extra={'entity_id': request.id, 'code': request.code})
    return request
