from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from wms.errors import InvalidStateError, NotFoundError, ValidationError
from wms.models import (
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderStatus,
    ReceiveSession,
    Supplier,
    User,
)
from wms.services import code_service
from wms.services.catalog_service import (
    get_active_zone,
    get_branch,
    get_supplier,
    get_variant,
    variants_by_id,
    zones_by_id,
)
from wms.services.lookup_service import status_label
from wms.services.time_utils import epoch_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PurchaseOrderItemInput:
    sku_id: int
    quantity: int
    zone_id: int | None = None
    unit_cost: Decimal | None = None


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def get_purchase_order(db: Session, purchase_order_id: int, *, include_deleted: bool = False) -> PurchaseOrder:
    order = db.get(PurchaseOrder, purchase_order_id)
    if not order or (order.is_deleted and not include_deleted):
        raise NotFoundError(f'Purchase order {purchase_order_id} not found')
    return order


def list_lines(db: Session, purchase_order_id: int) -> list[PurchaseOrderLine]:
    return db.execute(
        select(PurchaseOrderLine)
        .where(PurchaseOrderLine.purchase_order_id == purchase_order_id)
        .order_by(PurchaseOrderLine.id.asc())
    ).scalars().all()


def session_for_order(db: Session, purchase_order_id: int) -> ReceiveSession | None:
    return db.execute(
        select(ReceiveSession).where(ReceiveSession.purchase_order_id == purchase_order_id)
    ).scalar_one_or_none()


def create_purchase_order(
    db: Session,
    *,
    branch_id: int,
    supplier_id: int,
    items: list[PurchaseOrderItemInput],
    created_by_user_id: int | None,
    note: str | None = None,
) -> PurchaseOrder:
    if not items:
        raise ValidationError('Purchase order must contain at least one item')

    branch = get_branch(db, branch_id)
    supplier = get_supplier(db, supplier_id)
    if supplier.organization_id != branch.organization_id:
        raise NotFoundError(f'Supplier {supplier_id} not found in organization {branch.organization_id}')

    resolved: list[tuple[PurchaseOrderItemInput, Decimal]] = []
    for item in items:
        if item.quantity <= 0:
            raise ValidationError(f'Quantity for variant {item.sku_id} must be greater than 0')
        variant = get_variant(db, item.sku_id)
        if item.zone_id is not None:
            get_active_zone(db, item.zone_id, branch_id=branch.id)
        unit_cost = item.unit_cost if item.unit_cost is not None else variant.cost_price
        if unit_cost < 0:
            raise ValidationError(f'Unit cost for variant {item.sku_id} cannot be negative')
        resolved.append((item, Decimal(unit_cost)))

    now = _now()
    expected_delivery_at = now + timedelta(days=supplier.default_lead_time_days or 0)
    clean_note = (note or '').strip() or None

    order = code_service.insert_with_code(
        db,
        code_service.PURCHASE_ORDER,
        branch_id=branch.id,
        moment=now,
        factory=lambda sequence: PurchaseOrder(
            organization_id=branch.organization_id,
            branch_id=branch.id,
            supplier_id=supplier.id,
            code=sequence.code(code_service.PURCHASE_ORDER.prefix),
            note=clean_note,
            status=PurchaseOrderStatus.PENDING,
            ordered_at=now,
            expected_delivery_at=expected_delivery_at,
            created_by_user_id=created_by_user_id,
            updated_at=now,
        ),
    )

    for item, unit_cost in resolved:
        db.add(
            PurchaseOrderLine(
                purchase_order_id=order.id,
                sku_id=item.sku_id,
                quantity_ordered=item.quantity,
                quantity_received=0,
                unit_cost=unit_cost,
                recommended_zone_id=item.zone_id,
            )
        )
    db.flush()
    logger.info(
        'purchase_order_created',
        extra={'entity_id': order.id, 'code': order.code, 'user_id': created_by_user_id},
    )
    return order


def list_purchase_orders(
    db: Session,
    *,
    branch_id: int,
    status: PurchaseOrderStatus | None = None,
    limit: int = 200,
) -> list[dict]:
    query = (
        select(PurchaseOrder, Supplier.name)
        .join(Supplier, Supplier.id == PurchaseOrder.supplier_id)
        .where(PurchaseOrder.branch_id == branch_id, PurchaseOrder.is_deleted.is_(False))
    )
    if status is not None:
        query = query.where(PurchaseOrder.status == status)
    rows = db.execute(query.order_by(PurchaseOrder.ordered_at.desc(), PurchaseOrder.id.desc()).limit(limit)).all()
    return [_order_summary(order, supplier_name) for order, supplier_name in rows]


def list_pending_purchase_orders(db: Session, *, branch_id: int) -> list[dict]:
    """Pending orders that have no receive session yet, oldest first."""
    rows = db.execute(
        select(PurchaseOrder, Supplier.name)
        .join(Supplier, Supplier.id == PurchaseOrder.supplier_id)
        .outerjoin(ReceiveSession, ReceiveSession.purchase_order_id == PurchaseOrder.id)
        .where(
            PurchaseOrder.branch_id == branch_id,
            PurchaseOrder.is_deleted.is_(False),
            PurchaseOrder.status == PurchaseOrderStatus.PENDING,
            ReceiveSession.id.is_(None),
        )
        .order_by(PurchaseOrder.ordered_at.asc(), PurchaseOrder.id.asc())
    ).all()
    return [_order_summary(order, supplier_name) for order, supplier_name in rows]


def _order_summary(order: PurchaseOrder, supplier_name: str | None) -> dict:
    return {
        'id': order.id,
        'code': order.code,
        'branch_id': order.branch_id,
        'supplier_id': order.supplier_id,
        'supplier_name': supplier_name,
        'status': order.status.value,
        'status_label': status_label(order.status),
        'ordered_at': epoch_ms(order.ordered_at),
        'expected_delivery_at': epoch_ms(order.expected_delivery_at),
    }


def get_purchase_order_detailed(db: Session, *, purchase_order_id: int) -> dict:
    order = get_purchase_order(db, purchase_order_id)
    lines = list_lines(db, order.id)
    variants = variants_by_id(db, [line.sku_id for line in lines])
    zones = zones_by_id(db, [line.recommended_zone_id for line in lines])
    supplier = db.get(Supplier, order.supplier_id)
    created_by = db.get(User, order.created_by_user_id) if order.created_by_user_id else None
    session = session_for_order(db, order.id)

    items = []
    for line in lines:
        variant = variants.get(line.sku_id)
        zone = zones.get(line.recommended_zone_id)
        items.append(
            {
                'id': line.id,
                'sku_id': line.sku_id,
                'sku_code': variant.sku_code if variant else 'Unknown',
                'quantity_ordered': line.quantity_ordered,
                'quantity_received': line.quantity_received,
                'unit_cost': str(line.unit_cost),
                'zone': {'id': zone.id, 'name': zone.name} if zone else None,
            }
        )

    return {
        **_order_summary(order, supplier.name if supplier else None),
        'note': order.note,
        'supplier': {'name': supplier.name, 'phone': supplier.phone} if supplier else None,
        'created_by_user': {'full_name': created_by.full_name} if created_by else None,
        'receive_session': {'id': session.id, 'code': session.code} if session else None,
        'items': items,
        'total_items': len(items),
        'total_quantity_ordered': sum(line.quantity_ordered for line in lines),
        'total_quantity_received': sum(line.quantity_received for line in lines),
    }


def cancel_purchase_order(db: Session, *, purchase_order_id: int) -> PurchaseOrder:
    order = get_purchase_order(db, purchase_order_id)
    if order.status != PurchaseOrderStatus.PENDING:
        raise InvalidStateError(
            f'Purchase order {order.code} cannot be cancelled in status {status_label(order.status)}'
        )
    session = session_for_order(db, order.id)
    if session is not None:
        raise InvalidStateError(
            f'Purchase order {order.code} cannot be cancelled, receive session {session.code} already exists'
        )
    order.status = PurchaseOrderStatus.CANCELLED
    order.updated_at = _now()
    db.flush()
    logger.info('purchase_order_cancelled', extra={'entity_id': order.id, 'code': order.code})
    return order


def soft_delete_purchase_order(db: Session, *, purchase_order_id: int) -> PurchaseOrder:
    order = get_purchase_order(db, purchase_order_id)
    session = session_for_order(db, order.id)
    if session is not None:
        raise InvalidStateError(
            f'Purchase order {order.code} cannot be deleted, receive session {session.code} already exists'
        )
    order.is_deleted = True
    order.updated_at = _now()
    db.flush()
    logger.info('purchase_order_deleted', extra={'entity_id': order.id, 'code': order.code})
    return order


def mark_received(db: Session, order: PurchaseOrder) -> None:
    order.status = PurchaseOrderStatus.RECEIVED
    order.updated_at = _now()
