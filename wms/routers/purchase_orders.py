from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from wms.auth import Principal, assert_branch_scope, get_current_principal, require_manager
from wms.db import get_db
from wms.dependencies import get_client_ip
from wms.models import PurchaseOrderStatus
from wms.schemas import CreatePurchaseOrderIn, PurchaseOrderRefIn
from wms.services import purchase_order_service
from wms.services.audit_service import log_audit
from wms.services.purchase_order_service import PurchaseOrderItemInput

router = APIRouter(prefix='/purchase-orders', tags=['purchase-orders'])


@router.get('')
def list_purchase_orders(
    branch_id: int,
    status: PurchaseOrderStatus | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    assert_branch_scope(db, principal, branch_id)
    return purchase_order_service.list_purchase_orders(db, branch_id=branch_id, status=status)


@router.get('/pending')
def list_pending_purchase_orders(
    branch_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    assert_branch_scope(db, principal, branch_id)
    return purchase_order_service.list_pending_purchase_orders(db, branch_id=branch_id)


@router.get('/{purchase_order_id}')
def get_purchase_order_detailed(
    purchase_order_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    order = purchase_order_service.get_purchase_order(db, purchase_order_id)
    assert_branch_scope(db, principal, order.branch_id)
    return purchase_order_service.get_purchase_order_detailed(db, purchase_order_id=order.id)


@router.post('/create')
def create_purchase_order(
    payload: CreatePurchaseOrderIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    assert_branch_scope(db, principal, payload.branch_id)
    order = purchase_order_service.create_purchase_order(
        db,
        branch_id=payload.branch_id,
        supplier_id=payload.supplier_id,
        items=[
            PurchaseOrderItemInput(
                sku_id=item.sku_id,
                quantity=item.quantity,
                zone_id=item.zone_id,
                unit_cost=item.unit_cost,
            )
            for item in payload.items
        ],
        created_by_user_id=principal.id,
        note=payload.note,
    )
    log_audit(
        db,
        actor_user_id=principal.id,
        action='PURCHASE_ORDER_CREATED',
        entity_type='purchase_order',
        entity_id=order.id,
        ip=get_client_ip(request),
        metadata={'code': order.code, 'item_count': len(payload.items)},
    )
    db.commit()
    return {'success': True, 'order_id': order.id, 'code': order.code}


@router.post('/cancel')
def cancel_purchase_order(
    payload: PurchaseOrderRefIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_manager),
):
    order = purchase_order_service.get_purchase_order(db, payload.purchase_order_id)
    assert_branch_scope(db, principal, order.branch_id)
    order = purchase_order_service.cancel_purchase_order(db, purchase_order_id=order.id)
    log_audit(
        db,
        actor_user_id=principal.id,
        action='PURCHASE_ORDER_CANCELLED',
        entity_type='purchase_order',
        entity_id=order.id,
        ip=get_client_ip(request),
        metadata={'code': order.code},
    )
    db.commit()
    return {'success': True, 'order_id': order.id, 'status': order.status.value}


@router.post('/delete')
def delete_purchase_order(
    payload: PurchaseOrderRefIn,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_manager),
):
    order = purchase_order_service.get_purchase_order(db, payload.purchase_order_id)
    assert_branch_scope(db, principal, order.branch_id)
    purchase_order_service.soft_delete_purchase_order(db, purchase_order_id=order.id)
    log_audit(
        db,
        actor_user_id=principal.id,
        action='PURCHASE_ORDER_DELETED',
        entity_type='purchase_order',
        entity_id=order.id,
        ip=get_client_ip(request),
        metadata={'code': order.code},
    )
    db.commit()
    return {'success': True, 'order_id': order.id}
