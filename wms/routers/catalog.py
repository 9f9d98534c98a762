from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from wms.auth import Principal, assert_branch_scope, get_current_principal
from wms.db import get_db
from wms.models import ZoneType
from wms.services import catalog_service
from wms.services.time_utils import epoch_ms

router = APIRouter(prefix='/zones', tags=['zones'])


@router.get('')
def list_zones(
    branch_id: int,
    zone_type: ZoneType | None = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    assert_branch_scope(db, principal, branch_id)
    zones = catalog_service.list_active_zones_by_branch(db, branch_id=branch_id, zone_type=zone_type)
    return [catalog_service.serialize_zone(zone) for zone in zones]


@router.get('/{zone_id}/batches')
def list_zone_batches(
    zone_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    zone = catalog_service.get_active_zone(db, zone_id)
    assert_branch_scope(db, principal, zone.branch_id)
    batches = catalog_service.list_active_batches_by_zone(db, zone_id=zone.id)
    labels = catalog_service.variant_labels(db, [b.sku_id for b in batches])
    return [
        {
            'id': batch.id,
            'sku_id': batch.sku_id,
            **catalog_service.variant_label(labels, batch.sku_id),
            'internal_batch_number': batch.internal_batch_number,
            'supplier_batch_number': batch.supplier_batch_number,
            'quantity': batch.quantity,
            'received_at': epoch_ms(batch.received_at),
        }
        for batch in batches
    ]
