from __future__ import annotations

import logging
from enum import Enum

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wms.errors import NotFoundError, ValidationError
from wms.models import (
    BatchStatus,
    CycleCountStatus,
    CycleCountType,
    PurchaseOrderStatus,
    ReceiveItemStatus,
    ReceiveSessionStatus,
    ReturnStatus,
    SystemLookup,
    WorkSessionStatus,
    WorkSessionType,
    ZoneAssignmentStatus,
    ZoneType,
)

logger = logging.getLogger(__name__)

RETURN_REASON = 'RETURN_REASON'

# Display namespace for every status/type enum.
LOOKUP_TYPES: dict[type[Enum], str] = {
    PurchaseOrderStatus: 'PurchaseOrderStatus',
    ReceiveSessionStatus: 'ReceiveSessionStatus',
    ReceiveItemStatus: 'ReceiveItemStatus',
    WorkSessionType: 'WorkSessionType',
    WorkSessionStatus: 'WorkSessionStatus',
    ReturnStatus: 'ReturnStatus',
    CycleCountType: 'CycleCountType',
    CycleCountStatus: 'CycleCountStatus',
    ZoneAssignmentStatus: 'ZoneAssignmentStatus',
    ZoneType: 'ZoneType',
    BatchStatus: 'BatchStatus',
}

LABEL_OVERRIDES = {
    (ReceiveItemStatus, 'RETURN_REQUESTED'): 'Return Requested',
    (WorkSessionType, 'INBOUND'): 'Receive',
}

DEFAULT_RETURN_REASONS = [
    ('DAMAGED', 'Damaged', 'Goods arrived damaged'),
    ('WRONG_ITEM', 'Wrong Item', 'Supplier shipped a different item'),
    ('EXPIRED', 'Expired', 'Goods are past their expiry date'),
    ('EXCESS_QUANTITY', 'Excess Quantity', 'More units shipped than ordered'),
    ('QUALITY_ISSUE', 'Quality Issue', 'Goods failed quality inspection'),
]


def status_label(value: Enum) -> str:
    override = LABEL_OVERRIDES.get((type(value), value.value))
    if override:
        return override
    return value.value.replace('_', ' ').title()


def get_lookup(db: Session, *, lookup_type: str, lookup_code: str) -> SystemLookup | None:
    return db.execute(
        select(SystemLookup).where(
            SystemLookup.lookup_type == lookup_type,
            SystemLookup.lookup_code == lookup_code,
        )
    ).scalar_one_or_none()


def get_lookup_by_id(db: Session, lookup_id: int) -> SystemLookup | None:
    return db.get(SystemLookup, lookup_id)


def ensure_lookup(
    db: Session,
    *,
    lookup_type: str,
    lookup_code: str,
    lookup_value: str,
    description: str | None = None,
    sort_order: int = 1,
) -> SystemLookup:
    """Get-or-create. An existing row is returned unchanged even if `lookup_value` differs."""
    existing = get_lookup(db, lookup_type=lookup_type, lookup_code=lookup_code)
    if existing:
        return existing

    lookup = SystemLookup(
        lookup_type=lookup_type,
        lookup_code=lookup_code,
        lookup_value=lookup_value,
        description=description,
        sort_order=sort_order,
    )
    try:
        with db.begin_nested():
            db.add(lookup)
            db.flush()
    except IntegrityError:
        # Another writer created it first.
        existing = get_lookup(db, lookup_type=lookup_type, lookup_code=lookup_code)
        if existing is None:
            raise
        return existing
    logger.info('lookup_created', extra={'code': f'{lookup_type}:{lookup_code}', 'entity_id': lookup.id})
    return lookup


def get_lookups_by_type(db: Session, *, lookup_type: str) -> list[SystemLookup]:
    return db.execute(
        select(SystemLookup)
        .where(SystemLookup.lookup_type == lookup_type)
        .order_by(SystemLookup.sort_order.asc(), SystemLookup.lookup_value.asc())
    ).scalars().all()


def ensure_enum_lookup(db: Session, value: Enum) -> SystemLookup:
    members = list(type(value))
    return ensure_lookup(
        db,
        lookup_type=LOOKUP_TYPES[type(value)],
        lookup_code=value.value,
        lookup_value=status_label(value),
        sort_order=members.index(value) + 1,
    )


def seed_default_lookups(db: Session) -> int:
    """Ensure display rows for every status enum and the default return reasons. Returns rows touched."""
    touched = 0
    for enum_cls in LOOKUP_TYPES:
        for member in enum_cls:
            ensure_enum_lookup(db, member)
            touched += 1
    for index, (code, label, description) in enumerate(DEFAULT_RETURN_REASONS, start=1):
        ensure_lookup(
            db,
            lookup_type=RETURN_REASON,
            lookup_code=code,
            lookup_value=label,
            description=description,
            sort_order=index,
        )
        touched += 1
    return touched


def list_return_reasons(db: Session) -> list[SystemLookup]:
    return get_lookups_by_type(db, lookup_type=RETURN_REASON)


def require_return_reason(db: Session, reason_id: int | None) -> SystemLookup | None:
    if reason_id is None:
        return None
    lookup = get_lookup_by_id(db, reason_id)
    if lookup is None:
        raise NotFoundError(f'Return reason {reason_id} not found')
    if lookup.lookup_type != RETURN_REASON:
        raise ValidationError(f'Lookup {reason_id} is a {lookup.lookup_type}, not a return reason')
    return lookup


def serialize_lookup(lookup: SystemLookup) -> dict:
    return {
        'id': lookup.id,
        'lookup_type': lookup.lookup_type,
        'lookup_code': lookup.lookup_code,
        'lookup_value': lookup.lookup_value,
        'description': lookup.description,
        'sort_order': lookup.sort_order,
    }
