from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from wms.errors import NotFoundError
from wms.models import (
    BatchStatus,
    Branch,
    InventoryBatch,
    Product,
    ProductVariant,
    StorageZone,
    Supplier,
    User,
    ZoneType,
)


def get_branch(db: Session, branch_id: int) -> Branch:
    branch = db.get(Branch, branch_id)
    if not branch or branch.is_deleted:
        raise NotFoundError(f'Branch {branch_id} not found')
    return branch


def get_supplier(db: Session, supplier_id: int) -> Supplier:
    supplier = db.get(Supplier, supplier_id)
    if not supplier or supplier.is_deleted:
        raise NotFoundError(f'Supplier {supplier_id} not found')
    return supplier


def get_variant(db: Session, sku_id: int) -> ProductVariant:
    variant = db.get(ProductVariant, sku_id)
    if not variant or variant.is_deleted:
        raise NotFoundError(f'Product variant {sku_id} not found')
    return variant


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError(f'User {user_id} not found')
    return user


def variants_by_id(db: Session, sku_ids) -> dict[int, ProductVariant]:
    sku_ids = {sku_id for sku_id in sku_ids if sku_id is not None}
    if not sku_ids:
        return {}
    rows = db.execute(select(ProductVariant).where(ProductVariant.id.in_(sku_ids))).scalars().all()
    return {row.id: row for row in rows}


def variant_labels(db: Session, sku_ids) -> dict[int, dict]:
    sku_ids = {sku_id for sku_id in sku_ids if sku_id is not None}
    if not sku_ids:
        return {}
    rows = db.execute(
        select(ProductVariant.id, ProductVariant.sku_code, Product.name)
        .join(Product, Product.id == ProductVariant.product_id)
        .where(ProductVariant.id.in_(sku_ids))
    ).all()
    return {sku_id: {'sku_code': sku_code, 'product_name': name} for sku_id, sku_code, name in rows}


def variant_label(labels: dict[int, dict], sku_id: int) -> dict:
    return labels.get(sku_id) or {'sku_code': 'Unknown', 'product_name': 'Unknown Product'}


def zones_by_id(db: Session, zone_ids) -> dict[int, StorageZone]:
    zone_ids = {zone_id for zone_id in zone_ids if zone_id is not None}
    if not zone_ids:
        return {}
    rows = db.execute(select(StorageZone).where(StorageZone.id.in_(zone_ids))).scalars().all()
    return {row.id: row for row in rows}


def user_names_by_id(db: Session, user_ids) -> dict[int, str]:
    user_ids = {user_id for user_id in user_ids if user_id is not None}
    if not user_ids:
        return {}
    rows = db.execute(select(User.id, User.full_name).where(User.id.in_(user_ids))).all()
    return {user_id: full_name for user_id, full_name in rows}


def get_active_zone(db: Session, zone_id: int, *, branch_id: int | None = None) -> StorageZone:
    zone = db.get(StorageZone, zone_id)
    if not zone or zone.is_deleted or not zone.is_active:
        raise NotFoundError(f'Storage zone {zone_id} not found')
    if branch_id is not None and zone.branch_id != branch_id:
        raise NotFoundError(f'Storage zone {zone_id} not found in branch {branch_id}')
    return zone


def list_active_zones_by_branch(
    db: Session,
    *,
    branch_id: int,
    zone_type: ZoneType | str | None = None,
) -> list[StorageZone]:
    query = select(StorageZone).where(
        StorageZone.branch_id == branch_id,
        StorageZone.is_deleted.is_(False),
        StorageZone.is_active.is_(True),
    )
    if zone_type is not None:
        query = query.where(StorageZone.zone_type == ZoneType(zone_type))
    return db.execute(query.order_by(StorageZone.id.asc())).scalars().all()


def list_active_batches_by_zone(db: Session, *, zone_id: int) -> list[InventoryBatch]:
    return db.execute(
        select(InventoryBatch)
        .where(
            InventoryBatch.zone_id == zone_id,
            InventoryBatch.is_deleted.is_(False),
            InventoryBatch.status == BatchStatus.ACTIVE,
            InventoryBatch.quantity > 0,
        )
        .order_by(InventoryBatch.id.asc())
    ).scalars().all()


def serialize_zone(zone: StorageZone | None) -> dict | None:
    if zone is None:
        return None
    return {
        'id': zone.id,
        'name': zone.name,
        'zone_type': zone.zone_type.value,
        'branch_id': zone.branch_id,
    }
