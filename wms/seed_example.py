from decimal import Decimal

from sqlalchemy import select

from wms.db import SessionLocal, init_db
from wms.models import (
    Branch,
    Organization,
    Product,
    ProductVariant,
    StorageZone,
    Supplier,
    User,
    UserRole,
    ZoneType,
)
from wms.security.passwords import hash_password
from wms.services.lookup_service import seed_default_lookups

DEMO_PRODUCTS = [
    ('Arabica Beans 1kg', 'ARB-1KG', Decimal('12.50')),
    ('Oat Milk 1L', 'OAT-1L', Decimal('1.80')),
    ('Paper Cups 12oz', 'CUP-12OZ', Decimal('0.08')),
]

DEMO_ZONES = [
    ('Dock A', ZoneType.RECEIVING),
    ('Aisle 1', ZoneType.STORAGE),
    ('Aisle 2', ZoneType.STORAGE),
    ('Dispatch', ZoneType.SHIPPING),
]


def _ensure_user(db, *, username, full_name, password, role, organization_id, branch_id) -> None:
    user = db.execute(select(User).where(User.username == username)).scalar_one_or_none()
    if user:
        return
    db.add(
        User(
            organization_id=organization_id,
            branch_id=branch_id,
            username=username,
            full_name=full_name,
            password_hash=hash_password(password),
            role=role,
            active=True,
        )
    )


def seed() -> None:
    init_db()
    with SessionLocal() as db:
        org = db.execute(select(Organization).where(Organization.name == 'Demo Foods')).scalar_one_or_none()
        if not org:
            org = Organization(name='Demo Foods')
            db.add(org)
            db.flush()

        branch = db.execute(
            select(Branch).where(Branch.organization_id == org.id, Branch.name == 'Central Warehouse')
        ).scalar_one_or_none()
        if not branch:
            branch = Branch(organization_id=org.id, name='Central Warehouse', timezone='Asia/Singapore')
            db.add(branch)
            db.flush()

        _ensure_user(
            db,
            username='admin',
            full_name='Demo Admin',
            password='adminpass',
            role=UserRole.ADMIN,
            organization_id=org.id,
            branch_id=None,
        )
        _ensure_user(
            db,
            username='manager',
            full_name='Demo Manager',
            password='managerpass',
            role=UserRole.MANAGER,
            organization_id=org.id,
            branch_id=branch.id,
        )
        _ensure_user(
            db,
            username='operator1',
            full_name='Demo Operator',
            password='operatorpass',
            role=UserRole.OPERATOR,
            organization_id=org.id,
            branch_id=branch.id,
        )

        supplier = db.execute(
            select(Supplier).where(Supplier.organization_id == org.id, Supplier.name == 'Harbor Supply Co')
        ).scalar_one_or_none()
        if not supplier:
            db.add(Supplier(organization_id=org.id, name='Harbor Supply Co', phone='+65 6000 0000', default_lead_time_days=3))

        for name, sku_code, cost in DEMO_PRODUCTS:
            exists = db.execute(select(ProductVariant).where(ProductVariant.sku_code == sku_code)).scalar_one_or_none()
            if exists:
                continue
            product = Product(organization_id=org.id, name=name)
            db.add(product)
            db.flush()
            db.add(ProductVariant(product_id=product.id, sku_code=sku_code, cost_price=cost))

        for name, zone_type in DEMO_ZONES:
            exists = db.execute(
                select(StorageZone).where(StorageZone.branch_id == branch.id, StorageZone.name == name)
            ).scalar_one_or_none()
            if not exists:
                db.add(StorageZone(branch_id=branch.id, name=name, zone_type=zone_type))

        seed_default_lookups(db)
        db.commit()


if __name__ == '__main__':
    seed()
    print('Seed data inserted/verified.')
