from __future__ import annotations

import unittest
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from wms.db import build_engine, init_db
from wms.models import (
    Branch,
    InventoryBatch,
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
from wms.services.provider_factory import get_zone_recommender


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class DatabaseTestCase(unittest.TestCase):
    """Fresh in-memory SQLite database per test, with a small organization already in place."""

    branch_timezone: str | None = 'UTC'

    def setUp(self) -> None:
        self.engine = build_engine(
            'sqlite://',
            connect_args={'check_same_thread': False},
            poolclass=StaticPool,
        )
        init_db(self.engine)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)
        self.db = self.Session()
        self.addCleanup(self.engine.dispose)
        self.addCleanup(self.db.close)

        get_zone_recommender.cache_clear()
        self.addCleanup(get_zone_recommender.cache_clear)

        self.org = self.add(Organization(name='Acme Foods'))
        self.branch = self.add(Branch(organization_id=self.org.id, name='North DC', timezone=self.branch_timezone))
        self.manager = self.make_user('manager', UserRole.MANAGER)
        self.operator = self.make_user('operator', UserRole.OPERATOR)
        self.supplier = self.add(Supplier(organization_id=self.org.id, name='Harbor Supply', default_lead_time_days=3))

    def add(self, row):
        self.db.add(row)
        self.db.flush()
        return row

    def make_user(self, username: str, role: UserRole, *, branch_id: int | None = None, password: str = 'secret') -> User:
        return self.add(
            User(
                organization_id=self.org.id,
                branch_id=branch_id if branch_id is not None else self.branch.id,
                username=username,
                full_name=username.title(),
                password_hash=hash_password(password),
                role=role,
                active=True,
            )
        )

    def make_variant(self, sku_code: str, cost: str = '10.00') -> ProductVariant:
        product = self.add(Product(organization_id=self.org.id, name=f'{sku_code} product'))
        return self.add(ProductVariant(product_id=product.id, sku_code=sku_code, cost_price=Decimal(cost)))

    def make_zone(self, name: str, zone_type: ZoneType = ZoneType.STORAGE, *, branch_id: int | None = None) -> StorageZone:
        return self.add(StorageZone(branch_id=branch_id or self.branch.id, name=name, zone_type=zone_type))

    def make_batch(self, variant: ProductVariant, zone: StorageZone, quantity: int, number: str) -> InventoryBatch:
        return self.add(
            InventoryBatch(
                organization_id=self.org.id,
                branch_id=zone.branch_id,
                sku_id=variant.id,
                zone_id=zone.id,
                quantity=quantity,
                supplier_batch_number=f'SB-{number}',
                internal_batch_number=f'IB-{number}',
                received_at=utc(2024, 1, 1, 8, 0),
            )
        )
