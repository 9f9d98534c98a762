from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
IdType = BigInteger().with_variant(Integer(), 'sqlite')


class Base(DeclarativeBase):
    pass


class UserRole(str, Enum):
    ADMIN = 'ADMIN'
    MANAGER = 'MANAGER'
    OPERATOR = 'OPERATOR'


class ZoneType(str, Enum):
    RECEIVING = 'RECEIVING'
    STORAGE = 'STORAGE'
    STAGING = 'STAGING'
    SHIPPING = 'SHIPPING'


class PurchaseOrderStatus(str, Enum):
    PENDING = 'PENDING'
    PARTIAL = 'PARTIAL'
    RECEIVED = 'RECEIVED'
    CANCELLED = 'CANCELLED'


class ReceiveSessionStatus(str, Enum):
    PENDING = 'PENDING'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETE = 'COMPLETE'


class ReceiveItemStatus(str, Enum):
    PENDING = 'PENDING'
    PARTIAL = 'PARTIAL'
    COMPLETE = 'COMPLETE'
    RETURN_REQUESTED = 'RETURN_REQUESTED'


class WorkSessionType(str, Enum):
    INBOUND = 'INBOUND'
    CYCLE_COUNT = 'CYCLE_COUNT'


class WorkSessionStatus(str, Enum):
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'


class ReturnStatus(str, Enum):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'


class CycleCountType(str, Enum):
    DAILY = 'DAILY'
    WEEKLY = 'WEEKLY'
    MONTHLY = 'MONTHLY'
    QUARTERLY = 'QUARTERLY'


class CycleCountStatus(str, Enum):
    PENDING = 'PENDING'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'


class ZoneAssignmentStatus(str, Enum):
    NOT_STARTED = 'NOT_STARTED'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'


class BatchStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    DEPLETED = 'DEPLETED'


class Organization(Base):
    __tablename__ = 'organizations'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Branch(Base):
    __tablename__ = 'branches'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    organization_id: Mapped[int] = mapped_column(IdType, ForeignKey('organizations.id'), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    timezone: Mapped[str | None] = mapped_column(String(64))
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class User(Base):
    __tablename__ = 'users'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    organization_id: Mapped[int] = mapped_column(IdType, ForeignKey('organizations.id'), nullable=False)
    branch_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('branches.id'))
    username: Mapped[str] = mapped_column(String(150), nullable=False, unique=True)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[UserRole] = mapped_column(SQLEnum(UserRole, name='user_role'), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class WebSession(Base):
    __tablename__ = 'web_sessions'
    __table_args__ = (
        UniqueConstraint('session_token', name='web_sessions_session_token_key'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    session_token: Mapped[str] = mapped_column(String(128), nullable=False)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey('users.id'), nullable=False)
    ip: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class AuthEvent(Base):
    __tablename__ = 'auth_events'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    attempted_username: Mapped[str] = mapped_column(String(150), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(Text)
    user_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('users.id'))
    ip: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    actor_user_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('users.id'))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(64))
    entity_id: Mapped[int | None] = mapped_column(IdType)
    ip: Mapped[str | None] = mapped_column(String(64))
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class SystemLookup(Base):
    __tablename__ = 'system_lookups'
    __table_args__ = (
        UniqueConstraint('lookup_type', 'lookup_code', name='system_lookups_type_code_key'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    lookup_type: Mapped[str] = mapped_column(String(64), nullable=False)
    lookup_code: Mapped[str] = mapped_column(String(64), nullable=False)
    lookup_value: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default='1')


class Supplier(Base):
    __tablename__ = 'suppliers'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    organization_id: Mapped[int] = mapped_column(IdType, ForeignKey('organizations.id'), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(64))
    default_lead_time_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')


class Product(Base):
    __tablename__ = 'products'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    organization_id: Mapped[int] = mapped_column(IdType, ForeignKey('organizations.id'), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')


class ProductVariant(Base):
    __tablename__ = 'product_variants'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    product_id: Mapped[int] = mapped_column(IdType, ForeignKey('products.id'), nullable=False)
    sku_code: Mapped[str] = mapped_column(String(64), nullable=False)
    cost_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'), server_default='0')
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')


class StorageZone(Base):
    __tablename__ = 'storage_zones'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    branch_id: Mapped[int] = mapped_column(IdType, ForeignKey('branches.id'), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    zone_type: Mapped[ZoneType] = mapped_column(SQLEnum(ZoneType, name='zone_type'), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')


class PurchaseOrder(Base):
    __tablename__ = 'purchase_orders'
    __table_args__ = (
        UniqueConstraint('branch_id', 'code', name='purchase_orders_branch_code_key'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    organization_id: Mapped[int] = mapped_column(IdType, ForeignKey('organizations.id'), nullable=False)
    branch_id: Mapped[int] = mapped_column(IdType, ForeignKey('branches.id'), nullable=False)
    supplier_id: Mapped[int] = mapped_column(IdType, ForeignKey('suppliers.id'), nullable=False)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    note: Mapped[str | None] = mapped_column(Text)
    status: Mapped[PurchaseOrderStatus] = mapped_column(
        SQLEnum(PurchaseOrderStatus, name='purchase_order_status'),
        nullable=False,
        default=PurchaseOrderStatus.PENDING,
        server_default='PENDING',
    )
    ordered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expected_delivery_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by_user_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('users.id'))
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PurchaseOrderLine(Base):
    __tablename__ = 'purchase_order_lines'
    __table_args__ = (
        CheckConstraint('quantity_received >= 0', name='purchase_order_lines_received_non_negative_ck'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    purchase_order_id: Mapped[int] = mapped_column(
        IdType, ForeignKey('purchase_orders.id', ondelete='CASCADE'), nullable=False
    )
    sku_id: Mapped[int] = mapped_column(IdType, ForeignKey('product_variants.id'), nullable=False)
    quantity_ordered: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0.00'), server_default='0')
    recommended_zone_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('storage_zones.id'))


class ReceiveSession(Base):
    __tablename__ = 'receive_sessions'
    __table_args__ = (
        UniqueConstraint('branch_id', 'code', name='receive_sessions_branch_code_key'),
        UniqueConstraint('purchase_order_id', name='receive_sessions_purchase_order_key'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    purchase_order_id: Mapped[int] = mapped_column(IdType, ForeignKey('purchase_orders.id'), nullable=False)
    branch_id: Mapped[int] = mapped_column(IdType, ForeignKey('branches.id'), nullable=False)
    status: Mapped[ReceiveSessionStatus] = mapped_column(
        SQLEnum(ReceiveSessionStatus, name='receive_session_status'),
        nullable=False,
        default=ReceiveSessionStatus.PENDING,
        server_default='PENDING',
    )
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    saved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class ReceiveSessionDetail(Base):
    __tablename__ = 'receive_session_details'
    __table_args__ = (
        CheckConstraint('quantity_received >= 0', name='receive_session_details_received_non_negative_ck'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    receive_session_id: Mapped[int] = mapped_column(
        IdType, ForeignKey('receive_sessions.id', ondelete='CASCADE'), nullable=False
    )
    purchase_order_line_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('purchase_order_lines.id'))
    sku_id: Mapped[int] = mapped_column(IdType, ForeignKey('product_variants.id'), nullable=False)
    quantity_expected: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_received: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ReceiveItemStatus] = mapped_column(
        SQLEnum(ReceiveItemStatus, name='receive_item_status'),
        nullable=False,
        default=ReceiveItemStatus.PENDING,
        server_default='PENDING',
    )
    recommended_zone_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('storage_zones.id'))
    return_reason_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('system_lookups.id'))


class WorkSession(Base):
    __tablename__ = 'work_sessions'
    __table_args__ = (
        UniqueConstraint('branch_id', 'code', name='work_sessions_branch_code_key'),
        UniqueConstraint('receive_session_id', name='work_sessions_receive_session_key'),
        UniqueConstraint('zone_assignment_id', name='work_sessions_zone_assignment_key'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    organization_id: Mapped[int] = mapped_column(IdType, ForeignKey('organizations.id'), nullable=False)
    branch_id: Mapped[int] = mapped_column(IdType, ForeignKey('branches.id'), nullable=False)
    session_type: Mapped[WorkSessionType] = mapped_column(SQLEnum(WorkSessionType, name='work_session_type'), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    assigned_user_id: Mapped[int] = mapped_column(IdType, ForeignKey('users.id'), nullable=False)
    status: Mapped[WorkSessionStatus] = mapped_column(
        SQLEnum(WorkSessionStatus, name='work_session_status'),
        nullable=False,
        default=WorkSessionStatus.IN_PROGRESS,
        server_default='IN_PROGRESS',
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    verified_by_user_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('users.id'))
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    receive_session_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('receive_sessions.id'))
    zone_assignment_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('zone_assignments.id'))


class InventoryBatch(Base):
    __tablename__ = 'inventory_batches'
    __table_args__ = (
        UniqueConstraint('branch_id', 'internal_batch_number', name='inventory_batches_branch_internal_key'),
        UniqueConstraint('branch_id', 'supplier_batch_number', name='inventory_batches_branch_supplier_key'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    organization_id: Mapped[int] = mapped_column(IdType, ForeignKey('organizations.id'), nullable=False)
    branch_id: Mapped[int] = mapped_column(IdType, ForeignKey('branches.id'), nullable=False)
    sku_id: Mapped[int] = mapped_column(IdType, ForeignKey('product_variants.id'), nullable=False)
    zone_id: Mapped[int] = mapped_column(IdType, ForeignKey('storage_zones.id'), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    supplier_batch_number: Mapped[str] = mapped_column(String(32), nullable=False)
    internal_batch_number: Mapped[str] = mapped_column(String(32), nullable=False)
    receive_session_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('receive_sessions.id'))
    status: Mapped[BatchStatus] = mapped_column(
        SQLEnum(BatchStatus, name='batch_status'),
        nullable=False,
        default=BatchStatus.ACTIVE,
        server_default='ACTIVE',
    )
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')


class ReturnRequest(Base):
    __tablename__ = 'return_requests'
    __table_args__ = (
        UniqueConstraint('branch_id', 'code', name='return_requests_branch_code_key'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    organization_id: Mapped[int] = mapped_column(IdType, ForeignKey('organizations.id'), nullable=False)
    branch_id: Mapped[int] = mapped_column(IdType, ForeignKey('branches.id'), nullable=False)
    supplier_id: Mapped[int] = mapped_column(IdType, ForeignKey('suppliers.id'), nullable=False)
    purchase_order_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('purchase_orders.id'))
    receive_session_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('receive_sessions.id'))
    requested_by_user_id: Mapped[int] = mapped_column(IdType, ForeignKey('users.id'), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[ReturnStatus] = mapped_column(
        SQLEnum(ReturnStatus, name='return_status'),
        nullable=False,
        default=ReturnStatus.PENDING,
        server_default='PENDING',
    )
    status_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')


class ReturnRequestDetail(Base):
    __tablename__ = 'return_request_details'
    __table_args__ = (
        CheckConstraint('quantity_to_return > 0', name='return_request_details_quantity_positive_ck'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    return_request_id: Mapped[int] = mapped_column(
        IdType, ForeignKey('return_requests.id', ondelete='CASCADE'), nullable=False
    )
    batch_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('inventory_batches.id'))
    sku_id: Mapped[int] = mapped_column(IdType, ForeignKey('product_variants.id'), nullable=False)
    quantity_to_return: Mapped[int] = mapped_column(Integer, nullable=False)
    reason_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('system_lookups.id'))
    custom_reason_notes: Mapped[str | None] = mapped_column(Text)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    expected_credit_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    receive_session_detail_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('receive_session_details.id'))


class CycleCountSession(Base):
    __tablename__ = 'cycle_count_sessions'
    __table_args__ = (
        UniqueConstraint('branch_id', 'code', name='cycle_count_sessions_branch_code_key'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    organization_id: Mapped[int] = mapped_column(IdType, ForeignKey('organizations.id'), nullable=False)
    branch_id: Mapped[int] = mapped_column(IdType, ForeignKey('branches.id'), nullable=False)
    count_type: Mapped[CycleCountType] = mapped_column(SQLEnum(CycleCountType, name='cycle_count_type'), nullable=False)
    status: Mapped[CycleCountStatus] = mapped_column(
        SQLEnum(CycleCountStatus, name='cycle_count_status'),
        nullable=False,
        default=CycleCountStatus.PENDING,
        server_default='PENDING',
    )
    created_by_user_id: Mapped[int] = mapped_column(IdType, ForeignKey('users.id'), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')


class ZoneAssignment(Base):
    __tablename__ = 'zone_assignments'
    __table_args__ = (
        UniqueConstraint('session_id', 'zone_id', name='zone_assignments_session_zone_key'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        IdType, ForeignKey('cycle_count_sessions.id', ondelete='CASCADE'), nullable=False
    )
    zone_id: Mapped[int] = mapped_column(IdType, ForeignKey('storage_zones.id'), nullable=False)
    assigned_user_id: Mapped[int] = mapped_column(IdType, ForeignKey('users.id'), nullable=False)
    status: Mapped[ZoneAssignmentStatus] = mapped_column(
        SQLEnum(ZoneAssignmentStatus, name='zone_assignment_status'),
        nullable=False,
        default=ZoneAssignmentStatus.NOT_STARTED,
        server_default='NOT_STARTED',
    )
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class CycleCountLineItem(Base):
    __tablename__ = 'cycle_count_line_items'
    __table_args__ = (
        CheckConstraint('actual_quantity >= 0', name='cycle_count_line_items_actual_non_negative_ck'),
        UniqueConstraint('zone_assignment_id', 'batch_id', name='cycle_count_line_items_assignment_batch_key'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    session_id: Mapped[int] = mapped_column(
        IdType, ForeignKey('cycle_count_sessions.id', ondelete='CASCADE'), nullable=False
    )
    zone_assignment_id: Mapped[int] = mapped_column(
        IdType, ForeignKey('zone_assignments.id', ondelete='CASCADE'), nullable=False
    )
    sku_id: Mapped[int] = mapped_column(IdType, ForeignKey('product_variants.id'), nullable=False)
    batch_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('inventory_batches.id'))
    expected_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    actual_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    variance: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    is_scanned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    scanned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    scanned_by_user_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('users.id'))
    notes: Mapped[str | None] = mapped_column(Text)
