from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from wms.models import CycleCountType, ReceiveSessionStatus, ReturnStatus


class RequestBody(BaseModel):
    model_config = ConfigDict(extra='ignore')


class LoginIn(RequestBody):
    username: str = Field(..., max_length=150)
    password: str


class PurchaseOrderItemIn(RequestBody):
    sku_id: int
    quantity: int
    zone_id: int | None = None
    unit_cost: Decimal | None = None


class CreatePurchaseOrderIn(RequestBody):
    branch_id: int
    supplier_id: int
    items: list[PurchaseOrderItemIn]
    note: str | None = None


class PurchaseOrderRefIn(RequestBody):
    purchase_order_id: int


class CreateReceiveSessionIn(RequestBody):
    purchase_order_id: int


class ProcessReceiveItemIn(RequestBody):
    receive_session_detail_id: int
    quantity_to_add: int
    notes: str | None = None


class SetItemReturnRequestedIn(RequestBody):
    receive_session_detail_id: int
    return_reason_id: int | None = None
    notes: str | None = None


class CreateReturnFromReceiveSessionIn(RequestBody):
    receive_session_detail_id: int
    quantity_to_return: int
    return_reason_id: int | None = None
    custom_reason_notes: str | None = None


class ReceiveSessionRefIn(RequestBody):
    receive_session_id: int


class CompleteReceiveSessionIn(RequestBody):
    receive_session_id: int
    verified_by_user_id: int | None = None


class UpdateReceiveSessionStatusIn(RequestBody):
    receive_session_id: int
    status_code: ReceiveSessionStatus


class ZoneAssignmentIn(RequestBody):
    zone_id: int
    assigned_user_id: int | None = None


class CycleCountLineItemIn(RequestBody):
    sku_id: int
    expected_quantity: int
    zone_id: int
    batch_id: int | None = None


class CreateCycleCountSessionIn(RequestBody):
    branch_id: int
    name: str = Field(..., max_length=200)
    count_type: CycleCountType
    zone_assignments: list[ZoneAssignmentIn]
    line_items: list[CycleCountLineItemIn] | None = None
    description: str | None = None


class ZoneAssignmentRefIn(RequestBody):
    assignment_id: int


class CycleCountSessionRefIn(RequestBody):
    session_id: int


class RecordLineItemCountIn(RequestBody):
    line_item_id: int | str
    actual_quantity: int
    notes: str | None = None
    session_id: int | None = None
    zone_id: int | None = None


class ReturnRequestDetailIn(RequestBody):
    sku_id: int
    quantity_to_return: int
    reason_id: int | None = None
    custom_reason_notes: str | None = None
    batch_id: int | None = None


class CreateReturnRequestIn(RequestBody):
    branch_id: int
    supplier_id: int
    details: list[ReturnRequestDetailIn]


class SetReturnRequestStatusIn(RequestBody):
    return_request_id: int
    status: ReturnStatus


class ReturnRequestRefIn(RequestBody):
    return_request_id: int
