"""Pure status and progress rules for receiving and cycle counts.

Nothing here touches the database; services feed in the current child rows and store what comes out.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from wms.models import ReceiveItemStatus, ReceiveSessionStatus


@dataclass(frozen=True)
class ItemSnapshot:
    status: ReceiveItemStatus
    quantity_received: int


# Allowed (from, to) moves for a receive session detail.
ITEM_TRANSITIONS: dict[ReceiveItemStatus, set[ReceiveItemStatus]] = {
    ReceiveItemStatus.PENDING: {
        ReceiveItemStatus.PARTIAL,
        ReceiveItemStatus.COMPLETE,
        ReceiveItemStatus.RETURN_REQUESTED,
    },
    ReceiveItemStatus.PARTIAL: {
        ReceiveItemStatus.PARTIAL,
        ReceiveItemStatus.COMPLETE,
        ReceiveItemStatus.RETURN_REQUESTED,
    },
    ReceiveItemStatus.COMPLETE: {ReceiveItemStatus.COMPLETE},
    ReceiveItemStatus.RETURN_REQUESTED: set(),
}


def can_transition(current: ReceiveItemStatus, target: ReceiveItemStatus) -> bool:
    return target in ITEM_TRANSITIONS[current]


def item_status_for_quantity(quantity_received: int, quantity_expected: int) -> ReceiveItemStatus:
    if quantity_received >= quantity_expected:
        return ReceiveItemStatus.COMPLETE
    if quantity_received > 0:
        return ReceiveItemStatus.PARTIAL
    return ReceiveItemStatus.PENDING


def item_status_after_receipt(
    current: ReceiveItemStatus,
    *,
    quantity_received: int,
    quantity_expected: int,
) -> ReceiveItemStatus:
    """Status of a line after its received total became `quantity_received`.

    A Return-Requested line keeps that status; whether it may take receipts at all is decided by the caller.
    """
    if current == ReceiveItemStatus.RETURN_REQUESTED:
        return current
    return item_status_for_quantity(quantity_received, quantity_expected)


def derive_session_status(items: Iterable[ItemSnapshot]) -> ReceiveSessionStatus:
    items = list(items)
    if not items:
        return ReceiveSessionStatus.PENDING
    if all(item.status == ReceiveItemStatus.COMPLETE for item in items):
        return ReceiveSessionStatus.COMPLETE
    if any(item.quantity_received > 0 for item in items):
        return ReceiveSessionStatus.IN_PROGRESS
    return ReceiveSessionStatus.PENDING


def is_item_handled(status: ReceiveItemStatus, *, quantity_received: int, quantity_expected: int) -> bool:
    if status == ReceiveItemStatus.RETURN_REQUESTED:
        return True
    return quantity_received >= quantity_expected


def progress_percent(done: int | Decimal, total: int | Decimal) -> int:
    """round(100 * done / total) with halves rounded up; 0 when total is 0."""
    if not total:
        return 0
    value = Decimal(done) * Decimal(100) / Decimal(total)
    return int(value.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class CountProgress:
    total_items: int
    scanned_items: int
    matched_items: int

    @property
    def progress_percent(self) -> int:
        return progress_percent(self.scanned_items, self.total_items)

    def as_dict(self) -> dict:
        return {
            'total_items': self.total_items,
            'scanned_items': self.scanned_items,
            'matched_items': self.matched_items,
            'progress_percent': self.progress_percent,
        }


def count_progress(items: Iterable) -> CountProgress:
    """Items need `is_scanned` and `variance` attributes."""
    total = scanned = matched = 0
    for item in items:
        total += 1
        if item.is_scanned:
            scanned += 1
            if item.variance == 0:
                matched += 1
    return CountProgress(total_items=total, scanned_items=scanned, matched_items=matched)


def variance_for(actual_quantity: int, expected_quantity: int) -> int:
    return actual_quantity - expected_quantity
