from __future__ import annotations

import unittest
from types import SimpleNamespace

from wms.models import ReceiveItemStatus as Item
from wms.models import ReceiveSessionStatus as Session
from wms.status_rules import (
    ItemSnapshot,
    can_transition,
    count_progress,
    derive_session_status,
    is_item_handled,
    item_status_after_receipt,
    item_status_for_quantity,
    progress_percent,
    variance_for,
)


class ItemStatusTests(unittest.TestCase):
    def test_status_follows_received_quantity(self) -> None:
        self.assertEqual(item_status_for_quantity(0, 100), Item.PENDING)
        self.assertEqual(item_status_for_quantity(60, 100), Item.PARTIAL)
        self.assertEqual(item_status_for_quantity(100, 100), Item.COMPLETE)
        self.assertEqual(item_status_for_quantity(120, 100), Item.COMPLETE)

    def test_return_requested_is_sticky_after_receipt(self) -> None:
        status = item_status_after_receipt(Item.RETURN_REQUESTED, quantity_received=100, quantity_expected=100)
        self.assertEqual(status, Item.RETURN_REQUESTED)

    def test_complete_line_cannot_be_diverted_to_return(self) -> None:
        self.assertTrue(can_transition(Item.PARTIAL, Item.RETURN_REQUESTED))
        self.assertFalse(can_transition(Item.COMPLETE, Item.RETURN_REQUESTED))
        self.assertFalse(can_transition(Item.RETURN_REQUESTED, Item.COMPLETE))

    def test_handled_means_fully_received_or_flagged(self) -> None:
        self.assertTrue(is_item_handled(Item.RETURN_REQUESTED, quantity_received=0, quantity_expected=10))
        self.assertTrue(is_item_handled(Item.COMPLETE, quantity_received=10, quantity_expected=10))
        self.assertFalse(is_item_handled(Item.PARTIAL, quantity_received=4, quantity_expected=10))


class SessionStatusTests(unittest.TestCase):
    def test_no_items_is_pending(self) -> None:
        self.assertEqual(derive_session_status([]), Session.PENDING)

    def test_all_complete(self) -> None:
        items = [ItemSnapshot(Item.COMPLETE, 5), ItemSnapshot(Item.COMPLETE, 3)]
        self.assertEqual(derive_session_status(items), Session.COMPLETE)

    def test_any_received_is_in_progress(self) -> None:
        items = [ItemSnapshot(Item.COMPLETE, 5), ItemSnapshot(Item.PENDING, 0)]
        self.assertEqual(derive_session_status(items), Session.IN_PROGRESS)

    def test_flagged_line_keeps_session_open(self) -> None:
        items = [ItemSnapshot(Item.COMPLETE, 5), ItemSnapshot(Item.RETURN_REQUESTED, 0)]
        self.assertEqual(derive_session_status(items), Session.IN_PROGRESS)

    def test_nothing_received_is_pending(self) -> None:
        items = [ItemSnapshot(Item.PENDING, 0), ItemSnapshot(Item.RETURN_REQUESTED, 0)]
        self.assertEqual(derive_session_status(items), Session.PENDING)


class ProgressTests(unittest.TestCase):
    def test_zero_total_is_zero_percent(self) -> None:
        self.assertEqual(progress_percent(0, 0), 0)

    def test_half_rounds_up(self) -> None:
        self.assertEqual(progress_percent(1, 8), 13)
        self.assertEqual(progress_percent(2, 3), 67)
        self.assertEqual(progress_percent(60, 100), 60)

    def test_count_progress_counts_matches_among_scanned(self) -> None:
        items = [
            SimpleNamespace(is_scanned=True, variance=0),
            SimpleNamespace(is_scanned=True, variance=-2),
            SimpleNamespace(is_scanned=False, variance=0),
        ]
        progress = count_progress(items)
        self.assertEqual(progress.total_items, 3)
        self.assertEqual(progress.scanned_items, 2)
        self.assertEqual(progress.matched_items, 1)
        self.assertEqual(progress.progress_percent, 67)

    def test_variance_is_actual_minus_expected(self) -> None:
        self.assertEqual(variance_for(8, 10), -2)
        self.assertEqual(variance_for(12, 10), 2)


if __name__ == '__main__':
    unittest.main()
