from __future__ import annotations

import unittest

from wms.errors import NotFoundError, ValidationError
from wms.models import ReceiveItemStatus, ReceiveSessionStatus, WorkSessionType
from wms.services import lookup_service

from tests.support import DatabaseTestCase


class StatusLabelTests(unittest.TestCase):
    def test_labels(self) -> None:
        self.assertEqual(lookup_service.status_label(ReceiveSessionStatus.IN_PROGRESS), 'In Progress')
        self.assertEqual(lookup_service.status_label(ReceiveItemStatus.RETURN_REQUESTED), 'Return Requested')
        self.assertEqual(lookup_service.status_label(WorkSessionType.INBOUND), 'Receive')


class LookupServiceTests(DatabaseTestCase):
    def test_seed_is_idempotent(self) -> None:
        touched = lookup_service.seed_default_lookups(self.db)
        reasons = lookup_service.list_return_reasons(self.db)
        lookup_service.seed_default_lookups(self.db)

        self.assertGreater(touched, len(reasons))
        self.assertEqual(
            [r.lookup_code for r in lookup_service.list_return_reasons(self.db)],
            [r.lookup_code for r in reasons],
        )
        self.assertEqual(reasons[0].lookup_code, 'DAMAGED')
        self.assertEqual({r.lookup_type for r in reasons}, {'RETURN_REASON'})

    def test_first_writer_wins(self) -> None:
        first = lookup_service.ensure_lookup(
            self.db, lookup_type=lookup_service.RETURN_REASON, lookup_code='LATE', lookup_value='Late Delivery'
        )
        second = lookup_service.ensure_lookup(
            self.db, lookup_type=lookup_service.RETURN_REASON, lookup_code='LATE', lookup_value='Arrived Late'
        )
        self.assertEqual(first.id, second.id)
        self.assertEqual(second.lookup_value, 'Late Delivery')

    def test_lookups_are_ordered_by_sort_order(self) -> None:
        lookup_service.ensure_lookup(self.db, lookup_type='Color', lookup_code='B', lookup_value='Blue', sort_order=2)
        lookup_service.ensure_lookup(self.db, lookup_type='Color', lookup_code='R', lookup_value='Red', sort_order=1)
        rows = lookup_service.get_lookups_by_type(self.db, lookup_type='Color')
        self.assertEqual([r.lookup_code for r in rows], ['R', 'B'])

    def test_return_reason_must_be_a_return_reason(self) -> None:
        status_row = lookup_service.ensure_enum_lookup(self.db, ReceiveSessionStatus.PENDING)
        with self.assertRaises(ValidationError):
            lookup_service.require_return_reason(self.db, status_row.id)
        with self.assertRaises(NotFoundError):
            lookup_service.require_return_reason(self.db, 424242)
        self.assertIsNone(lookup_service.require_return_reason(self.db, None))


if __name__ == '__main__':
    unittest.main()
