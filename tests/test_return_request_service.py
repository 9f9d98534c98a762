from __future__ import annotations

import unittest
from decimal import Decimal

from wms.errors import InvalidStateError, NotFoundError, ValidationError
from wms.models import ReturnStatus
from wms.services import return_request_service
from wms.services.lookup_service import RETURN_REASON, get_lookup, seed_default_lookups
from wms.services.return_request_service import ReturnDetailInput, expected_credit

from tests.support import DatabaseTestCase


class ExpectedCreditTests(unittest.TestCase):
    def test_rounds_to_cents(self) -> None:
        self.assertEqual(expected_credit(3, Decimal('0.333')), Decimal('1.00'))
        self.assertEqual(expected_credit(5, Decimal('10.00')), Decimal('50.00'))


class ReturnRequestServiceTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        seed_default_lookups(self.db)
        self.expired = get_lookup(self.db, lookup_type=RETURN_REASON, lookup_code='EXPIRED')
        self.variant = self.make_variant('YOGURT', cost='1.25')
        self.zone = self.make_zone('Chiller')
        self.batch = self.make_batch(self.variant, self.zone, 40, '0001')

    def _create(self, quantity: int = 8):
        return return_request_service.create_return_request(
            self.db,
            branch_id=self.branch.id,
            supplier_id=self.supplier.id,
            requested_by_user_id=self.operator.id,
            details=[
                ReturnDetailInput(
                    sku_id=self.variant.id,
                    quantity_to_return=quantity,
                    reason_id=self.expired.id,
                    batch_id=self.batch.id,
                )
            ],
        )

    def test_credit_is_snapshotted_at_creation(self) -> None:
        request = self._create()
        self.variant.cost_price = Decimal('9.99')
        self.db.flush()

        view = return_request_service.get_return_request(self.db, return_request_id=request.id)
        self.assertEqual(view['status'], ReturnStatus.PENDING.value)
        self.assertEqual(view['items'][0]['unit_cost'], '1.25')
        self.assertEqual(view['items'][0]['expected_credit_amount'], '10.00')
        self.assertEqual(view['items'][0]['reason']['code'], 'EXPIRED')
        self.assertEqual(view['total_expected_credit'], '10.00')
        self.assertEqual(view['requested_by'], {'full_name': 'Operator'})

    def test_rejects_bad_details(self) -> None:
        with self.assertRaises(ValidationError):
            self._create(quantity=0)
        with self.assertRaises(ValidationError):
            return_request_service.create_return_request(
                self.db,
                branch_id=self.branch.id,
                supplier_id=self.supplier.id,
                requested_by_user_id=self.operator.id,
                details=[],
            )
        with self.assertRaises(NotFoundError):
            return_request_service.create_return_request(
                self.db,
                branch_id=self.branch.id,
                supplier_id=self.supplier.id,
                requested_by_user_id=self.operator.id,
                details=[ReturnDetailInput(sku_id=self.variant.id, quantity_to_return=1, batch_id=777)],
            )

    def test_status_moves_only_from_pending(self) -> None:
        request = self._create()
        approved = return_request_service.set_return_request_status(
            self.db, return_request_id=request.id, status=ReturnStatus.APPROVED
        )
        self.assertEqual(approved.status, ReturnStatus.APPROVED)
        self.assertIsNotNone(approved.status_changed_at)

        with self.assertRaises(InvalidStateError):
            return_request_service.set_return_request_status(
                self.db, return_request_id=request.id, status=ReturnStatus.REJECTED
            )

    def test_listing_filters_and_soft_delete(self) -> None:
        first = self._create()
        second = self._create(quantity=2)
        return_request_service.set_return_request_status(
            self.db, return_request_id=second.id, status=ReturnStatus.REJECTED
        )

        pending = return_request_service.list_return_requests(
            self.db, organization_id=self.org.id, status=ReturnStatus.PENDING
        )
        self.assertEqual([row['id'] for row in pending], [first.id])
        self.assertEqual(pending[0]['total_expected_credit'], '10.00')
        self.assertEqual(pending[0]['supplier_name'], 'Harbor Supply')

        return_request_service.soft_delete_return_request(self.db, return_request_id=first.id)
        self.assertIsNone(return_request_service.get_return_request(self.db, return_request_id=first.id))
        remaining = return_request_service.list_return_requests(self.db, organization_id=self.org.id)
        self.assertEqual([row['id'] for row in remaining], [second.id])


if __name__ == '__main__':
    unittest.main()
