from __future__ import annotations

import unittest
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from wms.errors import InvalidStateError, NotFoundError, ValidationError
from wms.models import Organization, PurchaseOrderStatus, Supplier
from wms.services import purchase_order_service
from wms.services.purchase_order_service import PurchaseOrderItemInput
from wms.services.receive_session_service import create_receive_session
from wms.services.time_utils import as_utc

from tests.support import DatabaseTestCase, utc


class PurchaseOrderServiceTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.beans = self.make_variant('BEANS', cost='12.50')
        self.cups = self.make_variant('CUPS', cost='0.08')
        self.aisle = self.make_zone('Aisle 1')

    def _create(self, **overrides):
        params = {
            'branch_id': self.branch.id,
            'supplier_id': self.supplier.id,
            'items': [
                PurchaseOrderItemInput(sku_id=self.beans.id, quantity=100, zone_id=self.aisle.id),
                PurchaseOrderItemInput(sku_id=self.cups.id, quantity=500, unit_cost=Decimal('0.07')),
            ],
            'created_by_user_id': self.manager.id,
        }
        params.update(overrides)
        return purchase_order_service.create_purchase_order(self.db, **params)

    @patch('wms.services.purchase_order_service._now')
    def test_create_assigns_code_and_lead_time(self, now_mock) -> None:
        now_mock.return_value = utc(2024, 5, 6, 9, 0)
        order = self._create(note='  rush  ')

        self.assertEqual(order.code, 'PO-20240506-0001')
        self.assertEqual(order.status, PurchaseOrderStatus.PENDING)
        self.assertEqual(order.note, 'rush')
        self.assertEqual(as_utc(order.expected_delivery_at), utc(2024, 5, 6, 9, 0) + timedelta(days=3))

        lines = purchase_order_service.list_lines(self.db, order.id)
        self.assertEqual([line.quantity_ordered for line in lines], [100, 500])
        self.assertEqual([line.quantity_received for line in lines], [0, 0])
        self.assertEqual(lines[0].unit_cost, Decimal('12.50'))
        self.assertEqual(lines[1].unit_cost, Decimal('0.07'))
        self.assertEqual(lines[0].recommended_zone_id, self.aisle.id)

    def test_create_rejects_bad_input(self) -> None:
        with self.assertRaises(ValidationError):
            self._create(items=[])
        with self.assertRaises(ValidationError):
            self._create(items=[PurchaseOrderItemInput(sku_id=self.beans.id, quantity=0)])
        with self.assertRaises(NotFoundError):
            self._create(items=[PurchaseOrderItemInput(sku_id=9999, quantity=1)])

    def test_supplier_must_belong_to_branch_organization(self) -> None:
        other_org = self.add(Organization(name='Other'))
        foreign = self.add(Supplier(organization_id=other_org.id, name='Elsewhere'))
        with self.assertRaises(NotFoundError):
            self._create(supplier_id=foreign.id)

    def test_detailed_view_totals(self) -> None:
        order = self._create()
        detail = purchase_order_service.get_purchase_order_detailed(self.db, purchase_order_id=order.id)

        self.assertEqual(detail['code'], order.code)
        self.assertEqual(detail['supplier_name'], 'Harbor Supply')
        self.assertEqual(detail['total_items'], 2)
        self.assertEqual(detail['total_quantity_ordered'], 600)
        self.assertEqual(detail['total_quantity_received'], 0)
        self.assertIsNone(detail['receive_session'])
        self.assertEqual(detail['items'][0]['zone'], {'id': self.aisle.id, 'name': 'Aisle 1'})

    def test_pending_list_excludes_orders_being_received(self) -> None:
        first = self._create()
        second = self._create()
        create_receive_session(self.db, purchase_order_id=first.id, user_id=self.operator.id)

        pending = purchase_order_service.list_pending_purchase_orders(self.db, branch_id=self.branch.id)
        self.assertEqual([row['id'] for row in pending], [second.id])

    def test_cancel_only_before_receiving(self) -> None:
        order = self._create()
        cancelled = purchase_order_service.cancel_purchase_order(self.db, purchase_order_id=order.id)
        self.assertEqual(cancelled.status, PurchaseOrderStatus.CANCELLED)
        with self.assertRaises(InvalidStateError):
            purchase_order_service.cancel_purchase_order(self.db, purchase_order_id=order.id)

        receiving = self._create()
        create_receive_session(self.db, purchase_order_id=receiving.id, user_id=self.operator.id)
        with self.assertRaises(InvalidStateError):
            purchase_order_service.cancel_purchase_order(self.db, purchase_order_id=receiving.id)

    def test_soft_delete_hides_order(self) -> None:
        order = self._create()
        purchase_order_service.soft_delete_purchase_order(self.db, purchase_order_id=order.id)

        with self.assertRaises(NotFoundError):
            purchase_order_service.get_purchase_order(self.db, order.id)
        self.assertEqual(purchase_order_service.list_purchase_orders(self.db, branch_id=self.branch.id), [])


if __name__ == '__main__':
    unittest.main()
