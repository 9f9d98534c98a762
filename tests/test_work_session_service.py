from __future__ import annotations

import unittest

from wms.errors import ValidationError
from wms.models import PurchaseOrder, PurchaseOrderStatus, ReceiveSession, WorkSessionStatus, WorkSessionType
from wms.services import work_session_service
from wms.services.work_session_service import WorkflowRef

from tests.support import DatabaseTestCase, utc


class WorkflowRefTests(unittest.TestCase):
    def test_exactly_one_binding(self) -> None:
        with self.assertRaises(ValidationError):
            WorkflowRef()
        with self.assertRaises(ValidationError):
            WorkflowRef(receive_session_id=1, zone_assignment_id=2)
        self.assertEqual(WorkflowRef(receive_session_id=1).session_type, WorkSessionType.INBOUND)
        self.assertEqual(WorkflowRef(zone_assignment_id=2).session_type, WorkSessionType.CYCLE_COUNT)


class WorkSessionServiceTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        order = self.add(
            PurchaseOrder(
                organization_id=self.org.id,
                branch_id=self.branch.id,
                supplier_id=self.supplier.id,
                code='PO-20240101-0001',
                status=PurchaseOrderStatus.PENDING,
                ordered_at=utc(2024, 1, 1),
                updated_at=utc(2024, 1, 1),
            )
        )
        self.receive_session = self.add(
            ReceiveSession(
                code='RS-20240101-0001',
                purchase_order_id=order.id,
                branch_id=self.branch.id,
                received_at=utc(2024, 1, 1),
            )
        )
        self.ref = WorkflowRef(receive_session_id=self.receive_session.id)

    def _ensure(self):
        return work_session_service.ensure_work_session(
            self.db,
            organization_id=self.org.id,
            branch_id=self.branch.id,
            ref=self.ref,
            assigned_user_id=self.operator.id,
        )

    def test_ensure_is_idempotent(self) -> None:
        first = self._ensure()
        second = self._ensure()

        self.assertEqual(first.id, second.id)
        self.assertTrue(first.code.startswith('WS-'))
        self.assertEqual(first.name, first.code)
        self.assertEqual(first.session_type, WorkSessionType.INBOUND)
        self.assertEqual(first.status, WorkSessionStatus.IN_PROGRESS)

    def test_complete_records_verifier(self) -> None:
        self._ensure()
        completed = work_session_service.complete_work_session_for(
            self.db, self.ref, verified_by_user_id=self.manager.id
        )

        self.assertEqual(completed.status, WorkSessionStatus.COMPLETED)
        self.assertIsNotNone(completed.completed_at)
        self.assertEqual(completed.verified_by_user_id, self.manager.id)
        self.assertIsNotNone(completed.verified_at)

    def test_complete_without_session_is_a_no_op(self) -> None:
        self.assertIsNone(work_session_service.complete_work_session_for(self.db, WorkflowRef(zone_assignment_id=99)))


if __name__ == '__main__':
    unittest.main()
