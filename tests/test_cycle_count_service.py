from __future__ import annotations

import unittest

from wms.errors import InvalidStateError, NotFoundError, ValidationError
from wms.models import CycleCountStatus, CycleCountType, WorkSessionStatus, WorkSessionType, ZoneAssignmentStatus
from wms.services import cycle_count_service
from wms.services.cycle_count_service import LineItemInput, ZoneAssignmentInput
from wms.services.work_session_service import WorkflowRef, get_work_session_for

from tests.support import DatabaseTestCase


class CycleCountServiceTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.rice = self.make_variant('RICE')
        self.flour = self.make_variant('FLOUR')
        self.aisle_1 = self.make_zone('Aisle 1')
        self.aisle_2 = self.make_zone('Aisle 2')
        self.rice_batch = self.make_batch(self.rice, self.aisle_1, 10, '0001')
        self.flour_batch = self.make_batch(self.flour, self.aisle_1, 4, '0002')
        self.rice_batch_2 = self.make_batch(self.rice, self.aisle_2, 6, '0003')

    def _create(self, zones=None, line_items=None):
        if zones is None:
            zones = [
                ZoneAssignmentInput(zone_id=self.aisle_1.id, assigned_user_id=self.operator.id),
                ZoneAssignmentInput(zone_id=self.aisle_2.id, assigned_user_id=self.operator.id),
            ]
        return cycle_count_service.create_cycle_count_session(
            self.db,
            branch_id=self.branch.id,
            name='  Weekly dry goods  ',
            count_type=CycleCountType.WEEKLY,
            zone_assignments=zones,
            created_by_user_id=self.manager.id,
            line_items=line_items,
        )

    def _assignment(self, session_id: int, zone_id: int):
        return next(a for a in cycle_count_service.list_assignments(self.db, session_id) if a.zone_id == zone_id)

    def test_create_seeds_items_from_batches(self) -> None:
        result = self._create()
        session = cycle_count_service.get_session_row(self.db, result['session_id'])

        self.assertTrue(result['code'].startswith('CC-'))
        self.assertEqual(result['zone_count'], 2)
        self.assertEqual(result['line_item_count'], 3)
        self.assertEqual(session.name, 'Weekly dry goods')
        self.assertEqual(session.status, CycleCountStatus.PENDING)

    def test_create_validates_zones(self) -> None:
        with self.assertRaises(ValidationError):
            self._create(zones=[])
        with self.assertRaises(ValidationError):
            self._create(
                zones=[ZoneAssignmentInput(zone_id=self.aisle_1.id), ZoneAssignmentInput(zone_id=self.aisle_1.id)]
            )
        with self.assertRaises(NotFoundError):
            self._create(zones=[ZoneAssignmentInput(zone_id=4040)])

    def test_record_count_sets_variance_and_starts_zone(self) -> None:
        result = self._create()
        assignment = self._assignment(result['session_id'], self.aisle_1.id)
        item = next(
            i for i in cycle_count_service.list_line_items(self.db, assignment.id) if i.batch_id == self.rice_batch.id
        )

        counted = cycle_count_service.record_line_item_count(
            self.db, line_item_id=item.id, actual_quantity=8, scanned_by_user_id=self.operator.id
        )
        self.assertEqual(counted['variance'], -2)
        self.assertTrue(counted['is_scanned'])
        self.assertEqual(assignment.status, ZoneAssignmentStatus.IN_PROGRESS)
        self.assertEqual(
            cycle_count_service.get_session_row(self.db, result['session_id']).status, CycleCountStatus.IN_PROGRESS
        )

        work_session = get_work_session_for(self.db, WorkflowRef(zone_assignment_id=assignment.id))
        self.assertEqual(work_session.session_type, WorkSessionType.CYCLE_COUNT)

        recount = cycle_count_service.record_line_item_count(
            self.db, line_item_id=item.id, actual_quantity=10, scanned_by_user_id=self.operator.id
        )
        self.assertEqual(recount['variance'], 0)

        with self.assertRaises(ValidationError):
            cycle_count_service.record_line_item_count(
                self.db, line_item_id=item.id, actual_quantity=-1, scanned_by_user_id=self.operator.id
            )

    def test_batches_without_line_items_appear_as_virtual_items(self) -> None:
        result = self._create(
            zones=[ZoneAssignmentInput(zone_id=self.aisle_1.id)],
            line_items=[LineItemInput(sku_id=self.rice.id, expected_quantity=10, zone_id=self.aisle_1.id, batch_id=self.rice_batch.id)],
        )
        view = cycle_count_service.get_session_for_proceed(self.db, session_id=result['session_id'])
        items = view['zones'][0]['line_items']
        virtual = [i for i in items if i['is_virtual']]
        self.assertEqual(len(items), 2)
        self.assertEqual(virtual[0]['id'], f'batch:{self.flour_batch.id}')
        self.assertEqual(view['overall_progress']['total_items'], 2)
        self.assertEqual(view['overall_progress']['progress_percent'], 0)

        counted = cycle_count_service.record_line_item_count(
            self.db,
            line_item_id=virtual[0]['id'],
            actual_quantity=4,
            scanned_by_user_id=self.operator.id,
            session_id=result['session_id'],
            zone_id=self.aisle_1.id,
        )
        again = cycle_count_service.record_line_item_count(
            self.db,
            line_item_id=virtual[0]['id'],
            actual_quantity=5,
            scanned_by_user_id=self.operator.id,
            session_id=result['session_id'],
            zone_id=self.aisle_1.id,
        )
        self.assertEqual(counted['line_item_id'], again['line_item_id'])
        self.assertEqual(again['variance'], 1)

        view = cycle_count_service.get_session_for_proceed(self.db, session_id=result['session_id'])
        self.assertFalse(any(i['is_virtual'] for i in view['zones'][0]['line_items']))
        self.assertEqual(view['overall_progress']['scanned_items'], 1)
        self.assertEqual(view['overall_progress']['progress_percent'], 50)

    def test_line_item_without_batch_covers_its_variant_batches(self) -> None:
        result = self._create(
            zones=[ZoneAssignmentInput(zone_id=self.aisle_2.id)],
            line_items=[LineItemInput(sku_id=self.rice.id, expected_quantity=6, zone_id=self.aisle_2.id)],
        )
        self.assertEqual(result['line_item_count'], 1)

        view = cycle_count_service.get_session_for_proceed(self.db, session_id=result['session_id'])
        items = view['zones'][0]['line_items']
        self.assertEqual(len(items), 1)
        self.assertFalse(items[0]['is_virtual'])
        self.assertEqual(view['overall_progress']['total_items'], 1)

        cycle_count_service.record_line_item_count(
            self.db, line_item_id=items[0]['id'], actual_quantity=6, scanned_by_user_id=self.operator.id
        )
        assignment = self._assignment(result['session_id'], self.aisle_2.id)
        done = cycle_count_service.complete_zone_assignment(self.db, assignment_id=assignment.id)
        self.assertTrue(done['session_completed'])

    def test_zone_completion_requires_every_item_scanned(self) -> None:
        result = self._create()
        assignment = self._assignment(result['session_id'], self.aisle_2.id)
        with self.assertRaises(InvalidStateError):
            cycle_count_service.complete_zone_assignment(self.db, assignment_id=assignment.id)

        item = cycle_count_service.list_line_items(self.db, assignment.id)[0]
        cycle_count_service.record_line_item_count(
            self.db, line_item_id=item.id, actual_quantity=6, scanned_by_user_id=self.operator.id
        )
        done = cycle_count_service.complete_zone_assignment(self.db, assignment_id=assignment.id)
        self.assertFalse(done['session_completed'])

        work_session = get_work_session_for(self.db, WorkflowRef(zone_assignment_id=assignment.id))
        self.assertEqual(work_session.status, WorkSessionStatus.COMPLETED)

        with self.assertRaises(InvalidStateError):
            cycle_count_service.record_line_item_count(
                self.db, line_item_id=item.id, actual_quantity=7, scanned_by_user_id=self.operator.id
            )

    def test_last_zone_completes_session_and_metrics(self) -> None:
        result = self._create()
        first = self._assignment(result['session_id'], self.aisle_1.id)
        second = self._assignment(result['session_id'], self.aisle_2.id)

        with self.assertRaises(InvalidStateError):
            cycle_count_service.complete_cycle_count_session(self.db, session_id=result['session_id'])

        for item in cycle_count_service.list_line_items(self.db, first.id):
            actual = item.expected_quantity if item.batch_id == self.rice_batch.id else item.expected_quantity - 1
            cycle_count_service.record_line_item_count(
                self.db, line_item_id=item.id, actual_quantity=actual, scanned_by_user_id=self.operator.id
            )
        cycle_count_service.complete_zone_assignment(self.db, assignment_id=first.id)
        forced = cycle_count_service.force_complete_zone_assignment(self.db, assignment_id=second.id)
        self.assertTrue(forced['session_completed'])

        status = cycle_count_service.get_session_completion_status(self.db, session_id=result['session_id'])
        self.assertTrue(status['all_completed'])
        self.assertEqual(status['completed_zones'], 2)

        completed = cycle_count_service.complete_cycle_count_session(self.db, session_id=result['session_id'])
        metrics = completed['metrics']
        self.assertEqual(metrics['total_items'], 3)
        self.assertEqual(metrics['scanned_items'], 2)
        self.assertEqual(metrics['matched_items'], 1)
        self.assertEqual(metrics['accuracy_rate'], 50)
        self.assertGreaterEqual(metrics['total_time_seconds'], 0)

        with self.assertRaises(InvalidStateError):
            cycle_count_service.start_zone_assignment(self.db, assignment_id=first.id)

    def test_my_sessions_lists_open_assignments(self) -> None:
        result = self._create(
            zones=[
                ZoneAssignmentInput(zone_id=self.aisle_1.id, assigned_user_id=self.operator.id),
                ZoneAssignmentInput(zone_id=self.aisle_2.id, assigned_user_id=self.manager.id),
            ]
        )
        mine = cycle_count_service.get_my_assigned_sessions(self.db, user_id=self.operator.id, branch_id=self.branch.id)
        self.assertEqual(len(mine), 1)
        self.assertEqual(mine[0]['id'], result['session_id'])
        self.assertEqual([z['zone_name'] for z in mine[0]['assigned_zones']], ['Aisle 1'])

        listed = cycle_count_service.list_cycle_count_sessions(self.db, branch_id=self.branch.id)
        self.assertEqual(listed[0]['total_items'], 3)
        self.assertEqual(listed[0]['progress_percent'], 0)

    def test_zone_detail_counts_variances(self) -> None:
        result = self._create()
        assignment = self._assignment(result['session_id'], self.aisle_1.id)
        for item in cycle_count_service.list_line_items(self.db, assignment.id):
            cycle_count_service.record_line_item_count(
                self.db, line_item_id=item.id, actual_quantity=0, scanned_by_user_id=self.operator.id
            )
        detail = cycle_count_service.get_zone_assignment_detail(self.db, assignment_id=assignment.id)
        self.assertEqual(detail['progress']['items_with_variance'], 2)
        self.assertEqual(detail['progress']['progress_percent'], 100)
        self.assertIsNone(cycle_count_service.get_zone_assignment_detail(self.db, assignment_id=9999))


if __name__ == '__main__':
    unittest.main()
