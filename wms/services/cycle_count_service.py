from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wms.errors import InvalidStateError, NotFoundError, ValidationError
from wms.models import (
    CycleCountLineItem,
    CycleCountSession,
    CycleCountStatus,
    CycleCountType,
    InventoryBatch,
    ZoneAssignment,
    ZoneAssignmentStatus,
)
from wms.services import code_service
from wms.services.catalog_service import (
    get_active_zone,
    get_branch,
    get_user,
    get_variant,
    list_active_batches_by_zone,
    user_names_by_id,
    variant_label,
    variant_labels,
    zones_by_id,
)
from wms.services.lookup_service import status_label
from wms.services.time_utils import as_utc, epoch_ms
from wms.services.work_session_service import (
    WorkflowRef,
    complete_work_session_for,
    ensure_work_session,
)
from wms.status_rules import count_progress, progress_percent, variance_for

logger = logging.getLogger(__name__)

VIRTUAL_ITEM_PREFIX = 'batch:'


@dataclass(frozen=True)
class ZoneAssignmentInput:
    zone_id: int
    assigned_user_id: int | None = None


@dataclass(frozen=True)
class LineItemInput:
    sku_id: int
    expected_quantity: int
    zone_id: int
    batch_id: int | None = None


@dataclass(frozen=True)
class VirtualBatchItem:
    """An active batch in a counted zone that has no line item yet."""

    batch: InventoryBatch
    is_scanned: bool = False
    variance: int = 0

    @property
    def item_id(self) -> str:
        return virtual_item_id(self.batch.id)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def virtual_item_id(batch_id: int) -> str:
    return f'{VIRTUAL_ITEM_PREFIX}{batch_id}'


def parse_virtual_item_id(value) -> int | None:
    if not isinstance(value, str) or not value.startswith(VIRTUAL_ITEM_PREFIX):
        return None
    raw = value[len(VIRTUAL_ITEM_PREFIX):]
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError(f'Invalid batch item id {value!r}') from exc


def get_session_row(db: Session, session_id: int) -> CycleCountSession:
    session = db.get(CycleCountSession, session_id)
    if not session or session.is_deleted:
        raise NotFoundError(f'Cycle count session {session_id} not found')
    return session


def get_assignment_row(db: Session, assignment_id: int) -> ZoneAssignment:
    assignment = db.get(ZoneAssignment, assignment_id)
    if not assignment:
        raise NotFoundError(f'Zone assignment {assignment_id} not found')
    return assignment


def get_line_item_row(db: Session, line_item_id) -> CycleCountLineItem:
    try:
        item = db.get(CycleCountLineItem, int(line_item_id))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f'Invalid line item id {line_item_id!r}') from exc
    if item is None:
        raise NotFoundError(f'Cycle count line item {line_item_id} not found')
    return item


def list_assignments(db: Session, session_id: int) -> list[ZoneAssignment]:
    return db.execute(
        select(ZoneAssignment).where(ZoneAssignment.session_id == session_id).order_by(ZoneAssignment.id.asc())
    ).scalars().all()


def list_line_items(db: Session, assignment_id: int) -> list[CycleCountLineItem]:
    return db.execute(
        select(CycleCountLineItem)
        .where(CycleCountLineItem.zone_assignment_id == assignment_id)
        .order_by(CycleCountLineItem.id.asc())
    ).scalars().all()


def list_virtual_items(db: Session, assignment: ZoneAssignment, line_items) -> list[VirtualBatchItem]:
    counted_batches = {item.batch_id for item in line_items if item.batch_id is not None}
    # A line item without a batch counts every batch of its variant in the zone.
    counted_skus = {item.sku_id for item in line_items if item.batch_id is None}
    return [
        VirtualBatchItem(batch=batch)
        for batch in list_active_batches_by_zone(db, zone_id=assignment.zone_id)
        if batch.id not in counted_batches and batch.sku_id not in counted_skus
    ]


def create_cycle_count_session(
    db: Session,
    *,
    branch_id: int,
    name: str,
    count_type: CycleCountType,
    zone_assignments: list[ZoneAssignmentInput],
    created_by_user_id: int,
    line_items: list[LineItemInput] | None = None,
    description: str | None = None,
) -> dict:
    clean_name = (name or '').strip()
    if not clean_name:
        raise ValidationError('Cycle count session name is required')
    if not zone_assignments:
        raise ValidationError('At least one zone must be selected')

    branch = get_branch(db, branch_id)
    get_user(db, created_by_user_id)
    count_type = CycleCountType(count_type)

    zone_ids = [assignment.zone_id for assignment in zone_assignments]
    if len(set(zone_ids)) != len(zone_ids):
        raise ValidationError('Each zone can only be assigned once per session')
    for assignment in zone_assignments:
        get_active_zone(db, assignment.zone_id, branch_id=branch.id)
        if assignment.assigned_user_id is not None:
            get_user(db, assignment.assigned_user_id)

    for item in line_items or []:
        if item.zone_id not in zone_ids:
            raise ValidationError(f'Line item for variant {item.sku_id} targets zone {item.zone_id} outside the session')
        if item.expected_quantity < 0:
            raise ValidationError(f'Expected quantity for variant {item.sku_id} cannot be negative')
        get_variant(db, item.sku_id)

    now = _now()
    session = code_service.insert_with_code(
        db,
        code_service.CYCLE_COUNT,
        branch_id=branch.id,
        moment=now,
        factory=lambda sequence: CycleCountSession(
            code=sequence.code(code_service.CYCLE_COUNT.prefix),
            name=clean_name,
            description=(description or '').strip() or None,
            organization_id=branch.organization_id,
            branch_id=branch.id,
            count_type=count_type,
            status=CycleCountStatus.PENDING,
            created_by_user_id=created_by_user_id,
            created_at=now,
        ),
    )

    assignments_by_zone: dict[int, ZoneAssignment] = {}
    for requested in zone_assignments:
        assignment = ZoneAssignment(
            session_id=session.id,
            zone_id=requested.zone_id,
            assigned_user_id=requested.assigned_user_id or created_by_user_id,
            status=ZoneAssignmentStatus.NOT_STARTED,
        )
        db.add(assignment)
        assignments_by_zone[requested.zone_id] = assignment
    db.flush()

    created_items = 0
    if line_items:
        for item in line_items:
            db.add(
                CycleCountLineItem(
                    session_id=session.id,
                    zone_assignment_id=assignments_by_zone[item.zone_id].id,
                    sku_id=item.sku_id,
                    batch_id=item.batch_id,
                    expected_quantity=item.expected_quantity,
                )
            )
            created_items += 1
    else:
        for zone_id, assignment in assignments_by_zone.items():
            for batch in list_active_batches_by_zone(db, zone_id=zone_id):
                db.add(
                    CycleCountLineItem(
                        session_id=session.id,
                        zone_assignment_id=assignment.id,
                        sku_id=batch.sku_id,
                        batch_id=batch.id,
                        expected_quantity=batch.quantity,
                    )
                )
                created_items += 1
    db.flush()

    logger.info(
        'cycle_count_session_created',
        extra={'entity_id': session.id, 'code': session.code, 'user_id': created_by_user_id},
    )
    return {
        'session_id': session.id,
        'code': session.code,
        'zone_count': len(assignments_by_zone),
        'line_item_count': created_items,
    }


def _start(db: Session, assignment: ZoneAssignment, session: CycleCountSession) -> None:
    now = _now()
    if assignment.status == ZoneAssignmentStatus.NOT_STARTED:
        assignment.status = ZoneAssignmentStatus.IN_PROGRESS
        assignment.started_at = now
    if session.status == CycleCountStatus.PENDING:
        session.status = CycleCountStatus.IN_PROGRESS
        session.started_at = now
    db.flush()
    ensure_work_session(
        db,
        organization_id=session.organization_id,
        branch_id=session.branch_id,
        ref=WorkflowRef(zone_assignment_id=assignment.id),
        assigned_user_id=assignment.assigned_user_id,
        name=f'Count {session.code} zone {assignment.zone_id}',
    )


def start_zone_assignment(db: Session, *, assignment_id: int) -> dict:
    assignment = get_assignment_row(db, assignment_id)
    session = get_session_row(db, assignment.session_id)
    if assignment.status == ZoneAssignmentStatus.COMPLETED:
        raise InvalidStateError(f'Zone assignment {assignment.id} of session {session.code} is already completed')
    if session.status == CycleCountStatus.COMPLETED:
        raise InvalidStateError(f'Cycle count session {session.code} is already completed')

    _start(db, assignment, session)
    logger.info('zone_assignment_started', extra={'entity_id': assignment.id, 'code': session.code})
    return {
        'assignment_id': assignment.id,
        'status': assignment.status.value,
        'session_status': session.status.value,
    }


def _materialize_virtual_item(
    db: Session,
    *,
    session_id: int | None,
    zone_id: int | None,
    batch_id: int,
) -> CycleCountLineItem:
    if session_id is None or zone_id is None:
        raise ValidationError('Session and zone are required to count a batch item')
    assignment = db.execute(
        select(ZoneAssignment).where(ZoneAssignment.session_id == session_id, ZoneAssignment.zone_id == zone_id)
    ).scalar_one_or_none()
    if assignment is None:
        raise NotFoundError(f'Zone {zone_id} is not part of cycle count session {session_id}')

    existing = db.execute(
        select(CycleCountLineItem).where(
            CycleCountLineItem.zone_assignment_id == assignment.id,
            CycleCountLineItem.batch_id == batch_id,
        )
    ).scalar_one_or_none()
    if existing:
        return existing

    batch = db.get(InventoryBatch, batch_id)
    if not batch or batch.is_deleted or batch.zone_id != zone_id:
        raise NotFoundError(f'Inventory batch {batch_id} not found in zone {zone_id}')

    item = CycleCountLineItem(
        session_id=session_id,
        zone_assignment_id=assignment.id,
        sku_id=batch.sku_id,
        batch_id=batch.id,
        expected_quantity=batch.quantity,
    )
    try:
        with db.begin_nested():
            db.add(item)
            db.flush()
    except IntegrityError:
        existing = db.execute(
            select(CycleCountLineItem).where(
                CycleCountLineItem.zone_assignment_id == assignment.id,
                CycleCountLineItem.batch_id == batch_id,
            )
        ).scalar_one_or_none()
        if existing is None:
            raise
        return existing
    return item


def record_line_item_count(
    db: Session,
    *,
    line_item_id: int | str,
    actual_quantity: int,
    scanned_by_user_id: int,
    notes: str | None = None,
    session_id: int | None = None,
    zone_id: int | None = None,
) -> dict:
    """Record a count. `line_item_id` may be a `batch:<id>` placeholder, materialized here from session/zone/batch."""
    if actual_quantity < 0:
        raise ValidationError('Counted quantity cannot be negative')

    batch_id = parse_virtual_item_id(line_item_id)
    if batch_id is not None:
        if session_id is not None:
            session = get_session_row(db, session_id)
            if session.status == CycleCountStatus.COMPLETED:
                raise InvalidStateError(f'Cycle count session {session.code} is already completed')
        item = _materialize_virtual_item(db, session_id=session_id, zone_id=zone_id, batch_id=batch_id)
    else:
        item = get_line_item_row(db, line_item_id)

    assignment = get_assignment_row(db, item.zone_assignment_id)
    session = get_session_row(db, item.session_id)
    if session.status == CycleCountStatus.COMPLETED:
        raise InvalidStateError(f'Cycle count session {session.code} is already completed')
    if assignment.status == ZoneAssignmentStatus.COMPLETED:
        raise InvalidStateError(f'Zone assignment {assignment.id} of session {session.code} is already completed')
    if assignment.status == ZoneAssignmentStatus.NOT_STARTED:
        _start(db, assignment, session)

    item.actual_quantity = actual_quantity
    item.variance = variance_for(actual_quantity, item.expected_quantity)
    item.is_scanned = True
    item.scanned_at = _now()
    item.scanned_by_user_id = scanned_by_user_id
    if notes is not None:
        item.notes = notes.strip() or None
    db.flush()

    logger.info('line_item_counted', extra={'entity_id': item.id, 'code': session.code, 'user_id': scanned_by_user_id})
    return {
        'line_item_id': item.id,
        'actual_quantity': item.actual_quantity,
        'expected_quantity': item.expected_quantity,
        'variance': item.variance,
        'is_scanned': item.is_scanned,
        'scanned_at': epoch_ms(item.scanned_at),
    }


def zone_progress(db: Session, assignment: ZoneAssignment):
    line_items = list_line_items(db, assignment.id)
    virtual_items = list_virtual_items(db, assignment, line_items)
    return line_items, virtual_items, count_progress([*line_items, *virtual_items])


def _complete_zone(db: Session, *, assignment_id: int, force: bool) -> dict:
    assignment = get_assignment_row(db, assignment_id)
    session = get_session_row(db, assignment.session_id)
    if assignment.status == ZoneAssignmentStatus.COMPLETED:
        raise InvalidStateError(f'Zone assignment {assignment.id} of session {session.code} is already completed')

    if not force:
        _, _, progress = zone_progress(db, assignment)
        unscanned = progress.total_items - progress.scanned_items
        if unscanned:
            raise InvalidStateError(
                f'Zone assignment {assignment.id} of session {session.code} has {unscanned} unscanned item(s)'
            )

    now = _now()
    assignment.status = ZoneAssignmentStatus.COMPLETED
    assignment.completed_at = now
    if assignment.started_at is None:
        assignment.started_at = now
    complete_work_session_for(db, WorkflowRef(zone_assignment_id=assignment.id))

    assignments = list_assignments(db, session.id)
    session_completed = all(a.status == ZoneAssignmentStatus.COMPLETED for a in assignments)
    if session_completed and session.status != CycleCountStatus.COMPLETED:
        session.status = CycleCountStatus.COMPLETED
        session.completed_at = now
        if session.started_at is None:
            session.started_at = now
    db.flush()

    logger.info(
        'zone_assignment_completed',
        extra={'entity_id': assignment.id, 'code': session.code},
    )
    return {'assignment_id': assignment.id, 'session_completed': session_completed, 'forced': force}


def complete_zone_assignment(db: Session, *, assignment_id: int) -> dict:
    return _complete_zone(db, assignment_id=assignment_id, force=False)


def force_complete_zone_assignment(db: Session, *, assignment_id: int) -> dict:
    return _complete_zone(db, assignment_id=assignment_id, force=True)


def complete_cycle_count_session(db: Session, *, session_id: int) -> dict:
    session = get_session_row(db, session_id)
    assignments = list_assignments(db, session.id)
    if not all(a.status == ZoneAssignmentStatus.COMPLETED for a in assignments):
        raise InvalidStateError(f'Cannot complete session {session.code}: not all zone assignments are completed')

    now = _now()
    if session.status != CycleCountStatus.COMPLETED:
        session.status = CycleCountStatus.COMPLETED
        session.completed_at = now
    db.flush()

    items = db.execute(select(CycleCountLineItem).where(CycleCountLineItem.session_id == session.id)).scalars().all()
    progress = count_progress(items)
    started_at = as_utc(session.started_at)
    finished_at = as_utc(session.completed_at) or now
    total_time_seconds = round((finished_at - started_at).total_seconds()) if started_at else 0

    logger.info('cycle_count_session_completed', extra={'entity_id': session.id, 'code': session.code})
    return {
        'session_id': session.id,
        'metrics': {
            'total_items': progress.total_items,
            'scanned_items': progress.scanned_items,
            'matched_items': progress.matched_items,
            'accuracy_rate': progress_percent(progress.matched_items, progress.scanned_items),
            'total_time_seconds': total_time_seconds,
        },
    }


def _serialize_line_item(item: CycleCountLineItem, labels: dict, batches: dict) -> dict:
    label = variant_label(labels, item.sku_id)
    batch = batches.get(item.batch_id)
    return {
        'id': item.id,
        'sku_id': item.sku_id,
        'sku_code': label['sku_code'],
        'product_name': label['product_name'],
        'expected_quantity': item.expected_quantity,
        'actual_quantity': item.actual_quantity,
        'inventory_quantity': batch.quantity if batch else item.expected_quantity,
        'variance': item.variance,
        'is_scanned': item.is_scanned,
        'is_virtual': False,
        'scanned_at': epoch_ms(item.scanned_at),
        'scanned_by_user_id': item.scanned_by_user_id,
        'batch_id': item.batch_id,
        'notes': item.notes,
    }


def _serialize_virtual_item(item: VirtualBatchItem, labels: dict) -> dict:
    label = variant_label(labels, item.batch.sku_id)
    return {
        'id': item.item_id,
        'sku_id': item.batch.sku_id,
        'sku_code': label['sku_code'],
        'product_name': label['product_name'],
        'expected_quantity': item.batch.quantity,
        'actual_quantity': 0,
        'inventory_quantity': item.batch.quantity,
        'variance': 0,
        'is_scanned': False,
        'is_virtual': True,
        'scanned_at': None,
        'scanned_by_user_id': None,
        'batch_id': item.batch.id,
        'notes': None,
    }


def _zone_view(db: Session, assignment: ZoneAssignment, zones: dict, names: dict) -> dict:
    line_items, virtual_items, progress = zone_progress(db, assignment)
    labels = variant_labels(db, [i.sku_id for i in line_items] + [v.batch.sku_id for v in virtual_items])
    batch_ids = {i.batch_id for i in line_items if i.batch_id is not None}
    batches = {}
    if batch_ids:
        batches = {
            b.id: b for b in db.execute(select(InventoryBatch).where(InventoryBatch.id.in_(batch_ids))).scalars().all()
        }
    zone = zones.get(assignment.zone_id)
    return {
        'assignment_id': assignment.id,
        'zone_id': assignment.zone_id,
        'zone_name': zone.name if zone else 'Unknown Zone',
        'assigned_user': {
            'id': assignment.assigned_user_id,
            'full_name': names.get(assignment.assigned_user_id, 'Unknown'),
        },
        'status': status_label(assignment.status),
        'status_code': assignment.status.value,
        'started_at': epoch_ms(assignment.started_at),
        'completed_at': epoch_ms(assignment.completed_at),
        'line_items': [_serialize_line_item(i, labels, batches) for i in line_items]
        + [_serialize_virtual_item(v, labels) for v in virtual_items],
        'progress': progress.as_dict(),
    }


def get_session_for_proceed(db: Session, *, session_id: int) -> dict | None:
    session = db.get(CycleCountSession, session_id)
    if session is None or session.is_deleted:
        return None

    assignments = list_assignments(db, session.id)
    zones = zones_by_id(db, [a.zone_id for a in assignments])
    names = user_names_by_id(db, [a.assigned_user_id for a in assignments] + [session.created_by_user_id])
    zone_views = [_zone_view(db, a, zones, names) for a in assignments]

    total_items = sum(z['progress']['total_items'] for z in zone_views)
    scanned_items = sum(z['progress']['scanned_items'] for z in zone_views)
    completed_zones = sum(1 for a in assignments if a.status == ZoneAssignmentStatus.COMPLETED)
    return {
        'id': session.id,
        'session_code': session.code,
        'name': session.name,
        'description': session.description,
        'session_status': status_label(session.status),
        'session_status_code': session.status.value,
        'cycle_count_type': status_label(session.count_type),
        'created_by_user': {'full_name': names.get(session.created_by_user_id, 'Unknown')},
        'created_at': epoch_ms(session.created_at),
        'started_at': epoch_ms(session.started_at),
        'completed_at': epoch_ms(session.completed_at),
        'zones': zone_views,
        'overall_progress': {
            'total_items': total_items,
            'scanned_items': scanned_items,
            'total_zones': len(assignments),
            'completed_zones': completed_zones,
            'progress_percent': progress_percent(scanned_items, total_items),
        },
    }


def get_zone_assignment_detail(db: Session, *, assignment_id: int) -> dict | None:
    assignment = db.get(ZoneAssignment, assignment_id)
    if assignment is None:
        return None
    session = db.get(CycleCountSession, assignment.session_id)
    zones = zones_by_id(db, [assignment.zone_id])
    names = user_names_by_id(db, [assignment.assigned_user_id])
    view = _zone_view(db, assignment, zones, names)
    view['progress']['items_with_variance'] = sum(
        1 for item in view['line_items'] if item['is_scanned'] and item['variance'] != 0
    )
    return {
        **view,
        'session_id': assignment.session_id,
        'session_code': session.code if session else 'Unknown',
        'session_name': session.name if session else 'Unknown',
    }


def _session_summary(db: Session, session: CycleCountSession) -> dict:
    assignments = list_assignments(db, session.id)
    total_items = scanned_items = 0
    for assignment in assignments:
        _, _, progress = zone_progress(db, assignment)
        total_items += progress.total_items
        scanned_items += progress.scanned_items
    return {
        'id': session.id,
        'session_code': session.code,
        'name': session.name,
        'count_type': session.count_type.value,
        'status': status_label(session.status),
        'status_code': session.status.value,
        'created_at': epoch_ms(session.created_at),
        'total_zones': len(assignments),
        'completed_zones': sum(1 for a in assignments if a.status == ZoneAssignmentStatus.COMPLETED),
        'total_items': total_items,
        'scanned_items': scanned_items,
        'progress_percent': progress_percent(scanned_items, total_items),
    }


def list_cycle_count_sessions(
    db: Session,
    *,
    branch_id: int,
    status: CycleCountStatus | None = None,
) -> list[dict]:
    query = select(CycleCountSession).where(
        CycleCountSession.branch_id == branch_id,
        CycleCountSession.is_deleted.is_(False),
    )
    if status is not None:
        query = query.where(CycleCountSession.status == status)
    sessions = db.execute(query.order_by(CycleCountSession.created_at.desc(), CycleCountSession.id.desc())).scalars().all()
    return [_session_summary(db, session) for session in sessions]


def get_my_assigned_sessions(db: Session, *, user_id: int, branch_id: int) -> list[dict]:
    rows = db.execute(
        select(ZoneAssignment, CycleCountSession)
        .join(CycleCountSession, CycleCountSession.id == ZoneAssignment.session_id)
        .where(
            ZoneAssignment.assigned_user_id == user_id,
            CycleCountSession.branch_id == branch_id,
            CycleCountSession.is_deleted.is_(False),
            CycleCountSession.status != CycleCountStatus.COMPLETED,
        )
        .order_by(CycleCountSession.created_at.desc(), ZoneAssignment.id.asc())
    ).all()

    zones = zones_by_id(db, [assignment.zone_id for assignment, _ in rows])
    grouped: dict[int, dict] = {}
    for assignment, session in rows:
        entry = grouped.get(session.id)
        if entry is None:
            entry = {
                'id': session.id,
                'session_code': session.code,
                'name': session.name,
                'session_status': status_label(session.status),
                'created_at': epoch_ms(session.created_at),
                'assigned_zones': [],
            }
            grouped[session.id] = entry
        zone = zones.get(assignment.zone_id)
        entry['assigned_zones'].append(
            {
                'assignment_id': assignment.id,
                'zone_id': assignment.zone_id,
                'zone_name': zone.name if zone else 'Unknown Zone',
                'assignment_status': status_label(assignment.status),
            }
        )
    return list(grouped.values())


def get_session_completion_status(db: Session, *, session_id: int) -> dict:
    session = get_session_row(db, session_id)
    assignments = list_assignments(db, session.id)
    zones = zones_by_id(db, [a.zone_id for a in assignments])
    names = user_names_by_id(db, [a.assigned_user_id for a in assignments])
    zone_rows = [
        {
            'assignment_id': a.id,
            'zone_id': a.zone_id,
            'zone_name': zones[a.zone_id].name if a.zone_id in zones else 'Unknown',
            'assigned_user': names.get(a.assigned_user_id, 'Unknown'),
            'status': status_label(a.status),
            'is_completed': a.status == ZoneAssignmentStatus.COMPLETED,
            'completed_at': epoch_ms(a.completed_at),
        }
        for a in assignments
    ]
    completed = sum(1 for row in zone_rows if row['is_completed'])
    return {
        'zones': zone_rows,
        'total_zones': len(zone_rows),
        'completed_zones': completed,
        'all_completed': bool(zone_rows) and completed == len(zone_rows),
    }
