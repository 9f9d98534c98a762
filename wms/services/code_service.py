from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TypeVar

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wms.config import settings
from wms.errors import NotFoundError, UniquenessConflictError
from wms.models import (
    Branch,
    CycleCountSession,
    InventoryBatch,
    PurchaseOrder,
    ReceiveSession,
    ReturnRequest,
    WorkSession,
)
from wms.services.time_utils import local_day_window

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class CodeKind:
    prefix: str
    model: type
    timestamp_attr: str
    code_attrs: tuple[str, ...] = ('code',)


PURCHASE_ORDER = CodeKind('PO', PurchaseOrder, 'ordered_at')
RECEIVE_SESSION = CodeKind('RS', ReceiveSession, 'received_at')
WORK_SESSION = CodeKind('WS', WorkSession, 'started_at')
RETURN_REQUEST = CodeKind('RR', ReturnRequest, 'requested_at')
CYCLE_COUNT = CodeKind('CC', CycleCountSession, 'created_at')
INVENTORY_BATCH = CodeKind('IB', InventoryBatch, 'received_at', ('internal_batch_number', 'supplier_batch_number'))

SUPPLIER_BATCH_PREFIX = 'SB'


@dataclass(frozen=True)
class CodeSequence:
    stamp: str
    seq: int

    def code(self, prefix: str) -> str:
        return format_code(prefix, self.stamp, self.seq)


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def format_code(prefix: str, stamp: str, seq: int) -> str:
    return f'{prefix}-{stamp}-{seq:04d}'


def _branch_timezone(db: Session, branch_id: int) -> str | None:
    branch = db.get(Branch, branch_id)
    if not branch:
        raise NotFoundError(f'Branch {branch_id} not found')
    return branch.timezone


def _count_in_window(db: Session, kind: CodeKind, *, branch_id: int, start: datetime, end: datetime) -> int:
    column = getattr(kind.model, kind.timestamp_attr)
    return db.execute(
        select(func.count())
        .select_from(kind.model)
        .where(
            kind.model.branch_id == branch_id,
            column >= start,
            column < end,
        )
    ).scalar_one()


def next_sequence(db: Session, kind: CodeKind, *, branch_id: int, moment: datetime | None = None) -> CodeSequence:
    """Sequence for the next record of `kind` in the branch's local day: existing count + 1."""
    moment = moment or _now()
    start, end, stamp = local_day_window(moment, _branch_timezone(db, branch_id))
    count = _count_in_window(db, kind, branch_id=branch_id, start=start, end=end)
    return CodeSequence(stamp=stamp, seq=count + 1)


def generate_code(db: Session, kind: CodeKind, *, branch_id: int, moment: datetime | None = None) -> str:
    return next_sequence(db, kind, branch_id=branch_id, moment=moment).code(kind.prefix)


def _code_taken(db: Session, kind: CodeKind, *, branch_id: int, sequence: CodeSequence) -> bool:
    clauses = [getattr(kind.model, attr) == sequence.code(_prefix_for(kind, attr)) for attr in kind.code_attrs]
    found = db.execute(
        select(kind.model.id).where(kind.model.branch_id == branch_id, or_(*clauses)).limit(1)
    ).first()
    return found is not None


def _prefix_for(kind: CodeKind, attr: str) -> str:
    if attr == 'supplier_batch_number':
        return SUPPLIER_BATCH_PREFIX
    return kind.prefix


def insert_with_code(
    db: Session,
    kind: CodeKind,
    *,
    branch_id: int,
    factory: Callable[[CodeSequence], T],
    moment: datetime | None = None,
) -> T:
    """Insert the record built by `factory` under a fresh code, moving to the next sequence on collision.

    Each attempt runs in its own SAVEPOINT so a collision leaves the outer transaction usable.
    """
    moment = moment or _now()
    sequence = next_sequence(db, kind, branch_id=branch_id, moment=moment)
    for attempt in range(1, settings.code_max_attempts + 1):
        record = factory(sequence)
        try:
            with db.begin_nested():
                db.add(record)
                db.flush()
        except IntegrityError as exc:
            if not _code_taken(db, kind, branch_id=branch_id, sequence=sequence):
                raise UniquenessConflictError(
                    f'Could not create {kind.model.__name__}: {exc.orig}'
                ) from exc
            logger.warning(
                'code_collision_retry',
                extra={'code': sequence.code(kind.prefix), 'entity_id': branch_id},
            )
            sequence = CodeSequence(stamp=sequence.stamp, seq=sequence.seq + 1)
            continue
        if attempt > 1:
            logger.info('code_assigned_after_retry', extra={'code': sequence.code(kind.prefix)})
        return record

    raise UniquenessConflictError(
        f'Could not allocate a unique {kind.prefix} code for branch {branch_id} after {settings.code_max_attempts} attempts'
    )
