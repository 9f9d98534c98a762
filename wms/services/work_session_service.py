from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from wms.errors import NotFoundError, UniquenessConflictError, ValidationError
from wms.models import WorkSession, WorkSessionStatus, WorkSessionType
from wms.services import code_service
from wms.services.time_utils import epoch_ms

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkflowRef:
    """The workflow record a work session is bound to. Exactly one id is set."""

    receive_session_id: int | None = None
    zone_assignment_id: int | None = None

    def __post_init__(self) -> None:
        if (self.receive_session_id is None) == (self.zone_assignment_id is None):
            raise ValidationError('A work session binds exactly one receive session or zone assignment')

    @property
    def session_type(self) -> WorkSessionType:
        if self.receive_session_id is not None:
            return WorkSessionType.INBOUND
        return WorkSessionType.CYCLE_COUNT

    def clause(self):
        if self.receive_session_id is not None:
            return WorkSession.receive_session_id == self.receive_session_id
        return WorkSession.zone_assignment_id == self.zone_assignment_id


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def get_work_session_for(db: Session, ref: WorkflowRef) -> WorkSession | None:
    return db.execute(select(WorkSession).where(ref.clause())).scalar_one_or_none()


def get_work_session(db: Session, work_session_id: int) -> WorkSession:
    work_session = db.get(WorkSession, work_session_id)
    if not work_session:
        raise NotFoundError(f'Work session {work_session_id} not found')
    return work_session


def ensure_work_session(
    db: Session,
    *,
    organization_id: int,
    branch_id: int,
    ref: WorkflowRef,
    assigned_user_id: int,
    name: str | None = None,
    description: str | None = None,
) -> WorkSession:
    existing = get_work_session_for(db, ref)
    if existing:
        return existing

    now = _now()

    def build(sequence: code_service.CodeSequence) -> WorkSession:
        code = sequence.code(code_service.WORK_SESSION.prefix)
        return WorkSession(
            code=code,
            organization_id=organization_id,
            branch_id=branch_id,
            session_type=ref.session_type,
            name=name or code,
            description=description,
            assigned_user_id=assigned_user_id,
            status=WorkSessionStatus.IN_PROGRESS,
            started_at=now,
            receive_session_id=ref.receive_session_id,
            zone_assignment_id=ref.zone_assignment_id,
        )

    try:
        work_session = code_service.insert_with_code(
            db,
            code_service.WORK_SESSION,
            branch_id=branch_id,
            factory=build,
            moment=now,
        )
    except UniquenessConflictError:
        # A concurrent caller bound the same workflow first.
        existing = get_work_session_for(db, ref)
        if existing:
            return existing
        raise

    logger.info(
        'work_session_created',
        extra={'entity_id': work_session.id, 'code': work_session.code, 'user_id': assigned_user_id},
    )
    return work_session


def complete_work_session(
    db: Session,
    *,
    work_session_id: int,
    verified_by_user_id: int | None = None,
) -> WorkSession:
    work_session = get_work_session(db, work_session_id)
    now = _now()
    if work_session.status != WorkSessionStatus.COMPLETED:
        work_session.status = WorkSessionStatus.COMPLETED
        work_session.completed_at = now
    if verified_by_user_id is not None:
        work_session.verified_by_user_id = verified_by_user_id
        work_session.verified_at = now
    db.flush()
    logger.info('work_session_completed', extra={'entity_id': work_session.id, 'code': work_session.code})
    return work_session


def complete_work_session_for(
    db: Session,
    ref: WorkflowRef,
    *,
    verified_by_user_id: int | None = None,
) -> WorkSession | None:
    work_session = get_work_session_for(db, ref)
    if work_session is None:
        return None
    return complete_work_session(db, work_session_id=work_session.id, verified_by_user_id=verified_by_user_id)


def serialize_work_session(work_session: WorkSession | None) -> dict | None:
    if work_session is None:
        return None
    return {
        'id': work_session.id,
        'code': work_session.code,
        'session_type': work_session.session_type.value,
        'status': work_session.status.value,
        'assigned_user_id': work_session.assigned_user_id,
        'started_at': epoch_ms(work_session.started_at),
        'completed_at': epoch_ms(work_session.completed_at),
        'verified_by_user_id': work_session.verified_by_user_id,
        'verified_at': epoch_ms(work_session.verified_at),
    }
