"""
Change ledger handler.

Writes and reads field-level change records. Writers never commit: every
record is added to the caller's session and lands in the caller's
transaction alongside the entity mutation it documents.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select, func
from typing import Any, Dict, List, Optional
from uuid import uuid4
import json

from app.core.constants import FIELD_TYPES, RESTORABLE_FIELDS
from app.core.errors import InvalidData, StorageError
from app.core.auth import Actor
from app.models.change import ChangeRecord, ChangeType
from app.models.member import FamilyMember
from app.utils.time import utc_now


def new_batch_id() -> str:
    """Mint a correlation id for a multi-record operation."""
    return uuid4().hex


def encode_value(value: Any) -> Optional[str]:
    """Type-erase a field value into its ledger string form."""
    if value is None:
        return None
    return str(value)


def decode_value(field_name: str, raw: Optional[str]) -> Any:
    """
    Recover a typed field value from its ledger string.

    The target type comes from the static field table; a field outside the
    table or a value that does not convert raises InvalidData.
    """
    field_type = FIELD_TYPES.get(field_name)
    if field_type is None:
        raise InvalidData(f"Field '{field_name}' is not restorable")
    if raw is None:
        return None
    try:
        return field_type(raw)
    except (TypeError, ValueError):
        raise InvalidData(f"Stored value for '{field_name}' is not a valid {field_type.__name__}")


def entity_state(member: FamilyMember) -> Dict[str, Any]:
    """Allowlisted view of a member, plus its id."""
    state: Dict[str, Any] = {"id": member.id}
    for field in RESTORABLE_FIELDS:
        state[field] = getattr(member, field)
    return state


def serialize_state(member: FamilyMember) -> str:
    """Full serialized member state used for snapshots and whole-entity records."""
    return json.dumps(entity_state(member), ensure_ascii=False, sort_keys=True)


def parse_snapshot(raw: Optional[str]) -> Dict[str, Any]:
    """Parse a stored snapshot; absent or malformed snapshots raise InvalidData."""
    if not raw:
        raise InvalidData("No snapshot data")
    try:
        snapshot = json.loads(raw)
    except ValueError:
        raise InvalidData("Invalid snapshot data - cannot parse")
    if not isinstance(snapshot, dict):
        raise InvalidData("Invalid snapshot data - cannot parse")
    return snapshot


async def record(
    session: AsyncSession,
    entity_id: str,
    field_name: str,
    old_value: Optional[str],
    new_value: Optional[str],
    change_type: ChangeType,
    actor: Actor,
    batch_id: Optional[str] = None,
    snapshot: Optional[str] = None,
    reason: Optional[str] = None
) -> ChangeRecord:
    """
    Append one change record inside the caller's transaction.

    When no batch_id is given the record forms its own batch, keyed by its id.

    Raises:
        StorageError: if the insert is rejected by the database
    """
    record_id = uuid4().hex
    change = ChangeRecord(
        id=record_id,
        entity_id=entity_id,
        field_name=field_name,
        old_value=old_value,
        new_value=new_value,
        change_type=change_type,
        actor_id=actor.id,
        actor_name=actor.name,
        batch_id=batch_id or record_id,
        full_snapshot=snapshot,
        reason=reason,
        created_at=utc_now()
    )
    session.add(change)
    try:
        await session.flush()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to record change: {e.__class__.__name__}") from e
    return change


async def get_change(session: AsyncSession, change_id: str) -> ChangeRecord | None:
    """Get change record by ID."""
    result = await session.execute(
        select(ChangeRecord).where(ChangeRecord.id == change_id)
    )
    return result.scalars().first()


async def list_by_entity(
    session: AsyncSession,
    entity_id: str,
    limit: int = 100
) -> List[ChangeRecord]:
    """Change records for one member, newest first."""
    statement = (
        select(ChangeRecord)
        .where(ChangeRecord.entity_id == entity_id)
        .order_by(ChangeRecord.created_at.desc(), ChangeRecord.seq.desc())
        .limit(limit)
    )
    result = await session.execute(statement)
    return list(result.scalars().all())


async def list_by_batch(session: AsyncSession, batch_id: str) -> List[ChangeRecord]:
    """Change records sharing a batch id, newest first."""
    statement = (
        select(ChangeRecord)
        .where(ChangeRecord.batch_id == batch_id)
        .order_by(ChangeRecord.created_at.desc(), ChangeRecord.seq.desc())
    )
    result = await session.execute(statement)
    return list(result.scalars().all())


async def list_recent(
    session: AsyncSession,
    entity_id: Optional[str] = None,
    batch_id: Optional[str] = None,
    limit: int = 50,
    with_snapshot: bool = True
) -> List[ChangeRecord]:
    """Most recent change records, optionally filtered, newest first."""
    statement = select(ChangeRecord)

    if with_snapshot:
        statement = statement.where(ChangeRecord.full_snapshot.is_not(None))
    if entity_id:
        statement = statement.where(ChangeRecord.entity_id == entity_id)
    if batch_id:
        statement = statement.where(ChangeRecord.batch_id == batch_id)

    statement = statement.order_by(
        ChangeRecord.created_at.desc(),
        ChangeRecord.seq.desc()
    ).limit(limit)

    result = await session.execute(statement)
    return list(result.scalars().all())


def _history_filter(statement, entity_id: Optional[str], change_type: Optional[ChangeType]):
    if entity_id:
        statement = statement.where(ChangeRecord.entity_id == entity_id)
    if change_type:
        statement = statement.where(ChangeRecord.change_type == change_type)
    return statement


async def list_history(
    session: AsyncSession,
    entity_id: Optional[str] = None,
    change_type: Optional[ChangeType] = None,
    limit: int = 100,
    offset: int = 0
) -> List[ChangeRecord]:
    """One page of the whole ledger, newest first."""
    statement = _history_filter(select(ChangeRecord), entity_id, change_type)
    statement = statement.order_by(
        ChangeRecord.created_at.desc(),
        ChangeRecord.seq.desc()
    ).offset(offset).limit(limit)

    result = await session.execute(statement)
    return list(result.scalars().all())


async def count_history(
    session: AsyncSession,
    entity_id: Optional[str] = None,
    change_type: Optional[ChangeType] = None
) -> int:
    """Number of records matching the history filter, ignoring paging."""
    statement = _history_filter(select(func.count(ChangeRecord.seq)), entity_id, change_type)
    result = await session.execute(statement)
    return result.scalar() or 0


async def latest_snapshot_for_entity(
    session: AsyncSession,
    entity_id: str
) -> ChangeRecord | None:
    """Most recent record for a member that carries a full snapshot."""
    records = await list_recent(session, entity_id=entity_id, limit=1, with_snapshot=True)
    return records[0] if records else None


async def count_by_entity(session: AsyncSession, entity_id: str) -> int:
    """Total change records held for a member."""
    result = await session.execute(
        select(func.count(ChangeRecord.seq)).where(ChangeRecord.entity_id == entity_id)
    )
    return result.scalar() or 0


def group_into_batches(records: List[ChangeRecord]) -> Dict[str, List[ChangeRecord]]:
    """
    Group records by batch id, falling back to the record id.

    Pure: batches appear in first-seen order and records keep their input
    order within a batch.
    """
    batches: Dict[str, List[ChangeRecord]] = {}
    for change in records:
        key = change.batch_id or change.id
        batches.setdefault(key, []).append(change)
    return batches
