"""
Rollback coordinator.

Reverses change records against the live member table at three
granularities: one field change, one whole batch, or a full restore from a
stored snapshot. History is never deleted; each reversal appends RESTORE
records under a freshly minted batch id, so a rollback can itself be
inspected or rolled back.

Every mode runs its reads, member updates and ledger inserts inside one
storage transaction. Authorization is checked before anything else and
request validation before any read.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional, Tuple
import json

from app.core.auth import Actor, require_privileged
from app.core.config import Settings
from app.core.constants import FIELD_TYPES, FULL_RESTORE, REQUIRED_FIELDS, RESTORABLE_FIELDS
from app.core.database import atomic
from app.core.errors import InvalidData, NotFound, ValidationError
from app.core.logging import get_logger
from app.handlers import ledger
from app.handlers.members import check_lineage
from app.models.change import ChangeRecord, ChangeType
from app.models.member import FamilyMember
from app.models.rollback import RollbackRequest, RollbackResult, RollbackType
from app.utils.time import isoformat, utc_now

logger = get_logger(__name__)


def parse_request(request: RollbackRequest) -> RollbackType:
    """Validate rollback type and the identifiers it requires."""
    try:
        rollback_type = RollbackType(request.rollback_type)
    except ValueError:
        raise ValidationError("Invalid rollbackType. Must be SINGLE_CHANGE, BATCH, or FULL_SNAPSHOT")

    if rollback_type == RollbackType.SINGLE_CHANGE and not request.change_id:
        raise ValidationError("changeId is required for SINGLE_CHANGE rollback")
    if rollback_type == RollbackType.BATCH and not request.batch_id:
        raise ValidationError("batchId is required for BATCH rollback")
    if rollback_type == RollbackType.FULL_SNAPSHOT and not (request.change_id or request.entity_id):
        raise ValidationError("changeId or entityId is required for FULL_SNAPSHOT rollback")

    return rollback_type


def restorable_values(state: Dict[str, Any]) -> Dict[str, Any]:
    """
    Pick allowlisted fields out of a parsed snapshot.

    Keys outside the allowlist are dropped. Values are checked against the
    field table before anything touches the member.
    """
    values: Dict[str, Any] = {}
    for field in RESTORABLE_FIELDS:
        if field not in state:
            continue
        value = state[field]
        if value is None:
            if field in REQUIRED_FIELDS:
                raise InvalidData(f"Snapshot sets required field '{field}' to null")
        elif type(value) is not FIELD_TYPES[field]:
            if isinstance(value, (dict, list, bool)):
                raise InvalidData(f"Snapshot value for '{field}' has the wrong type")
            value = ledger.decode_value(field, str(value))
        values[field] = value
    return values


async def _load_member(session: AsyncSession, member_id: str) -> FamilyMember | None:
    # Always re-read so each step sees the state flushed by the previous one
    return await session.get(FamilyMember, member_id, populate_existing=True)


async def _warn_on_broken_lineage(session: AsyncSession, member: FamilyMember, father_id: Optional[str]) -> None:
    # Rollback applies the stored link even when it no longer resolves
    if not father_id:
        return
    try:
        await check_lineage(session, member.id, father_id)
    except ValidationError as e:
        logger.warning(
            "rollback_restores_broken_lineage",
            member_id=member.id,
            father_id=father_id,
            cause=e.message
        )


async def _reverse_change(
    session: AsyncSession,
    change: ChangeRecord,
    member: FamilyMember,
    actor: Actor,
    rollback_batch_id: str,
    reason: str
) -> ChangeRecord:
    """
    Write a change record's old value back and append its RESTORE record.

    The RESTORE record's old value is the member's value immediately before
    this reversal, not the value stored on the record being undone.
    """
    if change.field_name == FULL_RESTORE:
        if change.old_value is None:
            raise ValidationError(f"Change {change.id} has no prior state to restore")
        values = restorable_values(ledger.parse_snapshot(change.old_value))
        if "father_id" in values:
            await _warn_on_broken_lineage(session, member, values["father_id"])
        before = ledger.serialize_state(member)
        for field, value in values.items():
            setattr(member, field, value)
        old_value, new_value = before, change.old_value
    else:
        value = ledger.decode_value(change.field_name, change.old_value)
        if change.field_name == "father_id":
            await _warn_on_broken_lineage(session, member, value)
        old_value = ledger.encode_value(getattr(member, change.field_name))
        setattr(member, change.field_name, value)
        new_value = change.old_value

    member.updated_at = utc_now()
    await session.flush()

    return await ledger.record(
        session,
        entity_id=member.id,
        field_name=change.field_name,
        old_value=old_value,
        new_value=new_value,
        change_type=ChangeType.RESTORE,
        actor=actor,
        batch_id=rollback_batch_id,
        snapshot=ledger.serialize_state(member),
        reason=reason
    )


async def rollback_single_change(
    session: AsyncSession,
    change_id: str,
    actor: Actor,
    rollback_batch_id: str
) -> int:
    """Undo one change record."""
    async with atomic(session):
        change = await ledger.get_change(session, change_id)
        if change is None:
            raise NotFound("Change not found")

        member = await _load_member(session, change.entity_id)
        if member is None:
            raise NotFound(f"Member {change.entity_id} not found")

        await _reverse_change(
            session, change, member, actor, rollback_batch_id,
            reason=f"Rollback of change {change_id}"
        )
    return 1


async def rollback_batch(
    session: AsyncSession,
    batch_id: str,
    actor: Actor,
    rollback_batch_id: str
) -> Tuple[int, int]:
    """
    Undo every record of a batch, newest first.

    Newest-first order matters when one field changed more than once in the
    batch: A->B then B->C is undone as C->B then B->A, ending at A.
    Records whose member no longer exists, or that have no prior state, are
    skipped and counted.

    Returns:
        (rolled back, skipped)
    """
    rolled_back = 0
    skipped = 0

    async with atomic(session):
        changes = await ledger.list_by_batch(session, batch_id)
        if not changes:
            raise NotFound("No changes found for this batch")

        for change in changes:
            member = await _load_member(session, change.entity_id)
            if member is None:
                skipped += 1
                logger.warning(
                    "rollback_record_skipped",
                    change_id=change.id,
                    member_id=change.entity_id,
                    cause="member_missing"
                )
                continue
            if change.field_name == FULL_RESTORE and change.old_value is None:
                skipped += 1
                logger.warning(
                    "rollback_record_skipped",
                    change_id=change.id,
                    member_id=change.entity_id,
                    cause="no_prior_state"
                )
                continue

            await _reverse_change(
                session, change, member, actor, rollback_batch_id,
                reason=f"Batch rollback of {batch_id}"
            )
            rolled_back += 1

    return rolled_back, skipped


async def _find_snapshot_source(
    session: AsyncSession,
    change_id: Optional[str],
    entity_id: Optional[str]
) -> ChangeRecord:
    if change_id:
        source = await ledger.get_change(session, change_id)
    else:
        source = await ledger.latest_snapshot_for_entity(session, entity_id)

    if source is None or not source.full_snapshot:
        raise NotFound("No snapshot found for rollback")
    return source


async def rollback_full_snapshot(
    session: AsyncSession,
    change_id: Optional[str],
    entity_id: Optional[str],
    actor: Actor,
    rollback_batch_id: str
) -> int:
    """
    Restore a member to a stored snapshot.

    Uses the snapshot on change_id when given, otherwise the most recent
    snapshot recorded for entity_id. Only allowlisted fields are applied.

    Returns:
        Number of allowlisted fields set, whether or not their value changed
    """
    async with atomic(session):
        source = await _find_snapshot_source(session, change_id, entity_id)
        values = restorable_values(ledger.parse_snapshot(source.full_snapshot))

        member = await _load_member(session, source.entity_id)
        if member is None:
            raise NotFound(f"Member {source.entity_id} not found")

        before = ledger.serialize_state(member)
        for field, value in values.items():
            setattr(member, field, value)
        member.updated_at = utc_now()
        await session.flush()

        await ledger.record(
            session,
            entity_id=member.id,
            field_name=FULL_RESTORE,
            old_value=before,
            new_value=json.dumps(values, ensure_ascii=False, sort_keys=True),
            change_type=ChangeType.RESTORE,
            actor=actor,
            batch_id=rollback_batch_id,
            snapshot=ledger.serialize_state(member),
            reason=f"Full snapshot rollback from {isoformat(source.created_at)}"
        )

    return len(values)


async def rollback(
    session: AsyncSession,
    request: RollbackRequest,
    actor: Optional[Actor],
    settings: Optional[Settings] = None
) -> RollbackResult:
    """
    Execute a rollback request.

    Raises:
        Unauthorized: actor missing or not privileged (checked first)
        ValidationError: unknown rollback type or missing identifier
        NotFound: change, batch, member or snapshot absent
        InvalidData: stored snapshot or value cannot be decoded
        StorageError: transaction failed; nothing was written
    """
    actor = require_privileged(actor, settings)
    rollback_type = parse_request(request)
    rollback_batch_id = ledger.new_batch_id()
    skipped = 0

    if rollback_type == RollbackType.SINGLE_CHANGE:
        rolled_back = await rollback_single_change(
            session, request.change_id, actor, rollback_batch_id
        )
    elif rollback_type == RollbackType.BATCH:
        rolled_back, skipped = await rollback_batch(
            session, request.batch_id, actor, rollback_batch_id
        )
    else:
        rolled_back = await rollback_full_snapshot(
            session, request.change_id, request.entity_id, actor, rollback_batch_id
        )

    logger.info(
        "rollback_completed",
        rollback_type=rollback_type.value,
        rollback_batch_id=rollback_batch_id,
        rolled_back=rolled_back,
        skipped=skipped,
        actor_id=actor.id
    )

    message = f"Rollback completed successfully. {rolled_back} change(s) rolled back."
    if skipped:
        message += f" {skipped} change(s) skipped."

    return RollbackResult(
        rollback_batch_id=rollback_batch_id,
        rolled_back_count=rolled_back,
        skipped_count=skipped,
        message=message
    )
