"""
Tracked write path for family members.

Every mutation here writes its ledger records in the same transaction as
the member row it changes.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional

from app.core.auth import Actor
from app.core.constants import FULL_RESTORE, GENDERS, REQUIRED_FIELDS, RESTORABLE_FIELDS, STATUSES
from app.core.database import atomic
from app.core.errors import NotFound, ValidationError
from app.core.logging import get_logger
from app.handlers import ledger
from app.models.change import ChangeRecord, ChangeType
from app.models.member import FamilyMember, FamilyMemberCreate
from app.utils.time import utc_now

logger = get_logger(__name__)


def validate_fields(values: Dict[str, Any]) -> None:
    """Reject unknown fields and out-of-range enumerations."""
    unknown = [name for name in values if name not in RESTORABLE_FIELDS]
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")

    for name in REQUIRED_FIELDS:
        if name in values and values[name] is None:
            raise ValidationError(f"Field '{name}' cannot be null")

    if "gender" in values and values["gender"] not in GENDERS:
        raise ValidationError("Invalid gender value")
    if "status" in values and values["status"] not in STATUSES:
        raise ValidationError("Invalid status value")
    if values.get("generation") is not None and values["generation"] < 1:
        raise ValidationError("Generation must be at least 1")


async def check_lineage(session: AsyncSession, member_id: Optional[str], father_id: str) -> None:
    """The father must exist and must not descend from the member."""
    current = await session.get(FamilyMember, father_id)
    if current is None:
        raise ValidationError(f"Father {father_id} not found")

    seen = set()
    while current is not None and current.id not in seen:
        if current.id == member_id:
            raise ValidationError("Cannot set a descendant as parent (would create cycle)")
        seen.add(current.id)
        current = await session.get(FamilyMember, current.father_id) if current.father_id else None


async def get_member(session: AsyncSession, member_id: str) -> FamilyMember | None:
    """Get family member by ID."""
    return await session.get(FamilyMember, member_id)


async def create_member(
    session: AsyncSession,
    member_data: FamilyMemberCreate,
    actor: Actor
) -> FamilyMember:
    """Create a member and record a CREATE entry carrying its initial state."""
    values = member_data.model_dump(exclude={"id"})
    validate_fields(values)

    async with atomic(session):
        if member_data.father_id:
            await check_lineage(session, member_data.id, member_data.father_id)

        member = FamilyMember(**values)
        if member_data.id:
            member.id = member_data.id
        session.add(member)
        await session.flush()

        state = ledger.serialize_state(member)
        await ledger.record(
            session,
            entity_id=member.id,
            field_name=FULL_RESTORE,
            old_value=None,
            new_value=state,
            change_type=ChangeType.CREATE,
            actor=actor,
            snapshot=state
        )

    logger.info("member_created", member_id=member.id, actor_id=actor.id)
    return member


async def update_member(
    session: AsyncSession,
    member_id: str,
    changes: Dict[str, Any],
    actor: Actor,
    reason: Optional[str] = None,
    batch_id: Optional[str] = None
) -> List[ChangeRecord]:
    """
    Apply a multi-field edit as one batch.

    One UPDATE record is written per field whose value actually changes; all
    of them share one batch id (the caller's, so several edits can form one
    logical operation, or a fresh one) and carry the post-edit snapshot. Fields
    whose value is unchanged are ignored; an edit with no effective change
    writes nothing.

    Returns:
        The records written, in application order
    """
    validate_fields(changes)

    async with atomic(session):
        member = await session.get(FamilyMember, member_id, populate_existing=True)
        if member is None:
            raise NotFound(f"Member {member_id} not found")

        if changes.get("father_id"):
            await check_lineage(session, member_id, changes["father_id"])

        diffs = []
        for field, value in changes.items():
            current = getattr(member, field)
            if current == value:
                continue
            diffs.append((field, current, value))
            setattr(member, field, value)

        if not diffs:
            return []

        member.updated_at = utc_now()
        snapshot = ledger.serialize_state(member)
        if batch_id is None and len(diffs) > 1:
            batch_id = ledger.new_batch_id()

        written = []
        for field, old, new in diffs:
            written.append(await ledger.record(
                session,
                entity_id=member_id,
                field_name=field,
                old_value=ledger.encode_value(old),
                new_value=ledger.encode_value(new),
                change_type=ChangeType.UPDATE,
                actor=actor,
                batch_id=batch_id,
                snapshot=snapshot,
                reason=reason
            ))

    logger.info(
        "member_updated",
        member_id=member_id,
        actor_id=actor.id,
        batch_id=written[0].batch_id,
        fields=[change.field_name for change in written]
    )
    return written


async def delete_member(
    session: AsyncSession,
    member_id: str,
    actor: Actor,
    reason: Optional[str] = None
) -> ChangeRecord:
    """Remove a member, keeping its last state on a DELETE record."""
    async with atomic(session):
        member = await session.get(FamilyMember, member_id, populate_existing=True)
        if member is None:
            raise NotFound(f"Member {member_id} not found")

        deleted = await ledger.record(
            session,
            entity_id=member_id,
            field_name=FULL_RESTORE,
            old_value=ledger.serialize_state(member),
            new_value=None,
            change_type=ChangeType.DELETE,
            actor=actor,
            reason=reason
        )
        await session.delete(member)

    logger.info("member_deleted", member_id=member_id, actor_id=actor.id)
    return deleted
