"""
Rollback candidate discovery.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from typing import Dict, Iterable, List, Optional

from app.core.config import Settings, get_settings
from app.handlers import ledger
from app.models.change import ChangeRecord
from app.models.member import FamilyMember
from app.models.rollback import (
    BatchChange,
    CandidateBatch,
    CandidateFilter,
    CandidatesResponse,
    ChangeView,
)


def build_candidates(
    records: List[ChangeRecord],
    labels: Dict[str, str]
) -> CandidatesResponse:
    """
    Shape records into the candidate listing.

    Batches keep the order in which they first appear in `records`; the
    first record of each batch supplies its timestamp, actor and member.
    """
    batches = []
    for batch_id, changes in ledger.group_into_batches(records).items():
        head = changes[0]
        batches.append(CandidateBatch(
            batch_id=batch_id,
            changed_at=head.created_at,
            changed_by=head.actor_name,
            entity_id=head.entity_id,
            entity_label=labels.get(head.entity_id),
            change_count=len(changes),
            changes=[BatchChange.model_validate(change) for change in changes]
        ))

    return CandidatesResponse(
        changes=[ChangeView.model_validate(change) for change in records],
        batches=batches
    )


async def member_labels(session: AsyncSession, member_ids: Iterable[str]) -> Dict[str, str]:
    ids = set(member_ids)
    if not ids:
        return {}
    result = await session.execute(
        select(FamilyMember).where(FamilyMember.id.in_(ids))
    )
    return {member.id: member.label for member in result.scalars().all()}


async def list_candidates(
    session: AsyncSession,
    candidate_filter: CandidateFilter,
    settings: Optional[Settings] = None
) -> CandidatesResponse:
    """
    Recent changes eligible for rollback, grouped by batch.

    By default only records carrying a full snapshot are listed, although
    single-change and batch rollback do not need one. Whether that filter is
    intended is still open; CANDIDATES_REQUIRE_SNAPSHOT toggles it.
    """
    settings = settings or get_settings()
    limit = max(1, min(candidate_filter.limit, settings.candidate_max_limit))

    records = await ledger.list_recent(
        session,
        entity_id=candidate_filter.entity_id,
        batch_id=candidate_filter.batch_id,
        limit=limit,
        with_snapshot=settings.candidates_require_snapshot
    )
    labels = await member_labels(session, (change.entity_id for change in records))
    return build_candidates(records, labels)
