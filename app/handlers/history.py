"""
Change history browsing across all members.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.handlers import ledger
from app.handlers.candidates import member_labels
from app.models.change import ChangeType
from app.models.rollback import HistoryEntry, HistoryPage


async def get_history(
    session: AsyncSession,
    entity_id: Optional[str] = None,
    change_type: Optional[ChangeType] = None,
    limit: int = 100,
    offset: int = 0
) -> HistoryPage:
    """
    Page through the ledger, newest first.

    `total` counts every record matching the filter, so callers can page
    with `offset` until they have seen all of them. Records of deleted
    members are listed with no member name.
    """
    records = await ledger.list_history(session, entity_id, change_type, limit, offset)
    total = await ledger.count_history(session, entity_id, change_type)
    labels = await member_labels(session, (change.entity_id for change in records))

    changes = []
    for change in records:
        entry = HistoryEntry.model_validate(change)
        entry.member_name = labels.get(change.entity_id)
        changes.append(entry)
    return HistoryPage(changes=changes, total=total)
