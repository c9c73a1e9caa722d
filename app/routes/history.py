"""
Change history endpoint.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.auth import Actor, get_current_actor, require_privileged
from app.core.config import Settings, get_settings
from app.core.database import get_session
from app.core.errors import LedgerError, status_for
from app.handlers.history import get_history
from app.models.change import ChangeType
from app.models.rollback import HistoryPage

router = APIRouter(prefix="/history", tags=["history"])


@router.get("", response_model=HistoryPage)
async def history_endpoint(
    member_id: Optional[str] = Query(default=None, alias="memberId"),
    change_type: Optional[ChangeType] = Query(default=None, alias="changeType"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    actor: Optional[Actor] = Depends(get_current_actor),
    settings: Settings = Depends(get_settings),
    session: AsyncSession = Depends(get_session)
):
    """Ledger records across all members, newest first, with the matching total."""
    try:
        require_privileged(actor, settings)
    except LedgerError as e:
        raise HTTPException(status_code=status_for(e), detail=e.to_detail())
    return await get_history(session, member_id, change_type, limit, offset)
