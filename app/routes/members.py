"""
Family member endpoints (tracked write path).
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.auth import Actor, get_current_actor, require_actor, require_privileged
from app.core.config import Settings, get_settings
from app.core.database import get_session
from app.core.errors import LedgerError, status_for
from app.handlers import ledger
from app.handlers.members import create_member, delete_member, get_member, update_member
from app.models.member import FamilyMemberCreate, FamilyMemberRead, FamilyMemberUpdate
from app.models.rollback import ChangeView

router = APIRouter(prefix="/members", tags=["members"])


@router.post("/", response_model=FamilyMemberRead, status_code=status.HTTP_201_CREATED)
async def create_member_endpoint(
    member: FamilyMemberCreate,
    actor: Optional[Actor] = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """Create a new family member."""
    try:
        return await create_member(session, member, require_actor(actor))
    except LedgerError as e:
        raise HTTPException(status_code=status_for(e), detail=e.to_detail())


@router.get("/{member_id}", response_model=FamilyMemberRead)
async def get_member_endpoint(
    member_id: str,
    session: AsyncSession = Depends(get_session)
):
    """Get family member by ID."""
    member = await get_member(session, member_id)
    if not member:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"kind": "not_found", "message": f"Member {member_id} not found"}
        )
    return member


@router.patch("/{member_id}", response_model=List[ChangeView])
async def update_member_endpoint(
    member_id: str,
    update: FamilyMemberUpdate,
    actor: Optional[Actor] = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """
    Edit a member. Fields present in the body are applied as one batch;
    the ledger records written are returned.
    """
    changes = update.model_dump(exclude_unset=True, exclude={"reason"})
    try:
        return await update_member(
            session,
            member_id,
            changes,
            require_actor(actor),
            reason=update.reason
        )
    except LedgerError as e:
        raise HTTPException(status_code=status_for(e), detail=e.to_detail())


@router.delete("/{member_id}", response_model=ChangeView)
async def delete_member_endpoint(
    member_id: str,
    reason: Optional[str] = None,
    actor: Optional[Actor] = Depends(get_current_actor),
    session: AsyncSession = Depends(get_session)
):
    """Delete a member; returns the DELETE ledger record."""
    try:
        return await delete_member(session, member_id, require_actor(actor), reason=reason)
    except LedgerError as e:
        raise HTTPException(status_code=status_for(e), detail=e.to_detail())


@router.get("/{member_id}/history", response_model=List[ChangeView])
async def member_history_endpoint(
    member_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
    actor: Optional[Actor] = Depends(get_current_actor),
    settings: Settings = Depends(get_settings),
    session: AsyncSession = Depends(get_session)
):
    """Change history for a member, newest first."""
    try:
        require_privileged(actor, settings)
    except LedgerError as e:
        raise HTTPException(status_code=status_for(e), detail=e.to_detail())
    return await ledger.list_by_entity(session, member_id, limit)
