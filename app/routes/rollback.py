"""
Rollback endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.auth import Actor, get_current_actor, require_privileged
from app.core.config import Settings, get_settings
from app.core.database import get_session
from app.core.errors import LedgerError, Unauthorized, status_for
from app.core.logging import get_logger
from app.handlers.candidates import list_candidates
from app.handlers.rollback import rollback
from app.models.rollback import CandidateFilter, CandidatesResponse, RollbackRequest, RollbackResult

router = APIRouter(tags=["rollback"])
logger = get_logger(__name__)


@router.get("/rollback-candidates", response_model=CandidatesResponse)
async def rollback_candidates_endpoint(
    entity_id: Optional[str] = Query(default=None, alias="entityId"),
    batch_id: Optional[str] = Query(default=None, alias="batchId"),
    limit: Optional[int] = Query(default=None, ge=1),
    actor: Optional[Actor] = Depends(get_current_actor),
    settings: Settings = Depends(get_settings),
    session: AsyncSession = Depends(get_session)
):
    """
    Recent changes that can be rolled back, grouped by batch.

    Each batch lists its timestamp, actor, member and field-level changes.
    """
    try:
        require_privileged(actor, settings)
    except Unauthorized as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.to_detail())

    candidate_filter = CandidateFilter(
        entity_id=entity_id,
        batch_id=batch_id,
        limit=limit or settings.candidate_default_limit
    )
    try:
        return await list_candidates(session, candidate_filter, settings)
    except LedgerError as e:
        raise HTTPException(status_code=status_for(e), detail=e.to_detail())
    except Exception:
        logger.exception("rollback_candidates_failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"kind": "storage_error", "message": "Failed to fetch rollback candidates"}
        )


@router.post("/rollback", response_model=RollbackResult)
async def rollback_endpoint(
    request: RollbackRequest,
    actor: Optional[Actor] = Depends(get_current_actor),
    settings: Settings = Depends(get_settings),
    session: AsyncSession = Depends(get_session)
):
    """
    Execute a rollback.

    rollbackType selects the granularity:
    - SINGLE_CHANGE: requires changeId
    - BATCH: requires batchId; records of deleted members are skipped
    - FULL_SNAPSHOT: requires changeId or entityId
    """
    try:
        return await rollback(session, request, actor, settings)
    except LedgerError as e:
        if status_for(e) >= 500:
            logger.error("rollback_failed", kind=e.kind, error=e.message)
        raise HTTPException(status_code=status_for(e), detail=e.to_detail())
    except Exception:
        logger.exception("rollback_failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"kind": "storage_error", "message": "Failed to execute rollback"}
        )
