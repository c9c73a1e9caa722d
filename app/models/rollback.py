"""
Rollback request/response schemas and the candidate listing shapes.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime
from enum import Enum

from app.models.change import ChangeType


class RollbackType(str, Enum):
    """Granularity of a rollback."""
    SINGLE_CHANGE = "SINGLE_CHANGE"
    BATCH = "BATCH"
    FULL_SNAPSHOT = "FULL_SNAPSHOT"


class CamelModel(BaseModel):
    """Base for API shapes exchanged in camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RollbackRequest(CamelModel):
    """
    Body of POST /rollback.

    rollback_type is kept as a plain string so an unknown value is reported
    as a validation error by the coordinator instead of a schema error.
    """
    rollback_type: Optional[str] = None
    change_id: Optional[str] = None
    batch_id: Optional[str] = None
    entity_id: Optional[str] = None


class RollbackResult(CamelModel):
    """Outcome of one rollback invocation."""
    rollback_batch_id: str
    rolled_back_count: int
    skipped_count: int = 0
    message: str = ""


class ChangeView(CamelModel):
    """A change record as exposed over HTTP."""
    id: str
    entity_id: str
    field_name: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    change_type: ChangeType
    actor_id: str
    actor_name: str
    batch_id: str
    full_snapshot: Optional[str] = None
    reason: Optional[str] = None
    created_at: datetime


class BatchChange(CamelModel):
    """One field-level change inside a candidate batch."""
    id: str
    field_name: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    change_type: ChangeType


class CandidateBatch(CamelModel):
    """One logical edit presented as a single rollback unit."""
    batch_id: str
    changed_at: datetime
    changed_by: str
    entity_id: str
    entity_label: Optional[str] = None
    change_count: int
    changes: List[BatchChange] = Field(default_factory=list)


class CandidateFilter(CamelModel):
    """Filter applied to candidate discovery."""
    entity_id: Optional[str] = None
    batch_id: Optional[str] = None
    limit: int = 50


class CandidatesResponse(CamelModel):
    """Body of GET /rollback-candidates."""
    changes: List[ChangeView] = Field(default_factory=list)
    batches: List[CandidateBatch] = Field(default_factory=list)


class HistoryEntry(ChangeView):
    """A change record with the current label of its member, if it still exists."""
    member_name: Optional[str] = None


class HistoryPage(CamelModel):
    """Body of GET /history."""
    changes: List[HistoryEntry] = Field(default_factory=list)
    total: int = 0
