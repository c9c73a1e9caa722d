"""
Change record model - append-only, field-level history of member edits.
"""

from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum
from uuid import uuid4

from app.utils.time import utc_now


class ChangeType(str, Enum):
    """Kind of mutation a change record documents."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RESTORE = "RESTORE"


class ChangeRecordBase(SQLModel):
    """Base change record schema."""
    entity_id: str = Field(..., index=True, description="Member id; not a foreign key")
    field_name: str = Field(..., description="Field name, or FULL_RESTORE for whole-entity records")
    old_value: Optional[str] = Field(default=None)
    new_value: Optional[str] = Field(default=None)
    change_type: ChangeType = Field(...)
    actor_id: str = Field(...)
    actor_name: str = Field(...)
    batch_id: str = Field(..., index=True, description="Correlation key grouping one logical operation")
    full_snapshot: Optional[str] = Field(default=None, description="JSON of the entity after this mutation")
    reason: Optional[str] = Field(default=None)


class ChangeRecord(ChangeRecordBase, table=True):
    """Change history table - rows are inserted once and never updated."""
    __tablename__ = "change_history"

    # Insertion order; breaks ties between records sharing a timestamp
    seq: Optional[int] = Field(default=None, primary_key=True)
    id: str = Field(default_factory=lambda: uuid4().hex, unique=True, index=True)
    created_at: datetime = Field(default_factory=utc_now, index=True)

