"""
Family member model - the tracked entity whose edits feed the change ledger.
"""

from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from uuid import uuid4

from app.utils.time import utc_now


class FamilyMemberBase(SQLModel):
    """Base family member schema. Every field here is restorable."""
    first_name: str = Field(..., max_length=100)
    father_name: Optional[str] = Field(default=None, max_length=100)
    grandfather_name: Optional[str] = Field(default=None, max_length=100)
    great_grandfather_name: Optional[str] = Field(default=None, max_length=100)
    family_name: str = Field(..., max_length=100)
    father_id: Optional[str] = Field(default=None, index=True, description="Lineage pointer to the father's member id")
    gender: str = Field(..., description="Male or Female")
    birth_year: Optional[int] = Field(default=None)
    death_year: Optional[int] = Field(default=None)
    generation: int = Field(default=1, ge=1)
    branch: Optional[str] = Field(default=None)
    full_name_ar: Optional[str] = Field(default=None)
    full_name_en: Optional[str] = Field(default=None)
    phone: Optional[str] = Field(default=None)
    city: Optional[str] = Field(default=None)
    status: str = Field(default="Living", description="Living or Deceased")
    photo_url: Optional[str] = Field(default=None)
    biography: Optional[str] = Field(default=None)
    occupation: Optional[str] = Field(default=None)
    email: Optional[str] = Field(default=None)


class FamilyMember(FamilyMemberBase, table=True):
    """Family member database table."""
    __tablename__ = "family_members"

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def label(self) -> str:
        """Display name used when listing rollback candidates."""
        return self.full_name_ar or self.first_name


class FamilyMemberCreate(FamilyMemberBase):
    """Schema for creating a family member."""
    id: Optional[str] = None


class FamilyMemberUpdate(SQLModel):
    """Partial update; only fields present in the request are applied."""
    first_name: Optional[str] = None
    father_name: Optional[str] = None
    grandfather_name: Optional[str] = None
    great_grandfather_name: Optional[str] = None
    family_name: Optional[str] = None
    father_id: Optional[str] = None
    gender: Optional[str] = None
    birth_year: Optional[int] = None
    death_year: Optional[int] = None
    generation: Optional[int] = None
    branch: Optional[str] = None
    full_name_ar: Optional[str] = None
    full_name_en: Optional[str] = None
    phone: Optional[str] = None
    city: Optional[str] = None
    status: Optional[str] = None
    photo_url: Optional[str] = None
    biography: Optional[str] = None
    occupation: Optional[str] = None
    email: Optional[str] = None
    reason: Optional[str] = Field(default=None, description="Annotation stored on each ledger record")


class FamilyMemberRead(FamilyMemberBase):
    """Schema for reading a family member."""
    id: str
    created_at: datetime
    updated_at: datetime
