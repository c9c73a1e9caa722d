# SQLModel database models

from app.models.member import FamilyMember
from app.models.change import ChangeRecord, ChangeType

__all__ = [
    "FamilyMember",
    "ChangeRecord",
    "ChangeType",
]
