"""
Ledger constants: field schema table and sentinels.
"""

# Field name used by records that describe the whole entity rather than one field
FULL_RESTORE = "FULL_RESTORE"

# Restorable fields and the type their ledger strings decode to.
# Order matters: snapshots and restores walk fields in this order.
FIELD_TYPES = {
    "first_name": str,
    "father_name": str,
    "grandfather_name": str,
    "great_grandfather_name": str,
    "family_name": str,
    "father_id": str,
    "gender": str,
    "birth_year": int,
    "death_year": int,
    "generation": int,
    "branch": str,
    "full_name_ar": str,
    "full_name_en": str,
    "phone": str,
    "city": str,
    "status": str,
    "photo_url": str,
    "biography": str,
    "occupation": str,
    "email": str,
}

RESTORABLE_FIELDS = tuple(FIELD_TYPES)

# Columns that may never be null on the entity
REQUIRED_FIELDS = frozenset({"first_name", "family_name", "gender", "generation", "status"})

GENDERS = ("Male", "Female")
STATUSES = ("Living", "Deceased")
