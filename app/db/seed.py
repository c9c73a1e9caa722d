"""
Optional development seeding script.
"""

import asyncio

from app.core.auth import Actor
from app.core.database import AsyncSessionLocal, init_db
from app.handlers.members import create_member, update_member
from app.models.member import FamilyMemberCreate

SEED_ACTOR = Actor(id="seed", name="Seeder", role="SUPER_ADMIN")


async def seed_data():
    """Seed a small family through the tracked write path."""
    await init_db()

    async with AsyncSessionLocal() as session:
        root = await create_member(session, FamilyMemberCreate(
            first_name="Abdullah",
            family_name="Al-Shaye",
            gender="Male",
            generation=1,
            city="Riyadh",
            status="Deceased",
            birth_year=1920,
            death_year=1990
        ), SEED_ACTOR)
        print(f"Created member: {root.id}")

        son = await create_member(session, FamilyMemberCreate(
            first_name="Mohammed",
            father_name="Abdullah",
            family_name="Al-Shaye",
            father_id=root.id,
            gender="Male",
            generation=2,
            city="Riyadh",
            birth_year=1955
        ), SEED_ACTOR)
        print(f"Created member: {son.id}")

        changes = await update_member(
            session,
            son.id,
            {"city": "Jeddah", "occupation": "Engineer"},
            SEED_ACTOR,
            reason="Seed edit"
        )
        print(f"Recorded {len(changes)} change(s) in batch {changes[0].batch_id}")

        print("Seed data created successfully!")


if __name__ == "__main__":
    asyncio.run(seed_data())
