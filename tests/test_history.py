"""Tests for browsing the change history."""

from app.handlers.history import get_history
from app.handlers.members import create_member, delete_member, update_member
from app.models.change import ChangeType
from app.models.member import FamilyMemberCreate


async def test_whole_ledger_newest_first(session, admin, member_id) -> None:
    await update_member(session, member_id, {"city": "Jeddah"}, admin)
    await update_member(session, member_id, {"city": "Mecca"}, admin)

    page = await get_history(session)

    assert page.total == 3
    assert [c.new_value for c in page.changes[:2]] == ["Mecca", "Jeddah"]
    assert page.changes[-1].change_type == ChangeType.CREATE
    assert all(c.member_name == "Khalid" for c in page.changes)


async def test_filter_by_member_and_type(session, admin, member_id) -> None:
    other = await create_member(session, FamilyMemberCreate(
        first_name="Nasser", family_name="Al-Shaye", gender="Male"
    ), admin)
    await update_member(session, other.id, {"city": "Taif"}, admin)
    await update_member(session, member_id, {"city": "Jeddah", "branch": "West"}, admin)

    by_member = await get_history(session, entity_id=member_id)
    updates = await get_history(session, change_type=ChangeType.UPDATE)
    member_updates = await get_history(session, entity_id=member_id, change_type=ChangeType.UPDATE)

    assert by_member.total == 3
    assert updates.total == 3
    assert member_updates.total == 2
    assert {c.field_name for c in member_updates.changes} == {"city", "branch"}


async def test_offset_pages_and_total_ignores_paging(session, admin, member_id) -> None:
    for city in ("Jeddah", "Mecca", "Taif", "Abha"):
        await update_member(session, member_id, {"city": city}, admin)

    first = await get_history(session, limit=2)
    second = await get_history(session, limit=2, offset=2)
    tail = await get_history(session, limit=2, offset=4)

    assert first.total == second.total == tail.total == 5
    assert [c.new_value for c in first.changes] == ["Abha", "Taif"]
    assert [c.new_value for c in second.changes] == ["Mecca", "Jeddah"]
    assert [c.change_type for c in tail.changes] == [ChangeType.CREATE]


async def test_offset_past_the_end(session, member_id) -> None:
    page = await get_history(session, offset=10)

    assert page.changes == []
    assert page.total == 1


async def test_deleted_member_has_no_name(session, admin, member_id) -> None:
    await delete_member(session, member_id, admin)

    page = await get_history(session, entity_id=member_id)

    assert page.total == 2
    assert all(c.member_name is None for c in page.changes)
