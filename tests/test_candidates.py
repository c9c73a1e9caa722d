"""Tests for rollback candidate discovery."""

from app.core.config import Settings
from app.core.database import atomic
from app.handlers import ledger
from app.handlers.candidates import build_candidates, list_candidates
from app.handlers.members import delete_member, update_member
from app.handlers.rollback import rollback
from app.models.change import ChangeType
from app.models.rollback import CandidateFilter, RollbackRequest


async def test_batches_group_one_logical_edit(session, admin, member_id) -> None:
    written = await update_member(session, member_id, {"city": "Jeddah", "occupation": "Pilot"}, admin)
    batch_id = written[0].batch_id

    response = await list_candidates(session, CandidateFilter(entity_id=member_id))

    assert len(response.changes) == 3
    head = response.batches[0]
    assert head.batch_id == batch_id
    assert head.change_count == 2
    assert head.changed_by == "Admin One"
    assert head.entity_id == member_id
    assert head.entity_label == "Khalid"
    assert {c.field_name for c in head.changes} == {"city", "occupation"}


async def test_label_prefers_arabic_full_name(session, admin, member_id) -> None:
    await update_member(session, member_id, {"full_name_ar": "خالد بن سعد"}, admin)

    response = await list_candidates(session, CandidateFilter(entity_id=member_id))

    assert response.batches[0].entity_label == "خالد بن سعد"


async def test_deleted_member_has_no_label(session, admin, member_id) -> None:
    await update_member(session, member_id, {"city": "Jeddah"}, admin)
    await delete_member(session, member_id, admin)

    response = await list_candidates(session, CandidateFilter(entity_id=member_id))

    assert all(batch.entity_label is None for batch in response.batches)


async def test_filter_by_batch(session, admin, member_id) -> None:
    written = await update_member(session, member_id, {"city": "Jeddah", "branch": "West"}, admin)
    await update_member(session, member_id, {"occupation": "Teacher"}, admin)

    response = await list_candidates(session, CandidateFilter(batch_id=written[0].batch_id))

    assert len(response.batches) == 1
    assert response.batches[0].change_count == 2


async def test_limit_is_applied(session, admin, member_id) -> None:
    await update_member(session, member_id, {"city": "Jeddah", "branch": "West", "occupation": "Pilot"}, admin)

    response = await list_candidates(session, CandidateFilter(entity_id=member_id, limit=2))

    assert len(response.changes) == 2


async def test_records_without_snapshot_are_hidden_by_default(session, admin, member_id) -> None:
    async with atomic(session):
        bare = await ledger.record(
            session, member_id, "city", "Riyadh", "Taif", ChangeType.UPDATE, admin
        )
    bare_id = bare.id

    hidden = await list_candidates(session, CandidateFilter(entity_id=member_id))
    shown = await list_candidates(
        session,
        CandidateFilter(entity_id=member_id),
        Settings(CANDIDATES_REQUIRE_SNAPSHOT=False)
    )

    assert bare_id not in {c.id for c in hidden.changes}
    assert bare_id in {c.id for c in shown.changes}


async def test_scenario_history_after_batch_rollback(session, admin, member_id) -> None:
    await update_member(session, member_id, {"city": "Jeddah"}, admin, batch_id="B1")
    await update_member(session, member_id, {"city": "Mecca"}, admin, batch_id="B1")
    result = await rollback(session, RollbackRequest(rollback_type="BATCH", batch_id="B1"), admin)

    response = await list_candidates(session, CandidateFilter(entity_id=member_id))

    by_batch = {batch.batch_id: batch for batch in response.batches}
    assert by_batch["B1"].change_count == 2
    restores = by_batch[result.rollback_batch_id]
    assert restores.change_count == 2
    assert all(c.change_type == ChangeType.RESTORE for c in restores.changes)
    # Newest batch is listed first
    assert response.batches[0].batch_id == result.rollback_batch_id


async def test_build_candidates_is_pure(session, admin, member_id) -> None:
    await update_member(session, member_id, {"city": "Jeddah", "branch": "West"}, admin)
    records = await ledger.list_by_entity(session, member_id)
    labels = {member_id: "Khalid"}

    first = build_candidates(records, labels)
    second = build_candidates(records, labels)

    assert first.model_dump() == second.model_dump()
    assert [r.id for r in records] == [c.id for c in first.changes]
