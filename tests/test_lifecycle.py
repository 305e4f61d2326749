"""Tests for the event lifecycle engine against an in-memory database and a recording transport."""
import asyncio
from datetime import datetime, timezone

import pytest

import config
from squash.errors import Conflict, DeliveryFailed, Forbidden, InvalidTransition, NotFound, Rejected, Unconfigured
from squash.models import EventStatus
from squash.services.lifecycle import UserRef
from squash.services.payments import round_half_up

from conftest import ADMIN_ID, MAIN_CHANNEL


async def sign_up(lifecycle, event, *users):
    for user in users:
        await lifecycle.join(event.id, user)


async def payments_of(lifecycle, event):
    return {p.participant_id: p for p in await lifecycle.payments.get_payments_by_event(event.id)}


async def participant_id(lifecycle, user):
    return (await lifecycle.participants.find_by_discord_id(user.discord_id)).id


# --- creation ---


@pytest.mark.asyncio
async def test_create_event_logs_and_starts_created(lifecycle, transport, created_event):
    assert created_event.status == EventStatus.CREATED
    assert created_event.id.startswith("ev_")
    assert created_event.owner_id == ADMIN_ID
    assert transport.log_kinds() == ["event_created"]
    assert transport.sent == []


@pytest.mark.asyncio
async def test_create_event_rejects_zero_courts(lifecycle, future_start):
    with pytest.raises(Rejected):
        await lifecycle.create_event(future_start, courts=0)


@pytest.mark.asyncio
async def test_create_event_on_local_date(lifecycle):
    event = await lifecycle.create_event_on("2030-01-19", "21:00", 3, owner_id=7)
    assert event.starts_at == datetime(2030, 1, 19, 20, 0, tzinfo=timezone.utc)
    assert event.courts == 3
    assert event.owner_id == 7


@pytest.mark.asyncio
async def test_create_event_on_rejects_bad_input(lifecycle):
    with pytest.raises(Rejected):
        await lifecycle.create_event_on("someday", "21:00", 2, owner_id=7)
    with pytest.raises(Rejected):
        await lifecycle.create_event_on("2030-01-19", "9pm", 2, owner_id=7)


# --- announce ---


@pytest.mark.asyncio
async def test_announce_sends_pins_and_stores_message(lifecycle, transport, created_event):
    event = await lifecycle.announce(created_event.id)
    assert event.status == EventStatus.ANNOUNCED
    channel, rendered = transport.sent[0]
    assert channel == MAIN_CHANNEL
    assert "Participants:\n(nobody yet)" in rendered.text
    assert rendered.buttons
    assert transport.pinned == [(MAIN_CHANNEL, event.message_id)]
    assert "event_announced" in transport.log_kinds()
    stored = await lifecycle.events.find_by_id(event.id)
    assert stored.message_id == event.message_id


@pytest.mark.asyncio
async def test_announce_twice_is_invalid(lifecycle, announced_event):
    with pytest.raises(InvalidTransition):
        await lifecycle.announce(announced_event.id)


@pytest.mark.asyncio
async def test_announce_without_main_channel(lifecycle, created_event, monkeypatch):
    monkeypatch.setattr(config, "MAIN_CHANNEL_ID", None)
    with pytest.raises(Unconfigured):
        await lifecycle.announce(created_event.id)
    assert (await lifecycle.events.find_by_id(created_event.id)).status == EventStatus.CREATED


@pytest.mark.asyncio
async def test_announce_delivery_failure_leaves_event_created(lifecycle, transport, created_event):
    transport.fail_send = True
    with pytest.raises(DeliveryFailed):
        await lifecycle.announce(created_event.id)
    stored = await lifecycle.events.find_by_id(created_event.id)
    assert stored.status == EventStatus.CREATED
    assert stored.message_id is None


@pytest.mark.asyncio
async def test_announce_survives_pin_failure(lifecycle, transport, created_event):
    transport.fail_pin = True
    event = await lifecycle.announce(created_event.id)
    assert event.status == EventStatus.ANNOUNCED


@pytest.mark.asyncio
async def test_unknown_event_is_not_found(lifecycle, alice):
    for op in (
        lambda: lifecycle.announce("ev_missing"),
        lambda: lifecycle.join("ev_missing", alice),
        lambda: lifecycle.add_court("ev_missing"),
        lambda: lifecycle.finalize("ev_missing"),
        lambda: lifecycle.cancel("ev_missing"),
    ):
        with pytest.raises(NotFound):
            await op()


# --- membership ---


@pytest.mark.asyncio
async def test_join_twice_counts_two_participations(lifecycle, transport, announced_event, alice):
    await sign_up(lifecycle, announced_event, alice, alice)
    memberships = await lifecycle.memberships.get_event_participants(announced_event.id)
    assert [(m.participant.username, m.participations) for m in memberships] == [("alice", 2)]
    _, _, rendered = transport.edited[-1]
    assert "@alice (×2)" in rendered.text


@pytest.mark.asyncio
async def test_leave_decrements_then_removes(lifecycle, announced_event, alice):
    await sign_up(lifecycle, announced_event, alice, alice)
    await lifecycle.leave(announced_event.id, alice)
    memberships = await lifecycle.memberships.get_event_participants(announced_event.id)
    assert memberships[0].participations == 1
    await lifecycle.leave(announced_event.id, alice)
    assert await lifecycle.memberships.get_event_participants(announced_event.id) == []


@pytest.mark.asyncio
async def test_leave_without_joining_is_rejected(lifecycle, announced_event, bob):
    with pytest.raises(Rejected):
        await lifecycle.leave(announced_event.id, bob)


@pytest.mark.asyncio
async def test_display_name_is_not_overwritten(lifecycle, announced_event, alice):
    await lifecycle.join(announced_event.id, alice)
    await lifecycle.join(announced_event.id, UserRef(discord_id=1, username="alice", display_name="Alicia"))
    participant = await lifecycle.participants.find_by_discord_id(1)
    assert participant.display_name == "Alice"


@pytest.mark.asyncio
async def test_double_click_join_by_new_user(lifecycle, announced_event, alice):
    results = await asyncio.gather(
        lifecycle.join(announced_event.id, alice),
        lifecycle.join(announced_event.id, alice),
        return_exceptions=True,
    )
    assert [type(r).__name__ for r in results] == ["Event", "Event"]
    memberships = await lifecycle.memberships.get_event_participants(announced_event.id)
    assert [(m.participant.username, m.participations) for m in memberships] == [("alice", 2)]


@pytest.mark.asyncio
async def test_join_allowed_before_announce(lifecycle, transport, created_event, alice):
    await lifecycle.join(created_event.id, alice)
    assert len(await lifecycle.memberships.get_event_participants(created_event.id)) == 1
    # Nothing to re-render yet
    assert transport.edited == []


@pytest.mark.asyncio
async def test_join_cancelled_event_is_invalid(lifecycle, announced_event, alice):
    await lifecycle.cancel(announced_event.id)
    with pytest.raises(InvalidTransition):
        await lifecycle.join(announced_event.id, alice)


# --- courts ---


@pytest.mark.asyncio
async def test_court_changes(lifecycle, transport, announced_event):
    event = await lifecycle.add_court(announced_event.id)
    assert event.courts == 3
    event = await lifecycle.remove_court(announced_event.id)
    event = await lifecycle.remove_court(announced_event.id)
    assert event.courts == 1
    with pytest.raises(Rejected):
        await lifecycle.remove_court(announced_event.id)
    assert (await lifecycle.events.find_by_id(announced_event.id)).courts == 1
    assert transport.log_kinds().count("court_removed") == 2


# --- finalize ---


@pytest.mark.asyncio
async def test_finalize_without_participants_is_rejected(lifecycle, announced_event):
    with pytest.raises(Rejected):
        await lifecycle.finalize(announced_event.id)
    assert not lifecycle.lock.is_held(announced_event.id)
    assert await lifecycle.payments.get_payments_by_event(announced_event.id) == []


@pytest.mark.asyncio
async def test_finalize_created_event_is_invalid(lifecycle, created_event, alice):
    await lifecycle.join(created_event.id, alice)
    with pytest.raises(InvalidTransition):
        await lifecycle.finalize(created_event.id)


@pytest.mark.asyncio
async def test_finalize_allocates_and_notifies(lifecycle, transport, announced_event, alice, bob, carol):
    await sign_up(lifecycle, announced_event, alice, alice, bob, carol)
    event = await lifecycle.finalize(announced_event.id)

    assert event.status == EventStatus.FINALIZED
    payments = await payments_of(lifecycle, event)
    assert payments[await participant_id(lifecycle, alice)].amount == 2000
    assert payments[await participant_id(lifecycle, bob)].amount == 1000
    assert payments[await participant_id(lifecycle, carol)].amount == 1000
    assert all(p.personal_message_id for p in payments.values())
    assert all(not p.is_paid for p in payments.values())

    dm_users = sorted(user_id for user_id, _ in transport.directs)
    assert dm_users == [1, 2, 3]
    alice_dm = next(r for user_id, r in transport.directs if user_id == 1)
    assert "Your amount: 2000 din" in alice_dm.text
    assert "Participants: 4" in alice_dm.text

    _, _, rendered = transport.edited[-1]
    assert rendered.text.endswith("✅ Finalized")
    assert rendered.buttons == []
    assert "event_finalized" in transport.log_kinds()
    assert not lifecycle.lock.is_held(event.id)


@pytest.mark.asyncio
async def test_finalize_reports_unreachable_participants(lifecycle, transport, announced_event, alice, bob):
    transport.unreachable_users = {2}
    await sign_up(lifecycle, announced_event, alice, bob)
    await lifecycle.finalize(announced_event.id)

    notices = [r.text for channel, r in transport.sent[1:] if channel == MAIN_CHANNEL]
    assert len(notices) == 1
    assert "@bob" in notices[0]
    assert "@alice" not in notices[0]
    payments = await payments_of(lifecycle, announced_event)
    assert payments[await participant_id(lifecycle, bob)].personal_message_id is None


@pytest.mark.asyncio
async def test_finalize_lock_conflict_writes_nothing(lifecycle, announced_event, alice):
    await lifecycle.join(announced_event.id, alice)
    assert lifecycle.lock.acquire(announced_event.id)
    with pytest.raises(Conflict):
        await lifecycle.finalize(announced_event.id)
    assert await lifecycle.payments.get_payments_by_event(announced_event.id) == []
    assert (await lifecycle.events.find_by_id(announced_event.id)).status == EventStatus.ANNOUNCED


@pytest.mark.asyncio
async def test_finalize_during_finalize_conflicts(lifecycle, announced_event, alice, bob, monkeypatch):
    await sign_up(lifecycle, announced_event, alice, bob)
    create_payment = lifecycle.payments.create_payment
    inner_errors = []

    async def create_payment_and_race(*args, **kwargs):
        # A second finalize arriving while the first one is writing payments
        if not inner_errors:
            try:
                await lifecycle.finalize(announced_event.id)
            except Conflict as e:
                inner_errors.append(e)
        return await create_payment(*args, **kwargs)

    monkeypatch.setattr(lifecycle.payments, "create_payment", create_payment_and_race)
    await lifecycle.finalize(announced_event.id)

    assert len(inner_errors) == 1
    assert len(await lifecycle.payments.get_payments_by_event(announced_event.id)) == 2


@pytest.mark.asyncio
async def test_join_after_finalize_is_invalid(lifecycle, announced_event, alice, bob):
    await lifecycle.join(announced_event.id, alice)
    await lifecycle.finalize(announced_event.id)
    with pytest.raises(InvalidTransition):
        await lifecycle.join(announced_event.id, bob)


# --- un-finalize ---


@pytest.mark.asyncio
async def test_unfinalize_round_trip(lifecycle, transport, announced_event, alice, bob):
    await sign_up(lifecycle, announced_event, alice, bob)
    await lifecycle.finalize(announced_event.id)
    event = await lifecycle.unfinalize(announced_event.id, ADMIN_ID)

    assert event.status == EventStatus.ANNOUNCED
    assert await lifecycle.payments.get_payments_by_event(event.id) == []
    assert sorted(user_id for user_id, _ in transport.deleted_directs) == [1, 2]
    _, _, rendered = transport.edited[-1]
    assert rendered.buttons
    assert "event_unfinalized" in transport.log_kinds()

    # Sign-ups are open again
    await lifecycle.join(event.id, UserRef(discord_id=9, username="dave"))


@pytest.mark.asyncio
async def test_unfinalize_requires_owner_or_admin(lifecycle, announced_event, alice, bob):
    await lifecycle.join(announced_event.id, alice)
    await lifecycle.finalize(announced_event.id)
    with pytest.raises(Forbidden):
        await lifecycle.unfinalize(announced_event.id, bob.discord_id)
    assert len(await lifecycle.payments.get_payments_by_event(announced_event.id)) == 1


@pytest.mark.asyncio
async def test_owner_may_unfinalize(lifecycle, future_start, alice):
    event = await lifecycle.create_event(future_start, courts=1, owner_id=alice.discord_id)
    await lifecycle.announce(event.id)
    await lifecycle.join(event.id, alice)
    await lifecycle.finalize(event.id)
    event = await lifecycle.unfinalize(event.id, alice.discord_id)
    assert event.status == EventStatus.ANNOUNCED


@pytest.mark.asyncio
async def test_unfinalize_announced_is_invalid(lifecycle, announced_event):
    with pytest.raises(InvalidTransition):
        await lifecycle.unfinalize(announced_event.id, ADMIN_ID)


# --- cancel / restore ---


@pytest.mark.asyncio
async def test_cancel_and_restore(lifecycle, transport, announced_event):
    event = await lifecycle.cancel(announced_event.id)
    assert event.status == EventStatus.CANCELLED
    assert transport.unpinned == [(MAIN_CHANNEL, event.message_id)]
    _, _, rendered = transport.edited[-1]
    assert [b.custom_id for row in rendered.buttons for b in row] == ["event:restore"]

    event = await lifecycle.restore(event.id)
    assert event.status == EventStatus.ANNOUNCED
    assert transport.pinned[-1] == (MAIN_CHANNEL, event.message_id)
    assert transport.log_kinds()[-2:] == ["event_cancelled", "event_restored"]


@pytest.mark.asyncio
async def test_cancel_created_event_without_message(lifecycle, transport, created_event):
    event = await lifecycle.cancel(created_event.id)
    assert event.status == EventStatus.CANCELLED
    assert transport.unpinned == []


@pytest.mark.asyncio
async def test_restore_requires_cancelled(lifecycle, announced_event):
    with pytest.raises(InvalidTransition):
        await lifecycle.restore(announced_event.id)


@pytest.mark.asyncio
async def test_refinalize_after_cancel_restore_replaces_payments(lifecycle, announced_event, alice, bob):
    await sign_up(lifecycle, announced_event, alice, bob)
    await lifecycle.finalize(announced_event.id)
    await lifecycle.cancel(announced_event.id)
    await lifecycle.restore(announced_event.id)
    await lifecycle.finalize(announced_event.id)
    assert len(await lifecycle.payments.get_payments_by_event(announced_event.id)) == 2


# --- payments ---


@pytest.fixture
async def finalized_event(lifecycle, announced_event, alice, bob):
    await sign_up(lifecycle, announced_event, alice, alice, bob)
    return await lifecycle.finalize(announced_event.id)


@pytest.mark.asyncio
async def test_mark_paid_and_undo(lifecycle, transport, finalized_event, alice):
    payment = await lifecycle.mark_paid(finalized_event.id, alice)
    assert payment.is_paid
    assert payment.paid_at is not None
    user_id, message_id, rendered = transport.edited_directs[-1]
    assert user_id == alice.discord_id
    assert message_id == payment.personal_message_id
    assert "✓ Paid on" in rendered.text
    assert [b.custom_id for row in rendered.buttons for b in row] == [f"payment:undo-mark-paid:{finalized_event.id}"]
    _, _, announcement = transport.edited[-1]
    assert "@alice (×2) ✓" in announcement.text
    assert transport.logged[-1].kind == "payment_received"
    # 2 courts x 2000 over three participations, alice holds two
    assert transport.logged[-1].data["amount"] == round_half_up(4000 * 2, 3) == 2667

    payment = await lifecycle.mark_unpaid(finalized_event.id, alice)
    assert not payment.is_paid
    assert payment.paid_at is None
    assert transport.logged[-1].kind == "payment_cancelled"


@pytest.mark.asyncio
async def test_mark_paid_twice_is_a_no_op(lifecycle, transport, finalized_event, alice):
    await lifecycle.mark_paid(finalized_event.id, alice)
    logged = len(transport.logged)
    payment = await lifecycle.mark_paid(finalized_event.id, alice)
    assert payment.is_paid
    assert len(transport.logged) == logged


@pytest.mark.asyncio
async def test_mark_paid_requires_finalized(lifecycle, announced_event, alice):
    await lifecycle.join(announced_event.id, alice)
    with pytest.raises(InvalidTransition):
        await lifecycle.mark_paid(announced_event.id, alice)


@pytest.mark.asyncio
async def test_mark_paid_for_non_participant(lifecycle, finalized_event):
    with pytest.raises(NotFound):
        await lifecycle.mark_paid(finalized_event.id, UserRef(discord_id=77, username="stranger"))


@pytest.mark.asyncio
async def test_mark_paid_lock_conflict(lifecycle, finalized_event, alice):
    lifecycle.lock.acquire(finalized_event.id)
    with pytest.raises(Conflict):
        await lifecycle.mark_paid(finalized_event.id, alice)
    lifecycle.lock.release(finalized_event.id)
    payments = await payments_of(lifecycle, finalized_event)
    assert not any(p.is_paid for p in payments.values())


@pytest.mark.asyncio
async def test_admin_marks_by_username(lifecycle, finalized_event, bob):
    payment = await lifecycle.mark_paid_by_username(finalized_event.id, "@bob", ADMIN_ID)
    assert payment.is_paid
    payment = await lifecycle.mark_unpaid_by_username(finalized_event.id, "bob", ADMIN_ID)
    assert not payment.is_paid
    with pytest.raises(Forbidden):
        await lifecycle.mark_paid_by_username(finalized_event.id, "bob", bob.discord_id)
    with pytest.raises(NotFound):
        await lifecycle.mark_paid_by_username(finalized_event.id, "nobody", ADMIN_ID)


# --- ownership, deletion, queries ---


@pytest.mark.asyncio
async def test_transfer(lifecycle, announced_event, bob):
    await lifecycle.join(announced_event.id, bob)
    event = await lifecycle.transfer(announced_event.id, ADMIN_ID, "@bob")
    assert event.owner_id == bob.discord_id
    with pytest.raises(NotFound):
        await lifecycle.transfer(announced_event.id, bob.discord_id, "ghost")
    with pytest.raises(Forbidden):
        await lifecycle.transfer(announced_event.id, 555, "bob")


@pytest.mark.asyncio
async def test_delete_and_undelete(lifecycle, announced_event, bob):
    with pytest.raises(Forbidden):
        await lifecycle.delete(announced_event.id, bob.discord_id)
    await lifecycle.delete(announced_event.id, ADMIN_ID)
    assert await lifecycle.events.find_by_id(announced_event.id) is None
    assert await lifecycle.list_events() == []
    with pytest.raises(NotFound):
        await lifecycle.join(announced_event.id, bob)

    event = await lifecycle.undelete(announced_event.id, ADMIN_ID)
    assert event.deleted_at is None
    assert [e.id for e in await lifecycle.list_events()] == [announced_event.id]


@pytest.mark.asyncio
async def test_list_events_hides_cancelled(lifecycle, future_start):
    keep = await lifecycle.create_event(future_start, courts=1)
    drop = await lifecycle.create_event(future_start, courts=1)
    await lifecycle.cancel(drop.id)
    assert [e.id for e in await lifecycle.list_events()] == [keep.id]


@pytest.mark.asyncio
async def test_get_event_by_message(lifecycle, announced_event):
    found = await lifecycle.get_event_by_message(announced_event.message_id)
    assert found.id == announced_event.id
    with pytest.raises(NotFound):
        await lifecycle.get_event_by_message(123456)


# --- spawn from scaffold ---


@pytest.mark.asyncio
async def test_spawn_from_scaffold(lifecycle, transport):
    scaffold = await lifecycle.scaffolds.create_scaffold("Sat", "21:00", 2)
    now = datetime(2030, 1, 14, 9, 0, tzinfo=timezone.utc)
    event = await lifecycle.spawn_from_scaffold(scaffold.id, now=now)
    assert event.status == EventStatus.CREATED
    assert event.scaffold_id == scaffold.id
    assert event.starts_at == datetime(2030, 1, 19, 20, 0, tzinfo=timezone.utc)
    assert event.owner_id == ADMIN_ID
    assert transport.sent == []

    with pytest.raises(Conflict):
        await lifecycle.spawn_from_scaffold(scaffold.id, now=now)


@pytest.mark.asyncio
async def test_spawn_uses_scaffold_owner(lifecycle):
    scaffold = await lifecycle.scaffolds.create_scaffold("Sat", "21:00", 2, owner_id=42)
    event = await lifecycle.spawn_from_scaffold(scaffold.id)
    assert event.owner_id == 42


@pytest.mark.asyncio
async def test_spawn_without_any_owner(lifecycle, monkeypatch):
    monkeypatch.setattr(config, "ADMIN_USER_ID", None)
    scaffold = await lifecycle.scaffolds.create_scaffold("Sat", "21:00", 2)
    with pytest.raises(Unconfigured):
        await lifecycle.spawn_from_scaffold(scaffold.id)


@pytest.mark.asyncio
async def test_spawn_unknown_scaffold(lifecycle):
    with pytest.raises(NotFound):
        await lifecycle.spawn_from_scaffold("sc_missing")
