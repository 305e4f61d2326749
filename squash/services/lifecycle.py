"""
Event lifecycle engine.

Every status change goes through `state_machine.next_status`. Finalize,
un-finalize and payment toggles additionally hold the per-event lock; a second
caller gets Conflict instead of waiting. Side effects on Discord are best
effort unless the operation cannot make sense without them (announce).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from squash.errors import Conflict, DeliveryFailed, InvalidScaffold, NotFound, Rejected, Unconfigured
from squash.models import Event, EventStatus, Participant, Payment
from squash.repos.event import EventRepo
from squash.repos.participant import MembershipRepo, ParticipantRepo
from squash.repos.payment import PaymentRepo
from squash.repos.scaffold import ScaffoldRepo
from squash.repos.settings import SettingsRepo
from squash.services import access, schedule
from squash.services.event_lock import EventLock
from squash.services.formatters import (
    LogEvent,
    Rendered,
    format_announcement,
    format_fallback_notice,
    format_personal_payment,
    payment_rendered,
    short_date,
)
from squash.services.payments import allocate_payments
from squash.services.state_machine import Action, next_status
from squash.services.transport import Transport

logger = logging.getLogger("squash.lifecycle")


@dataclass
class UserRef:
    """The Discord user behind a command or button press."""

    discord_id: int
    username: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        return f"@{self.username}" if self.username else (self.display_name or str(self.discord_id))


class EventLifecycle:
    def __init__(
        self,
        events: EventRepo,
        scaffolds: ScaffoldRepo,
        participants: ParticipantRepo,
        memberships: MembershipRepo,
        payments: PaymentRepo,
        settings: SettingsRepo,
        transport: Transport,
        lock: EventLock,
    ):
        self.events = events
        self.scaffolds = scaffolds
        self.participants = participants
        self.memberships = memberships
        self.payments = payments
        self.settings = settings
        self.transport = transport
        self.lock = lock

    # --- helpers ---

    async def _get(self, event_id: str) -> Event:
        event = await self.events.find_by_id(event_id)
        if not event:
            raise NotFound("event", event_id)
        return event

    def _acquire(self, event_id: str) -> None:
        if not self.lock.acquire(event_id):
            raise Conflict(f"An operation on event {event_id} is already in progress, try again")

    async def _date(self, event: Event) -> str:
        return short_date(event.starts_at, await self.settings.get_timezone())

    async def _paid_ids(self, event: Event) -> set[str]:
        if EventStatus(event.status) != EventStatus.FINALIZED:
            return set()
        return {p.participant_id for p in await self.payments.get_payments_by_event(event.id) if p.is_paid}

    async def render(self, event: Event, status: Optional[EventStatus] = None) -> Rendered:
        memberships = await self.memberships.get_event_participants(event.id)
        tz = await self.settings.get_timezone()
        return format_announcement(event, memberships, tz, await self._paid_ids(event), status=status)

    async def _refresh(self, event: Event) -> None:
        """Re-render the announcement in place (best effort)."""
        if not event.message_id:
            return
        channel_id = await self.settings.get_main_channel_id()
        if not channel_id:
            return
        result = await self.transport.edit_message(channel_id, event.message_id, await self.render(event))
        if not result.ok:
            logger.warning("Could not refresh announcement for %s: %s", event.id, result.error)

    def _log(self, kind: str, **data) -> None:
        self.transport.log_event(LogEvent(kind, data))

    # --- creation ---

    async def create_event(
        self,
        starts_at: datetime,
        courts: int,
        owner_id: Optional[int] = None,
        scaffold_id: Optional[str] = None,
    ) -> Event:
        if courts < 1:
            raise Rejected("Courts must be a positive number")
        event = await self.events.create_event(
            starts_at=starts_at, courts=courts, scaffold_id=scaffold_id, owner_id=owner_id
        )
        logger.info("Created event %s at %s (%d courts)", event.id, event.starts_at.isoformat(), courts)
        self._log("event_created", event_id=event.id, date=await self._date(event), courts=courts)
        return event

    async def create_event_on(self, day: str, time: str, courts: int, owner_id: int) -> Event:
        """Manual creation: `day` is today / tomorrow / sat / next sat / YYYY-MM-DD, `time` HH:MM."""
        tz = await self.settings.get_timezone()
        try:
            on = schedule.parse_date(day, tz)
            starts_at = schedule.local_datetime(on, time, tz)
        except InvalidScaffold as e:
            raise Rejected(str(e)) from e
        return await self.create_event(starts_at, courts, owner_id=owner_id)

    async def spawn_from_scaffold(self, scaffold_id: str, now: Optional[datetime] = None) -> Event:
        """Create (not announce) the next occurrence of a scaffold."""
        scaffold = await self.scaffolds.find_by_id(scaffold_id)
        if not scaffold:
            raise NotFound("scaffold", scaffold_id)
        tz = await self.settings.get_timezone()
        occurrence = schedule.calculate_next_occurrence(scaffold, now, tz)
        existing = await self.events.get_events_by_scaffold(scaffold.id, include_deleted=True)
        if schedule.event_exists(existing, scaffold.id, occurrence):
            raise Conflict(f"Event already exists for scaffold {scaffold.id}")
        owner_id = await access.resolve_owner(self.settings, scaffold)
        return await self.create_event(occurrence, scaffold.default_courts, owner_id=owner_id, scaffold_id=scaffold.id)

    # --- announcement ---

    async def announce(self, event_id: str) -> Event:
        event = await self._get(event_id)
        new_status = next_status(event, Action.ANNOUNCE)
        channel_id = await self.settings.get_main_channel_id()
        if not channel_id:
            raise Unconfigured("Main channel is not configured")

        result = await self.transport.send_message(channel_id, await self.render(event, status=new_status))
        if not result.ok:
            raise DeliveryFailed(f"Failed to send announcement: {result.error}")

        pinned = await self.transport.pin_message(channel_id, result.message_id)
        if not pinned.ok:
            logger.warning("Could not pin announcement for %s: %s", event.id, pinned.error)

        event = await self.events.update_event(event.id, message_id=result.message_id, status=new_status)
        logger.info("Announced event %s (message %s)", event.id, result.message_id)
        self._log("event_announced", event_id=event.id, date=await self._date(event))
        return event

    # --- sign-ups and courts ---

    async def join(self, event_id: str, user: UserRef) -> Event:
        event = await self._get(event_id)
        next_status(event, Action.JOIN)
        participant = await self.participants.find_or_create_participant(
            user.discord_id, user.username, user.display_name
        )
        await self.memberships.add_to_event(event.id, participant.id)
        await self._refresh(event)
        self._log("participant_joined", event_id=event.id, user_name=participant.label)
        return event

    async def leave(self, event_id: str, user: UserRef) -> Event:
        event = await self._get(event_id)
        next_status(event, Action.LEAVE)
        participant = await self.participants.find_by_discord_id(user.discord_id)
        if not participant or not await self.memberships.remove_from_event(event.id, participant.id):
            raise Rejected("You are not signed up for this event")
        await self._refresh(event)
        self._log("participant_left", event_id=event.id, user_name=participant.label)
        return event

    async def add_court(self, event_id: str) -> Event:
        event = await self._get(event_id)
        next_status(event, Action.ADD_COURT)
        event = await self.events.update_event(event.id, courts=event.courts + 1)
        await self._refresh(event)
        self._log("court_added", event_id=event.id, courts=event.courts)
        return event

    async def remove_court(self, event_id: str) -> Event:
        event = await self._get(event_id)
        next_status(event, Action.REMOVE_COURT)
        if event.courts <= 1:
            raise Rejected("Cannot remove the last court")
        event = await self.events.update_event(event.id, courts=event.courts - 1)
        await self._refresh(event)
        self._log("court_removed", event_id=event.id, courts=event.courts)
        return event

    # --- finalize / un-finalize ---

    async def finalize(self, event_id: str) -> Event:
        event = await self._get(event_id)
        next_status(event, Action.FINALIZE)
        if not await self.memberships.get_event_participants(event.id):
            raise Rejected("No participants to finalize")

        self._acquire(event.id)
        try:
            # Status may have moved while we were waiting for the lock
            event = await self._get(event.id)
            new_status = next_status(event, Action.FINALIZE)
            memberships = await self.memberships.get_event_participants(event.id)
            if not memberships:
                raise Rejected("No participants to finalize")

            court_price = await self.settings.get_court_price()
            tz = await self.settings.get_timezone()
            amounts = allocate_payments(court_price, event.courts, memberships)

            await self.payments.delete_by_event(event.id)
            payments: dict[str, Payment] = {}
            for m in memberships:
                payments[m.participant_id] = await self.payments.create_payment(
                    event.id, m.participant_id, amounts[m.participant_id]
                )
            event = await self.events.update_event(event.id, status=new_status)

            total = sum(m.participations for m in memberships)
            link = await self._announcement_link(event)
            unreachable: list[str] = []
            for m in memberships:
                participant = m.participant
                payment = payments[m.participant_id]
                if participant.discord_id is None:
                    unreachable.append(participant.label)
                    continue
                base = format_personal_payment(event, payment.amount, court_price, total, tz, link)
                sent = await self.transport.send_direct(
                    participant.discord_id, payment_rendered(base, event.id, None, tz)
                )
                if sent.ok:
                    await self.payments.update_personal_message_id(payment.id, sent.message_id)
                else:
                    unreachable.append(participant.label)

            if unreachable:
                await self._send_fallback_notice(unreachable)

            await self._refresh(event)
            logger.info("Finalized event %s: %d participants, %d payments", event.id, total, len(payments))
            self._log("event_finalized", event_id=event.id, date=await self._date(event), participant_count=total)
            return event
        finally:
            self.lock.release(event_id)

    async def _announcement_link(self, event: Event) -> Optional[str]:
        channel_id = await self.settings.get_main_channel_id()
        if not channel_id or not event.message_id:
            return None
        return await self.transport.message_link(channel_id, event.message_id)

    async def _send_fallback_notice(self, names: list[str]) -> None:
        channel_id = await self.settings.get_main_channel_id()
        if not channel_id:
            return
        result = await self.transport.send_message(
            channel_id, Rendered(text=format_fallback_notice(names, self.transport.bot_name))
        )
        if not result.ok:
            logger.warning("Could not send fallback notice: %s", result.error)

    async def unfinalize(self, event_id: str, actor_id: int) -> Event:
        event = await self._get(event_id)
        next_status(event, Action.UNFINALIZE)
        await access.require_owner_or_admin(self.settings, actor_id, event.owner_id, "un-finalize this event")

        self._acquire(event.id)
        try:
            event = await self._get(event.id)
            new_status = next_status(event, Action.UNFINALIZE)
            for payment in await self.payments.get_payments_by_event(event.id):
                if not payment.personal_message_id:
                    continue
                participant = await self.participants.find_by_id(payment.participant_id)
                if participant and participant.discord_id is not None:
                    result = await self.transport.delete_direct(participant.discord_id, payment.personal_message_id)
                    if not result.ok:
                        logger.warning("Could not delete payment DM %s: %s", payment.personal_message_id, result.error)
            deleted = await self.payments.delete_by_event(event.id)
            event = await self.events.update_event(event.id, status=new_status)
            await self._refresh(event)
            logger.info("Unfinalized event %s (%d payments removed)", event.id, deleted)
            self._log("event_unfinalized", event_id=event.id, date=await self._date(event))
            return event
        finally:
            self.lock.release(event_id)

    # --- cancel / restore ---

    async def cancel(self, event_id: str) -> Event:
        event = await self._get(event_id)
        new_status = next_status(event, Action.CANCEL)
        event = await self.events.update_event(event.id, status=new_status)
        await self._refresh(event)
        channel_id = await self.settings.get_main_channel_id()
        if event.message_id and channel_id:
            result = await self.transport.unpin_message(channel_id, event.message_id)
            if not result.ok:
                logger.warning("Could not unpin announcement for %s: %s", event.id, result.error)
        self._log("event_cancelled", event_id=event.id, date=await self._date(event))
        return event

    async def restore(self, event_id: str) -> Event:
        event = await self._get(event_id)
        new_status = next_status(event, Action.RESTORE)
        event = await self.events.update_event(event.id, status=new_status)
        await self._refresh(event)
        channel_id = await self.settings.get_main_channel_id()
        if event.message_id and channel_id:
            result = await self.transport.pin_message(channel_id, event.message_id)
            if not result.ok:
                logger.warning("Could not re-pin announcement for %s: %s", event.id, result.error)
        self._log("event_restored", event_id=event.id, date=await self._date(event))
        return event

    # --- payments ---

    async def _toggle_payment(
        self,
        event_id: str,
        find_participant: Callable[[], Awaitable[Optional[Participant]]],
        who: str,
        paid: bool,
    ) -> Payment:
        event = await self._get(event_id)
        action = Action.MARK_PAID if paid else Action.MARK_UNPAID
        next_status(event, action)

        self._acquire(event.id)
        try:
            participant = await find_participant()
            if not participant:
                raise NotFound("participant", who)
            payment = await self.payments.find_by_event_and_participant(event.id, participant.id)
            if not payment:
                raise NotFound("payment", f"of {participant.label} for {event.id}")
            if payment.is_paid == paid:
                return payment

            if paid:
                payment = await self.payments.mark_as_paid(payment.id)
            else:
                payment = await self.payments.mark_as_unpaid(payment.id)

            if payment.personal_message_id and participant.discord_id is not None:
                await self._edit_payment_dm(event, participant, payment)

            await self._refresh(event)
            self._log(
                "payment_received" if paid else "payment_cancelled",
                event_id=event.id,
                amount=payment.amount,
                user_name=participant.label,
            )
            return payment
        finally:
            self.lock.release(event_id)

    async def _edit_payment_dm(self, event: Event, participant: Participant, payment: Payment) -> None:
        court_price = await self.settings.get_court_price()
        tz = await self.settings.get_timezone()
        memberships = await self.memberships.get_event_participants(event.id)
        total = sum(m.participations for m in memberships)
        link = await self._announcement_link(event)
        base = format_personal_payment(event, payment.amount, court_price, total, tz, link)
        result = await self.transport.edit_direct(
            participant.discord_id,
            payment.personal_message_id,
            payment_rendered(base, event.id, payment.paid_at, tz),
        )
        if not result.ok:
            logger.warning("Could not update payment DM for %s: %s", participant.label, result.error)

    async def mark_paid(self, event_id: str, user: UserRef) -> Payment:
        return await self._toggle_payment(
            event_id, lambda: self.participants.find_by_discord_id(user.discord_id), user.label, True
        )

    async def mark_unpaid(self, event_id: str, user: UserRef) -> Payment:
        return await self._toggle_payment(
            event_id, lambda: self.participants.find_by_discord_id(user.discord_id), user.label, False
        )

    async def mark_paid_by_username(self, event_id: str, username: str, actor_id: int) -> Payment:
        await access.require_admin(self.settings, actor_id, "mark payments for other users")
        return await self._toggle_payment(
            event_id, lambda: self.participants.find_by_username(username), f"@{username.lstrip('@')}", True
        )

    async def mark_unpaid_by_username(self, event_id: str, username: str, actor_id: int) -> Payment:
        await access.require_admin(self.settings, actor_id, "mark payments for other users")
        return await self._toggle_payment(
            event_id, lambda: self.participants.find_by_username(username), f"@{username.lstrip('@')}", False
        )

    # --- ownership / deletion / queries ---

    async def transfer(self, event_id: str, actor_id: int, target_username: str) -> Event:
        event = await self._get(event_id)
        await access.require_owner_or_admin(self.settings, actor_id, event.owner_id, "transfer ownership")
        target = await self.participants.find_by_username(target_username)
        if not target or target.discord_id is None:
            raise NotFound("user", f"@{target_username.lstrip('@')}")
        event = await self.events.update_event(event.id, owner_id=target.discord_id)
        logger.info("User %s transferred event %s to %s", actor_id, event.id, target.label)
        return event

    async def delete(self, event_id: str, actor_id: int) -> Event:
        event = await self._get(event_id)
        await access.require_owner_or_admin(self.settings, actor_id, event.owner_id, "delete this event")
        event = await self.events.soft_delete(event.id)
        logger.info("User %s deleted event %s", actor_id, event.id)
        return event

    async def undelete(self, event_id: str, actor_id: int) -> Event:
        event = await self.events.find_by_id(event_id, include_deleted=True)
        if not event or event.deleted_at is None:
            raise NotFound("deleted event", event_id)
        await access.require_owner_or_admin(self.settings, actor_id, event.owner_id, "restore this event")
        event = await self.events.restore(event.id)
        logger.info("User %s undeleted event %s", actor_id, event.id)
        return event

    async def list_events(self) -> list[Event]:
        """Non-deleted events that are not cancelled, soonest first."""
        return [e for e in await self.events.get_events() if EventStatus(e.status) != EventStatus.CANCELLED]

    async def get_event_by_message(self, message_id: int) -> Event:
        event = await self.events.find_by_message_id(message_id)
        if not event:
            raise NotFound("event for message", message_id)
        return event

    async def owner_label(self, owner_id: Optional[int]) -> Optional[str]:
        if owner_id is None:
            return None
        owner = await self.participants.find_by_discord_id(owner_id)
        return owner.label if owner else None
