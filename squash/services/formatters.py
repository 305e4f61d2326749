"""Text rendering for announcements, payment DMs and audit lines.

Nothing here talks to Discord: the transport turns `Rendered` into an embed
plus a button view.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo

import config
from squash.models import EventStatus

JOIN = "event:join"
LEAVE = "event:leave"
ADD_COURT = "event:add-court"
REMOVE_COURT = "event:remove-court"
FINALIZE = "event:finalize"
CANCEL = "event:cancel"
RESTORE = "event:restore"
MARK_PAID_PREFIX = "payment:mark-paid:"
UNDO_MARK_PAID_PREFIX = "payment:undo-mark-paid:"


@dataclass(frozen=True)
class Button:
    label: str
    custom_id: str
    style: str = "secondary"  # primary / secondary / success / danger


@dataclass
class Rendered:
    text: str
    buttons: list[list[Button]] = field(default_factory=list)
    color: Optional[int] = None


# Embed colors (same values as discord.Color presets)
GREEN = 0x2ECC71
BLUE = 0x3498DB
RED = 0xE74C3C
GOLD = 0xF1C40F


def local(dt: datetime, tz: str) -> datetime:
    return dt.astimezone(ZoneInfo(tz))


def short_date(dt: datetime, tz: str) -> str:
    """'Sat 20 Jan 21:00' in the given zone."""
    d = local(dt, tz)
    return f"{d:%a} {d.day} {d:%b %H:%M}"


def build_buttons(status: EventStatus) -> list[list[Button]]:
    """Button rows for an announcement in the given status."""
    status = EventStatus(status)
    if status == EventStatus.CANCELLED:
        return [[Button("🔄 Restore", RESTORE, "primary")]]
    if status in (EventStatus.CREATED, EventStatus.ANNOUNCED):
        return [
            [Button("I'm in", JOIN, "success"), Button("I'm out", LEAVE, "secondary")],
            [Button("+court", ADD_COURT), Button("-court", REMOVE_COURT)],
            [Button("✅ Finalize", FINALIZE, "primary"), Button("❌ Cancel", CANCEL, "danger")],
        ]
    return []


def format_participants(memberships: Iterable, paid_ids: Optional[set[str]] = None) -> str:
    memberships = list(memberships)
    if not memberships:
        return "Participants:\n(nobody yet)"
    paid_ids = paid_ids or set()
    total = sum(m.participations for m in memberships)
    names = []
    for m in memberships:
        name = m.participant.label
        if m.participations > 1:
            name += f" (×{m.participations})"
        if m.participant_id in paid_ids:
            name += " ✓"
        names.append(name)
    return f"Participants ({total}):\n" + ", ".join(names)


def format_announcement(
    event,
    memberships: Iterable,
    tz: str,
    paid_ids: Optional[set[str]] = None,
    status: Optional[EventStatus] = None,
) -> Rendered:
    """Announcement body and buttons for `status` (defaults to the event's own)."""
    d = local(event.starts_at, tz)
    text = (
        f"🎾 Squash: {d:%A}, {d.day} {d:%B}, {d:%H:%M}\n"
        f"Courts: {event.courts}\n\n"
        + format_participants(memberships, paid_ids)
    )
    status = EventStatus(status or event.status)
    color = BLUE
    if status == EventStatus.FINALIZED:
        text += "\n\n✅ Finalized"
        color = GREEN
    elif status == EventStatus.CANCELLED:
        text += "\n\n❌ Event cancelled"
        color = RED
    return Rendered(text=text, buttons=build_buttons(status), color=color)


def format_personal_payment(
    event,
    amount: int,
    court_price: int,
    total_participations: int,
    tz: str,
    link: Optional[str] = None,
    currency: str = config.CURRENCY,
) -> str:
    d = local(event.starts_at, tz)
    total_cost = court_price * event.courts
    text = (
        f"💰 Payment for Squash {d:%d.%m %H:%M}\n\n"
        f"Courts: {event.courts} × {court_price} {currency} = {total_cost} {currency}\n"
        f"Participants: {total_participations}\n\n"
        f"Your amount: {amount} {currency}"
    )
    if link:
        text += f"\n\n[Announcement]({link})"
    return text


def format_paid_stamp(base_text: str, paid_at: datetime, tz: str) -> str:
    d = local(paid_at, tz)
    return f"{base_text}\n\n✓ Paid on {d:%d.%m} at {d:%H:%M}"


def payment_rendered(base_text: str, event_id: str, paid_at: Optional[datetime], tz: str) -> Rendered:
    """Personal payment DM: unpaid gets "I paid", paid gets the stamp and "Undo"."""
    if paid_at is None:
        return Rendered(
            text=base_text,
            buttons=[[Button("✅ I paid", MARK_PAID_PREFIX + event_id, "success")]],
            color=GOLD,
        )
    return Rendered(
        text=format_paid_stamp(base_text, paid_at, tz),
        buttons=[[Button("↩️ Undo", UNDO_MARK_PAID_PREFIX + event_id)]],
        color=GREEN,
    )


def format_fallback_notice(names: list[str], bot_name: str) -> str:
    return (
        f"⚠️ I can't reach {', '.join(names)} by direct message.\n"
        f"Please allow DMs from server members, or send any message to {bot_name}, "
        f"so payment details can be delivered."
    )


@dataclass
class LogEvent:
    kind: str
    data: dict[str, Any] = field(default_factory=dict)


_LOG_TEMPLATES = {
    "bot_started": "🟢 Bot started as {bot_name}",
    "event_created": "📅 Event created: {date}, {courts} courts",
    "event_announced": "📢 Event announced: {date}",
    "event_finalized": "✅ Event finalized: {date}, {participant_count} players",
    "event_unfinalized": "↩️ Event unfinalized: {date}",
    "event_cancelled": "❌ Event cancelled: {date}",
    "event_restored": "🔄 Event restored: {date}",
    "participant_joined": "👋 {user_name} joined {event_id}",
    "participant_left": "👋 {user_name} left {event_id}",
    "court_added": "➕ Court added: {event_id} (now {courts})",
    "court_removed": "➖ Court removed: {event_id} (now {courts})",
    "payment_received": "💰 Payment received: {amount} {currency} from {user_name}",
    "payment_cancelled": "↩️ Payment cancelled: {amount} {currency} from {user_name}",
    "scaffold_created": "📋 Scaffold created: {day} {time}, {courts} courts",
    "scaffold_toggled": "🔀 Scaffold {scaffold_id}: {state}",
    "scaffold_removed": "🗑 Scaffold removed: {scaffold_id}",
}


def format_log_event(event: LogEvent) -> str:
    data = {"currency": config.CURRENCY, **event.data}
    if event.kind == "scaffold_toggled":
        data["state"] = "activated" if data.get("active") else "deactivated"
    template = _LOG_TEMPLATES.get(event.kind)
    if template is None:
        return f"{event.kind}: {event.data}"
    return template.format(**data)
