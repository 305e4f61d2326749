"""Events cog - /event list, create, spawn, announce, finalize, unfinalize, cancel, restore, transfer, delete."""
from __future__ import annotations

import discord
from discord import app_commands

from squash.replies import send_ephemeral as _send
from squash.services.formatters import short_date

event_group = app_commands.Group(name="event", description="Squash events")


@event_group.command(name="list", description="List upcoming events")
async def list_events(interaction: discord.Interaction) -> None:
    services = interaction.client.services
    events = await services.lifecycle.list_events()
    if not events:
        await _send(interaction, "📋 Event list\n\nNo events found")
        return
    tz = await services.settings.get_timezone()
    lines = []
    for e in events:
        owner = await services.lifecycle.owner_label(e.owner_id)
        owner_suffix = f" | 👑 {owner}" if owner else ""
        lines.append(f"• `{e.id}` | {short_date(e.starts_at, tz)} | {e.courts} courts | {e.status.value}{owner_suffix}")
    await _send(interaction, "📋 Event list\n\n" + "\n".join(lines))


@event_group.command(name="create", description="Create an event (not announced yet)")
@app_commands.describe(
    day="today, tomorrow, sat, next sat or YYYY-MM-DD",
    time="Start time HH:MM",
    courts="Number of courts",
)
async def create(interaction: discord.Interaction, day: str, time: str, courts: app_commands.Range[int, 1, 20] = 2) -> None:
    lifecycle = interaction.client.services.lifecycle
    event = await lifecycle.create_event_on(day, time, courts, owner_id=interaction.user.id)
    tz = await interaction.client.services.settings.get_timezone()
    await _send(
        interaction,
        f"✅ Created event `{event.id}` ({short_date(event.starts_at, tz)}, {courts} courts). "
        f"To announce: `/event announce {event.id}`",
    )


@event_group.command(name="spawn", description="Create the next event from a scaffold")
@app_commands.describe(scaffold_id="Scaffold ID (sc_...)")
async def spawn(interaction: discord.Interaction, scaffold_id: str) -> None:
    services = interaction.client.services
    event = await services.lifecycle.spawn_from_scaffold(scaffold_id.strip())
    tz = await services.settings.get_timezone()
    await _send(
        interaction,
        f"✅ Created event `{event.id}` from `{scaffold_id}` ({short_date(event.starts_at, tz)}, "
        f"{event.courts} courts). To announce: `/event announce {event.id}`",
    )


@event_group.command(name="announce", description="Post the announcement for an event")
async def announce(interaction: discord.Interaction, event_id: str) -> None:
    await interaction.response.defer(ephemeral=True)
    event = await interaction.client.services.lifecycle.announce(event_id.strip())
    await _send(interaction, f"✅ Event `{event.id}` announced")


@event_group.command(name="finalize", description="Finalize an event and send payment requests")
async def finalize(interaction: discord.Interaction, event_id: str) -> None:
    await interaction.response.defer(ephemeral=True)
    event = await interaction.client.services.lifecycle.finalize(event_id.strip())
    await _send(interaction, f"✅ Event `{event.id}` finalized")


@event_group.command(name="unfinalize", description="Undo finalize: remove payments and reopen sign-ups")
async def unfinalize(interaction: discord.Interaction, event_id: str) -> None:
    await interaction.response.defer(ephemeral=True)
    event = await interaction.client.services.lifecycle.unfinalize(event_id.strip(), interaction.user.id)
    await _send(interaction, f"↩️ Event `{event.id}` is open again")


@event_group.command(name="cancel", description="Cancel an event")
async def cancel(interaction: discord.Interaction, event_id: str) -> None:
    event = await interaction.client.services.lifecycle.cancel(event_id.strip())
    await _send(interaction, f"❌ Event `{event.id}` cancelled")


@event_group.command(name="restore", description="Restore a cancelled event")
async def restore(interaction: discord.Interaction, event_id: str) -> None:
    event = await interaction.client.services.lifecycle.restore(event_id.strip())
    await _send(interaction, f"🔄 Event `{event.id}` restored")


@event_group.command(name="transfer", description="Transfer event ownership to another user")
@app_commands.describe(username="Username of the new owner (they must have used the bot before)")
async def transfer(interaction: discord.Interaction, event_id: str, username: str) -> None:
    event = await interaction.client.services.lifecycle.transfer(event_id.strip(), interaction.user.id, username)
    await _send(interaction, f"✅ Event `{event.id}` transferred to @{username.lstrip('@')}")


@event_group.command(name="delete", description="Delete an event (can be undone)")
async def delete(interaction: discord.Interaction, event_id: str) -> None:
    event = await interaction.client.services.lifecycle.delete(event_id.strip(), interaction.user.id)
    await _send(interaction, f"🗑 Event `{event.id}` deleted. Undo with `/event undelete {event.id}`")


@event_group.command(name="undelete", description="Bring back a deleted event")
async def undelete(interaction: discord.Interaction, event_id: str) -> None:
    event = await interaction.client.services.lifecycle.undelete(event_id.strip(), interaction.user.id)
    await _send(interaction, f"✅ Event `{event.id}` is back")
