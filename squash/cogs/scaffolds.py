"""Scaffolds cog - /scaffold add, list, toggle, edit, transfer, remove, restore."""
from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands

from squash.checks import admin_only
from squash.models import Scaffold
from squash.replies import send_ephemeral

scaffold_group = app_commands.Group(name="scaffold", description="Recurring weekly session templates")

DAY_CHOICES = [app_commands.Choice(name=d, value=d) for d in ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")]


def _describe(s: Scaffold) -> str:
    state = "active" if s.is_active else "paused"
    deadline = f" | deadline {s.announcement_deadline}" if s.announcement_deadline else ""
    owner = f" | 👑 <@{s.owner_id}>" if s.owner_id else ""
    return f"• `{s.id}` | {s.day_of_week} {s.time} | {s.default_courts} courts | {state}{deadline}{owner}"


@scaffold_group.command(name="add", description="Create a scaffold (Admin only)")
@app_commands.describe(
    day="Day of week",
    time="Start time HH:MM",
    courts="Default number of courts",
    deadline='When to announce, e.g. "-1d 12:00" or "-24h" (defaults to the global setting)',
)
@app_commands.choices(day=DAY_CHOICES)
@admin_only()
async def add(
    interaction: discord.Interaction,
    day: app_commands.Choice[str],
    time: str,
    courts: app_commands.Range[int, 1, 20] = 2,
    deadline: Optional[str] = None,
) -> None:
    scaffold = await interaction.client.services.scaffolds.add(
        day.value, time, courts, actor_id=interaction.user.id, deadline=deadline
    )
    await send_ephemeral(
        interaction,
        f"✅ Created scaffold `{scaffold.id}`: {scaffold.day_of_week} {scaffold.time}, {scaffold.default_courts} courts",
    )


@scaffold_group.command(name="list", description="List scaffolds")
@app_commands.describe(removed="Show removed scaffolds instead (to restore them)")
async def list_scaffolds(interaction: discord.Interaction, removed: bool = False) -> None:
    service = interaction.client.services.scaffolds
    scaffolds = await (service.list_deleted() if removed else service.list())
    title = "📋 Removed scaffolds" if removed else "📋 Scaffold list"
    if not scaffolds:
        await send_ephemeral(interaction, f"{title}\n\nNo scaffolds found")
        return
    await send_ephemeral(interaction, f"{title}\n\n" + "\n".join(_describe(s) for s in scaffolds))


@scaffold_group.command(name="toggle", description="Pause or resume a scaffold")
async def toggle(interaction: discord.Interaction, scaffold_id: str) -> None:
    scaffold = await interaction.client.services.scaffolds.toggle(scaffold_id.strip(), interaction.user.id)
    state = "active" if scaffold.is_active else "paused"
    await send_ephemeral(interaction, f"🔀 Scaffold `{scaffold.id}` is now {state}")


@scaffold_group.command(name="edit", description="Change day, time, courts or deadline of a scaffold")
@app_commands.describe(deadline='Offset such as "-1d 12:00"; send "-" to clear the override')
@app_commands.choices(day=DAY_CHOICES)
async def edit(
    interaction: discord.Interaction,
    scaffold_id: str,
    day: Optional[app_commands.Choice[str]] = None,
    time: Optional[str] = None,
    courts: Optional[app_commands.Range[int, 1, 20]] = None,
    deadline: Optional[str] = None,
) -> None:
    if deadline is not None and deadline.strip() == "-":
        deadline = ""
    scaffold = await interaction.client.services.scaffolds.edit(
        scaffold_id.strip(),
        interaction.user.id,
        day=day.value if day else None,
        time=time,
        courts=courts,
        deadline=deadline,
    )
    await send_ephemeral(interaction, "✅ Updated\n" + _describe(scaffold))


@scaffold_group.command(name="transfer", description="Transfer scaffold ownership to another user")
async def transfer(interaction: discord.Interaction, scaffold_id: str, username: str) -> None:
    scaffold = await interaction.client.services.scaffolds.transfer(scaffold_id.strip(), interaction.user.id, username)
    await send_ephemeral(interaction, f"✅ Scaffold `{scaffold.id}` transferred to @{username.lstrip('@')}")


@scaffold_group.command(name="remove", description="Remove a scaffold (can be restored)")
async def remove(interaction: discord.Interaction, scaffold_id: str) -> None:
    scaffold = await interaction.client.services.scaffolds.remove(scaffold_id.strip(), interaction.user.id)
    await send_ephemeral(
        interaction, f"🗑 Scaffold `{scaffold.id}` removed. Undo with `/scaffold restore {scaffold.id}`"
    )


@scaffold_group.command(name="restore", description="Restore a removed scaffold")
async def restore(interaction: discord.Interaction, scaffold_id: str) -> None:
    scaffold = await interaction.client.services.scaffolds.restore(scaffold_id.strip(), interaction.user.id)
    await send_ephemeral(interaction, f"✅ Scaffold `{scaffold.id}` restored")
