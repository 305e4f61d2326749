"""Payments cog - /payment paid, mark-paid, mark-unpaid."""
from __future__ import annotations

import discord
from discord import app_commands

import config
from squash.checks import admin_only, user_ref
from squash.replies import send_ephemeral

payment_group = app_commands.Group(name="payment", description="Payment tracking for finalized events")


@payment_group.command(name="paid", description="Mark your own payment for an event as paid")
async def paid(interaction: discord.Interaction, event_id: str) -> None:
    payment = await interaction.client.services.lifecycle.mark_paid(event_id.strip(), user_ref(interaction))
    await send_ephemeral(interaction, f"✅ Marked {payment.amount} {config.CURRENCY} as paid")


@payment_group.command(name="mark-paid", description="Mark someone's payment as paid (Admin only)")
@app_commands.describe(username="Username of the participant")
@admin_only()
async def mark_paid(interaction: discord.Interaction, event_id: str, username: str) -> None:
    await interaction.response.defer(ephemeral=True)
    await interaction.client.services.lifecycle.mark_paid_by_username(
        event_id.strip(), username, interaction.user.id
    )
    await send_ephemeral(interaction, f"✅ @{username.lstrip('@')} marked as paid for `{event_id}`")


@payment_group.command(name="mark-unpaid", description="Undo a payment mark (Admin only)")
@app_commands.describe(username="Username of the participant")
@admin_only()
async def mark_unpaid(interaction: discord.Interaction, event_id: str, username: str) -> None:
    await interaction.response.defer(ephemeral=True)
    await interaction.client.services.lifecycle.mark_unpaid_by_username(
        event_id.strip(), username, interaction.user.id
    )
    await send_ephemeral(interaction, f"↩️ @{username.lstrip('@')} marked as unpaid for `{event_id}`")
