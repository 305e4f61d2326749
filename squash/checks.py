"""Permission checks for slash commands."""
from __future__ import annotations

import discord
from discord import app_commands

from squash.services.lifecycle import UserRef


def user_ref(interaction: discord.Interaction) -> UserRef:
    """UserRef for whoever triggered the interaction."""
    user = interaction.user
    return UserRef(discord_id=user.id, username=user.name, display_name=user.display_name)


async def is_bot_admin(interaction: discord.Interaction) -> bool:
    """True if the user is the configured admin (settings row or ADMIN_USER_ID)."""
    admin_id = await interaction.client.services.settings.get_admin_id()
    return admin_id is not None and interaction.user.id == admin_id


def admin_only():
    """Check that user is the configured admin."""

    async def predicate(interaction: discord.Interaction) -> bool:
        return await is_bot_admin(interaction)

    return app_commands.check(predicate)
