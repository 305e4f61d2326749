"""Button presses on announcements and payment DMs."""
from __future__ import annotations

import logging

import discord
from discord.ext import commands

from squash.checks import user_ref
from squash.errors import SquashError
from squash.replies import send_ephemeral
from squash.services import formatters

logger = logging.getLogger("squash.buttons")


async def _handle_event_button(interaction: discord.Interaction, custom_id: str, bot: commands.Bot) -> None:
    lifecycle = bot.services.lifecycle
    if interaction.message is None:
        return
    event = await lifecycle.get_event_by_message(interaction.message.id)
    user = user_ref(interaction)

    if custom_id == formatters.JOIN:
        await lifecycle.join(event.id, user)
    elif custom_id == formatters.LEAVE:
        await lifecycle.leave(event.id, user)
    elif custom_id == formatters.ADD_COURT:
        await lifecycle.add_court(event.id)
    elif custom_id == formatters.REMOVE_COURT:
        await lifecycle.remove_court(event.id)
    elif custom_id == formatters.FINALIZE:
        await lifecycle.finalize(event.id)
    elif custom_id == formatters.CANCEL:
        await lifecycle.cancel(event.id)
    elif custom_id == formatters.RESTORE:
        await lifecycle.restore(event.id)
    else:
        logger.warning("Unknown event button %s", custom_id)


async def _handle_payment_button(interaction: discord.Interaction, custom_id: str, bot: commands.Bot) -> None:
    lifecycle = bot.services.lifecycle
    user = user_ref(interaction)
    if custom_id.startswith(formatters.UNDO_MARK_PAID_PREFIX):
        await lifecycle.mark_unpaid(custom_id[len(formatters.UNDO_MARK_PAID_PREFIX):], user)
    elif custom_id.startswith(formatters.MARK_PAID_PREFIX):
        await lifecycle.mark_paid(custom_id[len(formatters.MARK_PAID_PREFIX):], user)
    else:
        logger.warning("Unknown payment button %s", custom_id)


async def _handle_interaction(interaction: discord.Interaction, bot: commands.Bot) -> None:
    if interaction.type != discord.InteractionType.component:
        return
    custom_id = (interaction.data or {}).get("custom_id", "")
    if custom_id.startswith("event:"):
        handler = _handle_event_button
    elif custom_id.startswith("payment:"):
        handler = _handle_payment_button
    else:
        return

    # Acknowledge right away; the message itself is re-rendered by the lifecycle engine
    await interaction.response.defer()
    try:
        await handler(interaction, custom_id, bot)
    except SquashError as e:
        logger.info("Button %s by %s rejected: %s", custom_id, interaction.user.id, e)
        await send_ephemeral(interaction, f"❌ {e}")
    except Exception:
        logger.exception("Button %s failed", custom_id)
        await send_ephemeral(interaction, "Something went wrong. Check bot logs.")


def setup(bot: commands.Bot) -> None:
    """Register the component interaction listener."""

    async def on_interaction(interaction: discord.Interaction) -> None:
        await _handle_interaction(interaction, bot)

    bot.add_listener(on_interaction, "on_interaction")
