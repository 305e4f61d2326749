"""Messaging transport. Delivery problems come back as SendResult, never as exceptions."""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import aiohttp
import discord

import config
from squash.services.formatters import LogEvent, Rendered, format_log_event

logger = logging.getLogger("squash.transport")


@dataclass
class SendResult:
    ok: bool
    message_id: Optional[int] = None
    error: Optional[str] = None


class Transport(ABC):
    """What the lifecycle engine needs from a chat platform."""

    @property
    @abstractmethod
    def bot_name(self) -> str:
        ...

    @abstractmethod
    async def send_message(self, channel_id: int, rendered: Rendered) -> SendResult:
        ...

    @abstractmethod
    async def edit_message(self, channel_id: int, message_id: int, rendered: Rendered) -> SendResult:
        ...

    @abstractmethod
    async def pin_message(self, channel_id: int, message_id: int) -> SendResult:
        ...

    @abstractmethod
    async def unpin_message(self, channel_id: int, message_id: int) -> SendResult:
        ...

    @abstractmethod
    async def send_direct(self, user_id: int, rendered: Rendered) -> SendResult:
        ...

    @abstractmethod
    async def edit_direct(self, user_id: int, message_id: int, rendered: Rendered) -> SendResult:
        ...

    @abstractmethod
    async def delete_direct(self, user_id: int, message_id: int) -> SendResult:
        ...

    @abstractmethod
    async def message_link(self, channel_id: int, message_id: int) -> Optional[str]:
        ...

    @abstractmethod
    def log_event(self, event: LogEvent) -> None:
        """Fire-and-forget audit sink."""


_DELIVERY_ERRORS = (discord.HTTPException, discord.ClientException, aiohttp.ClientError)


def build_view(rendered: Rendered) -> Optional[discord.ui.View]:
    """Button rows for a message; None when it has none."""
    if not rendered.buttons:
        return None
    view = discord.ui.View(timeout=None)
    for row, buttons in enumerate(rendered.buttons):
        for b in buttons:
            view.add_item(
                discord.ui.Button(
                    label=b.label,
                    custom_id=b.custom_id,
                    style=getattr(discord.ButtonStyle, b.style, discord.ButtonStyle.secondary),
                    row=row,
                )
            )
    return view


def release_view(view: Optional[discord.ui.View]) -> None:
    """Drop a sent view from the client's view store.

    The buttons stay on the message; clicks are routed by custom_id in the
    interaction listener, so the store would otherwise only accumulate one
    view per send or edit.
    """
    if view is not None:
        view.stop()


def build_embed(rendered: Rendered) -> discord.Embed:
    color = discord.Color(rendered.color) if rendered.color is not None else discord.Color.blurple()
    return discord.Embed(description=rendered.text, color=color)


class DiscordTransport(Transport):
    def __init__(self, client: discord.Client):
        self.client = client
        self._log_tasks: set[asyncio.Task] = set()

    @property
    def bot_name(self) -> str:
        user = self.client.user
        return user.mention if user else "the bot"

    async def _channel(self, channel_id: int):
        return self.client.get_channel(channel_id) or await self.client.fetch_channel(channel_id)

    async def _dm(self, user_id: int) -> discord.DMChannel:
        user = self.client.get_user(user_id) or await self.client.fetch_user(user_id)
        return user.dm_channel or await user.create_dm()

    async def send_message(self, channel_id: int, rendered: Rendered) -> SendResult:
        view = build_view(rendered)
        try:
            channel = await self._channel(channel_id)
            msg = await channel.send(embed=build_embed(rendered), view=view)
        except _DELIVERY_ERRORS as e:
            logger.warning("Failed to send message to channel %s: %s", channel_id, e)
            return SendResult(ok=False, error=str(e))
        finally:
            release_view(view)
        return SendResult(ok=True, message_id=msg.id)

    async def edit_message(self, channel_id: int, message_id: int, rendered: Rendered) -> SendResult:
        view = build_view(rendered)
        try:
            channel = await self._channel(channel_id)
            await channel.get_partial_message(message_id).edit(embed=build_embed(rendered), view=view)
        except _DELIVERY_ERRORS as e:
            logger.warning("Failed to edit message %s in channel %s: %s", message_id, channel_id, e)
            return SendResult(ok=False, error=str(e))
        finally:
            release_view(view)
        return SendResult(ok=True, message_id=message_id)

    async def pin_message(self, channel_id: int, message_id: int) -> SendResult:
        try:
            channel = await self._channel(channel_id)
            await channel.get_partial_message(message_id).pin()
        except _DELIVERY_ERRORS as e:
            logger.warning("Failed to pin message %s: %s", message_id, e)
            return SendResult(ok=False, error=str(e))
        return SendResult(ok=True, message_id=message_id)

    async def unpin_message(self, channel_id: int, message_id: int) -> SendResult:
        try:
            channel = await self._channel(channel_id)
            await channel.get_partial_message(message_id).unpin()
        except _DELIVERY_ERRORS as e:
            logger.warning("Failed to unpin message %s: %s", message_id, e)
            return SendResult(ok=False, error=str(e))
        return SendResult(ok=True, message_id=message_id)

    async def send_direct(self, user_id: int, rendered: Rendered) -> SendResult:
        view = build_view(rendered)
        try:
            dm = await self._dm(user_id)
            msg = await dm.send(embed=build_embed(rendered), view=view)
        except _DELIVERY_ERRORS as e:
            logger.warning("Failed to DM user %s: %s", user_id, e)
            return SendResult(ok=False, error=str(e))
        finally:
            release_view(view)
        return SendResult(ok=True, message_id=msg.id)

    async def edit_direct(self, user_id: int, message_id: int, rendered: Rendered) -> SendResult:
        view = build_view(rendered)
        try:
            dm = await self._dm(user_id)
            await dm.get_partial_message(message_id).edit(embed=build_embed(rendered), view=view)
        except _DELIVERY_ERRORS as e:
            logger.warning("Failed to edit DM %s for user %s: %s", message_id, user_id, e)
            return SendResult(ok=False, error=str(e))
        finally:
            release_view(view)
        return SendResult(ok=True, message_id=message_id)

    async def delete_direct(self, user_id: int, message_id: int) -> SendResult:
        try:
            dm = await self._dm(user_id)
            await dm.get_partial_message(message_id).delete()
        except _DELIVERY_ERRORS as e:
            logger.warning("Failed to delete DM %s for user %s: %s", message_id, user_id, e)
            return SendResult(ok=False, error=str(e))
        return SendResult(ok=True, message_id=message_id)

    async def message_link(self, channel_id: int, message_id: int) -> Optional[str]:
        try:
            channel = await self._channel(channel_id)
        except _DELIVERY_ERRORS:
            return None
        return channel.get_partial_message(message_id).jump_url

    def log_event(self, event: LogEvent) -> None:
        text = format_log_event(event)
        logger.info("%s", text)
        if not config.LOG_CHANNEL_ID:
            return
        task = asyncio.create_task(self._send_log(text))
        self._log_tasks.add(task)
        task.add_done_callback(self._log_tasks.discard)

    async def _send_log(self, text: str) -> None:
        try:
            channel = await self._channel(config.LOG_CHANNEL_ID)
            await channel.send(text)
        except _DELIVERY_ERRORS as e:
            logger.warning("Failed to send log line to channel %s: %s", config.LOG_CHANNEL_ID, e)
