"""Main bot entry point."""
import logging

import discord
from discord import app_commands
from discord.ext import commands, tasks

import config
from squash.cogs import events, payments, scaffolds
from squash.errors import SquashError
from squash.http_server import start_http_server
from squash.listeners import buttons
from squash.models import init_db
from squash.replies import send_ephemeral
from squash.services.container import build_services
from squash.services.formatters import LogEvent
from squash.services.transport import DiscordTransport

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("squash")

intents = discord.Intents.default()


class SquashBot(commands.Bot):
    """Squash session bot."""

    def __init__(self):
        super().__init__(command_prefix="!", intents=intents)
        self.services = None
        self._http_runner = None

    async def on_ready(self) -> None:
        logger.info("Bot ready: %s (ID: %s)", self.user, self.user.id if self.user else "?")
        # Guild-specific sync: commands appear instantly instead of waiting for global propagation
        for guild in list(self.guilds):
            try:
                self.tree.copy_global_to(guild=guild)
                await self.tree.sync(guild=guild)
                logger.info("Commands synced to guild: %s (%s)", guild.name, guild.id)
            except discord.HTTPException as e:
                logger.warning("Failed to sync to guild %s: %s", guild.name, e)
        self.services.transport.log_event(LogEvent("bot_started", {"bot_name": str(self.user)}))

    async def setup_hook(self) -> None:
        """Setup before connecting to the gateway."""
        await init_db()
        self.services = build_services(DiscordTransport(self))

        self.tree.add_command(events.event_group)
        self.tree.add_command(scaffolds.scaffold_group)
        self.tree.add_command(payments.payment_group)

        await self.tree.sync()
        logger.info("Commands synced")

        # Global error handler: always respond so Discord doesn't show "application did not respond"
        async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
            original = getattr(error, "original", error)
            if isinstance(original, SquashError):
                logger.info("Command /%s rejected: %s", interaction.command.qualified_name if interaction.command else "?", original)
                msg = f"❌ {original}"
            elif isinstance(error, app_commands.errors.CheckFailure):
                msg = "You don't have permission to use this command. (Admin only)"
            else:
                logger.exception("Command error: %s", error, exc_info=original)
                msg = "Something went wrong. Check bot logs."
            try:
                await send_ephemeral(interaction, msg)
            except discord.HTTPException:
                logger.warning("Could not deliver error reply for interaction %s", interaction.id)

        self.tree.on_error = on_app_command_error

        buttons.setup(self)

        self.check_scaffolds.change_interval(minutes=config.SCAFFOLD_CHECK_MINUTES)
        self.check_scaffolds.start()
        self._http_runner = await start_http_server(self.services)

    @tasks.loop(minutes=5)
    async def check_scaffolds(self) -> None:
        await self.services.spawner.check_and_create_events_from_scaffolds()

    @check_scaffolds.before_loop
    async def before_check_scaffolds(self) -> None:
        await self.wait_until_ready()

    async def close(self) -> None:
        """Cleanup on shutdown."""
        self.check_scaffolds.cancel()
        if self._http_runner:
            await self._http_runner.cleanup()
        await super().close()


def main() -> None:
    """Run the bot."""
    if not config.DISCORD_TOKEN:
        raise ValueError("DISCORD_TOKEN is required")
    if not config.MAIN_CHANNEL_ID:
        logger.warning("MAIN_CHANNEL_ID not set - announcements will fail until it is configured")

    bot = SquashBot()
    bot.run(config.DISCORD_TOKEN)


if __name__ == "__main__":
    main()
