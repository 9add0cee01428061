import asyncio

import aiosqlite
import discord
from discord import app_commands
from discord.ext import commands

from broadcast.listener import ServerConfigComplete, resolve_user
from database import admins, bad_actors, server_configs
from utils.embed_builder import EmbedBuilder
from utils.format import fdisplay, user_mention
from utils.parsing import parse_ids
from utils.permissions import admin_only, whitelisted
from utils.screenshot import file_manager

MAX_DISPLAYED_CONFIGS = 5

class AdminConfig(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    adminconfig = app_commands.Group(
        name="adminconfig", description="Inspect the bot's server configs", guild_only=True
    )

    @adminconfig.command(name="display_configs", description="Display the configs for up to 5 servers at a time.")
    @app_commands.describe(
        guild_ids="The ID(s) of the server(s) to display the config for. Separate multiple IDs with a comma (,). Max 5."
    )
    @admin_only()
    async def display_configs(self, interaction: discord.Interaction, guild_ids: str):
        await interaction.response.defer()

        try:
            ids = parse_ids(guild_ids)
        except ValueError:
            await interaction.followup.send("One or more of the guilds ids you provided are invalid!")
            return

        if not ids or len(ids) > MAX_DISPLAYED_CONFIGS:
            await interaction.followup.send(f"Expected between 1 and {MAX_DISPLAYED_CONFIGS} guilds, got {len(ids)}")
            return

        configs = await server_configs.get_multiple_by_guild_id(ids)
        if not configs:
            await interaction.followup.send("None of these servers have a config in the database!")
            return

        try:
            complete = await asyncio.gather(
                *(ServerConfigComplete.from_server_config(self.bot, c) for c in configs)
            )
        except discord.HTTPException as e:
            await self.bot.ops_log.error(e, f"Failed to upgrade server configs for {ids} to full configs")
            await interaction.followup.send("There was an error getting the config for one or more servers.")
            return

        await interaction.followup.send(embeds=[c.to_embed(interaction.user) for c in complete])

    @adminconfig.command(name="delete_bad_actor", description="Delete a bad actor from the database.")
    @app_commands.describe(entry="The entry id that you want to delete.")
    @admin_only()
    async def delete_bad_actor(self, interaction: discord.Interaction, entry: int):
        await interaction.response.defer()

        try:
            deleted = await bad_actors.delete(entry)
        except aiosqlite.Error as e:
            msg = f"Failed to delete entry with id {entry} from the database"
            await self.bot.ops_log.error(e, msg)
            await interaction.followup.send(msg)
            return

        if deleted is None:
            await interaction.followup.send("There is no such entry in the database!")
            return

        if deleted.screenshot_proof:
            try:
                file_manager.delete(deleted.screenshot_proof)
            except OSError as e:
                await self.bot.ops_log.error(
                    e, f"Failed to delete screenshot {deleted.screenshot_proof} from the file system"
                )
                await interaction.followup.send(
                    f"Bad actor with id {entry} was successfully deleted from the database but deleting "
                    "the screenshot failed. Please do so manually"
                )
                return

        await interaction.followup.send(
            f"Successfully deleted bad actor entry with id {entry} from the database. "
            "If they had a screenshot, it was also deleted."
        )

    @app_commands.command(name="adminlist", description="Get the list of admins of this bot.")
    @app_commands.guild_only()
    @whitelisted()
    async def adminlist(self, interaction: discord.Interaction):
        await interaction.response.defer()

        admin_rows = await admins.get_all()
        resolved = await asyncio.gather(
            *(resolve_user(self.bot, a.user_id) for a in admin_rows), return_exceptions=True
        )
        lines = [
            user_mention(a.user_id) if isinstance(u, BaseException) else fdisplay(u)
            for a, u in zip(admin_rows, resolved)
        ]
        await interaction.followup.send(
            embed=EmbedBuilder.janitor(
                interaction.user,
                title="Janitor Admins",
                description="\n".join(lines) or "No admins registered."
            )
        )

async def setup(bot: commands.Bot):
    await bot.add_cog(AdminConfig(bot))
