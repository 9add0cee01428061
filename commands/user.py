import asyncio
from typing import Iterable, List, Optional

import aiosqlite
import discord
from discord import app_commands
from discord.ext import commands

from broadcast.listener import resolve_guild, resolve_user
from database import server_configs, users
from database.models import JanitorUser, UserType
from honeypot.channels import honeypot_channels
from utils.embed_builder import EmbedBuilder
from utils.format import display, display_time, fdisplay
from utils.logger import get_logger
from utils.parsing import parse_ids
from utils.permissions import admin_only

log = get_logger()

async def sync_server_configs(old_ids: Iterable[int], new_ids: Iterable[int]):
    """Creates configs for newly whitelisted guilds and reclaims the ones nobody is left in."""
    old_ids, new_ids = set(old_ids), set(new_ids)
    for guild_id in new_ids - old_ids:
        await server_configs.create_default_if_not_exists(guild_id)
    for guild_id in old_ids - new_ids:
        removed = await server_configs.delete_if_needed(guild_id)
        if removed is not None:
            honeypot_channels.forget([removed])

def user_embed(interaction_user: discord.abc.User, db_user: JanitorUser, user: discord.abc.User, guilds: List[discord.Guild]) -> discord.Embed:
    return EmbedBuilder.janitor(
        interaction_user,
        title=f"User Info for {fdisplay(user)}",
        fields=[
            ("Servers", "\n".join(fdisplay(g) for g in guilds) or "None", False),
            ("User Type", str(db_user.user_type), True),
            ("Created At", display_time(db_user.created_at), True),
        ]
    )

class UserCommands(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    user = app_commands.Group(name="user", description="Manage whitelisted users", guild_only=True)

    async def _fetch_guilds(self, guild_ids: List[int]) -> List[discord.Guild]:
        return list(await asyncio.gather(*(resolve_guild(self.bot, g) for g in guild_ids)))

    async def _parse_guilds(self, interaction: discord.Interaction, raw: str, target: discord.abc.User) -> Optional[List[discord.Guild]]:
        try:
            guild_ids = parse_ids(raw)
        except ValueError:
            await interaction.followup.send(embed=EmbedBuilder.troubleshoot("invalid_input"))
            return None

        try:
            return await self._fetch_guilds(guild_ids)
        except discord.HTTPException as e:
            await self.bot.ops_log.error(e, f"Failed to get one or more guilds for {display(target)} from the discord api")
            await interaction.followup.send(f"Could not get one or more guild(s) for {fdisplay(target)}!")
            return None

    @user.command(name="list", description="List users from a specific server.")
    @app_commands.describe(server_id="The server ID you want to list the users for.")
    @admin_only()
    async def list_users(self, interaction: discord.Interaction, server_id: str):
        await interaction.response.defer()

        try:
            guild = await resolve_guild(self.bot, int(server_id))
        except ValueError:
            await interaction.followup.send(embed=EmbedBuilder.troubleshoot("invalid_input"))
            return
        except discord.HTTPException as e:
            msg = f"Failed to get guild `{server_id}` from the API!"
            await self.bot.ops_log.error(e, msg)
            await interaction.followup.send(msg)
            return

        db_users = await users.get_by_guild(guild.id)
        try:
            members = await asyncio.gather(*(resolve_user(self.bot, u.user_id) for u in db_users))
        except discord.HTTPException as e:
            await self.bot.ops_log.error(e, f"Failed to get user objects for {display(guild)} from the discord API")
            await interaction.followup.send(f"Failed to get users for {fdisplay(guild)} from the Discord API!")
            return

        embed = EmbedBuilder.janitor(
            interaction.user,
            title=f"Whitelisted Users for {fdisplay(guild)}",
            description="\n".join(fdisplay(m) for m in members) or "No users."
        )
        await interaction.followup.send(embed=embed)

    @user.command(name="info", description="Get information about a user.")
    @app_commands.describe(user="The user you want info about.")
    @admin_only()
    async def info(self, interaction: discord.Interaction, user: discord.User):
        await interaction.response.defer()

        db_user = await users.get(user.id)
        if db_user is None:
            await interaction.followup.send(f"User {fdisplay(user)} does not exist in the database!")
            return

        try:
            guilds = await self._fetch_guilds(db_user.guild_ids)
        except discord.HTTPException as e:
            await self.bot.ops_log.error(e, f"Failed to fetch one or more guilds for {display(user)} from the api")
            await interaction.followup.send(
                f"Failed to fetch one or more guilds for user {fdisplay(user)} from the Discord API!"
            )
            return

        await interaction.followup.send(embed=user_embed(interaction.user, db_user, user, guilds))

    @user.command(name="add", description="Add a user to the database.")
    @app_commands.describe(
        user="The user to add to the whitelist.",
        servers="Server(s) for bot usage, separated by commas.",
        user_type="Whether the user can only receive reports or also create them."
    )
    @admin_only()
    async def add(self, interaction: discord.Interaction, user: discord.User, servers: str, user_type: UserType):
        await interaction.response.defer()

        guilds = await self._parse_guilds(interaction, servers, user)
        if guilds is None:
            return

        try:
            added = await users.create(user.id, user_type, [g.id for g in guilds])
        except users.UserAlreadyExists:
            await interaction.followup.send(f"User {fdisplay(user)} is already in the database!")
            return

        try:
            await sync_server_configs([], added.guild_ids)
        except aiosqlite.Error as e:
            await self.bot.ops_log.error(e, "Failed to handle potential server config updates")

        await interaction.followup.send(
            content="User added to the database!",
            embed=user_embed(interaction.user, added, user, guilds)
        )

    @user.command(name="update", description="Update a user in the database.")
    @app_commands.describe(
        user="The user to update.",
        servers="The new server(s) for bot usage, separated by commas. Replaces the old list.",
        user_type="Whether the user can only receive reports or also create them."
    )
    @admin_only()
    async def update(
        self,
        interaction: discord.Interaction,
        user: discord.User,
        servers: Optional[str] = None,
        user_type: Optional[UserType] = None
    ):
        await interaction.response.defer()

        current = await users.get(user.id)
        if current is None:
            await interaction.followup.send(f"User {fdisplay(user)} does not exist in the database!")
            return

        guild_ids = None
        if servers is not None:
            guilds = await self._parse_guilds(interaction, servers, user)
            if guilds is None:
                return
            guild_ids = [g.id for g in guilds]

        updated = await users.update(user.id, guild_ids=guild_ids, user_type=user_type)

        try:
            await sync_server_configs(current.guild_ids, updated.guild_ids)
        except aiosqlite.Error as e:
            await self.bot.ops_log.error(e, "Failed to handle potential server config updates")

        try:
            guilds = await self._fetch_guilds(updated.guild_ids)
        except discord.HTTPException as e:
            log.warning(f"Could not resolve every guild of {display(user)}: {e}")
            guilds = []

        await interaction.followup.send(
            content="User updated in the database!",
            embed=user_embed(interaction.user, updated, user, guilds)
        )

    @user.command(name="remove", description="Remove a user from the database.")
    @app_commands.describe(user="The user to remove from the whitelist.")
    @admin_only()
    async def remove(self, interaction: discord.Interaction, user: discord.User):
        await interaction.response.defer()

        removed = await users.delete(user.id)
        if removed is None:
            await interaction.followup.send(f"User {fdisplay(user)} does not exist in the database!")
            return

        try:
            await sync_server_configs(removed.guild_ids, [])
        except aiosqlite.Error as e:
            await self.bot.ops_log.error(e, "Failed to handle potential server config updates")

        await interaction.followup.send(f"User {fdisplay(user)} was removed from the database!")

async def setup(bot: commands.Bot):
    await bot.add_cog(UserCommands(bot))
