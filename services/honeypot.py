import asyncio
import time
from datetime import timedelta
from typing import List, Optional

import aiosqlite
import discord
from discord.ext import commands

from broadcast.handler import broadcast
from broadcast.listener import get_log_channel
from broadcast.moderate import fetch_member, send_log_message
from broadcast.types import BroadcastOptions, BroadcastType
from config import shared_config
from database import bad_actors, server_configs
from database.models import BadActorType, CreateBadActorOptions
from honeypot.channels import HoneypotChannels, honeypot_channels
from honeypot.detector import HoneypotMessage, HoneypotQueue
from utils.embed_builder import EmbedBuilder, EmbedColor
from utils.format import display, display_time, escape_markdown, fdisplay
from utils.locks import lock_user_id
from utils.logger import get_logger

log = get_logger()

HONEYPOT_EXPLANATION = "reached into the honeypot"

class Honeypot(commands.Cog):
    def __init__(
        self,
        bot: commands.Bot,
        queue: Optional[HoneypotQueue] = None,
        channels: Optional[HoneypotChannels] = None
    ):
        self.bot = bot
        self.queue = queue or HoneypotQueue(
            shared_config.HONEYPOT_WINDOW_SECONDS, shared_config.HONEYPOT_CHANNEL_THRESHOLD
        )
        self.channels = channels if channels is not None else honeypot_channels

    async def cog_load(self):
        try:
            await self.channels.load()
        except aiosqlite.Error as e:
            log.error("Failed to load honeypot channels", exc_info=e)

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        if message.guild is None:
            return
        if self.bot.user is not None and message.author.id == self.bot.user.id:
            return

        is_in_honeypot = message.channel.id in self.channels
        if is_in_honeypot:
            await self.delete_honeypot_message(message)

        entry = HoneypotMessage(
            guild_id=message.guild.id,
            user_id=message.author.id,
            channel_id=message.channel.id,
            content=message.content,
            timestamp=time.monotonic(),
            is_in_honeypot=is_in_honeypot
        )
        should_report, evicted = await self.queue.push(entry)

        await asyncio.gather(
            self.maybe_report(message, should_report),
            self.timeout_honeypot_trolls(evicted),
        )

    async def delete_honeypot_message(self, message: discord.Message):
        try:
            await message.delete()
        except discord.HTTPException as e:
            await self.bot.ops_log.error(
                e, f"Failed to delete honeypot message from {display(message.author)} in {display(message.guild)}"
            )
            return

        try:
            config = await server_configs.get_by_guild_id(message.guild.id)
        except aiosqlite.Error as e:
            await self.bot.ops_log.error(e, f"Failed to get server config for {display(message.guild)}")
            return

        channel = await get_log_channel(self.bot, config)
        if channel is None:
            return

        embed = EmbedBuilder.build(
            title="Honeypot message deleted",
            description=(
                f"Janitor deleted a message from user {fdisplay(message.author)} from the honeypot channel."
                f"\n\n```{escape_markdown(message.content)}```"
            ),
            color=EmbedColor.ORANGE,
            footer="Honeypot Log"
        )
        try:
            await channel.send(embed=embed)
        except discord.HTTPException as e:
            log.error(f"Failed to send honeypot log to {display(message.guild)}", exc_info=e)

    async def maybe_report(self, message: discord.Message, should_report: bool = True):
        if not should_report:
            return

        user = message.author
        guild = message.guild

        # Same lock as /badactor report, a honeypot hit cannot race a manual report
        async with lock_user_id(user.id):
            try:
                if await bad_actors.has_active_case(user.id):
                    await self.bot.ops_log.warn(
                        f"User {display(user)} reached into a honeypot but already has an active case. Skipping report."
                    )
                    return

                bad_actor = await bad_actors.create(CreateBadActorOptions(
                    user_id=user.id,
                    actor_type=BadActorType.HONEYPOT,
                    origin_guild_id=guild.id,
                    updated_by_user_id=self.bot.user.id,
                    explanation=HONEYPOT_EXPLANATION
                ))
            except aiosqlite.Error as e:
                await self.bot.ops_log.error(e, f"Failed to create honeypot report for {display(user)}")
                return

            log.discord(f"Honeypot caught {display(user)} in {display(guild)}, created entry {bad_actor.id}")
            await broadcast(self.bot, BroadcastOptions(
                bad_actor=bad_actor,
                target_user=user,
                reporting_user=self.bot.user,
                broadcast_type=BroadcastType.HONEYPOT,
                origin_guild_id=guild.id,
                origin_guild=guild
            ))

    async def timeout_honeypot_trolls(self, evicted: List[HoneypotMessage]):
        if evicted:
            await asyncio.gather(*(self.timeout_troll(m) for m in evicted))

    async def timeout_troll(self, message: HoneypotMessage):
        """Times out anyone whose honeypot post just left the window, if the guild wants that."""
        try:
            config = await server_configs.get_by_guild_id(message.guild_id)
        except aiosqlite.Error as e:
            await self.bot.ops_log.error(e, f"Failed to get server config for guild {message.guild_id}")
            return
        if config is None or not config.honeypot_timeout:
            return

        channel = await get_log_channel(self.bot, config)
        guild = self.bot.get_guild(message.guild_id)
        if channel is None or guild is None:
            return

        minutes = config.honeypot_timeout
        until = discord.utils.utcnow() + timedelta(minutes=minutes)
        try:
            member = await fetch_member(guild, message.user_id)
            if member is None:
                return
            await member.timeout(until, reason="Posted in the honeypot channel")
        except discord.HTTPException as e:
            await self.bot.ops_log.error(e, f"Failed to timeout user {message.user_id} in {display(guild)}")
            return

        await send_log_message(
            channel,
            f"User {fdisplay(member)} was timed out for `{minutes}` minutes due to posting in the honeypot channel."
            f"\nTimeout end: {display_time(until)}"
        )

async def setup(bot: commands.Bot):
    await bot.add_cog(Honeypot(bot))
