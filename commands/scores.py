import asyncio
from enum import Enum
from typing import Callable, List

import discord
from discord import app_commands
from discord.ext import commands

from broadcast.listener import resolve_guild
from database import scores
from database.models import Scoreboard
from utils.embed_builder import EmbedBuilder
from utils.format import fdisplay, inline_code, user_mention
from utils.permissions import whitelisted

LEADERBOARD_SIZE = 10
HERO_THRESHOLD = 20

class ScoreboardType(str, Enum):
    USERS = "users"
    SERVERS = "servers"

def guild_score_message(guild: discord.Guild, score: int) -> str:
    if score == 0:
        return f"Admins from {fdisplay(guild)} have not created any reports for bad actors yet."
    return f"Admins from {fdisplay(guild)} have reported {score} bad actors. Thank you for keeping the community safe!"

def user_score_message(user: discord.abc.User, score: int) -> str:
    if score == 0:
        return f"User {fdisplay(user)} has not created any reports for bad actors yet."
    if score <= HERO_THRESHOLD:
        return f"User {fdisplay(user)} has reported {score} bad actors so far. Keep up the good work!"
    return f"User {fdisplay(user)} has reported {score} bad actors so far. What a hero!"

def format_leaderboard(entries: List[Scoreboard], name_of: Callable[[Scoreboard], str]) -> str:
    lines = [
        f"{i}. {name_of(s)}: {inline_code(s.score)}"
        for i, s in enumerate((s for s in entries if s.score > 0), start=1)
    ]
    return "\n".join(lines) or "Nobody has reported anyone yet."

class Scores(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    scores_group = app_commands.Group(name="scores", description="Report scores and leaderboards", guild_only=True)

    @scores_group.command(name="server", description="Check the report score of a server.")
    @app_commands.describe(server_id="The ID of the guild you want to get the scores for.")
    @whitelisted()
    async def server(self, interaction: discord.Interaction, server_id: str):
        await interaction.response.defer()

        if not server_id.strip().isdigit():
            await interaction.followup.send(embed=EmbedBuilder.troubleshoot("invalid_input"))
            return

        try:
            guild = await resolve_guild(self.bot, int(server_id))
        except discord.HTTPException:
            await interaction.followup.send(f"Could not find server `{server_id.strip()}`!")
            return
        board = await scores.get_guild_score(guild.id)
        await interaction.followup.send(guild_score_message(guild, board.score))

    @scores_group.command(name="user", description="Check the report score of a user.")
    @app_commands.describe(user="The user that you want to see the scores for.")
    @whitelisted()
    async def user(self, interaction: discord.Interaction, user: discord.User):
        await interaction.response.defer()
        board = await scores.get_user_score(user.id)
        await interaction.followup.send(user_score_message(user, board.score))

    @scores_group.command(name="leaderboard", description="Check the leaderboards.")
    @app_commands.describe(scoreboard_type="The type of scoreboard you want.")
    @whitelisted()
    async def leaderboard(self, interaction: discord.Interaction, scoreboard_type: ScoreboardType):
        await interaction.response.defer()

        if scoreboard_type is ScoreboardType.USERS:
            top = await scores.get_top_users(LEADERBOARD_SIZE)
            title = "Top 10 Users with the most reports"
            description = format_leaderboard(top, lambda s: user_mention(s.discord_id))
        else:
            top = await scores.get_top_guilds(LEADERBOARD_SIZE)
            guilds = await asyncio.gather(*(resolve_guild(self.bot, s.discord_id) for s in top), return_exceptions=True)
            names = {
                s.discord_id: (g.name if isinstance(g, discord.Guild) else str(s.discord_id))
                for s, g in zip(top, guilds)
            }
            title = "Top 10 Guilds with the most reports"
            description = format_leaderboard(top, lambda s: names[s.discord_id])

        await interaction.followup.send(
            embed=EmbedBuilder.janitor(interaction.user, title=title, description=description)
        )

async def setup(bot: commands.Bot):
    await bot.add_cog(Scores(bot))
