import asyncio
from typing import List, Optional

import aiosqlite
import discord
from discord import app_commands
from discord.ext import commands

from broadcast.embed import build_broadcast_embed
from broadcast.handler import broadcast
from broadcast.listener import resolve_guild
from broadcast.types import BroadcastOptions, BroadcastType
from database import bad_actors, scores
from database.bad_actors import BadActorQueryType
from database.models import BadActor, BadActorType, CreateBadActorOptions
from utils.embed_builder import EmbedBuilder
from utils.format import display, display_time, fdisplay, username
from utils.locks import lock_user_id
from utils.logger import get_logger
from utils.permissions import whitelisted_here
from utils.screenshot import ScreenshotError, file_manager
from utils.views import ConfirmationView

log = get_logger()

MAX_DISPLAYED_ENTRIES = 10

async def fetch_target(bot, user_id: int) -> Optional[discord.User]:
    """The reported account, or None once Discord no longer knows it."""
    try:
        return bot.get_user(user_id) or await bot.fetch_user(user_id)
    except discord.NotFound:
        return None

class BadActorCommands(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot

    badactor = app_commands.Group(
        name="badactor", description="Report and manage bad actors", guild_only=True
    )

    # Helper: shared tail of every update command
    async def _broadcast_update(
        self,
        interaction: discord.Interaction,
        updated: BadActor,
        broadcast_type: BroadcastType,
        skipped_message: str
    ) -> bool:
        target_user = await fetch_target(self.bot, updated.user_id)
        if target_user is None:
            await self.bot.ops_log.warn(
                f"User with ID {updated.user_id} does not exist anymore, skipping broadcast"
            )
            await interaction.followup.send(skipped_message)
            return False

        await broadcast(self.bot, BroadcastOptions(
            bad_actor=updated,
            target_user=target_user,
            reporting_user=interaction.user,
            broadcast_type=broadcast_type,
            origin_guild_id=interaction.guild.id,
            origin_guild=interaction.guild
        ))
        return True

    async def _send_entries(self, interaction: discord.Interaction, entries: List[BadActor]):
        if not entries:
            await interaction.followup.send("There are no bad actor entries to display!")
            return
        if len(entries) > MAX_DISPLAYED_ENTRIES:
            await interaction.followup.send(f"Only {MAX_DISPLAYED_ENTRIES} entries can be displayed at one time!")
            return

        async def _build(entry: BadActor):
            target, origin = await asyncio.gather(
                fetch_target(self.bot, entry.user_id),
                resolve_guild(self.bot, entry.origin_guild_id),
                return_exceptions=True
            )
            return build_broadcast_embed(
                self.bot.user,
                entry,
                None if isinstance(target, BaseException) else target,
                interaction.user,
                origin_guild=None if isinstance(origin, BaseException) else origin
            )

        built = await asyncio.gather(*(_build(e) for e in entries))
        embeds = [embed for embed, _ in built]
        files = [screenshot.to_file() for _, screenshot in built if screenshot is not None]
        await interaction.followup.send(embeds=embeds, files=files)

    @badactor.command(name="report", description="Report a user for being naughty.")
    @app_commands.describe(
        user="The user to report. You can also paste their ID here.",
        actor_type="The type of bad act the user did.",
        screenshot="A screenshot of the bad act. You can upload a file here.",
        explanation="If you can't provide a screenshot, please explain what happened here."
    )
    @whitelisted_here()
    async def report(
        self,
        interaction: discord.Interaction,
        user: discord.User,
        actor_type: BadActorType,
        screenshot: Optional[discord.Attachment] = None,
        explanation: Optional[str] = None
    ):
        await interaction.response.defer()

        if screenshot is None and explanation is None:
            await interaction.followup.send("You have to provide either a screenshot or an explanation.")
            return

        # Held until the report is broadcast or dropped
        async with lock_user_id(user.id):
            if await bad_actors.has_active_case(user.id):
                await interaction.followup.send(f"User {fdisplay(user)} already has an active case!")
                return

            embed = EmbedBuilder.janitor(
                interaction.user,
                title=f"Info User {username(user)}",
                fields=[
                    ("ID", str(user.id), False),
                    ("Created At", display_time(user.created_at), False),
                ]
            )
            embed.set_thumbnail(url=user.display_avatar.url)

            view = ConfirmationView(author_id=interaction.user.id)
            await interaction.followup.send(
                content="Is this the user that you want to report?", embed=embed, view=view
            )
            await view.wait()

            if view.value is None:
                # Expired, leave the prompt without buttons
                await interaction.edit_original_response(view=None)
                return

            if not view.value:
                await interaction.edit_original_response(
                    content=f"Cancelled reporting user {fdisplay(user)}!", view=None
                )
                return

            await interaction.edit_original_response(
                content=f"Reporting user {fdisplay(user)} to the community and taking action...", view=None
            )

            file_name = None
            if screenshot is not None:
                try:
                    file_name = await file_manager.save(screenshot, user.id)
                except (ScreenshotError, discord.HTTPException, OSError) as e:
                    await self.bot.ops_log.error(e, f"Failed to save screenshot for {display(user)}")
                    await interaction.edit_original_response(
                        content=f"Failed to save screenshot for {fdisplay(user)}! {e}"
                    )
                    return

            try:
                bad_actor = await bad_actors.create(CreateBadActorOptions(
                    user_id=user.id,
                    actor_type=actor_type,
                    origin_guild_id=interaction.guild.id,
                    updated_by_user_id=interaction.user.id,
                    screenshot_proof=file_name,
                    explanation=explanation
                ))
            except aiosqlite.Error as e:
                await self.bot.ops_log.error(e, f"Failed to add bad actor {display(user)} to the database")
                await interaction.edit_original_response(
                    content=f"Failed to add bad actor {fdisplay(user)} to the database!"
                )
                return

            try:
                await scores.create_or_increase_scoreboards(interaction.user.id, interaction.guild.id)
            except aiosqlite.Error as e:
                await self.bot.ops_log.error(
                    e,
                    f"Failed to update scores for user {display(interaction.user)} or guild {display(interaction.guild)}"
                )

            await broadcast(self.bot, BroadcastOptions(
                bad_actor=bad_actor,
                target_user=user,
                reporting_user=interaction.user,
                broadcast_type=BroadcastType.REPORT,
                origin_guild_id=interaction.guild.id,
                origin_guild=interaction.guild
            ))

        await interaction.edit_original_response(content=f"Successfully reported {fdisplay(user)} to the community!")

    @badactor.command(name="deactivate", description="Deactivate a report.")
    @app_commands.describe(
        report_id="The ID of the report that you want to deactivate.",
        explanation="Reason for deactivating the report"
    )
    @whitelisted_here()
    async def deactivate(self, interaction: discord.Interaction, report_id: int, explanation: str):
        await interaction.response.defer()

        entry = await bad_actors.get_by_id(report_id)
        if entry is None:
            await interaction.followup.send("There is no such entry in the database!")
            return
        if not entry.is_active:
            await interaction.followup.send("This entry is not active!")
            return

        deactivated = await bad_actors.deactivate(report_id, explanation, interaction.user.id)
        sent = await self._broadcast_update(
            interaction,
            deactivated,
            BroadcastType.DEACTIVATE,
            "This user's account no longer exists, deactivating it does not have any impact."
        )
        if sent:
            await interaction.followup.send(f"Successfully disabled report entry {report_id}.")

    @badactor.command(name="display_latest", description="Display the latest reports.")
    @app_commands.describe(
        limit="The amount of entries you want to display. Max 10. Defaults to 5.",
        report_type="The type of reports you want to display. Defaults to all report types."
    )
    @whitelisted_here()
    async def display_latest(
        self,
        interaction: discord.Interaction,
        limit: app_commands.Range[int, 1, 255] = 5,
        report_type: BadActorQueryType = BadActorQueryType.ALL
    ):
        await interaction.response.defer()
        entries = await bad_actors.get_latest(min(limit, MAX_DISPLAYED_ENTRIES), report_type)
        await self._send_entries(interaction, entries)

    @badactor.command(name="display_by_user", description="Display every report of a user.")
    @app_commands.describe(user="The user to display the reports from. You can also paste their ID here.")
    @whitelisted_here()
    async def display_by_user(self, interaction: discord.Interaction, user: discord.User):
        await interaction.response.defer()

        entries = await bad_actors.get_by_user_id(user.id)
        if not entries:
            await interaction.followup.send(f"User {fdisplay(user)} does not have any entries.")
            return
        await self._send_entries(interaction, entries)

    @badactor.command(name="add_screenshot", description="Add a screenshot proof to a report.")
    @app_commands.describe(
        report_id="The report ID you want to add the screenshot to.",
        screenshot="The screenshot you want to add. You can upload a file here."
    )
    @whitelisted_here()
    async def add_screenshot(self, interaction: discord.Interaction, report_id: int, screenshot: discord.Attachment):
        await interaction.response.defer()

        entry = await bad_actors.get_by_id(report_id)
        if entry is None:
            await interaction.followup.send("There is no entry with this report ID!")
            return
        if entry.screenshot_proof:
            await interaction.followup.send(
                "This report ID already has a screenshot proof. "
                "Please use `/badactor replace_screenshot` if you want to overwrite it."
            )
            return

        await self._store_screenshot(interaction, entry, screenshot, BroadcastType.ADD_SCREENSHOT)

    @badactor.command(name="replace_screenshot", description="Replace the screenshot proof of a report.")
    @app_commands.describe(
        report_id="The report ID you want to replace the screenshot of.",
        screenshot="The screenshot you want replace the old one with. You can upload a file here."
    )
    @whitelisted_here()
    async def replace_screenshot(self, interaction: discord.Interaction, report_id: int, screenshot: discord.Attachment):
        await interaction.response.defer()

        entry = await bad_actors.get_by_id(report_id)
        if entry is None:
            await interaction.followup.send("There is no entry with this report ID!")
            return
        if not entry.screenshot_proof:
            await interaction.followup.send(
                "This report ID does not have a screenshot proof yet. "
                "Please use `/badactor add_screenshot` if you want to provide one for it."
            )
            return

        await self._store_screenshot(interaction, entry, screenshot, BroadcastType.REPLACE_SCREENSHOT)

    async def _store_screenshot(
        self,
        interaction: discord.Interaction,
        entry: BadActor,
        screenshot: discord.Attachment,
        broadcast_type: BroadcastType
    ):
        try:
            new_name = await file_manager.save(screenshot, entry.user_id)
        except (ScreenshotError, discord.HTTPException, OSError) as e:
            await self.bot.ops_log.error(e, "Failed to save screenshot")
            await interaction.followup.send(f"Failed to save screenshot! {e}")
            return

        # Same day and same user produce the same name, the new file already replaced the old one
        if entry.screenshot_proof and entry.screenshot_proof != new_name:
            file_manager.delete(entry.screenshot_proof)

        updated = await bad_actors.update_screenshot(entry.id, new_name, interaction.user.id)
        sent = await self._broadcast_update(
            interaction,
            updated,
            broadcast_type,
            "This user's account no longer exists. "
            "The screenshot was updated in the database but broadcasting will be skipped."
        )
        if sent:
            await interaction.followup.send(f"Successfully updated screenshot for report entry {entry.id}.")

    @badactor.command(name="update_explanation", description="Update the explanation of a report.")
    @app_commands.describe(
        report_id="The report ID you want to update the explanation of.",
        explanation="The updated explanation you want to provide for the report."
    )
    @whitelisted_here()
    async def update_explanation(self, interaction: discord.Interaction, report_id: int, explanation: str):
        await interaction.response.defer()

        if await bad_actors.get_by_id(report_id) is None:
            await interaction.followup.send("There is no entry with this report ID!")
            return

        updated = await bad_actors.update_explanation(report_id, explanation, interaction.user.id)
        sent = await self._broadcast_update(
            interaction,
            updated,
            BroadcastType.UPDATE_EXPLANATION,
            "This user's account no longer exists. "
            "The explanation was updated in the database but broadcasting will be skipped."
        )
        if sent:
            await interaction.followup.send(f"Successfully updated explanation for report entry {report_id}.")

async def setup(bot: commands.Bot):
    await bot.add_cog(BadActorCommands(bot))
