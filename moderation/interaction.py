import re
from dataclasses import dataclass
from typing import Optional

import aiosqlite
import discord

from broadcast.embed import BROADCAST_FIELD_NAMES, FIELD_REPORT_ID, FIELD_TYPE
from broadcast.listener import get_log_channel, resolve_user
from broadcast.moderate import ban, get_ban_reason, softban
from broadcast.types import ModerationAction
from database import bad_actors, server_configs
from utils.format import display, fdisplay, inline_code
from utils.logger import get_logger

log = get_logger()

# Discord's JSON error code for "Unknown Ban"
UNKNOWN_BAN = 10026

# Custom ids owned by the report confirmation flow, ignored here
CONFIRMATION_IDS = ("confirm", "cancel")

BUTTON_STYLES = {
    ModerationAction.BAN: discord.ButtonStyle.danger,
    ModerationAction.SOFTBAN: discord.ButtonStyle.danger,
    ModerationAction.KICK: discord.ButtonStyle.primary,
    ModerationAction.UNBAN: discord.ButtonStyle.success,
    ModerationAction.NO_ACTION: discord.ButtonStyle.secondary,
}

_TITLE_ID = re.compile(r"`(\d+)`")

@dataclass
class ButtonTarget:
    action: ModerationAction
    user_id: int
    report_id: Optional[int] = None
    # only known for buttons parsed out of an embed
    actor_type: Optional[str] = None

class ModerationButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=r"janitor:(?P<action>ban|softban|kick|unban|no_action):(?P<report_id>[0-9]+):(?P<user_id>[0-9]+)"
):
    """A broadcast button that carries its own report and target in the custom id."""

    def __init__(self, action: ModerationAction, report_id: int, user_id: int):
        super().__init__(
            discord.ui.Button(
                label=action.label,
                style=BUTTON_STYLES[action],
                custom_id=f"janitor:{action.value}:{report_id}:{user_id}"
            )
        )
        self.action = action
        self.report_id = report_id
        self.user_id = user_id

    @classmethod
    async def from_custom_id(cls, interaction: discord.Interaction, item: discord.ui.Button, match: re.Match[str], /):
        return cls(ModerationAction(match["action"]), int(match["report_id"]), int(match["user_id"]))

    async def callback(self, interaction: discord.Interaction):
        target = ButtonTarget(self.action, self.user_id, report_id=self.report_id)
        await handle_moderation_button(interaction.client, interaction, target)

def parse_broadcast_embed(embed: discord.Embed, action: ModerationAction) -> Optional[ButtonTarget]:
    """
    Recovers the target of a button that predates the report id custom ids.

    Only embeds whose field names are exactly the broadcast fields are trusted, the
    user id comes out of the inline code span in the title.
    """
    names = [f.name for f in embed.fields]
    if len(names) != len(BROADCAST_FIELD_NAMES) or set(names) != set(BROADCAST_FIELD_NAMES):
        return None

    match = _TITLE_ID.search(embed.title or "")
    if match is None:
        return None

    fields = {f.name: (f.value or "").strip("`") for f in embed.fields}
    report_id = int(fields[FIELD_REPORT_ID]) if fields[FIELD_REPORT_ID].isdigit() else None
    return ButtonTarget(action, int(match.group(1)), report_id=report_id, actor_type=fields[FIELD_TYPE] or None)

def parse_legacy_custom_id(custom_id: str) -> Optional[ModerationAction]:
    if custom_id in CONFIRMATION_IDS:
        return None
    try:
        return ModerationAction(custom_id)
    except ValueError:
        return None

async def handle_legacy_interaction(bot, interaction: discord.Interaction):
    """Routes clicks on buttons that only carry a bare action as custom id."""
    if interaction.type is not discord.InteractionType.component:
        return
    custom_id = (interaction.data or {}).get("custom_id", "")
    action = parse_legacy_custom_id(custom_id)
    if action is None or action is ModerationAction.NO_ACTION:
        return
    if interaction.message is None or not interaction.message.embeds:
        return

    target = parse_broadcast_embed(interaction.message.embeds[0], action)
    if target is None:
        log.warning(f"Ignoring `{custom_id}` button on a message that is not a broadcast embed")
        return
    await handle_moderation_button(bot, interaction, target)

async def _ban_reason(target: ButtonTarget, server_config) -> str:
    if target.report_id is not None:
        bad_actor = await bad_actors.get_by_id(target.report_id)
        if bad_actor is not None:
            return get_ban_reason(server_config, bad_actor)
    return f"Bad Actor {target.actor_type or 'unknown'} ({target.report_id})"

async def _strip_buttons(interaction: discord.Interaction):
    if interaction.message is None:
        return
    try:
        await interaction.message.edit(view=None)
    except discord.HTTPException as e:
        log.error("Failed to remove moderation buttons from broadcast message", exc_info=e)

async def _send(channel, content: str):
    try:
        await channel.send(content)
    except discord.HTTPException as e:
        log.error(f"Failed to send moderation log message to channel {channel.id}", exc_info=e)

async def handle_moderation_button(bot, interaction: discord.Interaction, target: ButtonTarget):
    """
    Runs the action a human picked from a broadcast's buttons.

    Membership and ignored roles are not checked, the clicking moderator already
    decided. The buttons are removed afterwards so the message cannot be actioned twice.
    """
    action = target.action
    guild = interaction.guild
    if action is ModerationAction.NO_ACTION or guild is None:
        return

    clicker = interaction.user
    permissions = getattr(clicker, "guild_permissions", None)
    if permissions is None or not getattr(permissions, action.required_permission):
        log.warning(f"{display(clicker)} tried to {action} without the {action.required_permission} permission in {display(guild)}")
        await interaction.response.send_message(
            f"You need the `{action.required_permission}` permission to use this button.", ephemeral=True
        )
        return

    await interaction.response.defer()

    try:
        user = await resolve_user(bot, target.user_id)
        user_display = fdisplay(user)
        user_log = display(user)
    except discord.HTTPException:
        user = None
        user_display = inline_code(target.user_id)
        user_log = str(target.user_id)

    try:
        server_config = await server_configs.get_by_guild_id(guild.id)
        reason = await _ban_reason(target, server_config)
    except aiosqlite.Error as e:
        await bot.ops_log.error(e, f"Failed to load moderation context for {user_log} in {display(guild)}")
        return

    channel = await get_log_channel(bot, server_config)
    if channel is None:
        await bot.ops_log.warn(f"Cannot moderate {user_log} in guild {display(guild)} because of missing log channel")
        return

    snowflake = user or discord.Object(id=target.user_id)
    try:
        if action is ModerationAction.BAN:
            await ban(guild, snowflake, reason)
        elif action is ModerationAction.SOFTBAN:
            await softban(guild, snowflake, reason)
        elif action is ModerationAction.KICK:
            await guild.kick(snowflake, reason=reason)
        elif action is ModerationAction.UNBAN:
            await guild.unban(snowflake, reason=f"Unbanned by {display(clicker)} via broadcast buttons")
    except discord.NotFound as e:
        if action is ModerationAction.UNBAN and e.code == UNKNOWN_BAN:
            await _send(
                channel,
                f"Failed to unban user {user_display}. Their ban was not found which most likely means "
                "they were not banned in the first place."
            )
        else:
            await bot.ops_log.error(e, f"Failed to {action} user {user_log} in {display(guild)}")
            await _send(channel, f"Failed to {action} user {user_display} from your guild!")
    except discord.HTTPException as e:
        await bot.ops_log.error(e, f"Failed to {action} user {user_log} in {display(guild)}")
        await _send(channel, f"Failed to {action} user {user_display} from your guild!")
    else:
        await _send(
            channel,
            f"{clicker.mention} took moderation action `{action}` against user {user_display} "
            "using the broadcast embed buttons."
        )

    await _strip_buttons(interaction)
