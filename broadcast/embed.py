from typing import Optional, Tuple

import discord

from database.models import BadActor
from utils.embed_builder import EmbedBuilder, EmbedColor
from utils.format import display_bool, fdisplay, inline_code, user_mention, username
from utils.screenshot import Screenshot, file_manager

FIELD_REPORT_ID = "Report ID"
FIELD_ACTIVE = "Active"
FIELD_TYPE = "Type"
FIELD_EXPLANATION = "Explanation"
FIELD_ORIGIN = "Server of Origin"
FIELD_UPDATED_BY = "Last Updated By"

# Every broadcast embed carries exactly these fields
BROADCAST_FIELD_NAMES = (
    FIELD_REPORT_ID,
    FIELD_ACTIVE,
    FIELD_TYPE,
    FIELD_EXPLANATION,
    FIELD_ORIGIN,
    FIELD_UPDATED_BY,
)

def build_broadcast_embed(
    bot_user: Optional[discord.ClientUser],
    bad_actor: BadActor,
    target_user: Optional[discord.abc.User],
    reporting_user: Optional[discord.abc.User],
    color: int = EmbedColor.KIWI,
    origin_guild: Optional[discord.Guild] = None
) -> Tuple[discord.Embed, Optional[Screenshot]]:
    """
    Builds the embed describing a bad actor entry.

    The same embed is used for the admin server, every listener, the webhooks and the
    /badactor display commands. When the entry has a screenshot on disk it is returned
    next to the embed, and the embed image points at it.
    """
    if target_user is not None:
        title = f"{username(target_user)} ({inline_code(target_user.id)})"
    else:
        title = f"Unknown User ({inline_code(bad_actor.user_id)})"

    origin = fdisplay(origin_guild) if origin_guild is not None else inline_code(bad_actor.origin_guild_id)
    updated_by = f"{user_mention(bad_actor.updated_by_user_id)} ({inline_code(bad_actor.updated_by_user_id)})"

    embed = EmbedBuilder.build(
        title=title,
        color=color,
        author=reporting_user,
        fields=[
            (FIELD_REPORT_ID, inline_code(bad_actor.id), True),
            (FIELD_ACTIVE, display_bool(bad_actor.is_active), True),
            (FIELD_TYPE, str(bad_actor.actor_type), True),
            (FIELD_EXPLANATION, bad_actor.explanation or "No explanation provided.", False),
            (FIELD_ORIGIN, origin, False),
            (FIELD_UPDATED_BY, updated_by, False),
        ]
    )

    if target_user is not None:
        embed.set_thumbnail(url=target_user.display_avatar.url)

    if bot_user is not None:
        embed.set_footer(text=bot_user.name, icon_url=bot_user.display_avatar.url)

    screenshot = None
    if bad_actor.screenshot_proof:
        screenshot = file_manager.get(bad_actor.screenshot_proof)
        if screenshot is not None:
            embed.set_image(url=screenshot.url)

    return embed, screenshot
