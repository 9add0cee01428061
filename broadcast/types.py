from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import discord

from database.models import BadActor
from utils.embed_builder import EmbedColor

class ModerationAction(str, Enum):
    """Actions a human can take from the buttons under a broadcast."""
    BAN = "ban"
    SOFTBAN = "softban"
    KICK = "kick"
    UNBAN = "unban"
    NO_ACTION = "no_action"

    def __str__(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return {
            ModerationAction.BAN: "Ban",
            ModerationAction.SOFTBAN: "Softban",
            ModerationAction.KICK: "Kick",
            ModerationAction.UNBAN: "Unban",
            ModerationAction.NO_ACTION: "No Action",
        }[self]

    @property
    def required_permission(self) -> str:
        return "kick_members" if self is ModerationAction.KICK else "ban_members"

NEW_REPORT_BUTTONS = (ModerationAction.BAN, ModerationAction.SOFTBAN, ModerationAction.KICK)

@dataclass(frozen=True)
class BroadcastDescriptor:
    message: str
    color: EmbedColor
    is_new_report: bool
    buttons: Tuple[ModerationAction, ...] = ()

class BroadcastType(Enum):
    REPORT = BroadcastDescriptor(
        "A bad actor has been reported.", EmbedColor.RED, True, NEW_REPORT_BUTTONS
    )
    DEACTIVATE = BroadcastDescriptor(
        "A bad actor has been deactivated.", EmbedColor.GREEN, False, (ModerationAction.UNBAN,)
    )
    ADD_SCREENSHOT = BroadcastDescriptor(
        "A screenshot proof has been added to a bad actor entry.", EmbedColor.YELLOW, False
    )
    REPLACE_SCREENSHOT = BroadcastDescriptor(
        "A screenshot has been replaced for a bad actor.", EmbedColor.ORANGE, False
    )
    UPDATE_EXPLANATION = BroadcastDescriptor(
        "The explanation for a bad actor has been updated.", EmbedColor.ORANGE, False
    )
    HONEYPOT = BroadcastDescriptor(
        "A bad actor was caught by the honeypot.", EmbedColor.DEEP_PINK, True, NEW_REPORT_BUTTONS
    )

    @property
    def message(self) -> str:
        return self.value.message

    @property
    def color(self) -> EmbedColor:
        return self.value.color

    @property
    def is_new_report(self) -> bool:
        return self.value.is_new_report

    @property
    def buttons(self) -> Tuple[ModerationAction, ...]:
        return self.value.buttons

@dataclass
class BroadcastOptions:
    bad_actor: BadActor
    target_user: discord.abc.User
    reporting_user: discord.abc.User
    broadcast_type: BroadcastType
    origin_guild_id: int
    origin_guild: Optional[discord.Guild] = None
