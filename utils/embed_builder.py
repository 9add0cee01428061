import discord
from datetime import datetime, timezone
from enum import IntEnum
from typing import Optional

from utils.format import username

MAX_TITLE = 256
MAX_DESC = 4096
MAX_FIELD_NAME = 256
MAX_FIELD_VALUE = 1024
MAX_FOOTER = 2048

class EmbedColor(IntEnum):
    KIWI = 0x35AA78
    GREEN = 0x00FF00
    ORANGE = 0xFFA500
    RED = 0xFF0000
    DEEP_PINK = 0xFF1493
    YELLOW = 0xFFFF00
    GOLD = 0xFFD700

# Common error templates with troubleshooting steps
ERROR_TEMPLATES = {
    "not_whitelisted": {
        "title": "🔒 Not Whitelisted",
        "description": "You are not allowed to use this command.",
        "steps": [
            "Ask a Janitor admin to add you with `/user add`",
            "Whitelisting is done per server, make sure this server is on your entry"
        ]
    },
    "not_whitelisted_here": {
        "title": "🔒 Not Whitelisted Here",
        "description": "You are not allowed to use this command here.",
        "steps": [
            "Ask a Janitor admin to add this server to your entry with `/user update`"
        ]
    },
    "not_admin": {
        "title": "🔒 Admins Only",
        "description": "This command can only be used by an admin.",
        "steps": [
            "Run `/adminlist` to see who can help you"
        ]
    },
    "admin_server_only": {
        "title": "🔒 Admin Server Only",
        "description": "This command can only be used in the admin server.",
        "steps": []
    },
    "invalid_input": {
        "title": "❓ Invalid Input",
        "description": "The provided input is not valid.",
        "steps": [
            "IDs are plain numbers, separate multiple IDs with a comma (,)"
        ]
    }
}

def clamp(text: str, limit: int) -> str:
    if not text:
        return text
    if len(text) <= limit:
        return text
    return text[:limit - 15] + "\n*(truncated)*"

class EmbedBuilder:
    @staticmethod
    def build(
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        color: int = EmbedColor.KIWI,
        author: Optional[discord.abc.User] = None,
        footer: Optional[str] = None,
        fields: Optional[list] = None
    ) -> discord.Embed:

        embed = discord.Embed(
            title=clamp(title, MAX_TITLE),
            description=clamp(description, MAX_DESC),
            color=int(color),
            timestamp=datetime.now(timezone.utc)
        )

        if author:
            embed.set_author(
                name=clamp(username(author), MAX_TITLE),
                icon_url=author.display_avatar.url
            )

        if footer:
            embed.set_footer(text=clamp(footer, MAX_FOOTER))

        if fields:
            for name, value, inline in fields:
                embed.add_field(
                    name=clamp(str(name), MAX_FIELD_NAME),
                    value=clamp(str(value), MAX_FIELD_VALUE),
                    inline=inline
                )

        return embed

    @staticmethod
    def janitor(interaction_user: discord.abc.User, **kwargs) -> discord.Embed:
        """Kiwi colored reply embed signed with the user that requested it."""
        embed = EmbedBuilder.build(**kwargs)
        embed.set_footer(
            text=clamp(f"Requested by {username(interaction_user)}", MAX_FOOTER),
            icon_url=interaction_user.display_avatar.url
        )
        return embed

    @staticmethod
    def error(title: str, description: str, **kwargs) -> discord.Embed:
        return EmbedBuilder.build(title=title, description=description, color=EmbedColor.RED, **kwargs)

    @staticmethod
    def warning(title: str, description: str, **kwargs) -> discord.Embed:
        return EmbedBuilder.build(title=title, description=description, color=EmbedColor.GOLD, **kwargs)

    @staticmethod
    def troubleshoot(error_key: str, extra_context: str = "") -> discord.Embed:
        """
        Create an error embed with built-in troubleshooting steps.

        Args:
            error_key: Key from ERROR_TEMPLATES (e.g. 'not_admin')
            extra_context: Additional context to append to the description
        """
        template = ERROR_TEMPLATES.get(error_key, {
            "title": "Error",
            "description": "An unknown error occurred.",
            "steps": ["Please try again or contact a Janitor admin"]
        })

        description = template["description"]
        if extra_context:
            description += f"\n\n{extra_context}"

        if template.get("steps"):
            description += "\n\n**Troubleshooting:**\n"
            for step in template["steps"]:
                description += f"• {step}\n"

        return EmbedBuilder.error(
            title=template["title"],
            description=description.strip()
        )
