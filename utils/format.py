from datetime import datetime

def username(user) -> str:
    """Global display name when the user has one, otherwise the account name."""
    return getattr(user, "global_name", None) or user.name

def escape_markdown(text: str) -> str:
    # Everything that is not alphanumeric or whitespace gets a backslash
    return "".join(c if c.isalnum() or c.isspace() else f"\\{c}" for c in text)

def inline_code(text) -> str:
    return f"`{text}`"

def display(entity) -> str:
    """`name (id)` for users, guilds and anything else with a name and an id."""
    name = username(entity) if hasattr(entity, "global_name") else entity.name
    return f"{name} ({entity.id})"

def fdisplay(entity) -> str:
    """Markdown safe variant of display() for messages that users read."""
    name = username(entity) if hasattr(entity, "global_name") else entity.name
    return f"{escape_markdown(name)} ({inline_code(entity.id)})"

def user_mention(user_id: int) -> str:
    return f"<@{user_id}>"

def role_mention(role_id: int) -> str:
    return f"<@&{role_id}>"

def channel_mention(channel_id: int) -> str:
    return f"<#{channel_id}>"

def display_time(dt: datetime) -> str:
    ts = int(dt.timestamp())
    return f"<t:{ts}:D>\n<t:{ts}:R>"

def display_bool(value: bool) -> str:
    return "Yes" if value else "No"
