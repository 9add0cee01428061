import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import List, Optional

def parse_timestamp(value) -> datetime:
    """SQLite CURRENT_TIMESTAMP values are naive UTC strings."""
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

class ActionLevel(IntEnum):
    NOTIFY = 0
    TIMEOUT = 1
    KICK = 2
    SOFTBAN = 3
    BAN = 4

    def __str__(self) -> str:
        return self.name.lower()

class BadActorType(str, Enum):
    SPAM = "spam"
    IMPERSONATION = "impersonation"
    BIGOTRY = "bigotry"
    HONEYPOT = "honeypot"

    def __str__(self) -> str:
        return self.value

class UserType(str, Enum):
    REPORTER = "reporter"
    LISTENER = "listener"

    def __str__(self) -> str:
        return self.value

@dataclass
class BadActor:
    id: int
    user_id: int
    is_active: bool
    actor_type: BadActorType
    origin_guild_id: int
    screenshot_proof: Optional[str]
    explanation: Optional[str]
    created_at: datetime
    updated_at: datetime
    updated_by_user_id: int

    @classmethod
    def from_row(cls, row) -> "BadActor":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            is_active=bool(row["is_active"]),
            actor_type=BadActorType(row["actor_type"]),
            origin_guild_id=row["origin_guild_id"],
            screenshot_proof=row["screenshot_proof"],
            explanation=row["explanation"],
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
            updated_by_user_id=row["updated_by_user_id"],
        )

@dataclass
class CreateBadActorOptions:
    user_id: int
    actor_type: BadActorType
    origin_guild_id: int
    updated_by_user_id: int
    screenshot_proof: Optional[str] = None
    explanation: Optional[str] = None

@dataclass
class ServerConfig:
    guild_id: int
    log_channel_id: Optional[int] = None
    honeypot_channel_id: Optional[int] = None
    ping_users: bool = False
    ping_role: Optional[int] = None
    spam_action_level: ActionLevel = ActionLevel.NOTIFY
    impersonation_action_level: ActionLevel = ActionLevel.NOTIFY
    bigotry_action_level: ActionLevel = ActionLevel.NOTIFY
    honeypot_action_level: ActionLevel = ActionLevel.NOTIFY
    ignored_roles: List[int] = field(default_factory=list)
    ban_reason: Optional[str] = None
    # minutes, 0 means off
    honeypot_timeout: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "ServerConfig":
        return cls(
            guild_id=row["guild_id"],
            log_channel_id=row["log_channel_id"],
            honeypot_channel_id=row["honeypot_channel_id"],
            ping_users=bool(row["ping_users"]),
            ping_role=row["ping_role"],
            spam_action_level=ActionLevel(row["spam_action_level"]),
            impersonation_action_level=ActionLevel(row["impersonation_action_level"]),
            bigotry_action_level=ActionLevel(row["bigotry_action_level"]),
            honeypot_action_level=ActionLevel(row["honeypot_action_level"]),
            ignored_roles=[int(r) for r in json.loads(row["ignored_roles"] or "[]")],
            ban_reason=row["ban_reason"],
            honeypot_timeout=row["honeypot_timeout"],
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    def action_level_for(self, actor_type: BadActorType) -> ActionLevel:
        return {
            BadActorType.SPAM: self.spam_action_level,
            BadActorType.IMPERSONATION: self.impersonation_action_level,
            BadActorType.BIGOTRY: self.bigotry_action_level,
            BadActorType.HONEYPOT: self.honeypot_action_level,
        }[actor_type]

@dataclass
class JanitorUser:
    user_id: int
    user_type: UserType
    guild_ids: List[int]
    created_at: datetime

    @classmethod
    def from_row(cls, row) -> "JanitorUser":
        return cls(
            user_id=row["id"],
            user_type=UserType(row["user_type"]),
            guild_ids=[int(g) for g in json.loads(row["servers"] or "[]")],
            created_at=parse_timestamp(row["created_at"]),
        )

@dataclass
class Admin:
    user_id: int
    created_at: datetime

@dataclass
class Scoreboard:
    discord_id: int
    score: int

@dataclass
class BroadcastWebhook:
    guild_id: int
    guild_name: str
    webhook_url: str
