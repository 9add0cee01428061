from typing import Iterable, Set

from database import server_configs
from database.models import ServerConfig
from utils.logger import get_logger

log = get_logger()

class HoneypotChannels:
    """In memory copy of every configured honeypot channel id, checked on each message."""

    def __init__(self):
        self._ids: Set[int] = set()

    def __contains__(self, channel_id: int) -> bool:
        return channel_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    async def load(self):
        self._ids = await server_configs.get_honeypot_channels()
        log.database(f"Loaded {len(self._ids)} honeypot channel(s)")

    def add(self, channel_id: int):
        self._ids.add(channel_id)

    def discard(self, channel_id: int):
        self._ids.discard(channel_id)

    def forget(self, configs: Iterable[ServerConfig]):
        """Drops the honeypots of deleted server configs."""
        for config in configs:
            if config.honeypot_channel_id is not None:
                self._ids.discard(config.honeypot_channel_id)

honeypot_channels = HoneypotChannels()
