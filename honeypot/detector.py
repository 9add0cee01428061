import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Tuple

DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_CHANNEL_THRESHOLD = 3

@dataclass
class HoneypotMessage:
    guild_id: int
    user_id: int
    channel_id: int
    content: str
    # time.monotonic()
    timestamp: float
    is_in_honeypot: bool

class HoneypotQueue:
    """
    Sliding window over recent guild messages.

    A user is reported once they post byte identical content in at least
    ``channel_threshold`` distinct channels within ``window_seconds`` and at least one
    of those posts landed in a honeypot channel. Counting channels instead of messages
    ignores bots that hammer a single channel and legitimate cross posts that never
    touch a honeypot.
    """

    def __init__(self, window_seconds: float = DEFAULT_WINDOW_SECONDS, channel_threshold: int = DEFAULT_CHANNEL_THRESHOLD):
        self.window_seconds = window_seconds
        self.channel_threshold = channel_threshold
        self.messages: Deque[HoneypotMessage] = deque()
        self._lock = asyncio.Lock()

    def remove_old_messages(self, now: float) -> List[HoneypotMessage]:
        """Drops everything that left the window, returns the dropped honeypot posts."""
        evicted = []
        kept: Deque[HoneypotMessage] = deque()
        for message in self.messages:
            if now - message.timestamp >= self.window_seconds:
                if message.is_in_honeypot:
                    evicted.append(message)
            else:
                kept.append(message)
        self.messages = kept
        return evicted

    def should_report(self, new_message: HoneypotMessage) -> bool:
        seen_channels = {new_message.channel_id}
        in_honeypot = new_message.is_in_honeypot

        for message in self.messages:
            if message.user_id != new_message.user_id or message.content != new_message.content:
                continue
            seen_channels.add(message.channel_id)
            in_honeypot = in_honeypot or message.is_in_honeypot

        return len(seen_channels) >= self.channel_threshold and in_honeypot

    async def push(self, new_message: HoneypotMessage) -> Tuple[bool, List[HoneypotMessage]]:
        """
        Evicts, checks and records a message as one atomic step.

        Returns whether the author should be reported and the honeypot messages that
        just aged out of the window.
        """
        async with self._lock:
            evicted = self.remove_old_messages(new_message.timestamp)
            report = self.should_report(new_message)
            self.messages.append(new_message)
        return report, evicted
