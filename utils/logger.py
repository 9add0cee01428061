import logging
import sys
from datetime import datetime, timezone

import discord
from colorama import init, Fore, Style

# Initialize colorama
init(autoreset=True)

class CustomFormatter(logging.Formatter):
    """
    Custom formatter with color coding for different levels/tags.
    tags: ERROR, NETWORK, DISCORD, DATABASE
    """

    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.MAGENTA + Style.BRIGHT,
        'NETWORK': Fore.BLUE,
        'DISCORD': Fore.MAGENTA,
        'DATABASE': Fore.CYAN
    }

    def format(self, record: logging.LogRecord) -> str:
        tag = getattr(record, 'tag', record.levelname)
        color = self.COLORS.get(tag, Fore.WHITE)

        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')

        # Structure: [TIMESTAMP] [TAG] Message
        log_fmt = f"{Style.DIM}[{timestamp}]{Style.RESET_ALL} {color}[{tag}]{Style.RESET_ALL} %(message)s"
        return logging.Formatter(log_fmt).format(record)

class JanitorLogger(logging.LoggerAdapter):
    """Standard logger API plus the NETWORK/DISCORD/DATABASE tagged helpers."""

    def process(self, msg, kwargs):
        return msg, kwargs

    def _tagged(self, level: int, tag: str, msg: str, **kwargs):
        extra = kwargs.pop('extra', None) or {}
        extra['tag'] = tag
        self.log(level, msg, extra=extra, **kwargs)

    def network(self, msg: str, **kwargs):
        self._tagged(logging.INFO, 'NETWORK', msg, **kwargs)

    def discord(self, msg: str, **kwargs):
        self._tagged(logging.INFO, 'DISCORD', msg, **kwargs)

    def database(self, msg: str, **kwargs):
        self._tagged(logging.INFO, 'DATABASE', msg, **kwargs)

def setup_logger(name: str = "Janitor") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)

    # Console handler
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomFormatter())

    if not logger.handlers:
        logger.addHandler(handler)

    return logger

# Global logger instance
logger = setup_logger("Janitor")
_adapter = JanitorLogger(logger, {})

def get_logger() -> JanitorLogger:
    return _adapter

log = get_logger()

def sanitize_msg(msg: str) -> str:
    """Drops a trailing '.' or '!' so the message reads well inside an embed."""
    if msg.endswith(('.', '!')):
        return msg[:-1]
    return msg

class OpsLogger:
    """
    Operations log port.

    Every warning and error is written to the console logger and then posted as an
    embed into the admin server's error log channel. One instance is built in
    ``Janitor.setup_hook`` and reached through ``bot.ops_log``.
    """

    WARN_COLOR = 0xFFFF00
    ERROR_COLOR = 0xFF0000

    def __init__(self, bot, channel_id: int):
        self.bot = bot
        self.channel_id = channel_id

    async def warn(self, msg: str):
        log.warning(msg)
        await self._post(sanitize_msg(msg), self.WARN_COLOR)

    async def error(self, error: BaseException, msg: str):
        log.error(f"{msg}: {error}")
        await self._post(f"{sanitize_msg(msg)}\n\n```{error}```", self.ERROR_COLOR)

    def build_embed(self, description: str, color: int) -> discord.Embed:
        embed = discord.Embed(
            description=description[:4096],
            color=color,
            timestamp=datetime.now(timezone.utc)
        )
        embed.set_author(name="Janitor")
        embed.set_footer(text="Error Log")
        return embed

    async def _post(self, description: str, color: int):
        try:
            channel = self.bot.get_channel(self.channel_id) or await self.bot.fetch_channel(self.channel_id)
            await channel.send(embed=self.build_embed(description, color))
        except discord.HTTPException as e:
            log.error("Failed to post to the ops error log channel", exc_info=e)
