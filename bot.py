#    Janitor - community moderation bot sharing bad actor reports across servers
#    Licensed under the GNU Affero General Public License v3.0

import discord
from discord.ext import commands
import os
import sys
import signal
import asyncio
import time
import contextlib

import aiohttp
import aiosqlite

from config import shared_config
from database.core import db
from services.backup import upload_database_backup
from utils.logger import get_logger, OpsLogger
from utils.screenshot import file_manager

log = get_logger()

class Janitor(commands.AutoShardedBot):
    def __init__(self):
        intents = discord.Intents.default()
        intents.members = True
        intents.message_content = True # Honeypot detection reads messages

        super().__init__(
            command_prefix="j!", # Fallback, we only use slash commands
            intents=intents,
            help_command=None,
            shard_count=shared_config.SHARD_COUNT if shared_config.SHARD_COUNT > 1 else None
        )
        self.start_time = time.time()
        self._is_shutting_down = False
        self._ready_once = asyncio.Event()
        self.http_session: aiohttp.ClientSession = None
        self.ops_log = OpsLogger(self, shared_config.ADMIN_SERVER_ERROR_LOG_CHANNEL)

    async def setup_hook(self):
        """
        Async setup hook to initialize DB and load extensions.
        """
        db.db_path = shared_config.DATABASE_PATH
        file_manager.directory = shared_config.SCREENSHOT_DIR
        os.makedirs(file_manager.directory, exist_ok=True)

        # Attempt to restore from Drive if available
        await db.restore_from_drive()
        await db.connect()

        # Webhook broadcasts share one session
        self.http_session = aiohttp.ClientSession()

        await self._load_extensions_from("commands")
        await self._load_extensions_from("services")

        try:
            synced = await self.tree.sync()
            log.discord(f"Synced {len(synced)} command(s) globally.")
        except discord.HTTPException as e:
            log.error("Failed to sync commands", exc_info=e)

    async def _load_extensions_from(self, folder: str):
        if not os.path.exists(folder):
            return

        failed_extensions = []
        for filename in sorted(os.listdir(folder)):
            if filename.endswith(".py") and not filename.startswith("__"):
                extension_name = f"{folder}.{filename[:-3]}"
                try:
                    await self.load_extension(extension_name)
                    log.info(f"Loaded extension: {extension_name}")
                except commands.ExtensionError as e:
                    failed_extensions.append(extension_name)
                    log.error(f"Failed to load extension {extension_name}", exc_info=e)

        if failed_extensions:
            log.error(f"Failed to load extensions: {failed_extensions}")
        else:
            log.discord(f"All extensions in {folder}/ loaded successfully.")

    async def on_ready(self):
        # Only run once, even though each shard calls on_ready
        if not self._ready_once.is_set():
            total_shards = self.shard_count or 1
            log.network(f"Bot is online as {self.user} (ID: {self.user.id})")
            log.network(f"Connected to {len(self.guilds)} guilds across {total_shards} shard(s).")
            if shared_config.IS_RAILWAY:
                log.network("Environment: Railway Detected.")

            await self.change_presence(activity=discord.Activity(
                type=discord.ActivityType.watching,
                name=f"over {len(self.guilds)} communities"
            ))

            self._ready_once.set()
        else:
            log.network(f"Session resumed after {time.time() - self.start_time:.2f} seconds.")

    async def on_shard_ready(self, shard_id):
        guilds = [g for g in self.guilds if g.shard_id == shard_id]
        log.network(f"[Shard {shard_id}] ready - handling {len(guilds)} guild(s).")

    async def on_shard_disconnect(self, shard_id):
        log.network(f"[Shard {shard_id}] disconnected - waiting for resume.")

    async def on_shard_resumed(self, shard_id):
        log.network(f"[Shard {shard_id}] resumed connection.")

# Bot Instance
bot = Janitor()

async def kill_all_tasks():
    current = asyncio.current_task()
    for task in asyncio.all_tasks():
        if task is current:
            continue
        task.cancel()
    await asyncio.sleep(1)

async def graceful_shutdown():
    log.info("Shutdown signal received - performing cleanup...")
    bot._is_shutting_down = True

    # Let ongoing broadcasts wrap up
    await asyncio.sleep(1)

    if os.path.exists(db.db_path):
        log.info("Uploading database backup...")
        await asyncio.to_thread(upload_database_backup, db.db_path)

    if bot.http_session and not bot.http_session.closed:
        await bot.http_session.close()

    try:
        await db.close()
    except aiosqlite.Error as e:
        log.error("Failed to close database", exc_info=e)

    await kill_all_tasks()
    with contextlib.suppress(discord.DiscordException, RuntimeError):
        await bot.close()

    log.info("Shutdown complete. Janitor signing off.")
    sys.exit(0)

async def main():
    async with bot:
        shutdown_signal = asyncio.get_event_loop().create_future()

        def _signal_handler():
            if not shutdown_signal.done():
                shutdown_signal.set_result(True)

        loop = asyncio.get_event_loop()
        # Windows has no add_signal_handler, Ctrl+C arrives as KeyboardInterrupt
        if sys.platform != 'win32':
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.add_signal_handler(sig, _signal_handler)
                except (NotImplementedError, RuntimeError) as e:
                    log.error(f"Failed to register signal handler for {sig!r}: {e}")

        bot_task = asyncio.create_task(bot.start(shared_config.DISCORD_TOKEN))

        try:
            if sys.platform != 'win32':
                await asyncio.wait({bot_task, shutdown_signal}, return_when=asyncio.FIRST_COMPLETED)
            else:
                await bot_task
        except asyncio.CancelledError:
            log.info("Main task cancelled; initiating cleanup.")
        except KeyboardInterrupt:
            log.info("KeyboardInterrupt received; initiating cleanup.")
        finally:
            if not bot_task.done():
                bot_task.cancel()
                try:
                    await bot_task
                except asyncio.CancelledError:
                    pass

            await graceful_shutdown()

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
