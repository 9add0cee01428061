import asyncio
import os

from discord.ext import tasks, commands

from config import shared_config
from database.core import BACKUP_FILENAME, db
from utils.drive import drive_manager
from utils.logger import get_logger

log = get_logger()

SQLITE_MIMETYPE = 'application/x-sqlite3'

def upload_database_backup(db_path: str) -> bool:
    """Uploads the SQLite file to Drive, overwriting the previous backup. Blocking."""
    if not os.path.exists(db_path):
        log.error("Database file not found for backup.")
        return False

    try:
        with open(db_path, 'rb') as f:
            content_bytes = f.read()
    except OSError as e:
        log.error("Failed to read database file for backup", exc_info=e)
        return False

    existing_id = drive_manager.find_file(BACKUP_FILENAME)
    if existing_id:
        link = drive_manager.update_file(existing_id, content_bytes, mimetype=SQLITE_MIMETYPE)
        action = "Updated"
    else:
        link = drive_manager.upload_file(BACKUP_FILENAME, content_bytes, mimetype=SQLITE_MIMETYPE)
        action = "Uploaded"

    if not link:
        log.error("Backup upload failed.")
        return False

    log.info(f"Backup successful ({action}): {link}")
    return True

class BackupService(commands.Cog):
    def __init__(self, bot: commands.Bot):
        self.bot = bot
        if shared_config.DRIVE_CREDS_B64 and shared_config.DRIVE_FOLDER_ID:
            self.backup_loop.start()
            log.info("Automated Backup Service started.")
        else:
            log.warning("Google Drive credentials or Folder ID missing. Automated backups disabled.")

    def cog_unload(self):
        self.backup_loop.cancel()

    @tasks.loop(hours=2)
    async def backup_loop(self):
        """
        Runs every 2 hours. Backs up the SQLite database to Google Drive.
        """
        log.info("Starting automated database backup...")
        # The Drive client is synchronous
        await asyncio.to_thread(upload_database_backup, db.db_path)

    @backup_loop.before_loop
    async def before_backup_loop(self):
        await self.bot.wait_until_ready()
        # Skip the run at boot, the database was just restored
        await asyncio.sleep(7200)

async def setup(bot: commands.Bot):
    await bot.add_cog(BackupService(bot))
