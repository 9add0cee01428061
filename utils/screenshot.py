import io
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import discord

from utils.logger import get_logger

log = get_logger()

ALLOWED_EXTENSIONS = ("jpeg", "jpg", "png")
MAX_SCREENSHOT_BYTES = 5 * 1024 * 1024

class ScreenshotError(Exception):
    pass

@dataclass
class Screenshot:
    filename: str
    data: bytes

    @property
    def url(self) -> str:
        return f"attachment://{self.filename}"

    def to_file(self) -> discord.File:
        # discord.File is consumed by a send, every destination needs its own
        return discord.File(io.BytesIO(self.data), filename=self.filename)

class FileManager:
    """Stores screenshot proofs on disk under generated file names."""

    def __init__(self, directory: str = "screenshots"):
        self.directory = directory

    def _path(self, filename: str) -> str:
        return os.path.join(self.directory, os.path.basename(filename))

    async def save(self, attachment: discord.Attachment, user_id: int) -> str:
        extension = attachment.filename.rsplit(".", 1)[-1].lower() if "." in attachment.filename else ""
        if extension not in ALLOWED_EXTENSIONS:
            raise ScreenshotError(f"Unsupported file type `{extension or attachment.filename}`, use jpeg, jpg or png")
        if attachment.size >= MAX_SCREENSHOT_BYTES:
            raise ScreenshotError(f"Screenshot is too large ({attachment.size} bytes), the limit is 5MB")

        data = await attachment.read()
        filename = f"{datetime.now(timezone.utc):%Y-%m-%d}_{user_id}.{extension}"

        os.makedirs(self.directory, exist_ok=True)
        with open(self._path(filename), "wb") as f:
            f.write(data)
        log.info(f"Screenshot {filename} saved.")
        return filename

    def get(self, filename: str) -> Optional[Screenshot]:
        path = self._path(filename)
        if not os.path.exists(path):
            log.warning(f"Screenshot {filename} does not exist on disk")
            return None
        with open(path, "rb") as f:
            return Screenshot(os.path.basename(filename), f.read())

    def delete(self, filename: str):
        path = self._path(filename)
        if os.path.exists(path):
            os.remove(path)
            log.info(f"Screenshot {filename} deleted.")

file_manager = FileManager()
