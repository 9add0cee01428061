import os
import base64
import json
from enum import Enum
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()

class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"

class Config:
    def __init__(self):
        self.DISCORD_TOKEN = self._get_required("DISCORD_TOKEN")
        self.ENVIRONMENT = Environment(os.getenv("ENVIRONMENT", "development"))

        # Storage
        self.DATABASE_PATH = os.getenv("DATABASE_PATH", "janitor_database.sqlite")
        self.SCREENSHOT_DIR = os.getenv("SCREENSHOT_DIR", "screenshots")

        # Admin server, every broadcast is mirrored here and ops errors are posted here
        self.ADMIN_SERVER_ID = int(self._get_required("ADMIN_SERVER_ID"))
        self.ADMIN_SERVER_LOG_CHANNEL = int(self._get_required("ADMIN_SERVER_LOG_CHANNEL"))
        self.ADMIN_SERVER_ERROR_LOG_CHANNEL = int(self._get_required("ADMIN_SERVER_ERROR_LOG_CHANNEL"))
        superuser = os.getenv("SUPERUSER_ID")
        self.SUPERUSER_ID = int(superuser) if superuser else None

        # Honeypot sliding window
        self.HONEYPOT_WINDOW_SECONDS = float(os.getenv("HONEYPOT_WINDOW_SECONDS", "60"))
        self.HONEYPOT_CHANNEL_THRESHOLD = int(os.getenv("HONEYPOT_CHANNEL_THRESHOLD", "3"))

        # Google Drive
        self.DRIVE_CREDS_B64 = os.getenv("DRIVE_CREDS_B64")
        self.DRIVE_FOLDER_ID = os.getenv("DRIVE_FOLDER_ID")

        # Deployment Environment Checks
        self.IS_RAILWAY = os.getenv("RAILWAY_ENVIRONMENT") is not None

        self.SHARD_COUNT = int(os.getenv("SHARD_COUNT", "1"))

    def _get_required(self, key: str) -> str:
        value = os.getenv(key)
        if not value:
            raise ValueError(f"Missing required environment variable: {key}")
        return value

    def get_drive_creds(self) -> Optional[dict]:
        """Decodes the Base64 Google Drive Service Account credentials."""
        if not self.DRIVE_CREDS_B64:
            return None

        try:
            # Clean potential whitespace/newlines which might break loose base64 parsers
            clean_b64 = self.DRIVE_CREDS_B64.strip().replace('\n', '').replace(' ', '')

            decoded = base64.b64decode(clean_b64).decode('utf-8')
            return json.loads(decoded)
        except (ValueError, UnicodeDecodeError) as e:
            print(f"[ERROR] Failed to decode DRIVE_CREDS_B64: {e}")
            return None

# Singleton instance
shared_config = Config()
