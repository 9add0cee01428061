import io
from typing import Optional, Union

from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from config import shared_config
from utils.logger import get_logger

log = get_logger()

SCOPES = ['https://www.googleapis.com/auth/drive.file']

class DriveManager:
    """Thin synchronous wrapper around the Drive v3 API used for database backups."""

    def __init__(self):
        self.creds_dict = shared_config.get_drive_creds()
        self.folder_id = shared_config.DRIVE_FOLDER_ID
        self.service = None
        # initialize_service is called lazily on first use, not at import time

    def initialize_service(self):
        if self.service or not self.creds_dict:
            return

        try:
            if self.creds_dict.get('type') == 'service_account':
                creds = service_account.Credentials.from_service_account_info(self.creds_dict, scopes=SCOPES)
            else:
                # Authorized user token.json format
                creds = Credentials.from_authorized_user_info(self.creds_dict, scopes=SCOPES)
                if creds.expired and creds.refresh_token:
                    creds.refresh(Request())
                    log.network("Refreshed Drive OAuth token.")

            self.service = build('drive', 'v3', credentials=creds)
            log.network("Google Drive service initialized.")
        except (GoogleAuthError, ValueError) as e:
            log.error("Failed to initialize Google Drive service", exc_info=e)

    @staticmethod
    def _media(content: Union[str, bytes], mimetype: str) -> MediaIoBaseUpload:
        if isinstance(content, str):
            content = content.encode('utf-8')
        return MediaIoBaseUpload(io.BytesIO(content), mimetype=mimetype, resumable=True)

    def upload_file(self, filename: str, content: Union[str, bytes], mimetype: str = 'text/plain') -> Optional[str]:
        """Uploads content as a new file in the backup folder. Returns the webViewLink or None."""
        self.initialize_service()
        if not self.service or not self.folder_id:
            return None

        try:
            file = self.service.files().create(
                body={'name': filename, 'parents': [self.folder_id]},
                media_body=self._media(content, mimetype),
                fields='id, webViewLink'
            ).execute()
        except HttpError as e:
            log.error("Failed to upload to Drive", exc_info=e)
            return None

        log.network(f"Uploaded file {filename} to Drive. ID: {file.get('id')}")
        return file.get('webViewLink')

    def find_file(self, filename: str) -> Optional[str]:
        """Finds a file by name in the backup folder. Returns file_id or None."""
        self.initialize_service()
        if not self.service or not self.folder_id:
            return None

        query = f"name = '{filename}' and '{self.folder_id}' in parents and trashed = false"
        try:
            results = self.service.files().list(q=query, spaces='drive', fields='files(id, name)').execute()
        except HttpError as e:
            log.error("Failed to search file on Drive", exc_info=e)
            return None

        items = results.get('files', [])
        return items[0]['id'] if items else None

    def update_file(self, file_id: str, content: Union[str, bytes], mimetype: str = 'text/plain') -> Optional[str]:
        """Replaces an existing file's content."""
        self.initialize_service()
        if not self.service:
            return None

        try:
            file = self.service.files().update(
                fileId=file_id,
                media_body=self._media(content, mimetype),
                fields='id, webViewLink'
            ).execute()
        except HttpError as e:
            log.error("Failed to update file on Drive", exc_info=e)
            return None

        log.network(f"Updated file ID {file_id} on Drive.")
        return file.get('webViewLink')

    def download_file(self, file_id: str) -> Optional[bytes]:
        self.initialize_service()
        if not self.service:
            return None

        try:
            request = self.service.files().get_media(fileId=file_id)
            fh = io.BytesIO()
            downloader = MediaIoBaseDownload(fh, request)
            done = False
            while not done:
                _, done = downloader.next_chunk()
        except HttpError as e:
            log.error("Failed to download file from Drive", exc_info=e)
            return None

        return fh.getvalue()

# Global instance
drive_manager = DriveManager()
