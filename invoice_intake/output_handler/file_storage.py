"""
File Stores.

Keep a copy of every processed document under a descriptive name:

    LocalFolderStore: copies into a local folder, returns a file:// URI
    GoogleDriveStore: Drive v3 multipart upload, returns the view URL
"""

import json
import re
import uuid
from pathlib import Path
from typing import Optional, Union

import requests

from config import get_config
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.helpers import ensure_directory, safe_filename
from invoice_intake.utils.exceptions import AuthenticationError, StorageError
from .auth import GoogleAuthSession
from .destinations import DestinationResolver

logger = get_logger(__name__)

DRIVE_VIEW_URL = "https://drive.google.com/file/d/{file_id}/view"


def generate_file_name(empresa: str, fecha: str, importe_total: str, suffix: str = '.pdf') -> str:
    """
    Build the stored name of a document.

    Example:
        >>> generate_file_name("Acme, S.L.", "15-03-2024", "121,00")
        'Acme SL 15-03-2024 121,00.pdf'
    """
    clean_empresa = re.sub(r'[^a-zA-Z0-9\s]', '', empresa).strip()
    return f"{clean_empresa} {fecha} {importe_total}{suffix}"


class LocalFolderStore:
    """
    File store writing into a local folder.

    Existing files are never overwritten; a counter is appended instead.
    """

    def __init__(self, folder: Optional[Union[str, Path]] = None) -> None:
        self.folder = Path(folder or get_config("paths.documents_dir", "outputs/documents"))

    def upload(self, file_bytes: bytes, file_name: str, mime_type: Optional[str] = None) -> str:
        """
        Write the file and return its file:// URI.

        Raises:
            StorageError: If the file cannot be written.
        """
        target = self._free_path(safe_filename(file_name))
        try:
            ensure_directory(self.folder)
            target.write_bytes(file_bytes)
        except OSError as e:
            raise StorageError(f"write {target}", str(e))

        logger.info(f"Stored document as {target}")
        return target.resolve().as_uri()

    def _free_path(self, file_name: str) -> Path:
        target = self.folder / file_name
        counter = 1
        while target.exists():
            target = self.folder / f"{Path(file_name).stem} ({counter}){Path(file_name).suffix}"
            counter += 1
        return target


class GoogleDriveStore:
    """
    File store uploading to a Google Drive folder.

    Example:
        >>> store = GoogleDriveStore(auth, DestinationResolver("drive folder", settings.load_drive_folder_id, "INVOICE_DRIVE_FOLDER_ID"))
        >>> store.upload(data, "Acme SL 15-03-2024 121,00.pdf", "application/pdf")
        'https://drive.google.com/file/d/<id>/view'
    """

    def __init__(
        self,
        auth: GoogleAuthSession,
        folder_id: DestinationResolver,
        upload_url: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> None:
        self.auth = auth
        self.folder_id = folder_id
        self.upload_url = upload_url or get_config(
            "output.google.drive_upload_url", "https://www.googleapis.com/upload/drive/v3/files"
        )
        self.timeout = timeout or get_config("output.google.timeout_seconds", 30)

    def upload(self, file_bytes: bytes, file_name: str, mime_type: Optional[str] = None) -> str:
        """
        Upload the file into the configured folder.

        Raises:
            PersistenceDestinationNotConfiguredError: If no folder id resolves.
            AuthenticationError: If Drive rejects the credentials.
            StorageError: If the upload fails.
        """
        folder_id = self.folder_id.resolve()
        self.auth.sign_in()
        session = self.auth.get_client()

        boundary = uuid.uuid4().hex
        body = self._multipart_body(
            boundary,
            {'name': file_name, 'parents': [folder_id]},
            file_bytes,
            mime_type or 'application/octet-stream'
        )

        try:
            response = session.post(
                self.upload_url,
                params={'uploadType': 'multipart'},
                headers={'Content-Type': f'multipart/related; boundary="{boundary}"'},
                data=body,
                timeout=self.timeout
            )
            response.raise_for_status()
            file_id = response.json()['id']
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status in (401, 403):
                raise AuthenticationError(self.auth.provider, f"Drive upload: HTTP {status}")
            raise StorageError(f"upload {file_name}", str(e))
        except (requests.RequestException, ValueError, KeyError) as e:
            raise StorageError(f"upload {file_name}", str(e))

        logger.info(f"Uploaded {file_name} to Drive (id={file_id})")
        return DRIVE_VIEW_URL.format(file_id=file_id)

    @staticmethod
    def _multipart_body(boundary: str, metadata: dict, content: bytes, mime_type: str) -> bytes:
        delimiter = f"\r\n--{boundary}\r\n".encode()
        close_delim = f"\r\n--{boundary}--".encode()
        return b''.join([
            delimiter,
            b'Content-Type: application/json; charset=UTF-8\r\n\r\n',
            json.dumps(metadata, ensure_ascii=False).encode('utf-8'),
            delimiter,
            f'Content-Type: {mime_type}\r\n\r\n'.encode(),
            content,
            close_delim,
        ])
