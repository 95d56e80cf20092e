"""
Main Output Handler Module.

This module provides the OutputHandler class that builds the three
persistence collaborators of the pipeline for the configured backend:

    backend   auth                spreadsheet            file store
    -------   -----------------   --------------------   ----------------
    excel     LocalAuthSession    ExcelWorkbookStore     LocalFolderStore
    google    GoogleAuthSession   GoogleSheetsStore      GoogleDriveStore

Collaborators are created lazily, the first time they are used.
"""

from typing import Optional

from config import get_config, LocalSettings
from invoice_intake.utils.logger import get_logger
from .auth import GoogleAuthSession, LocalAuthSession
from .destinations import DestinationResolver
from .file_storage import GoogleDriveStore, LocalFolderStore
from .spreadsheet import ExcelWorkbookStore, GoogleSheetsStore

logger = get_logger(__name__)


class OutputHandler:
    """
    Factory of the persistence collaborators.

    Attributes:
        backend: 'excel' or 'google'
        settings: Local overrides store (spreadsheet and folder ids)

    Example:
        >>> handler = OutputHandler(backend="google", settings=settings)
        >>> handler.spreadsheet.initialize_destination()
        >>> handler.file_store.upload(data, name, "application/pdf")
    """

    BACKENDS = ('excel', 'google')

    def __init__(
        self,
        backend: Optional[str] = None,
        settings: Optional[LocalSettings] = None
    ) -> None:
        """
        Initialize the output handler.

        Args:
            backend: Override of ``output.backend``.
            settings: Local overrides; read from ``paths.local_settings``
                when omitted.

        Raises:
            ValueError: If the backend is not one of BACKENDS.
        """
        self.backend = (backend or get_config("output.backend", "excel")).lower()
        if self.backend not in self.BACKENDS:
            raise ValueError(f"Unknown output backend '{self.backend}', expected one of {self.BACKENDS}")

        self.settings = settings or LocalSettings(
            get_config("paths.local_settings", "outputs/local_settings.yaml")
        )

        self._auth = None
        self._spreadsheet = None
        self._file_store = None

        logger.info(f"OutputHandler initialized (backend={self.backend})")

    @property
    def auth(self):
        """Get or create the auth session."""
        if self._auth is None:
            self._auth = GoogleAuthSession() if self.backend == 'google' else LocalAuthSession()
        return self._auth

    @property
    def spreadsheet(self):
        """Get or create the spreadsheet store."""
        if self._spreadsheet is None:
            if self.backend == 'google':
                self._spreadsheet = GoogleSheetsStore(
                    self.auth,
                    DestinationResolver(
                        "spreadsheet",
                        self.settings.load_sheet_id,
                        get_config("output.google.sheet_id_env", "INVOICE_SHEET_ID"),
                        get_config("output.google.sheet_id"),
                    )
                )
            else:
                self._spreadsheet = ExcelWorkbookStore()
        return self._spreadsheet

    @property
    def file_store(self):
        """Get or create the file store."""
        if self._file_store is None:
            if self.backend == 'google':
                self._file_store = GoogleDriveStore(
                    self.auth,
                    DestinationResolver(
                        "drive folder",
                        self.settings.load_drive_folder_id,
                        get_config("output.google.drive_folder_id_env", "INVOICE_DRIVE_FOLDER_ID"),
                        get_config("output.google.drive_folder_id"),
                    )
                )
            else:
                self._file_store = LocalFolderStore()
        return self._file_store

    def close(self) -> None:
        """Close the HTTP session of the Google backend, if one was opened."""
        if isinstance(self._auth, GoogleAuthSession):
            self._auth.close()
