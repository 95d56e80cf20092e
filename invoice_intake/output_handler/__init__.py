"""
Output Handler Module for the Invoice Intake System.

This module provides the persistence collaborators:
    - Auth sessions (Google bearer token, local)
    - Spreadsheet stores with duplicate detection (Excel, Google Sheets)
    - File stores for the original documents (local folder, Google Drive)
    - Destination id resolution (local override, environment, default)
"""

from .auth import GoogleAuthSession, LocalAuthSession
from .destinations import DestinationResolver
from .spreadsheet import SpreadsheetStore, ExcelWorkbookStore, GoogleSheetsStore
from .file_storage import LocalFolderStore, GoogleDriveStore, generate_file_name
from .handler import OutputHandler

__all__ = [
    'GoogleAuthSession',
    'LocalAuthSession',
    'DestinationResolver',
    'SpreadsheetStore',
    'ExcelWorkbookStore',
    'GoogleSheetsStore',
    'LocalFolderStore',
    'GoogleDriveStore',
    'generate_file_name',
    'OutputHandler',
]
