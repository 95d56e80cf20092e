"""
Spreadsheet Stores.

A spreadsheet store keeps one row per processed invoice (columns A to K,
see SPREADSHEET_HEADERS) and refuses a second row for the same invoice
number and company.

Stores:
    ExcelWorkbookStore: local .xlsx workbook (openpyxl)
    GoogleSheetsStore: Google Sheets v4 REST API (requests)

Every store carries a lock; save_record() runs the duplicate check and
the append while holding it, so two documents of the same invoice
cannot both pass the check.
"""

import threading
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Union

import requests
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from config import get_config
from invoice_intake.utils.logger import get_logger
from invoice_intake.utils.helpers import ensure_directory
from invoice_intake.utils.exceptions import (
    AuthenticationError,
    DuplicateRecordError,
    StorageError,
)
from invoice_intake.extraction.invoice_record import InvoiceRecord, SPREADSHEET_HEADERS
from .auth import GoogleAuthSession
from .destinations import DestinationResolver

logger = get_logger(__name__)

HEADER_RANGE = 'A1:K1'
DUPLICATE_RANGE = 'A:C'
APPEND_RANGE = 'A:K'


class SpreadsheetStore:
    """
    Base class of the spreadsheet collaborators.

    Subclasses implement initialize_destination, find_duplicate and
    append_record.
    """

    def __init__(
        self,
        reference_currency: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        self.reference_currency = reference_currency or get_config("currency.reference", "EUR")
        self.clock = clock or datetime.now
        self.lock = threading.RLock()

    def initialize_destination(self) -> None:
        raise NotImplementedError

    def find_duplicate(self, numero_factura: str, empresa: str) -> bool:
        raise NotImplementedError

    def append_record(self, record: InvoiceRecord) -> None:
        raise NotImplementedError

    def build_row(self, record: InvoiceRecord) -> List[str]:
        return record.to_row(self.reference_currency, self.clock())

    def save_record(self, record: InvoiceRecord) -> None:
        """
        Append a record unless its duplicate key is already present.

        Raises:
            DuplicateRecordError: If the invoice number and company exist.
        """
        with self.lock:
            if self.find_duplicate(*record.duplicate_key):
                raise DuplicateRecordError(*record.duplicate_key)
            self.append_record(record)

    @staticmethod
    def _matches(row, numero_factura: str, empresa: str) -> bool:
        if len(row) < 3:
            return False
        return str(row[1] or '') == numero_factura and str(row[2] or '') == empresa


class ExcelWorkbookStore(SpreadsheetStore):
    """
    Spreadsheet store backed by a local Excel workbook.

    Attributes:
        filepath: Workbook location
        sheet_name: Worksheet holding the invoice rows

    Example:
        >>> store = ExcelWorkbookStore("outputs/facturas.xlsx")
        >>> store.initialize_destination()
        >>> store.save_record(record)
    """

    HEADER_FONT = Font(bold=True, color="FFFFFF")
    HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")
    THIN_BORDER = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )
    MAX_COLUMN_WIDTH = 50

    def __init__(
        self,
        filepath: Optional[Union[str, Path]] = None,
        sheet_name: Optional[str] = None,
        reference_currency: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        super().__init__(reference_currency, clock)
        if filepath is None:
            filepath = Path(get_config("paths.output_dir", "outputs")) / get_config(
                "output.excel.filename", "facturas.xlsx"
            )
        self.filepath = Path(filepath)
        self.sheet_name = sheet_name or get_config("output.excel.sheet_name", "Facturas")

        logger.debug(f"ExcelWorkbookStore initialized ({self.filepath}, sheet={self.sheet_name})")

    def initialize_destination(self) -> None:
        """Create the workbook and header row when they do not exist."""
        with self.lock:
            workbook = self._open()
            sheet = self._sheet(workbook)
            if sheet.cell(row=1, column=1).value is None:
                self._write_headers(sheet)
                self._save(workbook)
                logger.info(f"Header row written to {self.filepath}")

    def find_duplicate(self, numero_factura: str, empresa: str) -> bool:
        if not self.filepath.exists():
            return False

        workbook = self._open()
        sheet = self._sheet(workbook)
        for row in sheet.iter_rows(min_row=2, max_col=3, values_only=True):
            if self._matches(row, numero_factura, empresa):
                logger.warning(f"Duplicate invoice found: {numero_factura} / {empresa}")
                return True
        return False

    def append_record(self, record: InvoiceRecord) -> None:
        with self.lock:
            workbook = self._open()
            sheet = self._sheet(workbook)
            if sheet.cell(row=1, column=1).value is None:
                self._write_headers(sheet)

            sheet.append(self.build_row(record))
            for cell in sheet[sheet.max_row]:
                cell.border = self.THIN_BORDER

            self._adjust_widths(sheet)
            self._save(workbook)

        logger.info(f"Record {record.numero_factura} appended to {self.filepath.name} (row {sheet.max_row})")

    def read_records(self) -> List[List[str]]:
        """All data rows, header excluded."""
        if not self.filepath.exists():
            return []
        sheet = self._sheet(self._open())
        return [list(row) for row in sheet.iter_rows(min_row=2, values_only=True)]

    def _open(self) -> Workbook:
        if not self.filepath.exists():
            workbook = Workbook()
            workbook.active.title = self.sheet_name
            return workbook
        try:
            return load_workbook(self.filepath)
        except (InvalidFileException, zipfile.BadZipFile, OSError, KeyError, ValueError) as e:
            raise StorageError(f"open workbook {self.filepath}", str(e))

    def _sheet(self, workbook: Workbook):
        if self.sheet_name in workbook.sheetnames:
            return workbook[self.sheet_name]
        return workbook.create_sheet(title=self.sheet_name)

    def _save(self, workbook: Workbook) -> None:
        ensure_directory(self.filepath.parent)
        try:
            workbook.save(self.filepath)
        except OSError as e:
            raise StorageError(f"save workbook {self.filepath}", str(e))

    def _write_headers(self, sheet) -> None:
        for col, header_name in enumerate(SPREADSHEET_HEADERS, 1):
            cell = sheet.cell(row=1, column=col, value=header_name)
            cell.font = self.HEADER_FONT
            cell.fill = self.HEADER_FILL
            cell.alignment = self.HEADER_ALIGNMENT
            cell.border = self.THIN_BORDER
        sheet.freeze_panes = 'A2'

    def _adjust_widths(self, sheet) -> None:
        for col in range(1, len(SPREADSHEET_HEADERS) + 1):
            max_length = max(
                (len(str(cell.value)) for cell in sheet[get_column_letter(col)] if cell.value),
                default=0
            )
            sheet.column_dimensions[get_column_letter(col)].width = min(
                max_length + 2, self.MAX_COLUMN_WIDTH
            )


class GoogleSheetsStore(SpreadsheetStore):
    """
    Spreadsheet store backed by the Google Sheets v4 REST API.

    Rows are appended with valueInputOption=USER_ENTERED, so the sheet
    applies its own locale to the comma-decimal amounts.

    Example:
        >>> store = GoogleSheetsStore(auth, DestinationResolver("spreadsheet", settings.load_sheet_id, "INVOICE_SHEET_ID"))
        >>> store.initialize_destination()
    """

    def __init__(
        self,
        auth: GoogleAuthSession,
        sheet_id: DestinationResolver,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        reference_currency: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None
    ) -> None:
        super().__init__(reference_currency, clock)
        self.auth = auth
        self.sheet_id = sheet_id
        self.api_url = (api_url or get_config(
            "output.google.sheets_api_url", "https://sheets.googleapis.com/v4/spreadsheets"
        )).rstrip('/')
        self.timeout = timeout or get_config("output.google.timeout_seconds", 30)

    def _values_url(self, cell_range: str) -> str:
        return f"{self.api_url}/{self.sheet_id.resolve()}/values/{cell_range}"

    def _request(self, method: str, cell_range: str, operation: str, **kwargs) -> dict:
        url = self._values_url(cell_range)
        self.auth.sign_in()
        session = self.auth.get_client()

        try:
            response = session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status in (401, 403):
                raise AuthenticationError(self.auth.provider, f"{operation}: HTTP {status}")
            raise StorageError(operation, str(e))
        except (requests.RequestException, ValueError) as e:
            raise StorageError(operation, str(e))

    def initialize_destination(self) -> None:
        """Write the header row when A1:K1 is empty."""
        data = self._request('GET', HEADER_RANGE, 'read sheet header')
        if data.get('values'):
            return

        self._request(
            'PUT',
            HEADER_RANGE,
            'write sheet header',
            params={'valueInputOption': 'USER_ENTERED'},
            json={'range': HEADER_RANGE, 'majorDimension': 'ROWS', 'values': [SPREADSHEET_HEADERS]}
        )
        logger.info("Header row written to Google Sheet")

    def find_duplicate(self, numero_factura: str, empresa: str) -> bool:
        data = self._request('GET', DUPLICATE_RANGE, 'read existing invoices')
        rows = data.get('values', [])

        for row in rows[1:]:
            if self._matches(row, numero_factura, empresa):
                logger.warning(f"Duplicate invoice found: {numero_factura} / {empresa}")
                return True
        return False

    def append_record(self, record: InvoiceRecord) -> None:
        self._request(
            'POST',
            f"{APPEND_RANGE}:append",
            'append invoice row',
            params={'valueInputOption': 'USER_ENTERED', 'insertDataOption': 'INSERT_ROWS'},
            json={'values': [self.build_row(record)]}
        )
        logger.info(f"Record {record.numero_factura} appended to Google Sheet")
