"""
sheets.py — Google Sheets integration.
Reads the application and interview-log tabs as header + rows; the engine
never writes back.
"""

from typing import Any, Optional

import gspread
from google.oauth2.service_account import Credentials

from monitoring import get_logger

logger = get_logger("sheets")

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/drive.readonly",
]

# Raw cell values: dates come back as serial day numbers, not display text
VALUE_RENDER_OPTION = "UNFORMATTED_VALUE"
DATE_TIME_RENDER_OPTION = "SERIAL_NUMBER"


class SheetReadError(RuntimeError):
    """Raised when a spreadsheet or worksheet cannot be read."""


def get_sheets_client(credentials_path: str) -> gspread.Client:
    """Authenticate with a service-account key file."""
    if not credentials_path:
        raise SheetReadError("Google service account credentials not configured")
    creds = Credentials.from_service_account_file(credentials_path, scopes=SCOPES)
    return gspread.authorize(creds)


class SheetSource:
    """Fetches tabular data from Google Sheets by spreadsheet id and tab name."""

    def __init__(self, credentials_path: str = "", client: Optional[gspread.Client] = None):
        self.credentials_path = credentials_path
        self._client = client
        self._spreadsheets: dict[str, gspread.Spreadsheet] = {}

    @property
    def client(self) -> gspread.Client:
        if self._client is None:
            self._client = get_sheets_client(self.credentials_path)
        return self._client

    def open(self, sheet_id: str) -> gspread.Spreadsheet:
        if sheet_id not in self._spreadsheets:
            try:
                self._spreadsheets[sheet_id] = self.client.open_by_key(sheet_id)
            except (gspread.SpreadsheetNotFound, gspread.exceptions.APIError) as e:
                raise SheetReadError(f"Cannot open spreadsheet {sheet_id}: {e}") from e
        return self._spreadsheets[sheet_id]

    def worksheet(self, sheet_id: str, name: str) -> gspread.Worksheet:
        """Named tab, falling back to the first tab when it does not exist."""
        spreadsheet = self.open(sheet_id)
        try:
            return spreadsheet.worksheet(name)
        except gspread.WorksheetNotFound:
            logger.warning(f"Tab \"{name}\" not found in {sheet_id} — using the first tab")
            return spreadsheet.get_worksheet(0)

    def fetch(self, sheet_id: str, worksheet: str, header_row: int = 1) -> tuple[list[Any], list[list[Any]]]:
        """
        Return (headers, rows) for one tab. header_row is 1-based; rows above
        it are ignored and wholly blank rows below it are dropped.
        """
        ws = self.worksheet(sheet_id, worksheet)
        try:
            values = ws.get_all_values(
                value_render_option=VALUE_RENDER_OPTION,
                date_time_render_option=DATE_TIME_RENDER_OPTION,
            )
        except gspread.exceptions.APIError as e:
            raise SheetReadError(f"Cannot read tab \"{worksheet}\" of {sheet_id}: {e}") from e

        if len(values) < header_row:
            logger.warning(f"Tab \"{worksheet}\" has no header row at row {header_row}")
            return [], []

        headers = values[header_row - 1]
        rows = [row for row in values[header_row:] if any(_is_filled(cell) for cell in row)]
        logger.info(f"Read {len(rows)} rows from \"{worksheet}\" ({len(headers)} columns)")
        return headers, rows

    def read_cell(self, sheet_id: str, worksheet: str, cell: str) -> Any:
        """Read one cell's displayed value, e.g. a sync timestamp in B1."""
        ws = self.worksheet(sheet_id, worksheet)
        try:
            return ws.acell(cell).value
        except gspread.exceptions.APIError as e:
            raise SheetReadError(f"Cannot read {worksheet}!{cell} of {sheet_id}: {e}") from e


def _is_filled(cell: Any) -> bool:
    if cell is None:
        return False
    if isinstance(cell, str):
        return bool(cell.strip())
    return True
