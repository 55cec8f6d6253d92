"""
Read rows from the vehicle workbook (Google Sheets, read-only).
"""

import json
import logging
from dataclasses import dataclass

import gspread
from google.oauth2.service_account import Credentials as ServiceCredentials

import config

log = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]


class SourceFetchFailure(RuntimeError):
    """The sheet could not be read; fatal for the job that asked for it."""


@dataclass(frozen=True)
class RawRow:
    position: int        # 1-based sheet row number
    values: tuple

    def cell(self, index: int) -> object:
        """Return the value at a zero-based column, "" when the row is short."""
        if 0 <= index < len(self.values):
            value = self.values[index]
            return "" if value is None else value
        return ""


def authorize() -> gspread.Client:
    """Build a gspread client from the service account in the environment."""
    if config.GOOGLE_CREDENTIALS_JSON:
        info = json.loads(config.GOOGLE_CREDENTIALS_JSON)
        creds = ServiceCredentials.from_service_account_info(info, scopes=SCOPES)
    else:
        creds = ServiceCredentials.from_service_account_file(
            config.GOOGLE_CREDENTIALS_PATH, scopes=SCOPES,
        )
    return gspread.authorize(creds)


class SheetsRowSource:
    """fetch_rows(sheet_name) over one spreadsheet."""

    def __init__(self, gc: gspread.Client, sheet_id: str = "") -> None:
        self.gc = gc
        self.sheet_id = sheet_id or config.GOOGLE_SHEET_ID

    def fetch_rows(self, sheet_name: str) -> list[RawRow]:
        log.info("Reading sheet '%s' from %s", sheet_name, self.sheet_id)
        try:
            spreadsheet = self.gc.open_by_key(self.sheet_id)
            worksheet = spreadsheet.worksheet(sheet_name)
            all_rows = worksheet.get_all_values()
        except gspread.exceptions.WorksheetNotFound as e:
            raise SourceFetchFailure(f"No worksheet named '{sheet_name}'") from e
        except (gspread.exceptions.GSpreadException, OSError) as e:
            raise SourceFetchFailure(f"Failed to read sheet '{sheet_name}': {e}") from e

        if not all_rows:
            log.warning("No data found in sheet '%s'", sheet_name)
            return []

        rows = [RawRow(position=i, values=tuple(values)) for i, values in enumerate(all_rows, start=1)]
        log.info("Read %d row(s) from '%s'", len(rows), sheet_name)
        return rows
