"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a remote slot backend because:
1. Users can see (and back up) their data directly in Sheets
2. No database setup required
3. Data follows the user across devices

TRADEOFFS:
- A cell holds at most 50,000 characters; slots with many embedded
  receipt images can outgrow that (we refuse the write loudly)
- Every write rewrites the slot table in ONE API call, which keeps
  multi-slot writes all-or-nothing
- Two devices writing concurrently race; the last writer wins
"""

from datetime import datetime, timezone
from typing import Mapping, Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fintrack.config import GoogleSheetsSettings, get_settings
from fintrack.models.audit import AUDIT_COLUMNS, AuditEvent
from fintrack.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    QuotaExceededError,
    SlotStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

SLOT_COLUMNS = ["key", "value", "updated_at"]

# Google Sheets hard limit per cell
MAX_CELL_CHARS = 50_000

# Rate limits and transient 5xx surface as APIError
_retry_api_errors = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Lazily opened handle on the configured spreadsheet.

    Slot and audit storage share one client so they authorize once.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(ConnectionError),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Open the spreadsheet on first use."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_slots_sheet(self) -> gspread.Worksheet:
        """Slot table, created with a header row if missing."""
        return self._get_or_create_sheet(
            self._settings.slots_sheet_name, SLOT_COLUMNS, rows=50
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Audit log, created with a header row if missing."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsSlotStorage(SlotStorageInterface):
    """
    Google Sheets implementation of slot storage.

    One row per slot: key | JSON text | last write time.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _read_table(self) -> dict[str, str]:
        try:
            sheet = self._client.get_slots_sheet()
            rows = sheet.get_all_values()[1:]  # Skip header
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read slots: {e}")

        table = {}
        for row in rows:
            if row and row[0]:
                table[row[0]] = row[1] if len(row) > 1 else ""
        return table

    @_retry_api_errors
    def _write_table(self, sheet: gspread.Worksheet, values: list[list[str]]) -> None:
        sheet.update(values=values, range_name="A1", value_input_option="RAW")

    def get(self, key: str) -> Optional[str]:
        return self._read_table().get(key)

    def keys(self) -> list[str]:
        return list(self._read_table())

    def set_many(self, values: Mapping[str, str]) -> None:
        for key, value in values.items():
            if len(value) > MAX_CELL_CHARS:
                raise QuotaExceededError(
                    f"Slot '{key}' is {len(value)} characters; "
                    f"Google Sheets cells hold at most {MAX_CELL_CHARS}"
                )

        table = self._read_table()
        now = datetime.now(timezone.utc).isoformat()
        stamps = {key: "" for key in table}
        for key, value in values.items():
            table[key] = value
            stamps[key] = now

        rows = [SLOT_COLUMNS] + [
            [key, value, stamps.get(key, "")] for key, value in table.items()
        ]

        try:
            sheet = self._client.get_slots_sheet()
            self._write_table(sheet, rows)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write slots {', '.join(values)}: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @_retry_api_errors
    def _append(self, row: list) -> None:
        sheet = self._client.get_audit_sheet()
        sheet.append_row(row, value_input_option="RAW")

    def append_event(self, event: AuditEvent) -> bool:
        try:
            self._append(event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning(
                "audit_sheet_write_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    def _all_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                events.append(AuditEvent.from_sheets_row(row))
            except ValueError as e:
                logger.warning("audit_row_skipped", error=str(e), event_id=row[0])
        return events

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._all_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = self._all_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
