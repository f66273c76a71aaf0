"""
Row Store

One row per certificate subject, indexed by header name. Two backends:
- ``SheetsRowStore``: a tab of a Google Sheets spreadsheet (Sheets API v4)
- ``CsvRowStore``: a local CSV file read and written with pandas

Row numbers follow spreadsheet numbering: the header is row 1, the first
record is row 2.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd
from googleapiclient.errors import HttpError

from errors import RowAccessError

NAME = "Name"
EVENT = "Event"
DATE = "Date"
ISSUER = "Issuer"
CERTIFICATE_ID = "Certificate_ID"
VERIFICATION_LINK = "Verification_Link"
STATUS = "Status"

REQUIRED_HEADERS = [NAME, EVENT, DATE, ISSUER, CERTIFICATE_ID, VERIFICATION_LINK, STATUS]

STATUS_GENERATED = "Generated"
STATUS_SKIPPED = "Skipped (exists)"
STATUS_ERROR_PREFIX = "Error: "

CONFIG_SHEET = "Config"


@dataclass
class CertificateRow:
    row_number: int
    values: Dict[str, str] = field(default_factory=dict)

    def get(self, header: str) -> str:
        value = self.values.get(header)
        return "" if value is None else str(value).strip()

    @property
    def name(self) -> str:
        return self.get(NAME)

    @property
    def certificate_id(self) -> str:
        return self.get(CERTIFICATE_ID)

    @property
    def verification_link(self) -> str:
        return self.get(VERIFICATION_LINK)

    @property
    def status(self) -> str:
        return self.get(STATUS)


def column_letter(index: int) -> str:
    """Convert a 0-based column index to A1 notation (0 -> A, 26 -> AA)."""
    letters = ""
    index += 1
    while index:
        index, remainder = divmod(index - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


class RowStore:
    """Base class for row stores. Subclasses read headers/rows and write cells."""

    def headers(self) -> List[str]:
        raise NotImplementedError

    def rows(self) -> List[CertificateRow]:
        raise NotImplementedError

    def write(self, row_number: int, updates: Dict[str, str]) -> None:
        raise NotImplementedError

    def config_rows(self) -> List[List[str]]:
        return []

    def validate_headers(self) -> List[str]:
        """
        Check the header contract before any row is processed.

        Raises:
            RowAccessError: If any required header is missing
        """
        headers = [str(h).strip() for h in self.headers()]
        missing = [h for h in REQUIRED_HEADERS if h not in headers]
        if missing:
            raise RowAccessError(f"Missing required columns: {missing}. Found headers: {headers}")
        return headers

    def get_row(self, row_number: int) -> CertificateRow:
        for row in self.rows():
            if row.row_number == row_number:
                return row
        raise RowAccessError(f"Row {row_number} does not exist")

    def update(self, row: CertificateRow, updates: Dict[str, str]) -> None:
        """Persist ``updates`` for ``row`` and mirror them onto the in-memory row."""
        self.write(row.row_number, updates)
        row.values.update(updates)


class SheetsRowStore(RowStore):
    def __init__(self, sheets_service, spreadsheet_id: str, sheet_name: str = "Sheet1"):
        if not spreadsheet_id:
            raise RowAccessError("No spreadsheet id given")
        self.service = sheets_service
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self._headers: Optional[List[str]] = None

    def _get_values(self, a1_range: str) -> List[List[str]]:
        try:
            result = self.service.spreadsheets().values().get(
                spreadsheetId=self.spreadsheet_id, range=a1_range
            ).execute()
        except HttpError as e:
            raise RowAccessError(f"Cannot read range {a1_range}: {e}")
        return result.get("values", [])

    def headers(self) -> List[str]:
        if self._headers is None:
            values = self._get_values(f"'{self.sheet_name}'!1:1")
            self._headers = [str(h).strip() for h in values[0]] if values else []
        return self._headers

    def rows(self) -> List[CertificateRow]:
        values = self._get_values(f"'{self.sheet_name}'")
        if not values:
            return []
        self._headers = [str(h).strip() for h in values[0]]
        rows = []
        for offset, raw in enumerate(values[1:]):
            # Interior blank rows come back as [] or all-empty cells
            if not any(str(cell).strip() for cell in raw):
                continue
            padded = list(raw) + [""] * (len(self._headers) - len(raw))
            rows.append(CertificateRow(offset + 2, dict(zip(self._headers, padded))))
        return rows

    def write(self, row_number: int, updates: Dict[str, str]) -> None:
        headers = self.headers()
        data = []
        for header, value in updates.items():
            if header not in headers:
                raise RowAccessError(f"Column {header} not found in sheet {self.sheet_name}")
            cell = f"'{self.sheet_name}'!{column_letter(headers.index(header))}{row_number}"
            data.append({"range": cell, "values": [[value]]})
        self.service.spreadsheets().values().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={"valueInputOption": "RAW", "data": data},
        ).execute()

    def config_rows(self) -> List[List[str]]:
        return self._get_values(f"'{CONFIG_SHEET}'!A:B")


class CsvRowStore(RowStore):
    """Row store backed by a local CSV file. Every write is saved immediately."""

    def __init__(self, csv_path: str):
        if not os.path.exists(csv_path):
            raise RowAccessError(f"CSV file not found: {csv_path}")
        self.csv_path = csv_path
        try:
            self.df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            raise RowAccessError("CSV file is empty")
        except pd.errors.ParserError as e:
            raise RowAccessError(f"Error parsing CSV file: {str(e)}")
        self.df.columns = [str(c).strip() for c in self.df.columns]
        logging.info(f"Read {len(self.df)} rows from {csv_path}")

    def headers(self) -> List[str]:
        return list(self.df.columns)

    def rows(self) -> List[CertificateRow]:
        return [
            CertificateRow(position + 2, {k: str(v) for k, v in record.items()})
            for position, record in enumerate(self.df.to_dict(orient="records"))
        ]

    def write(self, row_number: int, updates: Dict[str, str]) -> None:
        position = row_number - 2
        if position < 0 or position >= len(self.df):
            raise RowAccessError(f"Row {row_number} does not exist")
        for header, value in updates.items():
            if header not in self.df.columns:
                raise RowAccessError(f"Column {header} not found in {self.csv_path}")
            self.df.iat[position, self.df.columns.get_loc(header)] = value
        self.df.to_csv(self.csv_path, index=False)
