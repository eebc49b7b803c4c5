"""Parse uploaded CSV and Excel files into headers and header-keyed rows"""
import csv
import io
import logging
import zipfile
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Dict, Any, Iterable, Optional, Sequence

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from src.classboom.services.errors import ParseError, UnsupportedFileTypeError

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = (".csv",)
EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
ALLOWED_EXTENSIONS = CSV_EXTENSIONS + EXCEL_EXTENSIONS

CSV_ENCODINGS = ["utf-8-sig", "utf-8", "cp1252", "latin-1"]


@dataclass
class ParsedTable:
    headers: List[str]
    raw_rows: List[Dict[str, str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.raw_rows)


def decode_csv_content(content: bytes) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return content.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
    raise ParseError("Unable to decode CSV file. Supported encodings: UTF-8, Windows-1252, Latin-1")


def dedupe_headers(headers: Sequence[str]) -> List[str]:
    """Make header names distinct, suffixing repeats with _2, _3, ... in file order."""
    seen: Dict[str, int] = {}
    result = []
    for header in headers:
        if header not in seen:
            seen[header] = 1
            result.append(header)
            continue
        count = seen[header]
        candidate = f"{header}_{count + 1}"
        while candidate in seen:
            count += 1
            candidate = f"{header}_{count + 1}"
        seen[header] = count + 1
        seen[candidate] = 1
        result.append(candidate)
    return result


def _build_rows(headers: List[str], data_rows: Iterable[Sequence[str]]) -> List[Dict[str, str]]:
    rows = []
    for values in data_rows:
        row = {}
        for i, header in enumerate(headers):
            row[header] = values[i] if i < len(values) else ""
        # Skip completely empty rows
        if any(v.strip() for v in row.values()):
            rows.append(row)
    return rows


def parse_csv(content: bytes) -> ParsedTable:
    text = decode_csv_content(content)
    try:
        records = list(csv.reader(io.StringIO(text, newline="")))
    except csv.Error as e:
        raise ParseError(f"Invalid CSV format: {e}") from e

    # Leading blank lines are not a header row
    while records and not any(cell.strip() for cell in records[0]):
        records.pop(0)
    if not records:
        raise ParseError("File is empty")

    headers = dedupe_headers(
        [h.strip() or f"Column_{i + 1}" for i, h in enumerate(records[0])]
    )
    rows = _build_rows(headers, records[1:])
    if not rows:
        raise ParseError("File contains no data rows")
    return ParsedTable(headers=headers, raw_rows=rows)


def _cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_excel(content: bytes) -> ParsedTable:
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as e:
        raise ParseError(f"Could not open Excel file: {e}") from e

    try:
        if not wb.worksheets:
            raise ParseError("Excel file has no worksheets")
        # First sheet only, regardless of which one was active when saved
        ws = wb.worksheets[0]
        all_rows = [
            [_cell_to_text(v) for v in row]
            for row in ws.iter_rows(values_only=True)
        ]
    finally:
        wb.close()

    while all_rows and not any(all_rows[0]):
        all_rows.pop(0)
    if not all_rows:
        raise ParseError("Excel file is empty")

    headers = dedupe_headers(
        [c or f"Column_{i + 1}" for i, c in enumerate(all_rows[0])]
    )
    rows = _build_rows(headers, all_rows[1:])
    if not rows:
        raise ParseError("File contains no data rows")
    return ParsedTable(headers=headers, raw_rows=rows)


def detect_format(filename: Optional[str]) -> str:
    lower = (filename or "").lower()
    if lower.endswith(CSV_EXTENSIONS):
        return "csv"
    if lower.endswith(EXCEL_EXTENSIONS):
        return "excel"
    raise UnsupportedFileTypeError("File must be a CSV or Excel file (.csv, .xlsx)")


def parse_file(filename: Optional[str], content: bytes) -> ParsedTable:
    file_format = detect_format(filename)
    if file_format == "csv":
        table = parse_csv(content)
    else:
        table = parse_excel(content)
    logger.info(f"Parsed {filename}: {len(table.headers)} columns, {table.row_count} rows")
    return table
