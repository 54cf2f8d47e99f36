"""
Tabular parser for uploaded CSV, XLS and XLSX files.

Binary workbooks are recognised by their leading signature bytes and decoded
with pandas. Anything that is not a workbook, or a workbook that fails to
decode, is read as comma-separated text.
"""
import csv
import io
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

import pandas as pd

from import_engine.domain.imports.errors import MalformedInputError

logger = logging.getLogger(__name__)

ZIP_SIGNATURE = b"PK"
OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0"

UTF8_BOM = b"\xef\xbb\xbf"
UTF16_LE_BOM = b"\xff\xfe"
UTF16_BE_BOM = b"\xfe\xff"

HEADER_MISSING_MESSAGE = "The uploaded file does not contain a header row."


class HeaderRowMissingError(MalformedInputError):
    """A file decoded correctly but its first row holds no column names."""
    pass


@dataclass
class ParsedSheet:
    headers: List[str]
    rows: List[Dict[str, str]]
    # Physical row number of each entry in ``rows`` (header is row 1).
    row_numbers: List[int] = field(default_factory=list)

    def numbered_rows(self) -> Iterator[Tuple[int, Dict[str, str]]]:
        numbers = self.row_numbers or [index + 2 for index in range(len(self.rows))]
        return zip(numbers, self.rows)


def detect_workbook_engine(content: bytes) -> Optional[str]:
    """Return the pandas engine for a binary workbook, or None for text."""
    if content.startswith(ZIP_SIGNATURE):
        return "openpyxl"
    if content.startswith(OLE2_SIGNATURE):
        return "xlrd"
    return None


def normalize_row(row: Dict[Any, Any]) -> Dict[str, str]:
    """Trim keys and values, drop empty keys and turn missing values into ''."""
    normalized: Dict[str, str] = {}
    for key, value in row.items():
        name = str(key).strip() if key is not None else ""
        if not name:
            continue
        normalized[name] = "" if value is None else str(value).strip()
    return normalized


def parse_spreadsheet(content: bytes) -> ParsedSheet:
    """
    Parse uploaded bytes into headers and normalized rows.

    Args:
        content: Raw file bytes

    Returns:
        ParsedSheet whose rows all carry every header key

    Raises:
        MalformedInputError: If the file is empty or has no header row
    """
    if not content:
        raise MalformedInputError("The uploaded file is empty.")

    engine = detect_workbook_engine(content)
    if engine:
        try:
            sheet = _parse_workbook(content, engine)
        except HeaderRowMissingError:
            raise
        except Exception as exc:
            logger.info("Workbook decoding with %s failed (%s); reading file as delimited text", engine, exc)
        else:
            return _backfill(sheet)

    return _backfill(_parse_delimited(content))


def _backfill(sheet: ParsedSheet) -> ParsedSheet:
    blank = {header: "" for header in sheet.headers if header}
    sheet.rows = [{**blank, **normalize_row(row)} for row in sheet.rows]
    return sheet


def _cell_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
    if isinstance(value, datetime):
        if (value.hour, value.minute, value.second, value.microsecond) == (0, 0, 0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _parse_workbook(content: bytes, engine: str) -> ParsedSheet:
    frame = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, dtype=object, engine=engine)
    if frame.empty:
        raise HeaderRowMissingError(HEADER_MISSING_MESSAGE)

    values = frame.astype(object).where(pd.notna(frame), None).values.tolist()
    headers = [(_cell_text(cell) or "").strip() for cell in values[0]]
    if not any(headers):
        raise HeaderRowMissingError(HEADER_MISSING_MESSAGE)

    rows: List[Dict[str, str]] = []
    row_numbers: List[int] = []
    for offset, cells in enumerate(values[1:], start=2):
        record: Dict[str, str] = {}
        for header, cell in zip(headers, cells):
            text = _cell_text(cell)
            if header and text is not None:
                record[header] = text
        if not any(value.strip() for value in record.values()):
            continue
        rows.append(record)
        row_numbers.append(offset)

    return ParsedSheet(headers=headers, rows=rows, row_numbers=row_numbers)


def decode_text(content: bytes) -> str:
    """
    Decode text bytes, honouring UTF-8/UTF-16 byte-order marks.

    Text without a BOM is read as UTF-8, falling back to latin-1.
    """
    if content.startswith(UTF8_BOM):
        return content[len(UTF8_BOM):].decode("utf-8", errors="replace")
    if content.startswith(UTF16_LE_BOM):
        return content[len(UTF16_LE_BOM):].decode("utf-16-le", errors="replace")
    if content.startswith(UTF16_BE_BOM):
        return content[len(UTF16_BE_BOM):].decode("utf-16-be", errors="replace")
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Upload is not valid UTF-8, decoding as latin-1")
        return content.decode("latin-1")


def _parse_delimited(content: bytes) -> ParsedSheet:
    text = decode_text(content).replace("\r\n", "\n").replace("\r", "\n")
    reader = csv.reader(io.StringIO(text), skipinitialspace=True)

    headers: Optional[List[str]] = None
    rows: List[Dict[str, str]] = []
    row_numbers: List[int] = []
    line_before = 0
    try:
        for record in reader:
            start_line = line_before + 1
            line_before = reader.line_num
            cells = [cell.strip() for cell in record]
            if not any(cells):
                continue
            if headers is None:
                headers = cells
                continue
            rows.append({header: cells[i] if i < len(cells) else "" for i, header in enumerate(headers)})
            row_numbers.append(start_line)
    except csv.Error as exc:
        raise MalformedInputError(f"Could not read delimited file: {exc}")

    if not headers:
        raise MalformedInputError(HEADER_MISSING_MESSAGE)

    return ParsedSheet(headers=headers, rows=rows, row_numbers=row_numbers)
