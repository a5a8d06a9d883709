"""
Tabular Parser - uploaded spreadsheet bytes to header-keyed rows.

XLSX workbooks are read with openpyxl (first worksheet, first row is the
header). Anything that is not a ZIP container is treated as CSV. Fully blank
rows are dropped and empty cells become "".
"""

import csv
import io
import zipfile
from typing import Any, Dict, List, Optional
from xml.etree import ElementTree

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from enrolldesk.errors import ParseError
from enrolldesk.logging_config import get_logger, log_with_context

logger = get_logger("import")

CSV_ENCODINGS = ("utf-8-sig", "cp1252")

# Raised by openpyxl for damaged containers and sheet XML, on open or while iterating
XLSX_READ_ERRORS = (
    InvalidFileException, zipfile.BadZipFile, ElementTree.ParseError,
    KeyError, OSError, TypeError, ValueError,
)


def _is_blank(values) -> bool:
    return all(v is None or (isinstance(v, str) and not v.strip()) for v in values)


def _header_name(value: Any) -> str:
    return "" if value is None else str(value)


def _sheet_rows(workbook) -> List[Dict[str, Any]]:
    if not workbook.worksheets:
        raise ParseError("No sheets found in Excel file")
    # Read-only sheets parse their XML lazily, row by row
    rows_iter = workbook.worksheets[0].iter_rows(values_only=True)
    header_row = next(rows_iter, None)
    if header_row is None or _is_blank(header_row):
        raise ParseError("No rows found in sheet")
    headers = [_header_name(h) for h in header_row]

    rows = []
    for values in rows_iter:
        if values is None or _is_blank(values):
            continue
        rows.append({
            header: ("" if idx >= len(values) or values[idx] is None else values[idx])
            for idx, header in enumerate(headers)
        })
    return rows


def _read_xlsx(content: bytes) -> List[Dict[str, Any]]:
    try:
        workbook = load_workbook(filename=io.BytesIO(content), read_only=True, data_only=True)
    except XLSX_READ_ERRORS as e:
        raise ParseError("Unable to read Excel file: {}".format(e)) from e

    try:
        return _sheet_rows(workbook)
    except XLSX_READ_ERRORS as e:
        raise ParseError("Unable to read Excel file: {}".format(e)) from e
    finally:
        workbook.close()


def _decode_csv(content: bytes) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ParseError("File is neither an Excel workbook nor readable CSV")


def _read_csv(content: bytes) -> List[Dict[str, Any]]:
    text = _decode_csv(content)
    if "\x00" in text:
        raise ParseError("File is neither an Excel workbook nor readable CSV")
    try:
        reader = csv.reader(io.StringIO(text))
        header_row = next(reader, None)
        if header_row is None or _is_blank(header_row):
            raise ParseError("No rows found in sheet")
        rows = []
        for values in reader:
            if _is_blank(values):
                continue
            rows.append({
                header: (values[idx] if idx < len(values) else "")
                for idx, header in enumerate(header_row)
            })
        return rows
    except csv.Error as e:
        raise ParseError("Unable to read CSV file: {}".format(e)) from e


def parse_spreadsheet(content: bytes, filename: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Parse an uploaded file into an ordered list of header-keyed rows.

    Raises:
        ParseError: unreadable content, no sheet, or no data rows
    """
    if not content:
        raise ParseError("Uploaded file is empty")

    is_xlsx = zipfile.is_zipfile(io.BytesIO(content))
    rows = _read_xlsx(content) if is_xlsx else _read_csv(content)

    if not rows:
        raise ParseError("No rows found in sheet")

    log_with_context(logger, "DEBUG", "Parsed {} rows from {}".format(
        len(rows), filename or "upload"),
        extra_data={"format": "xlsx" if is_xlsx else "csv"})
    return rows
