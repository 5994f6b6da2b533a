"""
Decode CSV and Excel bytes into a ParsedTable.
"""
import csv
import io
import logging
from enum import Enum
from typing import Any, List, Optional

import pandas as pd

from sheetbridge.core.errors import EmptyFileError, ParseError
from sheetbridge.domain.ingestion.tables import ParsedTable, make_row

logger = logging.getLogger(__name__)


class FileFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"
    XLS = "xls"


_CONTENT_TYPE_FORMATS = {
    "text/csv": FileFormat.CSV,
    "application/csv": FileFormat.CSV,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": FileFormat.XLSX,
    "application/vnd.ms-excel": FileFormat.XLS,
}

_EXCEL_ENGINES = {
    FileFormat.XLSX: "openpyxl",
    FileFormat.XLS: "xlrd",
}

_TEXT_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")


def get_file_extension(file_name: str) -> str:
    """Return the lower-cased extension without the dot ('' when there is none)."""
    if not file_name or "." not in file_name:
        return ""
    return file_name.rsplit(".", 1)[-1].lower()


def detect_format(file_name: str, content_type: Optional[str] = None) -> FileFormat:
    """
    Infer the file format from the extension, falling back to the MIME type.

    Raises:
        ParseError: If neither identifies a supported spreadsheet format.
    """
    extension = get_file_extension(file_name)
    try:
        return FileFormat(extension)
    except ValueError:
        pass

    if content_type:
        detected = _CONTENT_TYPE_FORMATS.get(content_type.split(";")[0].strip().lower())
        if detected is not None:
            return detected

    raise ParseError()


def _decode_text(file_content: bytes) -> str:
    for encoding in _TEXT_ENCODINGS:
        try:
            return file_content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ParseError()


def read_csv_rows(file_content: bytes) -> List[List[Any]]:
    """Read every CSV row as a list of strings, without assuming a header."""
    text_content = _decode_text(file_content)
    try:
        return [row for row in csv.reader(io.StringIO(text_content))]
    except csv.Error as e:
        logger.error(f"Error reading CSV rows: {e}")
        raise ParseError() from e


def read_excel_rows(file_content: bytes, file_format: FileFormat = FileFormat.XLSX) -> List[List[Any]]:
    """Read the first worksheet as raw rows, without assuming a header."""
    engine = _EXCEL_ENGINES.get(file_format, "openpyxl")
    try:
        df = pd.read_excel(
            io.BytesIO(file_content),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=engine,
        )
    except Exception as e:
        logger.error(f"Could not read Excel file with engine '{engine}': {e}")
        raise ParseError() from e

    # Convert pandas NaN/NaT values to None so cells wrap as empty
    df = df.astype(object).where(pd.notna(df), None)
    return df.values.tolist()


def _is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def build_table(raw_rows: List[List[Any]]) -> ParsedTable:
    """
    Turn raw rows into a ParsedTable.

    The first row with any content is the header row. Header cells are
    trimmed and columns with an empty header are dropped; every other
    column keeps its data at the same position as its header. Blank rows
    between data rows are kept as empty rows so record positions match the
    sheet; trailing blank rows are dropped. Short rows are padded with empty
    cells.

    Raises:
        EmptyFileError: If no row has any content.
    """
    header_position = next(
        (i for i, row in enumerate(raw_rows) if any(not _is_blank(cell) for cell in row)),
        None,
    )
    if header_position is None:
        raise EmptyFileError()

    header_row = raw_rows[header_position]
    kept_columns = []
    headers = []
    for column, cell in enumerate(header_row):
        if _is_blank(cell):
            continue
        kept_columns.append(column)
        headers.append(str(make_row([cell], 1)[0]).strip())

    data_rows = list(raw_rows[header_position + 1:])
    # Blank rows inside the data keep their position; trailing ones are padding
    while data_rows and all(_is_blank(cell) for cell in data_rows[-1]):
        data_rows.pop()

    rows = []
    for raw_row in data_rows:
        projected = [raw_row[column] if column < len(raw_row) else None for column in kept_columns]
        rows.append(make_row(projected, len(headers)))

    return ParsedTable(headers=tuple(headers), rows=tuple(rows))


def parse_table(file_content: bytes, file_format: FileFormat) -> ParsedTable:
    """
    Parse spreadsheet bytes into a header row and raw data rows.

    Cells are passed through without type coercion: CSV cells stay strings,
    Excel cells keep the type the workbook stored.

    Raises:
        EmptyFileError: If the file has no rows.
        ParseError: If the bytes are not a readable spreadsheet.
    """
    if not file_content:
        raise EmptyFileError()

    if file_format is FileFormat.CSV:
        raw_rows = read_csv_rows(file_content)
    else:
        raw_rows = read_excel_rows(file_content, file_format)

    table = build_table(raw_rows)
    logger.info(
        f"Parsed {file_format.value} source: {len(table.headers)} columns, {table.row_count} rows"
    )
    return table
