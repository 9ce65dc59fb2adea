"""Spreadsheet decoding: bytes in, header-keyed rows out."""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from typing import Any, Iterable

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from enrollproof.core.exceptions import SpreadsheetUnreadable

logger = logging.getLogger(__name__)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _rows_from_grid(grid: Iterable[Iterable[Any]]) -> list[dict[str, Any]]:
    """First non-empty row is the header; fully empty rows are dropped."""
    header: list[str] | None = None
    rows: list[dict[str, Any]] = []
    for raw in grid:
        cells = list(raw)
        if all(_is_blank(c) for c in cells):
            continue
        if header is None:
            header = ["" if c is None else str(c).strip() for c in cells]
            continue
        row: dict[str, Any] = {}
        for i, label in enumerate(header):
            if not label or label in row:
                continue
            value = cells[i] if i < len(cells) else None
            row[label] = "" if value is None else value
        rows.append(row)
    return rows


def _decode_text(file_bytes: bytes, strict: bool) -> str | None:
    try:
        return file_bytes.decode("utf-8-sig")
    except UnicodeDecodeError:
        if strict:
            return None
        return file_bytes.decode("latin-1")


def parse_csv(text: str) -> list[dict[str, Any]]:
    try:
        return _rows_from_grid(csv.reader(io.StringIO(text)))
    except csv.Error as exc:
        raise SpreadsheetUnreadable(f"Could not read CSV: {exc}") from exc


def parse_workbook(file_bytes: bytes) -> list[dict[str, Any]]:
    """First worksheet of an xlsx workbook, cached cell values."""
    try:
        wb = load_workbook(io.BytesIO(file_bytes), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
        raise SpreadsheetUnreadable(f"Could not open workbook: {exc}") from exc
    try:
        if not wb.worksheets:
            raise SpreadsheetUnreadable("Workbook has no worksheets")
        return _rows_from_grid(wb.worksheets[0].iter_rows(values_only=True))
    except (KeyError, ValueError, TypeError) as exc:
        raise SpreadsheetUnreadable(f"Could not read worksheet: {exc}") from exc
    finally:
        wb.close()


def parse_spreadsheet(file_bytes: bytes, file_name: str = "") -> list[dict[str, Any]]:
    """Decode an uploaded report into rows keyed by header label.

    ``.csv`` names, and non-zip bytes that decode as UTF-8, are read as CSV;
    everything else is opened as an xlsx workbook.
    """
    if not file_bytes:
        raise SpreadsheetUnreadable("Empty file")

    if file_name.lower().endswith(".csv"):
        rows = parse_csv(_decode_text(file_bytes, strict=False) or "")
    elif not zipfile.is_zipfile(io.BytesIO(file_bytes)):
        text = _decode_text(file_bytes, strict=True)
        if text is None:
            raise SpreadsheetUnreadable(f"Unrecognized spreadsheet format: {file_name or 'upload'}")
        rows = parse_csv(text)
    else:
        rows = parse_workbook(file_bytes)

    logger.debug("Parsed %d rows from %s", len(rows), file_name or "upload")
    return rows
