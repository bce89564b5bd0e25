"""Tabular export of the flattened request rows.

Format (Excel friendly):
    line 1: ``sep =,`` so Excel picks the delimiter
    line 2: header
    then one line per row, CRLF terminated, UTF-8
"""
from __future__ import annotations
import datetime
from typing import Iterable, NamedTuple, Optional

DELIMITER = ","
LINE_END = "\r\n"
CONTENT_TYPE = "text/csv; charset=utf-8"

KIND_TEXT = "text"      # string Excel must not reinterpret, exported as ="value"
KIND_STRING = "string"  # quoted when it contains the delimiter
KIND_VALUE = "value"    # numbers, written as-is


class CsvColumn(NamedTuple):
    header: str
    key: str
    kind: str


REQUEST_ROW_COLUMNS = (
    CsvColumn("ref_no", "ref_no", KIND_VALUE),
    CsvColumn("request_status", "request_status", KIND_STRING),
    CsvColumn("user_email", "user_email", KIND_STRING),
    CsvColumn("quantity", "qty", KIND_VALUE),
    CsvColumn("product_name", "product_display_name", KIND_STRING),
    CsvColumn("product_price", "product_price", KIND_VALUE),
    CsvColumn("product_currency", "product_price_currency", KIND_STRING),
)


def format_cell(value, kind: str) -> str:
    """Render one cell: quotes doubled, CR/LF flattened to spaces."""
    if value is None:
        return ""
    text = str(value).replace('"', '""')
    if kind in (KIND_STRING, KIND_TEXT):
        if DELIMITER in text:
            text = f'"{text}"'
        elif kind == KIND_TEXT:
            text = f'="{text}"'
    return text.replace("\r", " ").replace("\n", " ")


def render_csv(rows: Iterable[dict], columns: tuple[CsvColumn, ...] = REQUEST_ROW_COLUMNS) -> str:
    lines = [f"sep ={DELIMITER}", DELIMITER.join(column.header for column in columns)]
    for row in rows:
        lines.append(DELIMITER.join(format_cell(row.get(column.key), column.kind) for column in columns))
    return LINE_END.join(lines) + LINE_END


def export_filename(today: Optional[datetime.date] = None) -> str:
    """``output_<yyyymmdd>.csv`` using the UTC date."""
    today = today or datetime.datetime.now(datetime.timezone.utc).date()
    return f"output_{today:%Y%m%d}.csv"
