import datetime
from decimal import Decimal

from procurement.core.csv_export import (
    KIND_STRING,
    KIND_TEXT,
    KIND_VALUE,
    export_filename,
    format_cell,
    render_csv,
)

ROW = {
    "ref_no": "0f8fad5b-d9cb-469f-a165-70867728950e",
    "request_status": "Pending",
    "user_email": "alice@example.com",
    "qty": 9,
    "product_display_name": "Product1",
    "product_price": Decimal("5.99"),
    "product_price_currency": "Euro",
}


def test_render_csv_layout():
    lines = render_csv([ROW]).split("\r\n")
    assert lines[0] == "sep =,"
    assert lines[1] == "ref_no,request_status,user_email,quantity,product_name,product_price,product_currency"
    assert lines[2] == '0f8fad5b-d9cb-469f-a165-70867728950e,Pending,alice@example.com,9,Product1,5.99,Euro'
    assert lines[3] == ""


def test_render_csv_without_rows_has_header_only():
    assert render_csv([]).split("\r\n")[:-1] == [
        "sep =,",
        "ref_no,request_status,user_email,quantity,product_name,product_price,product_currency",
    ]


def test_strings_with_delimiter_are_quoted():
    assert format_cell("Desk, oak", KIND_STRING) == '"Desk, oak"'
    assert format_cell("Desk", KIND_STRING) == "Desk"


def test_quotes_are_doubled():
    assert format_cell('19" rack', KIND_STRING) == '19"" rack'


def test_line_breaks_become_spaces():
    assert format_cell("two\r\nlines", KIND_STRING) == "two  lines"


def test_text_kind_protects_from_excel_conversion():
    assert format_cell("00123", KIND_TEXT) == '="00123"'


def test_none_and_numbers():
    assert format_cell(None, KIND_STRING) == ""
    assert format_cell(Decimal("100"), KIND_VALUE) == "100"


def test_export_filename():
    assert export_filename(datetime.date(2024, 3, 7)) == "output_20240307.csv"
