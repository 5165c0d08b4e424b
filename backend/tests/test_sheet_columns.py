"""Spreadsheet header detection and column-based line items."""
from orderlens.processors.extraction import (
    SheetColumns, detect_sheet_columns, extract_sheet_items, sheet_row_text,
)
from orderlens.processors.extraction.sheet_columns import normalize_column_name


def test_column_names_normalized():
    assert normalize_column_name("Item Name") == "itemname"
    assert normalize_column_name("ORD_QTY") == "ordqty"
    assert normalize_column_name("Item-Code.") == "itemcode"
    assert normalize_column_name(None) == ""


def test_header_detected_below_title_rows():
    rows = [
        ["PURCHASE ORDER"],
        ["Sl. No", "Item Code", "Item Description", "Order Qty", "Rate"],
        ["1", "205116", "ARBITEL 40MG TAB", "30", "12.50"],
    ]
    assert detect_sheet_columns(rows) == SheetColumns(header_row=1, name_col=2, qty_col=3, code_col=1)


def test_header_needs_name_and_quantity():
    assert detect_sheet_columns([["Item Name", "Rate"], ["DOLO 650 TAB", "30.00"]]) is None
    assert detect_sheet_columns([]) is None


def test_items_read_from_columns(settings):
    rows = [
        ["NAME", "QUANTITY"],
        ["DOLO 650 TAB", "12 NOS"],
        ["PRODUCT NAME", "QTY"],
        ["AB", "4"],
        ["METFORMIN 500MG TAB", "0"],
        ["ARBITEL 40MG TAB", ""],
        [None, None],
        ["GLYCOMET GP 2 FORTE TAB", 40],
    ]
    items = extract_sheet_items(rows, detect_sheet_columns(rows), settings)
    assert [(i, item.quantity, item.product_name_guess) for i, item in items] == [
        (1, 12, "DOLO 650 TAB"),
        (7, 40, "GLYCOMET GP 2 FORTE TAB"),
    ]
    assert items[0][1].item_code is None
    assert items[0][1].raw_text == "DOLO 650 TAB 12 NOS"


def test_sheet_row_text_skips_empty_cells():
    assert sheet_row_text(["1", None, "  ", "DOLO 650 TAB", 20]) == "1 DOLO 650 TAB 20"
    assert sheet_row_text([]) == ""
