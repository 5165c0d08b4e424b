"""End-to-end: sample purchase order through the pipeline and the CLI."""
import json

import pytest

from orderlens import cli
from orderlens.errors import MasterDataError
from orderlens.pipelines import order_pipeline, process_document, process_documents, process_sheet
from orderlens.processors.core import MatchSource


def _run(order_document, master_data, settings, **kwargs):
    return process_document(
        order_document["tokens"],
        master_data["customers"],
        master_data["products"],
        master_data["schemes"],
        settings=settings,
        **kwargs,
    )


def test_sample_order(order_document, master_data, settings):
    result = _run(order_document, master_data, settings)

    assert result.customer_name_guess == "M/S ATTUPURAM ENTERPRISES"
    assert result.customer.source is MatchSource.EXACT
    assert result.customer.matched.customer_code == "C001"

    lines = {line.product_name_guess: line for line in result.lines}
    assert list(lines) == ["ARBITEL 40MG", "DOLO 650 TAB", "NITROFIX 30MG SR CAP", "ARBITOL 40MG"]

    arbitel = lines["ARBITEL 40MG"]
    assert arbitel.quantity == 80
    assert arbitel.product.matched.product_code == "205116"
    assert arbitel.scheme.scheme_applied
    assert arbitel.scheme.free_qty == 5
    assert arbitel.scheme.scheme_percent == 6.25
    assert arbitel.upsell.target_qty == 100
    assert arbitel.packs == 6

    dolo = lines["DOLO 650 TAB"]
    assert dolo.quantity == 20
    assert dolo.product.source is MatchSource.EXACT
    # Scheme restricted to another customer
    assert not dolo.scheme.scheme_applied

    nitrofix = lines["NITROFIX 30MG SR CAP"]
    assert nitrofix.quantity == 50
    assert nitrofix.product.matched.product_code == "218038"

    arbitol = lines["ARBITOL 40MG"]
    assert arbitol.quantity == 10
    assert arbitol.product.low_confidence

    assert result.skipped == 4
    assert result.stats() == {"extracted": 4, "matched": 4, "needs_review": 1, "failed": 0}


def test_caller_supplied_customer(order_document, master_data, settings):
    result = _run(order_document, master_data, settings, customer_text="SABARI MEDICALS")
    assert result.customer.matched.customer_code == "C002"
    dolo = next(line for line in result.lines if line.product_name_guess == "DOLO 650 TAB")
    assert dolo.scheme.free_qty == 2


def test_name_without_strength_does_not_absorb_quantity(settings):
    products = [
        {"productCode": "E1", "productName": "ECOSPRIN TAB"},
        {"productCode": "A1", "productName": "ATORVA 10 TAB"},
    ]
    tokens = [{"text": "1 305001 ECOSPRIN TAB 10 0 12.50 125.00", "x": 0, "y": 0}]
    result = process_document(tokens, [], products, settings=settings)
    assert len(result.lines) == 1
    line = result.lines[0]
    assert line.quantity == 10
    assert line.product_name_guess == "ECOSPRIN TAB"
    assert line.product.source is MatchSource.EXACT
    assert line.product.matched.product_code == "E1"
    assert not line.product.low_confidence


SHEET_ROWS = [
    ["M/S SRI SABARI MEDICALS"],
    [],
    ["CODE", "PRODUCT NAME", "QTY"],
    ["110011", "DOLO 650 TAB", "5"],
    ["", "ARBITEL 40MG TAB", "80"],
    ["", "TOTAL", ""],
]


def test_sheet_with_header_reads_named_columns(master_data, settings):
    result = process_sheet(
        SHEET_ROWS, master_data["customers"], master_data["products"], master_data["schemes"], settings=settings,
    )
    assert result.customer.source is MatchSource.EXACT
    assert result.customer.matched.customer_code == "C002"
    assert [line.quantity for line in result.lines] == [5, 80]
    assert result.skipped == 1

    dolo, arbitel = result.lines
    assert dolo.item_code == "110011"
    assert dolo.product.match_type == "ITEM_CODE"
    assert dolo.product.source is MatchSource.EXACT
    assert dolo.product.matched.product_code == "110011"
    assert dolo.scheme.scheme_applied is False
    assert dolo.upsell.target_qty == 10

    assert arbitel.item_code is None
    assert arbitel.product.matched.product_code == "205116"
    assert arbitel.scheme.free_qty == 5


def test_sheet_quantity_column_beats_strength_in_name(master_data, settings):
    rows = [["QTY", "PRODUCT NAME"], ["5", "DOLO 650 TAB"]]
    result = process_sheet(rows, [], master_data["products"], settings=settings)
    assert [line.quantity for line in result.lines] == [5]
    assert result.lines[0].product.matched.product_code == "110011"


def test_sheet_without_header_falls_back_to_rows(master_data, settings):
    rows = [["1", "DOLO 650 TAB", "20"]]
    result = process_sheet(rows, [], master_data["products"], settings=settings)
    assert [line.quantity for line in result.lines] == [20]
    assert result.lines[0].item_code is None


def test_pipeline_output_is_stable(order_document, master_data, settings):
    first = _run(order_document, master_data, settings).to_dict()
    order_document["tokens"].reverse()
    second = _run(order_document, master_data, settings).to_dict()
    assert first == second


def test_failing_row_does_not_stop_document(order_document, master_data, settings, monkeypatch):
    real = order_pipeline.extract_line_item

    def flaky(row, cfg):
        if "DOLO" in row.raw_text:
            raise RuntimeError("boom")
        return real(row, cfg)

    monkeypatch.setattr(order_pipeline, "extract_line_item", flaky)
    result = _run(order_document, master_data, settings)
    assert len(result.lines) == 3
    assert len(result.failures) == 1
    assert result.failures[0].reason == "boom"
    assert result.stats()["failed"] == 1


def test_missing_master_data_raises(order_document, master_data, settings):
    with pytest.raises(MasterDataError):
        process_document(order_document["tokens"], None, master_data["products"], settings=settings)


def test_batch_keeps_going_after_bad_document(order_document, master_data, settings):
    bad = {"tokens": [{"text": "DOLO 650 TAB 10", "x": "left", "y": 0}]}
    results = process_documents(
        [order_document, bad, order_document],
        master_data["customers"],
        master_data["products"],
        master_data["schemes"],
        settings=settings,
        max_workers=2,
    )
    assert len(results) == 3
    assert results[0].error is None and len(results[0].lines) == 4
    assert results[1].error is not None
    assert results[2].to_dict() == results[0].to_dict()


def test_cli_resolve(tmp_path, order_document, master_data, capsys):
    path = tmp_path / "order.json"
    path.write_text(json.dumps({**order_document, **master_data}), encoding="utf-8")

    assert cli.main(["resolve", str(path)]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["customer"]["source"] == "EXACT"
    assert out["stats"]["extracted"] == 4


def test_cli_sheet_rows(tmp_path, master_data, capsys):
    path = tmp_path / "sheet.json"
    document = {"rows": [["SL NO", "PRODUCT NAME", "QTY"], ["1", "DOLO 650 TAB", "20"]], **master_data}
    path.write_text(json.dumps(document), encoding="utf-8")

    assert cli.main(["resolve", str(path), "--customer", "CITY DRUG LINES"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["customer"]["matched"]["customer_code"] == "C004"
    assert [line["quantity"] for line in out["lines"]] == [20]


def test_cli_unreadable_input(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    assert cli.main(["resolve", str(path)]) == cli.EXIT_BAD_INPUT
    assert cli.main(["resolve", str(tmp_path / "missing.json")]) == cli.EXIT_BAD_INPUT
