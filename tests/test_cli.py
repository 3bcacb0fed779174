import json

import pytest

from price_scanner.cli import main as cli


@pytest.fixture
def use_store(monkeypatch, store):
    monkeypatch.setattr(cli, "_build_store", lambda ns: store)
    return store


def _output(capsys):
    # log lines share stdout with the JSON payload
    lines = [line for line in capsys.readouterr().out.splitlines() if line.startswith("{")]
    return json.loads(lines[-1])


def test_lookup_prints_product(use_store, capsys):
    assert cli.main(["lookup", "--barcode", "0012345"]) == 0
    assert _output(capsys) == {"found": True, "product": {"barcode": "0012345", "name": "Nước suối", "price": 5000}}


def test_lookup_unknown_code_exits_1(use_store, capsys):
    assert cli.main(["lookup", "--barcode", "404"]) == 1
    assert _output(capsys) == {"found": False, "barcode": "404"}


def test_add_and_update(use_store, sheet, capsys):
    assert cli.main(["add", "--barcode", "0099", "--name", "Trà xanh", "--price", "12.000"]) == 0
    assert sheet.rows[-1] == ["0099", "Trà xanh", "12"]

    assert cli.main(["update", "--barcode", "0099", "--name", "Trà xanh", "--price", "12000"]) == 0
    assert sheet.rows[-1] == ["0099", "Trà xanh", "12000"]

    assert cli.main(["update", "--barcode", "0100", "--name", "x", "--price", "1"]) == 1


def test_invalid_price_exits_2(use_store, sheet):
    before = len(sheet.rows)
    assert cli.main(["add", "--barcode", "0099", "--name", "x", "--price", "free"]) == 2
    assert len(sheet.rows) == before


def test_store_failure_exits_1(use_store, sheet):
    from price_scanner.errors import TransientStoreError

    sheet.fail = TransientStoreError("down")
    assert cli.main(["lookup", "--barcode", "0012345"]) == 1


def test_missing_configuration_exits_2(monkeypatch, tmp_path):
    for key in ("GOOGLE_SERVICE_ACCOUNT_EMAIL", "GOOGLE_PRIVATE_KEY", "GOOGLE_SHEETS_ID"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    assert cli.main(["lookup", "--barcode", "1"]) == 2


@pytest.mark.parametrize("value", ["0", "-2", "many"])
def test_scan_rejects_bad_confirmation_count(value):
    with pytest.raises(SystemExit) as exc:
        cli.main(["scan", "--confirmations", value])
    assert exc.value.code == 2
