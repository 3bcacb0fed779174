import pytest

from price_scanner.domain.models import Product
from price_scanner.errors import DuplicateCodeError, TransientStoreError
from price_scanner.store.repository import ProductStore


def test_find_maps_matching_row(store):
    product = store.find("8936049")
    assert product == Product(code="8936049", name="Bánh quy", price=58000)


def test_find_returns_none_for_unknown_code(store, sheet):
    assert store.find("999") is None
    assert sheet.calls == [("get", "Sheet1!A:C")]


def test_add_then_find_preserves_leading_zeros(sheet):
    store = ProductStore(sheet)
    assert store.add(Product(code="000777", name="X", price=1000)) is True
    assert sheet.rows[-1] == ["000777", "X", "1000"]

    found = store.find("000777")
    assert found is not None
    assert found.code == "000777"
    assert found.price == 1000


class FakeSheetEmpty:
    def __init__(self):
        self.rows = []

    def get_values(self, a1):
        return [list(r) for r in self.rows]

    def append_values(self, a1, values):
        for code, name, price in values:
            self.rows.append([code[1:] if code.startswith("'") else code, name, str(price)])

    def update_values(self, a1, values):  # pragma: no cover - not used here
        raise AssertionError("update not expected")


def test_add_round_trip_on_empty_sheet():
    store = ProductStore(FakeSheetEmpty())
    store.add(Product(code="0012345", name="X", price=1000))
    assert store.find("0012345").code == "0012345"


def test_add_does_not_check_duplicates_by_default(store, sheet):
    before = len(sheet.rows)
    store.add(Product(code="0012345", name="again", price=1))
    assert len(sheet.rows) == before + 1
    # first occurrence still wins
    assert store.find("0012345").name == "Nước suối"


def test_add_rejects_duplicates_when_enabled(sheet):
    store = ProductStore(sheet, reject_duplicates=True)
    before = len(sheet.rows)
    with pytest.raises(DuplicateCodeError):
        store.add(Product(code=" 0012345", name="again", price=1))
    assert len(sheet.rows) == before
    assert not [c for c in sheet.calls if c[0] == "append"]


def test_update_writes_only_name_and_price(store, sheet):
    assert store.update(Product(code="0012345", name="Nước suối 500ml", price=6000)) is True
    assert ("update", "Sheet1!B3:C3", [["'Nước suối 500ml", 6000]]) in sheet.calls
    assert sheet.rows[2] == ["0012345", "Nước suối 500ml", "6000"]


def test_update_pads_short_rows(store, sheet):
    assert store.update(Product(code="123", name="filled", price=7)) is True
    assert sheet.rows[5] == ["123", "filled", "7"]


def test_update_unknown_code_returns_false_and_appends_nothing(store, sheet):
    before = [list(r) for r in sheet.rows]
    assert store.update(Product(code="404", name="ghost", price=1)) is False
    assert sheet.rows == before
    assert [c[0] for c in sheet.calls] == ["get"]


def test_custom_sheet_name_is_quoted(sheet):
    store = ProductStore(sheet, sheet_name="Bảng giá")
    store.find("1")
    assert sheet.calls[-1] == ("get", "'Bảng giá'!A:C")


def test_transport_failure_propagates(store, sheet):
    sheet.fail = TransientStoreError("boom")
    with pytest.raises(TransientStoreError):
        store.find("8936049")


@pytest.mark.parametrize("name", ['=IMPORTXML("http://example.com", "//a")', "0012", "'quoted"])
def test_names_are_stored_verbatim(store, sheet, name):
    store.add(Product(code="555", name=name, price=1))
    assert sheet.rows[-1][1] == name

    assert store.update(Product(code="0012345", name=name, price=2)) is True
    assert sheet.rows[2][1] == name
