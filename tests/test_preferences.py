import re
import pytest
from services.errors import ClientInputError
from services.preferences import (
    LineItem,
    OrderIdGenerator,
    build_preference,
    normalize_item,
    normalize_items,
    normalize_quantity,
    normalize_title,
    normalize_unit_price,
)


@pytest.mark.parametrize("raw, expected", [
    (2, 2), ("3", 3), (" 4 ", 4), (5.0, 5),
    (None, 1), (0, 1), (-2, 1), (2.5, 1), ("abc", 1), (True, 1), ([], 1),
])
def test_quantity_defaults_to_one_when_invalid(raw, expected):
    assert normalize_quantity(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    (1500, 1500.0), ("99.5", 99.5), (0, 0.0),
    (None, 0.0), (-10, 0.0), ("free", 0.0), ("nan", 0.0), (float("inf"), 0.0), (False, 0.0),
])
def test_unit_price_defaults_to_zero_when_invalid(raw, expected):
    assert normalize_unit_price(raw) == expected


def test_title_defaults_to_producto():
    assert normalize_title(None) == "Producto"
    assert normalize_title("   ") == "Producto"
    assert normalize_title(42) == "Producto"
    assert normalize_title("  Tea ") == "Tea"


def test_item_with_nothing_gets_all_defaults():
    item = normalize_item({})
    assert item == LineItem(title="Producto", quantity=1, unit_price=0.0, currency_id="ARS")
    # non-dict entries are treated as empty items
    assert normalize_item("junk") == item


@pytest.mark.parametrize("raw", [None, [], {}, "items", 3])
def test_empty_or_missing_items_rejected(raw):
    with pytest.raises(ClientInputError) as ei:
        normalize_items(raw)
    assert str(ei.value) == "Items vacíos"


def test_order_ids_unique_within_same_millisecond():
    gen = OrderIdGenerator("TDC", clock=lambda: 1700000000.0)
    ids = [gen.next_id() for _ in range(5)]
    assert len(set(ids)) == 5
    assert all(re.fullmatch(r"TDC-\d+", i) for i in ids)
    nums = [int(i.split("-")[1]) for i in ids]
    assert nums == sorted(nums)
    assert nums[0] == 1700000000000


def test_order_id_uses_wall_clock_millis():
    gen = OrderIdGenerator()
    oid = gen.next_id()
    assert re.fullmatch(r"TDC-\d{13,}", oid)


def test_preference_shape_with_callback_url():
    items = normalize_items([{"title": "Tea", "quantity": 2, "unit_price": 1500}])
    pref = build_preference(items, "TDC-1", front_origin="https://tierradecalma.com/",
                            public_backend_url="https://api.example.com/")
    assert pref["items"] == [{"title": "Tea", "quantity": 2,
                              "unit_price": 1500.0, "currency_id": "ARS"}]
    assert pref["external_reference"] == "TDC-1"
    assert pref["auto_return"] == "approved"
    assert pref["back_urls"] == {
        "success": "https://tierradecalma.com/pago-exitoso.html",
        "pending": "https://tierradecalma.com/pago-pendiente.html",
        "failure": "https://tierradecalma.com/pago-fallido.html",
    }
    assert pref["notification_url"] == "https://api.example.com/webhook"
    assert "payer" not in pref


def test_preference_without_public_url_has_no_notification_url():
    items = normalize_items([{"title": "Tea"}])
    pref = build_preference(items, "TDC-2", front_origin="https://tierradecalma.com",
                            public_backend_url=None, payer_email="buyer@example.com")
    assert "notification_url" not in pref
    assert pref["payer"] == {"email": "buyer@example.com"}
