from conftest import api, make_product
from eshop_api.models import Address, Cart
from eshop_api.services.cart import get_delivery_charge


def _add(client, user, variant, qty):
    return api(client, "manage_cart", user_id=str(user.id), product_variant_id=str(variant.id), qty=str(qty)).json()


def test_manage_cart_adds_line(client, db, settings_rows, user, product):
    _, variant = product

    body = _add(client, user, variant, 2)

    assert body["error"] is False
    assert body["message"] == "Cart Updated !"
    assert body["sub_total"] == "180.00"
    assert body["total_quantity"] == "2"
    assert body["data"]["cart_count"] == "1"
    assert body["data"]["max_items_cart"] == "3"
    assert body["cart"][0]["product_details"][0]["name"] == "Mango"
    assert db.query(Cart).filter_by(user_id=user.id).one().qty == 2


def test_manage_cart_updates_existing_line(client, db, settings_rows, user, product):
    _, variant = product
    _add(client, user, variant, 2)

    body = _add(client, user, variant, 5)

    assert body["total_quantity"] == "5"
    assert db.query(Cart).filter_by(user_id=user.id).count() == 1


def test_manage_cart_rejects_quantity_above_stock(client, settings_rows, user, product):
    _, variant = product

    body = _add(client, user, variant, 11)

    assert body["error"] is True
    assert body["message"] == "Only 10 item(s) available for Mango"
    assert body["data"] == []


def test_manage_cart_enforces_max_items(client, db, settings_rows, user, category):
    for name in ("Apple", "Banana", "Cherry"):
        _, variant = make_product(db, category, name=name)
        _add(client, user, variant, 1)
    _, extra = make_product(db, category, name="Durian")

    body = _add(client, user, extra, 1)

    assert body["error"] is True
    assert body["message"] == "Maximum 3 Item(s) Can Be Added Only!"


def test_manage_cart_keeps_digital_and_physical_apart(client, db, settings_rows, user, category, product):
    _, variant = product
    _add(client, user, variant, 1)
    _, ebook = make_product(db, category, name="Recipe eBook", product_type="digital_product")

    body = _add(client, user, ebook, 1)

    assert body["error"] is True
    assert body["message"] == "You can only add either digital product or physical product to cart"


def test_manage_cart_zero_quantity_removes_line(client, db, settings_rows, user, product):
    _, variant = product
    _add(client, user, variant, 2)

    _add(client, user, variant, 0)

    assert db.query(Cart).filter_by(user_id=user.id).count() == 0


def test_get_user_cart(client, settings_rows, user, product):
    _, variant = product
    _add(client, user, variant, 3)

    body = api(client, "get_user_cart", user_id=str(user.id)).json()

    assert body["error"] is False
    assert body["message"] == "Data Retrieved From Cart !"
    assert body["sub_total"] == "270.00"
    assert body["overall_amount"] == "270.00"
    assert body["variant_id"] == [str(variant.id)]
    line = body["data"][0]
    assert line["qty"] == "3"
    assert line["special_price"] == "90"
    assert line["product_variants"][0]["id"] == str(variant.id)
    assert body["promo_codes"] == []


def test_get_cart_lists_running_promo_codes(client, settings_rows, user, product, promo_code):
    _, variant = product
    _add(client, user, variant, 1)

    body = api(client, "get_cart", user_id=str(user.id)).json()

    assert [code["promo_code"] for code in body["promo_codes"]] == ["SAVE10"]


def test_get_user_cart_empty(client, settings_rows, user):
    body = api(client, "get_user_cart", user_id=str(user.id)).json()

    assert body["error"] is True
    assert body["message"] == "Cart Is Empty !"
    assert body["sub_total"] == "0.00"
    assert body["data"] == []


def test_get_user_cart_requires_user(client, settings_rows):
    body = api(client, "get_user_cart").json()
    assert body["error"] is True
    assert body["message"] == "The user_id field is required."


def test_remove_from_cart(client, db, settings_rows, user, product, category):
    _, mango = product
    _, apple = make_product(db, category, name="Apple", price=50, special_price=0)
    _add(client, user, mango, 1)
    _add(client, user, apple, 2)

    body = api(client, "remove_from_cart", user_id=str(user.id), product_variant_id=str(mango.id)).json()

    assert body["message"] == "Removed From Cart !"
    assert body["data"]["total_quantity"] == "2"
    assert body["data"]["sub_total"] == "100.00"
    assert body["data"]["total_items"] == "1"
    assert body["data"]["max_items_cart"] == "3"


def test_delivery_charge_by_city_until_free_threshold(db, settings_rows, user, address):
    assert get_delivery_charge(db, address.id, 499) == "40"
    assert get_delivery_charge(db, address.id, 500) == "0"
    assert get_delivery_charge(db, None, 100) == "0"

    cityless = Address(user_id=user.id, name="Office", mobile="9876543210", address="4 Ring Road", pincode="520010")
    db.add(cityless)
    db.commit()
    assert get_delivery_charge(db, cityless.id, 100) == "30"
