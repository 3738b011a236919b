from conftest import api
from eshop_api.models import Address, Favorite


def test_add_address_resolves_area_from_pincode(client, db, user, serviceable_area):
    _, city, area = serviceable_area

    body = api(client, "add_address", user_id=str(user.id), name="Office", type="office", mobile="9000000001",
               address="4 Ring Road", pincode_name="520010", pincode="520010", is_default="1").json()

    assert body["message"] == "Address Added Successfully"
    saved = body["data"][0]
    assert saved["area_id"] == str(area.id)
    assert saved["city_id"] == str(city.id)
    assert saved["city"] == "Vijayawada"
    assert saved["area"] == "Benz Circle"
    assert saved["delivery_charges"] == "25"
    assert saved["is_default"] == "1"


def test_add_address_rejects_unserviceable_pincode(client, user):
    body = api(client, "add_address", user_id=str(user.id), pincode_name="999999").json()

    assert body["error"] is True
    assert body["message"].startswith("Sorry!! Not Delivering to this pincode.")


def test_new_default_address_clears_previous(client, db, user, address):
    api(client, "add_address", user_id=str(user.id), name="Office", address="4 Ring Road", is_default="1")

    defaults = [row.is_default for row in db.query(Address).filter_by(user_id=user.id).order_by(Address.id)]
    assert defaults == [0, 1]


def test_get_address_promotes_newest_to_default(client, db, user):
    for name in ("Home", "Office"):
        db.add(Address(user_id=user.id, name=name, address="somewhere", is_default=0))
    db.commit()

    body = api(client, "get_address", user_id=str(user.id)).json()

    assert body["message"] == "Address Retrieved Successfully"
    assert [(row["name"], row["is_default"]) for row in body["data"]] == [("Office", "1"), ("Home", "0")]


def test_get_address_without_rows(client, user):
    body = api(client, "get_address", user_id=str(user.id)).json()
    assert body["error"] is True
    assert body["message"] == "No Details Found !"


def test_update_and_delete_address(client, db, user, address):
    body = api(client, "update_address", id=str(address.id), landmark="Near the temple").json()

    assert body["message"] == "Address updated Successfully"
    assert body["data"][0]["landmark"] == "Near the temple"

    body = api(client, "delete_address", id=str(address.id)).json()
    assert body["message"] == "Address Deleted Successfully"
    assert db.query(Address).count() == 0


def test_favorites_lifecycle(client, db, user, product):
    item, variant = product
    user_id, product_id = str(user.id), str(item.id)

    assert api(client, "add_to_favorites", user_id=user_id, product_id=product_id).json()["message"] == "Added to favorite"
    again = api(client, "add_to_favorites", user_id=user_id, product_id=product_id)
    assert again.status_code == 400
    assert again.json()["message"] == "Already added to favorite!"

    body = api(client, "get_favorites", user_id=user_id).json()
    assert body["total"] == 1
    favorite = body["data"][0]
    assert favorite["name"] == "Mango"
    assert favorite["default_variant"] == str(variant.id)
    assert favorite["variants"][0]["attr_name"] == "Unit"
    assert favorite["variants"][0]["variant_values"] == "1 Pc"
    assert favorite["is_favorite"] == "1"

    removed = api(client, "remove_from_favorites", user_id=user_id, product_id=product_id).json()
    assert removed["message"] == "Removed from favorite"
    assert db.query(Favorite).count() == 0


def test_remove_missing_favorite(client, user, product):
    item, _ = product

    res = api(client, "remove_from_favorites", user_id=str(user.id), product_id=str(item.id))

    assert res.status_code == 400
    assert res.json()["message"] == "Item not added as favorite!"


def test_get_favorites_empty(client, user):
    body = api(client, "get_favorites", user_id=str(user.id)).json()
    assert body["message"] == "No Favourite(s) Product Are Added"
