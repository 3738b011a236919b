import os

from conftest import api
from eshop_api.config import settings
from eshop_api.models import Product, ProductRating, User


def _rate(client, user, item, rating, **extra):
    return api(client, "set_product_rating", user_id=str(user.id), product_id=str(item.id), rating=str(rating), **extra)


def test_set_product_rating_adds_then_updates(client, db, user, product):
    item, _ = product

    body = _rate(client, user, item, 4, comment="Sweet").json()
    assert body["message"] == "Product rating added successfully"
    assert body["data"] == {"product_id": str(item.id), "has_purchased": "0"}

    body = _rate(client, user, item, 5, comment="Even better").json()
    assert body["message"] == "Product rating updated successfully"

    rating = db.query(ProductRating).one()
    assert rating.rating == 5
    assert rating.comment == "Even better"
    db.refresh(item)
    assert item.rating == 5
    assert item.no_of_ratings == 1


def test_set_product_rating_validates(client, user, product):
    item, _ = product

    res = _rate(client, user, item, 7)
    assert res.status_code == 400
    assert res.json()["message"] == "Rating must be between 1 and 5"

    res = api(client, "set_product_rating", user_id=str(user.id))
    assert res.json()["message"] == "product_id, rating are required fields!"


def test_get_product_rating_summary(client, db, user, product):
    item, _ = product
    other = User(username="Ravi", mobile="9000000002", balance=0, active=1)
    db.add(other)
    db.commit()
    _rate(client, user, item, 4, images=["uploads/review_images/a.jpg"])
    _rate(client, other, item, 5)

    body = api(client, "get_product_rating", product_id=str(item.id)).json()

    assert body["message"] == "Rating retrieved successfully"
    assert body["no_of_rating"] == 2
    assert body["total"] == "2"
    assert body["star_4"] == "1"
    assert body["star_5"] == "1"
    assert body["star_1"] == "0"
    assert body["total_images"] == "1"
    assert body["product_rating"] == "4.5"
    assert [row["user_name"] for row in body["data"]] == ["Ravi", "Asha Rao"]

    only_images = api(client, "get_product_rating", product_id=str(item.id), has_images="1").json()
    assert only_images["no_of_rating"] == 1
    assert only_images["data"][0]["images"] == [f"{settings.image_base_url}uploads/review_images/a.jpg"]


def test_get_product_rating_requires_product(client):
    res = api(client, "get_product_rating")
    assert res.status_code == 400
    assert res.json()["message"] == "Product ID is required"


def test_review_images_accept_comma_separated_paths(client, user, product):
    item, _ = product
    _rate(client, user, item, 3, images="uploads/review_images/a.jpg,uploads/review_images/b.jpg")

    body = api(client, "get_product_review_images", product_id=str(item.id), limit="1").json()

    assert body["total"] == "2"
    assert len(body["data"]) == 1
    assert body["data"][0]["username"] == "Asha Rao"
    assert body["data"][0]["rating"] == "3"


def test_set_product_rating_with_uploaded_images(client, db, monkeypatch, tmp_path, user, product):
    item, _ = product
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path))

    res = client.post(
        "/app/v1/api/set_product_rating",
        data={"user_id": str(user.id), "product_id": str(item.id), "rating": "5"},
        files=[("images[]", ("fresh mango.jpg", b"jpeg-bytes", "image/jpeg"))],
    )

    assert res.json()["message"] == "Product rating added successfully"
    stored = os.listdir(tmp_path / "review_images")
    assert len(stored) == 1
    assert stored[0].endswith("_0_fresh_mango.jpg")
    assert db.query(ProductRating).one().images == f'["uploads/review_images/{stored[0]}"]'


def test_delete_product_rating(client, db, user, product):
    item, _ = product
    _rate(client, user, item, 2)

    body = api(client, "delete_product_rating", user_id=str(user.id), product_id=str(item.id)).json()

    assert body["message"] == "Product rating deleted successfully"
    assert db.query(ProductRating).count() == 0
    assert db.get(Product, item.id).no_of_ratings == 0
    again = api(client, "delete_product_rating", user_id=str(user.id), product_id=str(item.id)).json()
    assert again["message"] == "No rating found to delete"
