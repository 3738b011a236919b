"""
Shared fixtures: an in-memory SQLite database, a TestClient wired to it and
a PhonePe client that never leaves the process
"""
import json
import os
from datetime import date, timedelta

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import eshop_api.models  # noqa: F401
from eshop_api.config import PhonePeConfig
from eshop_api.main import app
from eshop_api.models import (
    Address, Area, Category, City, ClientApiKey, Product, ProductVariant, PromoCode, Setting, Tax,
    TimeSlot, User, Zipcode,
)
from eshop_api.services.auth import hash_password
from eshop_api.services.phonepe import PhonePeClient, get_phonepe
from eshop_api.utils.database import Base, get_db
from eshop_api.utils.helpers import settings_cache

SYSTEM_SETTINGS = {
    "app_name": "eshop",
    "support_number": "9000000000",
    "support_email": "support@eshop.test",
    "minimum_cart_amt": "500",
    "delivery_charge": "30",
    "max_items_cart": "3",
    "min_amount": "50",
}


class FakePhonePe(PhonePeClient):
    """PhonePe client answering from canned data"""

    def __init__(self):
        super().__init__(PhonePeConfig(
            client_id="client", client_secret="secret",
            callback_username="hook", callback_password="hook-pass",
            merchant_domain="http://api.test", frontend_domain="http://shop.test",
            mobile_app_scheme="eshop://",
        ))
        self.state = "COMPLETED"
        self.amount = 0.0
        self.initiated = []

    def initiate_payment(self, order_id, user_id, amount, merchant_order_id=None):
        self.initiated.append((order_id, user_id, amount))
        return {
            "order_id": f"OMO{order_id}",
            "merchant_order_id": merchant_order_id or f"ORDER_{order_id}_1700000000000",
            "amount": amount,
            "redirect_url": "https://mercury.phonepe.test/pay",
            "state": "PENDING",
            "expire_at": 1700000900000,
        }

    def check_status(self, merchant_order_id):
        return {
            "order_id": f"OMO-{merchant_order_id}",
            "merchant_order_id": merchant_order_id,
            "state": self.state,
            "amount": self.amount,
            "expire_at": None,
            "payment_details": [{"transactionId": "T123", "paymentMode": "UPI_QR", "state": self.state}],
        }


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def clear_settings_cache():
    settings_cache.clear()
    yield
    settings_cache.clear()


@pytest.fixture
def phonepe():
    return FakePhonePe()


@pytest.fixture
def client(db, phonepe):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_phonepe] = lambda: phonepe
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def settings_rows(db):
    rows = {
        "system_settings": json.dumps(SYSTEM_SETTINGS),
        "payment_method": json.dumps({"cod_method": "1", "phonepe_payment_method": "1"}),
        "time_slot_config": json.dumps({"is_time_slots_enabled": "1", "delivery_starts_from": "", "starting_date": ""}),
        "currency": "₹",
        "logo": "uploads/media/2022/logo.png",
    }
    for variable, value in rows.items():
        db.add(Setting(variable=variable, value=value))
    db.add(TimeSlot(title="Evening", from_time="17:00:00", to_time="20:00:00", last_order_time="16:00:00", status=1))
    db.add(TimeSlot(title="Morning", from_time="07:00:00", to_time="10:00:00", last_order_time="06:00:00", status=1))
    db.add(TimeSlot(title="Night", from_time="21:00:00", to_time="23:00:00", last_order_time="20:00:00", status=0))
    db.commit()
    return rows


@pytest.fixture
def user(db):
    user = User(
        username="Asha Rao", email="asha@example.com", mobile="9876543210", country_code="91",
        password=hash_password("secret"), balance=100, active=1, referral_code="ASHA1234",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def category(db):
    category = Category(name="Fruits", parent_id=0, row_order=1, status=1, image="uploads/media/2024/fruits.png")
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def make_product(db, category, name="Mango", price=100, special_price=90, stock=10, tax=None,
                 product_type="simple_product", **fields):
    product = Product(
        name=name, category_id=category.id, type=product_type, tax=tax, image="uploads/media/2024/item.png",
        other_images="[]", deliverable_type=fields.pop("deliverable_type", 1), status=1, **fields
    )
    db.add(product)
    db.flush()
    variant = ProductVariant(product_id=product.id, price=price, special_price=special_price, stock=stock,
                             availability=1, status=1)
    db.add(variant)
    db.commit()
    db.refresh(product)
    db.refresh(variant)
    return product, variant


@pytest.fixture
def product(db, category):
    return make_product(db, category)


@pytest.fixture
def taxed_product(db, category):
    tax = Tax(title="GST", percentage=10, status=1)
    db.add(tax)
    db.commit()
    return make_product(db, category, name="Cashews", price=200, special_price=0, tax=tax.id)


@pytest.fixture
def serviceable_area(db):
    zipcode = Zipcode(zipcode="520010")
    city = City(name="Vijayawada", delivery_charge=40, minimum_free_delivery_order_amount=500)
    db.add_all([zipcode, city])
    db.flush()
    area = Area(name="Benz Circle", city_id=city.id, zipcode_id=zipcode.id,
                minimum_free_delivery_order_amount=500, delivery_charges=25)
    db.add(area)
    db.commit()
    return zipcode, city, area


@pytest.fixture
def address(db, user, serviceable_area):
    zipcode, city, area = serviceable_area
    address = Address(user_id=user.id, name="Home", type="home", mobile="9876543210", address="12 MG Road",
                      area_id=area.id, city_id=city.id, pincode=zipcode.zipcode, state="AP", country="India",
                      is_default=1)
    db.add(address)
    db.commit()
    db.refresh(address)
    return address


@pytest.fixture
def promo_code(db):
    promo = PromoCode(
        promo_code="SAVE10", message="10% off", start_date=date.today() - timedelta(days=1),
        end_date=date.today() + timedelta(days=5), minimum_order_amount=100, discount=10,
        discount_type="percentage", max_discount_amount=50, repeat_usage=0, status=1,
    )
    db.add(promo)
    db.commit()
    return promo


@pytest.fixture
def client_key(db):
    db.add(ClientApiKey(name="android", secret="client-secret", status=1))
    db.commit()
    return "client-secret"


def api(client, endpoint, **payload):
    """POST a JSON payload to the client API"""
    return client.post(f"/app/v1/api/{endpoint}", json=payload)
