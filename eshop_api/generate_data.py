"""
Data generation script for master data tables
This script generates data for:
- Settings, taxes and delivery time slots
- Zipcodes, cities and areas
- Categories, products and their variants
- Users (password ``password123``)
"""
import argparse
import json
import random
from decimal import Decimal

import bcrypt
from faker import Faker
from loguru import logger

from eshop_api.models import (
    Area, Category, City, Product, ProductVariant, Setting, Tax, TimeSlot, User, Zipcode,
)
from eshop_api.utils.database import SessionLocal

fake = Faker(["en_IN"])

CATEGORY_DATA = [
    ("Fruits", ["Apple", "Banana", "Mango", "Papaya", "Guava"]),
    ("Vegetables", ["Tomato", "Onion", "Potato", "Carrot", "Spinach"]),
    ("Dairy", ["Milk", "Curd", "Paneer", "Butter", "Ghee"]),
    ("Bakery", ["Bread", "Bun", "Cookies", "Rusk", "Cake"]),
    ("Staples", ["Rice", "Atta", "Toor Dal", "Sugar", "Salt"]),
    ("Beverages", ["Tea", "Coffee", "Juice", "Soda", "Lassi"]),
]
UNITS = ["250 g", "500 g", "1 kg", "1 Pc", "1 L"]

DEFAULT_SETTINGS = {
    "system_settings": {
        "app_name": "eshop",
        "support_number": "9120042009",
        "support_email": "support@eshop.local",
        "currency": "₹",
        "minimum_cart_amt": "199",
        "delivery_charge": "30",
        "max_items_cart": "20",
        "min_amount": "99",
        "is_refer_earn_on": "0",
    },
    "payment_method": {"cod_method": "1", "phonepe_payment_method": "1"},
    "time_slot_config": {"time_slot_config": "1", "is_time_slots_enabled": "1", "allowed_days": "7"},
    "shipping_method": {"local_shipping_method": "1", "shiprocket_shipping_method": "0"},
    "currency": "₹",
    "logo": "uploads/media/2022/uzvis.png",
    "privacy_policy": "<p>Privacy policy</p>",
    "terms_conditions": "<p>Terms and conditions</p>",
    "contact_us": "<p>Contact us</p>",
    "about_us": "<p>About us</p>",
    "shipping_policy": "<p>Shipping policy</p>",
    "return_policy": "<p>Return policy</p>",
}


class DataGenerator:
    def __init__(self):
        self.db = SessionLocal()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.db.close()

    def hash_password(self, password: str) -> str:
        """Hash password using bcrypt"""
        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
        return hashed.decode('utf-8')

    def _commit(self, rows: list, label: str) -> list:
        try:
            self.db.commit()
            logger.info(f"Created {len(rows)} {label}")
            return rows
        except Exception as e:
            logger.error(f"Error creating {label}: {e}")
            self.db.rollback()
            return []

    def generate_settings(self):
        rows = []
        for variable, value in DEFAULT_SETTINGS.items():
            stored = json.dumps(value) if isinstance(value, dict) else value
            setting = Setting(variable=variable, value=stored)
            rows.append(setting)
            self.db.add(setting)
        for title, start, end in (("Morning", "07:00:00", "10:00:00"), ("Evening", "17:00:00", "20:00:00")):
            slot = TimeSlot(title=title, from_time=start, to_time=end, last_order_time=start, status=1)
            rows.append(slot)
            self.db.add(slot)
        return self._commit(rows, "settings and time slots")

    def generate_geography(self, count: int = 5):
        """Zipcodes with one city and one area each"""
        rows = []
        for _ in range(count):
            zipcode = Zipcode(zipcode=str(fake.random_int(500001, 530099)))
            city = City(name=fake.city(), delivery_charge=Decimal("30.00"),
                        minimum_free_delivery_order_amount=Decimal("199.00"))
            self.db.add_all([zipcode, city])
            self.db.flush()
            area = Area(name=fake.street_name(), city_id=city.id, zipcode_id=zipcode.id,
                        minimum_free_delivery_order_amount=Decimal("199.00"), delivery_charges=Decimal("30.00"))
            self.db.add(area)
            rows.extend([zipcode, city, area])
        return self._commit(rows, "zipcodes, cities and areas")

    def generate_catalog(self, products_per_category: int = 5):
        tax = Tax(title="GST 5%", percentage=Decimal("5.00"), status=1)
        self.db.add(tax)
        self.db.flush()

        rows = [tax]
        for row_order, (name, product_names) in enumerate(CATEGORY_DATA):
            category = Category(name=name, slug=name.lower(), row_order=row_order, status=1,
                                image=f"uploads/media/2024/{name.lower()}.png")
            self.db.add(category)
            self.db.flush()
            rows.append(category)
            for product_name in product_names[:products_per_category]:
                product = Product(
                    name=product_name,
                    slug=product_name.lower().replace(" ", "-"),
                    category_id=category.id,
                    tax=tax.id if random.random() < 0.5 else None,
                    short_description=fake.sentence(),
                    description=f"<p>{fake.paragraph()}</p>",
                    image=f"uploads/media/2024/{product_name.lower().replace(' ', '_')}.png",
                    other_images="[]",
                    is_prices_inclusive_tax=random.choice([0, 1]),
                    total_allowed_quantity=10,
                    deliverable_type=1,
                    is_returnable=1,
                    is_cancelable=1,
                    cancelable_till="shipped",
                    status=1,
                )
                self.db.add(product)
                self.db.flush()
                rows.append(product)
                for _ in range(random.randint(1, 3)):
                    price = Decimal(random.randint(20, 500))
                    variant = ProductVariant(
                        product_id=product.id,
                        price=price,
                        special_price=price - Decimal(random.randint(0, 15)),
                        stock=random.randint(10, 100),
                        availability=1,
                        status=1,
                    )
                    self.db.add(variant)
                    rows.append(variant)
        return self._commit(rows, "catalog rows")

    def generate_users(self, count: int = 20):
        users = []
        password = self.hash_password("password123")
        for _ in range(count):
            name = fake.name()
            user = User(
                username=name,
                email=f"{name.lower().replace(' ', '.')}{random.randint(1, 999)}@example.com",
                mobile=f"9{random.randint(100000000, 999999999)}",
                country_code="91",
                password=password,
                balance=Decimal(random.choice([0, 0, 50, 100, 250])),
                referral_code=fake.bothify("????####").upper(),
                city=fake.city(),
                pincode=fake.postcode(),
                active=1,
            )
            users.append(user)
            self.db.add(user)
        return self._commit(users, "users")

    def clear_all_data(self):
        """Clear generated master data"""
        logger.info("Clearing all data...")
        try:
            for model in (ProductVariant, Product, Category, Tax, Area, City, Zipcode, TimeSlot, Setting, User):
                self.db.query(model).delete()
            self.db.commit()
            logger.info("All data cleared")
        except Exception as e:
            logger.error(f"Error clearing data: {e}")
            self.db.rollback()

    def generate_all_master_data(self, products_per_category=5, users=20, zipcodes=5):
        logger.info("=== Generating Master Data ===")
        self.clear_all_data()
        self.generate_settings()
        self.generate_geography(zipcodes)
        if self.generate_catalog(products_per_category):
            self.generate_users(users)
            logger.info("=== Master Data Generation Complete ===")
        else:
            logger.error("Failed to generate the catalog. Stopping.")


def main(argv=None):
    """Main function to run data generation"""
    parser = argparse.ArgumentParser(description="Generate master data for the eshop API")
    parser.add_argument("--products", type=int, default=5, help="Products per category")
    parser.add_argument("--users", type=int, default=20, help="Number of users to generate")
    parser.add_argument("--zipcodes", type=int, default=5, help="Number of serviceable zipcodes")
    parser.add_argument("--clear", action="store_true", help="Clear all existing data")

    args = parser.parse_args(argv)

    with DataGenerator() as generator:
        if args.clear:
            generator.clear_all_data()
        else:
            generator.generate_all_master_data(
                products_per_category=args.products,
                users=args.users,
                zipcodes=args.zipcodes,
            )


if __name__ == "__main__":
    main()
