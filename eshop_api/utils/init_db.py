"""
Schema management for the eshop database

    eshop-init-db --init            create missing tables
    eshop-init-db --reset           drop and recreate every table
    eshop-init-db --init --seed     create tables, then load generated master data
"""
import argparse

from loguru import logger
from sqlalchemy.engine import make_url

from eshop_api.config import settings
from eshop_api.utils.database import Base, create_tables, drop_tables


def _target() -> str:
    return make_url(settings.database_url).render_as_string(hide_password=True)


def init_database():
    logger.info(f"Creating tables on {_target()}")
    create_tables()
    logger.info(f"{len(Base.metadata.tables)} tables ready")


def reset_database():
    logger.warning(f"Dropping every table on {_target()}")
    drop_tables()
    create_tables()
    logger.info("Schema recreated")


def seed_database():
    from eshop_api.generate_data import DataGenerator

    with DataGenerator() as generator:
        generator.generate_all_master_data()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create, reset or seed the eshop schema")
    parser.add_argument("--init", action="store_true", help="Create missing tables")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate all tables")
    parser.add_argument("--seed", action="store_true", help="Load generated master data afterwards")

    args = parser.parse_args(argv)

    if args.reset:
        reset_database()
    elif args.init:
        init_database()
    elif not args.seed:
        parser.print_help()
        return

    if args.seed:
        seed_database()


if __name__ == "__main__":
    main()
