"""
Database engine, session factory and declarative base
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from eshop_api.config import settings

engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency yielding a session that is always closed"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """Create all tables"""
    # Register every model on Base.metadata
    import eshop_api.models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


def drop_tables(bind=None):
    """Drop all tables"""
    import eshop_api.models  # noqa: F401
    Base.metadata.drop_all(bind=bind or engine)
