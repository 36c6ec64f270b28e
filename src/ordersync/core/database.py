"""Database module."""

import logging
import os

from dotenv import load_dotenv
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, sessionmaker

load_dotenv()

logger = logging.getLogger("database")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./ordersync.db")

engine: Engine = create_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def check_connection(bind: Engine = engine) -> bool:
    """Run a trivial query to verify that the database is reachable."""
    try:
        with bind.connect() as conn:
            result = conn.execute(text("SELECT 1"))
            logger.info("Database connection successful: %s", result.scalar())
            return True
    except SQLAlchemyError as e:
        logger.error("Database connection failed: %s", e)
        return False
