"""Initialize the database tables."""

import logging

from ordersync.core import models  # noqa: F401  registers the tables on Base
from ordersync.core.database import Base, engine

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("init_db")

logger.info("Creating database tables...")
Base.metadata.create_all(bind=engine)
logger.info("Tables created successfully!")
