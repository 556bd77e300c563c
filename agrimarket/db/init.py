"""Initialize database tables."""
import logging

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

# Imported for their side effect of registering tables on SQLModel.metadata
from agrimarket.models import Conversation, Farm, MarketPrice, Message, Product, Profile, WeatherRecord  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(engine: Engine):
    """Create all tables in the database."""
    logger.info("Creating all tables...")
    SQLModel.metadata.create_all(engine)
    logger.info("Tables created successfully.")
