"""Database initialization script."""
from typing import Optional
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from weekshop.models import Base, StoreLocation
from weekshop.db.session import get_engine
from weekshop.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LOCATIONS = [
    ("Fruit & Veg", 10),
    ("Bakery", 20),
    ("Dairy", 30),
    ("Frozen", 40),
]


def init_db(seed: bool = True, engine: Optional[Engine] = None) -> None:
    """Initialize the database with tables and a starter set of locations."""
    engine = engine or get_engine()

    # Create tables
    Base.metadata.create_all(engine)

    if not seed:
        return

    with Session(engine) as session:
        existing = session.query(StoreLocation).count()
        if existing:
            logger.info("Locations already present", count=existing)
            return

        for name, sequence in DEFAULT_LOCATIONS:
            session.add(StoreLocation(name=name, sequence_number=sequence))
        session.commit()
        logger.info("Seeded default store locations", count=len(DEFAULT_LOCATIONS))


if __name__ == "__main__":
    init_db()
