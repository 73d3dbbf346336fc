"""Database connection and session management."""
from decimal import Decimal
from uuid import uuid4
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator
import logging

from config import DATABASE_URL
from models import Base, Product

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    """Pool settings for server databases; SQLite ignores them."""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,  # Verify connections before use
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_timeout": 30,
    }


# Create engine with connection pool settings
engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session.

    Yields:
        Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


SEED_PRODUCTS = [
    {
        "name": "Elegant Summer Dress",
        "description": "Beautiful floral pattern dress perfect for summer outings.",
        "price": Decimal("69.99"),
        "category": "clothing",
        "sizes": ["S", "M", "L", "XL"],
        "colors": ["White", "Blue", "Pink"],
        "featured": True,
        "rating": 4.5,
    },
    {
        "name": "Classic Denim Jacket",
        "description": "Versatile denim jacket that goes with any outfit.",
        "price": Decimal("89.99"),
        "category": "clothing",
        "sizes": ["S", "M", "L", "XL", "XXL"],
        "colors": ["Blue", "Black"],
        "rating": 4.2,
    },
    {
        "name": "Premium Leather Handbag",
        "description": "Handcrafted leather handbag with gold accents.",
        "price": Decimal("149.99"),
        "category": "accessories",
        "colors": ["Brown", "Black", "Tan"],
        "featured": True,
        "rating": 4.7,
    },
    {
        "name": "Luxury Lipstick Set",
        "description": "Set of 3 premium long-lasting lipsticks.",
        "price": Decimal("45.99"),
        "category": "makeup",
        "colors": ["Red", "Nude", "Berry"],
        "rating": 4.8,
    },
    {
        "name": "Men's Tailored Blazer",
        "description": "Sophisticated blazer for formal and casual occasions.",
        "price": Decimal("129.99"),
        "category": "mens-clothing",
        "sizes": ["S", "M", "L", "XL", "XXL"],
        "colors": ["Navy", "Charcoal", "Black"],
        "featured": True,
        "rating": 4.6,
    },
    {
        "name": "Statement Earrings",
        "description": "Eye-catching earrings with crystal details.",
        "price": Decimal("34.99"),
        "category": "accessories",
        "colors": ["Silver", "Gold"],
        "rating": 4.3,
    },
    {
        "name": "Hydrating Foundation",
        "description": "Full coverage foundation with SPF 30.",
        "price": Decimal("38.99"),
        "category": "makeup",
        "colors": ["Fair", "Medium", "Tan", "Deep"],
        "featured": True,
        "rating": 4.5,
    },
    {
        "name": "Men's Cotton T-Shirt",
        "description": "Premium cotton t-shirt for everyday wear.",
        "price": Decimal("29.99"),
        "category": "mens-clothing",
        "sizes": ["S", "M", "L", "XL", "XXL"],
        "colors": ["White", "Black", "Gray", "Navy"],
        "rating": 4.4,
    },
]


def init_db(bind=None) -> None:
    """Initialize database tables and seed data."""
    bind = bind or engine
    Base.metadata.create_all(bind=bind)

    # Seed data if empty
    db = Session(bind=bind)
    try:
        if db.query(Product).count() == 0:
            products = [
                Product(
                    id=str(uuid4()),
                    images=["/placeholder.svg"],
                    in_stock=True,
                    **{"featured": False, **data}
                )
                for data in SEED_PRODUCTS
            ]
            db.add_all(products)
            db.commit()
            logger.info("Seeded database with sample products", extra={
                "product_count": len(products)
            })
    finally:
        db.close()
