"""Database models for the storefront service."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, Numeric, Text, JSON
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Product(Base):
    """Product model. Prices are stored in the canonical currency."""
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, index=True)
    name = Column(String, index=True, nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String, index=True, nullable=False)
    images = Column(JSON, nullable=False, default=list)
    sizes = Column(JSON, nullable=True)
    colors = Column(JSON, nullable=True)
    in_stock = Column(Boolean, nullable=False, default=True)
    featured = Column(Boolean, nullable=False, default=False)
    rating = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CartItem(Base):
    """Cart row model. One row per (user, product, size, color)."""
    __tablename__ = "cart_items"

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    product_id = Column(String(36), index=True, nullable=False)
    quantity = Column(Integer, nullable=False)
    selected_size = Column(String, nullable=True)
    selected_color = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
