from __future__ import annotations

from sqlalchemy.orm import declarative_base
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, JSON, UniqueConstraint
from sqlalchemy.sql import func

Base = declarative_base()


class Product(Base):
    __tablename__ = "products"
    __table_args__ = {"schema": "public"}

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)
    akas = Column(JSON, default=list)
    enabled = Column(Boolean, default=True)
    position = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class ProductTotal(Base):
    __tablename__ = "product_totals"
    __table_args__ = {"schema": "public"}

    product = Column(String(255), primary_key=True)
    total_quantity = Column(Integer, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class UserOrder(Base):
    __tablename__ = "user_orders"
    __table_args__ = {"schema": "public"}

    id = Column(Integer, primary_key=True)
    identity = Column(String(255), nullable=False)
    phone_number = Column(String(255))
    name = Column(String(255))
    order_type = Column(String(255))
    original_message = Column(Text)
    parsed_orders = Column(JSON)
    total_quantity = Column(Integer)
    status = Column(String(50), default="confirmed")
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (UniqueConstraint("phone"), {"schema": "public"})

    id = Column(Integer, primary_key=True)
    phone = Column(String, nullable=False)
    name = Column(String)
    order_type = Column(String, default="normal")
    answered = Column(Boolean, default=False)
    status = Column(String, default="")
    is_chatbot = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
