import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, CheckConstraint
from database import Base

# Model Product
# Pojedynczy produkt katalogu: cena bazowa, stan magazynowy, opcjonalne zdjęcie
# oraz opcjonalne okno rabatowe. Cena efektywna nie jest zapisywana,
# wylicza ją utils.pricing przy każdym odczycie.
class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")

    price = Column(Numeric(10, 2), CheckConstraint("price >= 0"), nullable=False, index=True)
    stock_quantity = Column(Integer, CheckConstraint("stock_quantity >= 0"), nullable=False)

    # Opcjonalny URL zdjęcia produktu.
    image_url = Column(String(500), nullable=True)

    # Rabat procentowy; procent jest warunkiem aktywacji, daty są opcjonalne.
    discount_percentage = Column(
        Numeric(5, 2),
        CheckConstraint("discount_percentage >= 0 AND discount_percentage <= 100"),
        nullable=True,
    )
    discount_start_date = Column(DateTime(timezone=True), nullable=True)
    discount_end_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))
