"""
Inventory models: suppliers, products and stock movements.

Stock levels are not stored; they are the sum of IN movements minus OUT
movements per product. OUT movements tied to a patient also record the
traceability data (UDI) required for implanted medical devices.
"""

from datetime import datetime, date
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Text, Integer, Numeric, Date, ForeignKey, TIMESTAMP, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class Supplier(Base):
    """Company products are bought from."""

    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))


class Product(Base):
    """Stock-keeping item (material or medical device)."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the product."""

    name: Mapped[str] = mapped_column(String(255))
    """Product name."""

    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    """Supplier code."""

    service_type: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    """Device type or service the product is used for."""

    udi_di: Mapped[Optional[str]] = mapped_column(String(120), nullable=True, index=True)
    """UDI device identifier, identifies the product model."""

    unit_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    """Purchase cost per unit."""

    min_threshold: Mapped[int] = mapped_column(Integer, default=0)
    """Stock level below which the product is flagged for reorder."""

    supplier_id: Mapped[Optional[int]] = mapped_column(ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True)
    """Default supplier."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    supplier = relationship("Supplier")


class StockMovement(Base):
    """Quantity entering (IN) or leaving (OUT) the stock."""

    __tablename__ = "stock_movements"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the movement."""

    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"))
    """Product moved."""

    movement: Mapped[str] = mapped_column(String(3))
    """'IN' or 'OUT'."""

    quantity: Mapped[int] = mapped_column(Integer)
    """Positive quantity; the direction is given by `movement`."""

    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    """User who recorded the movement."""

    patient_id: Mapped[Optional[int]] = mapped_column(ForeignKey("patients.id"), nullable=True)
    """Patient who received the device (OUT movements)."""

    udi_pi: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    """UDI production identifier (lot/serial) of the implanted unit."""

    intervention_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    intervention_site: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    purchase_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))

    product = relationship("Product")
    patient = relationship("Patient")

    __table_args__ = (
        Index('idx_stock_movements_product', 'product_id'),
    )
