#storefront/data/models/cart.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, text
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class CartStatus:
    ACTIVE = "ACTIVE"
    CONVERTED = "CONVERTED"
    ABANDONED = "ABANDONED"


def _now():
    return datetime.now(timezone.utc)


class CartModel(Base):
    __tablename__ = "carts"
    # co najwyzej jeden ACTIVE koszyk na usera
    __table_args__ = (
        Index(
            "uq_carts_user_active",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    status = Column(String, nullable=False, default=CartStatus.ACTIVE)
    version = Column(Integer, nullable=False, default=1)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    last_activity = Column(DateTime(timezone=True), nullable=False, default=_now)

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.id",
    )
