from sqlalchemy import CheckConstraint, Column, Integer, Numeric, String

from storefront.data.database import Base


class ProductVariationModel(Base):
    """Wariant produktu z katalogu, tylko stock jest modyfikowany przez checkout."""

    __tablename__ = "product_variations"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_variation_stock_non_negative"),)

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, nullable=False, index=True)
    sku = Column(String, nullable=True, unique=True)

    price = Column(Numeric(10, 2), nullable=False)
    sale_price = Column(Numeric(10, 2), nullable=True)
    stock = Column(Integer, nullable=False, default=0)

    size = Column(String, nullable=True)
    color = Column(String, nullable=True)
    image_url = Column(String, nullable=True)

    @property
    def effective_price(self):
        return self.sale_price if self.sale_price is not None else self.price
