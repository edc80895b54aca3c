# storefront/repos/catalog_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.product_variation import ProductVariationModel


class CatalogRepo:
    """Odczyt wariantow i atomowe zdejmowanie stanu magazynowego."""

    def __init__(self, db: Session):
        self.db = db

    def get_variation(self, variation_id: int) -> ProductVariationModel | None:
        # zawsze swiezy odczyt, stock mogl sie zmienic w innej transakcji
        return self.db.execute(
            select(ProductVariationModel)
            .where(ProductVariationModel.id == variation_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_stock(self, variation_id: int) -> int | None:
        return self.db.execute(
            select(ProductVariationModel.stock).where(ProductVariationModel.id == variation_id)
        ).scalar_one_or_none()

    def check_and_decrement(self, variation_id: int, amount: int) -> bool:
        """
        UPDATE ... SET stock = stock - :amount WHERE id = :id AND stock >= :amount
        Sprawdzenie i zdjecie stanu to jedna instrukcja, baza serializuje zapisy
        do tego samego wiersza. False = stanu nie starczylo w momencie zapisu.
        """
        res = self.db.execute(
            update(ProductVariationModel)
            .where(
                ProductVariationModel.id == variation_id,
                ProductVariationModel.stock >= amount,
            )
            .values(stock=ProductVariationModel.stock - amount)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    def create_variation(self, variation: ProductVariationModel) -> ProductVariationModel:
        self.db.add(variation)
        self.db.commit()
        self.db.refresh(variation)
        return variation
