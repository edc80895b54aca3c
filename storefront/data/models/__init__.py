#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from storefront.data.models.user import UserModel
from storefront.data.models.product_variation import ProductVariationModel
from storefront.data.models.cart import CartModel, CartStatus
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.order import OrderItemModel, OrderModel, OrderStatus

__all__ = [
    "UserModel",
    "ProductVariationModel",
    "CartModel",
    "CartStatus",
    "CartItemModel",
    "OrderModel",
    "OrderItemModel",
    "OrderStatus",
]
