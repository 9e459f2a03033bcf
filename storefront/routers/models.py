"""Request models for the cart API."""
from pydantic import BaseModel, Field


class ProductSnapshot(BaseModel):
    """Catalog data sent along with an add-to-cart request."""
    id: str
    name: str
    price: float = Field(ge=0)
    discount_price: float | None = Field(default=None, ge=0)
    image: str | None = None
    stock: int | None = None
    requires_shipping: bool = True
    free_shipping: bool = False
    flat_shipping_rate: float = Field(default=0, ge=0)


class AddToCartRequest(BaseModel):
    product: ProductSnapshot
    quantity: int = 1
    size: str = ""
    color: str = ""


class UpdateCartItemRequest(BaseModel):
    product_id: str
    quantity: int  # 0 removes the item
    size: str = ""
    color: str = ""


class ApplyPromoRequest(BaseModel):
    code: str


class ShippingMethodRequest(BaseModel):
    method: str
