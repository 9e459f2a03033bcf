"""Cart models with Decimal-based pricing."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional, List

from storefront.errors import (
    InvalidLineItem,
    InvalidPromotion,
    InvalidQuantity,
    InvalidShippingMethod,
    ERROR_DISCOUNT_ABOVE_PRICE,
    ERROR_INVALID_PRICE,
    ERROR_MISSING_PRODUCT_ID,
    ERROR_MISSING_PRODUCT_NAME,
)
from storefront.services.money import to_decimal, round_money, multiply


class ShippingMethod(str, Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    NEXT_DAY = "next_day"

    @classmethod
    def parse(cls, value: Any) -> "ShippingMethod":
        """Parse a shipping method, raising InvalidShippingMethod if unsupported."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidShippingMethod(f"Unsupported shipping method: {value!r}")


class PromotionType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _first_image(data: Mapping[str, Any]) -> Optional[str]:
    if data.get("image"):
        return data["image"]
    images = data.get("images") or []
    if images:
        first = images[0]
        return first.get("url") if isinstance(first, Mapping) else first
    return None


@dataclass
class Product:
    """Catalog snapshot handed to the cart. Trusted as given, never re-fetched."""
    id: str
    name: str
    price: Decimal
    discount_price: Optional[Decimal] = None
    image: Optional[str] = None
    stock: Optional[int] = None
    requires_shipping: bool = True
    free_shipping: bool = False
    flat_shipping_rate: Decimal = Decimal("0")

    def __post_init__(self):
        self.price = to_decimal(self.price)
        if self.discount_price is not None:
            self.discount_price = to_decimal(self.discount_price)
        self.flat_shipping_rate = to_decimal(self.flat_shipping_rate)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Product":
        """Build from a catalog API payload (camelCase or snake_case keys)."""
        product_id = data.get("id") or data.get("_id") or data.get("product_id") or ""
        name = data.get("name") or ""
        if not product_id:
            raise InvalidLineItem(ERROR_MISSING_PRODUCT_ID)
        if not name:
            raise InvalidLineItem(ERROR_MISSING_PRODUCT_NAME)
        discount = data.get("discount_price", data.get("discountPrice"))
        return cls(
            id=str(product_id),
            name=name,
            price=data.get("price", 0),
            discount_price=discount if discount not in (None, "", 0) else None,
            image=_first_image(data),
            stock=data.get("stock", data.get("stockQuantity")),
            requires_shipping=data.get("requires_shipping", data.get("requiresShipping", True)) is not False,
            free_shipping=bool(data.get("free_shipping", data.get("freeShipping", False))),
            flat_shipping_rate=data.get("flat_shipping_rate", data.get("flatShippingRate", 0)) or 0,
        )


@dataclass
class LineItem:
    """One product variant in the cart."""
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int = 1
    discounted_unit_price: Optional[Decimal] = None
    selected_size: str = ""
    selected_color: str = ""
    image: Optional[str] = None
    stock: Optional[int] = None
    requires_shipping: bool = True
    free_shipping: bool = False
    flat_shipping_rate: Decimal = Decimal("0")
    added_at: str = ""

    def __post_init__(self):
        if not self.added_at:
            self.added_at = _now()
        self.selected_size = self.selected_size or ""
        self.selected_color = self.selected_color or ""
        self.unit_price = to_decimal(self.unit_price)
        if self.discounted_unit_price is not None:
            self.discounted_unit_price = to_decimal(self.discounted_unit_price)
        self.flat_shipping_rate = to_decimal(self.flat_shipping_rate)
        self.validate()

    def validate(self) -> None:
        if not self.product_id:
            raise InvalidLineItem(ERROR_MISSING_PRODUCT_ID)
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity < 1:
            raise InvalidQuantity()
        if self.unit_price < 0 or self.flat_shipping_rate < 0:
            raise InvalidLineItem(ERROR_INVALID_PRICE)
        if self.discounted_unit_price is not None:
            if self.discounted_unit_price < 0:
                raise InvalidLineItem(ERROR_INVALID_PRICE)
            if self.discounted_unit_price > self.unit_price:
                raise InvalidLineItem(ERROR_DISCOUNT_ABOVE_PRICE)

    @property
    def key(self) -> tuple:
        """Identity of the line: (product_id, size, color)."""
        return (self.product_id, self.selected_size, self.selected_color)

    def matches(self, product_id: str, size: str = "", color: str = "") -> bool:
        return self.key == (product_id, size or "", color or "")

    @property
    def effective_unit_price(self) -> Decimal:
        """Unit price actually charged (discounted price when present)."""
        if self.discounted_unit_price is not None:
            return self.discounted_unit_price
        return self.unit_price

    @property
    def line_total(self) -> Decimal:
        return round_money(multiply(self.effective_unit_price, self.quantity))

    @property
    def ships(self) -> bool:
        """Whether this line contributes to shipping cost."""
        return self.requires_shipping and not self.free_shipping

    @classmethod
    def from_product(cls, product: Product, quantity: int, size: str = "", color: str = "") -> "LineItem":
        return cls(
            product_id=product.id,
            name=product.name,
            unit_price=product.price,
            discounted_unit_price=product.discount_price,
            quantity=quantity,
            selected_size=size,
            selected_color=color,
            image=product.image,
            stock=product.stock,
            requires_shipping=product.requires_shipping,
            free_shipping=product.free_shipping,
            flat_shipping_rate=product.flat_shipping_rate,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit_price": str(self.unit_price),
            "discounted_unit_price": (
                str(self.discounted_unit_price) if self.discounted_unit_price is not None else None
            ),
            "quantity": self.quantity,
            "selected_size": self.selected_size,
            "selected_color": self.selected_color,
            "image": self.image,
            "stock": self.stock,
            "requires_shipping": self.requires_shipping,
            "free_shipping": self.free_shipping,
            "flat_shipping_rate": str(self.flat_shipping_rate),
            "added_at": self.added_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        """Create from dictionary."""
        discounted = data.get("discounted_unit_price")
        return cls(
            product_id=data["product_id"],
            name=data.get("name", ""),
            unit_price=to_decimal(data["unit_price"]),
            discounted_unit_price=to_decimal(discounted) if discounted is not None else None,
            quantity=int(data["quantity"]),
            selected_size=data.get("selected_size", ""),
            selected_color=data.get("selected_color", ""),
            image=data.get("image"),
            stock=data.get("stock"),
            requires_shipping=data.get("requires_shipping", True),
            free_shipping=data.get("free_shipping", False),
            flat_shipping_rate=to_decimal(data.get("flat_shipping_rate", 0)),
            added_at=data.get("added_at", ""),
        )


@dataclass
class Promotion:
    """Snapshot of a validated promo code."""
    code: str
    type: PromotionType
    value: Decimal
    discount_amount: Decimal = Decimal("0")

    def __post_init__(self):
        self.code = (self.code or "").strip().upper()
        try:
            self.type = PromotionType(self.type)
        except ValueError:
            raise InvalidPromotion(f"Unknown promotion type: {self.type!r}")
        self.value = to_decimal(self.value)
        self.discount_amount = to_decimal(self.discount_amount)
        if not self.code:
            raise InvalidPromotion()
        if self.value <= 0:
            raise InvalidPromotion("Promotion value must be positive")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "type": self.type.value,
            "value": str(self.value),
            "discount_amount": str(self.discount_amount),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Promotion":
        return cls(
            code=data["code"],
            type=data["type"],
            value=to_decimal(data["value"]),
            discount_amount=to_decimal(data.get("discount_amount", 0)),
        )


@dataclass
class Cart:
    """Shopping cart. Totals are never stored; see pricing.calculate_totals."""
    items: List[LineItem] = field(default_factory=list)
    applied_promotion: Optional[Promotion] = None
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self):
        now = _now()
        if not self.created_at:
            self.created_at = now
        if not self.updated_at:
            self.updated_at = now
        self.shipping_method = ShippingMethod.parse(self.shipping_method)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def total_quantity(self) -> int:
        """Total number of units in cart."""
        return sum(item.quantity for item in self.items)

    def find_item(self, product_id: str, size: str = "", color: str = "") -> Optional[LineItem]:
        return next((item for item in self.items if item.matches(product_id, size, color)), None)

    def touch(self) -> None:
        self.updated_at = _now()

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "items": [item.to_dict() for item in self.items],
            "applied_promotion": self.applied_promotion.to_dict() if self.applied_promotion else None,
            "shipping_method": self.shipping_method.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cart":
        """Create from dictionary."""
        items = [LineItem.from_dict(item) for item in data.get("items", [])]
        promotion = data.get("applied_promotion")
        return cls(
            items=items,
            applied_promotion=Promotion.from_dict(promotion) if promotion and items else None,
            shipping_method=data.get("shipping_method", ShippingMethod.STANDARD.value),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )
