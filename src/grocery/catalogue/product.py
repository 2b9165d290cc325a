"""Product aggregate and its repository.

Stock is stored on the product in kilograms. Only the inventory ledger moves
it, through the conditional updates on :class:`ProductRepository`; the
aggregate itself never writes ``stock_quantity`` after creation.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, String

from grocery.domain import grocery
from grocery.shared.storage import committed, conditional_update

# Stock is tracked to the gram
STOCK_PRECISION = 3


def round_stock(value: float) -> float:
    return round(value, STOCK_PRECISION)


class ProductType(Enum):
    FRUIT = "fruit"
    VEGETABLE = "vegetable"


@grocery.aggregate
class Product:
    name: String(required=True, max_length=100)
    product_type: String(max_length=20, choices=ProductType, default=ProductType.VEGETABLE.value)
    price: Float(required=True, min_value=0.0)
    discount_percent: Float(default=0.0, min_value=0.0, max_value=100.0)
    stock_quantity: Float(default=0.0)
    low_stock_threshold: Float(default=0.0, min_value=0.0)
    created_at: DateTime(default=lambda: datetime.now(UTC))
    updated_at: DateTime(default=lambda: datetime.now(UTC))

    @invariant.post
    def stock_cannot_be_negative(self):
        if self.stock_quantity is not None and self.stock_quantity < 0:
            raise ValidationError({"stock_quantity": ["Stock cannot be negative"]})

    @property
    def is_low_on_stock(self) -> bool:
        return self.stock_quantity <= self.low_stock_threshold

    def effective_price(self) -> float:
        """Unit price after discount, doubled while the product is scarce."""
        price = self.price * (1 - (self.discount_percent or 0.0) / 100)
        if self.is_low_on_stock:
            price *= 2
        return round(price, 2)

    def update_details(
        self, name=None, price=None, discount_percent=None, low_stock_threshold=None, product_type=None
    ):
        if name is not None:
            self.name = name
        if price is not None:
            self.price = price
        if discount_percent is not None:
            self.discount_percent = discount_percent
        if low_stock_threshold is not None:
            self.low_stock_threshold = low_stock_threshold
        if product_type is not None:
            self.product_type = product_type
        self.updated_at = datetime.now(UTC)


@grocery.repository(part_of=Product)
class ProductRepository:
    def find_fresh(self, product_id: str) -> Product | None:
        """The product as committed right now, bypassing any copy held by the unit of work."""
        rows = committed(self._dao).query.filter(id=product_id).all().items
        return rows[0] if rows else None

    def compare_and_set_stock(self, product_id: str, expected: float, new: float) -> bool:
        """Write ``new`` only if the stored stock still equals ``expected``."""
        return conditional_update(
            self._dao,
            {"stock_quantity": round_stock(new), "updated_at": datetime.now(UTC)},
            id=product_id,
            stock_quantity=expected,
        )

    def save_details(self, product: Product) -> bool:
        """Persist everything except stock, leaving concurrent reservations intact."""
        return conditional_update(
            self._dao,
            {
                "name": product.name,
                "price": product.price,
                "discount_percent": product.discount_percent,
                "low_stock_threshold": product.low_stock_threshold,
                "product_type": product.product_type,
                "updated_at": product.updated_at,
            },
            id=product.id,
        )

    def remove(self, product: Product) -> None:
        self._dao.delete(product)

    def all_products(self) -> list[Product]:
        return self._dao.query.order_by("name").all().items

    def by_type(self, product_type: str) -> list[Product]:
        """Products of one type, alphabetically."""
        return self._dao.query.filter(product_type=product_type.strip().lower()).order_by("name").all().items

    def low_on_stock(self) -> list[Product]:
        return [product for product in self.all_products() if product.is_low_on_stock]
