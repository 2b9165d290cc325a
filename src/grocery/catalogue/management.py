"""Owner-facing product management: add, edit and remove products."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from grocery.catalogue.product import Product, ProductType, round_stock
from grocery.domain import grocery
from grocery.notifications.alert import LowStockAlert
from grocery.ordering.order import Order
from grocery.shared.errors import ValidationFailure

logger = structlog.get_logger(__name__)


@grocery.command(part_of="Product")
class AddProduct:
    name: String(required=True, max_length=100)
    product_type: String(max_length=20)
    price: Float(required=True, min_value=0.0)
    discount_percent: Float(default=0.0)
    initial_stock: Float(default=0.0)
    low_stock_threshold: Float(default=0.0)


@grocery.command(part_of="Product")
class UpdateProduct:
    """Edit name, pricing or threshold. Stock is changed by restocking only."""

    product_id: Identifier(required=True)
    name: String(max_length=100)
    product_type: String(max_length=20)
    price: Float(min_value=0.0)
    discount_percent: Float()
    low_stock_threshold: Float()


@grocery.command(part_of="Product")
class RemoveProduct:
    """Take a product off the catalogue together with its alerts."""

    product_id: Identifier(required=True)


def _product_type(value: str | None) -> str:
    if not value:
        return ProductType.VEGETABLE.value
    try:
        return ProductType(value.strip().lower()).value
    except ValueError:
        raise ValidationFailure("product_type", f"Unknown product type {value}") from None


@grocery.command_handler(part_of=Product)
class ProductManagementHandler:
    @handle(AddProduct)
    def add_product(self, command):
        if command.initial_stock is not None and command.initial_stock < 0:
            raise ValidationFailure("initial_stock", "Initial stock cannot be negative")

        product = Product(
            name=command.name,
            product_type=_product_type(command.product_type),
            price=command.price,
            discount_percent=command.discount_percent or 0.0,
            stock_quantity=round_stock(command.initial_stock or 0.0),
            low_stock_threshold=command.low_stock_threshold or 0.0,
        )
        current_domain.repository_for(Product).add(product)

        logger.info("product_added", product_id=str(product.id), name=product.name)
        return str(product.id)

    @handle(UpdateProduct)
    def update_product(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.update_details(
            name=command.name,
            price=command.price,
            discount_percent=command.discount_percent,
            low_stock_threshold=command.low_stock_threshold,
            product_type=_product_type(command.product_type) if command.product_type else None,
        )
        if not repo.save_details(product):
            raise ObjectNotFoundError(f"Product with id {command.product_id} does not exist")

    @handle(RemoveProduct)
    def remove_product(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)

        open_orders = current_domain.repository_for(Order).open_with_product(command.product_id)
        if open_orders:
            raise ValidationFailure(
                "product_id",
                f"Product {command.product_id} is on {len(open_orders)} open order(s) and cannot be removed",
            )

        alerts = current_domain.repository_for(LowStockAlert)
        for alert in alerts.for_product(command.product_id):
            alerts.remove(alert)
        repo.remove(product)

        logger.info("product_removed", product_id=command.product_id, name=product.name)
