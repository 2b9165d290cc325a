"""Owner restocking: command and handler."""

import structlog
from protean import handle
from protean.fields import Float, Identifier

from grocery.catalogue.product import Product
from grocery.domain import grocery
from grocery.inventory.ledger import ledger

logger = structlog.get_logger(__name__)


@grocery.command(part_of="Product")
class RestockProduct:
    product_id: Identifier(required=True)
    quantity: Float(required=True)


@grocery.command_handler(part_of=Product)
class RestockHandler:
    @handle(RestockProduct)
    def restock(self, command):
        stock = ledger().restore(command.product_id, command.quantity)
        logger.info("product_restocked", product_id=command.product_id, quantity=command.quantity, stock=stock)
        return stock
