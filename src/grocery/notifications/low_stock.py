"""Low-stock alerting: commands and handler.

``RaiseLowStockAlert`` is idempotent: while a product has an unread alert,
raising another one for it does nothing. Once the owner reads the alert, the
next drop at or below the threshold raises a fresh one.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from grocery.catalogue.product import Product
from grocery.domain import grocery
from grocery.notifications.alert import LowStockAlert, alert_message
from grocery.shared.clock import resolve_now

logger = structlog.get_logger(__name__)


@grocery.command(part_of="LowStockAlert")
class RaiseLowStockAlert:
    product_id: Identifier(required=True)


@grocery.command(part_of="LowStockAlert")
class MarkAlertRead:
    alert_id: Identifier(required=True)
    as_of: DateTime()


@grocery.command(part_of="LowStockAlert")
class SweepLowStock:
    """Raise alerts for every product currently at or below its threshold."""

    requested_by: String(max_length=100)


@grocery.command_handler(part_of=LowStockAlert)
class LowStockAlertHandler:
    @handle(RaiseLowStockAlert)
    def raise_alert(self, command):
        return _maybe_alert(command.product_id)

    @handle(MarkAlertRead)
    def mark_read(self, command):
        repo = current_domain.repository_for(LowStockAlert)
        alert = repo.get(command.alert_id)
        alert.mark_read(resolve_now(command.as_of))
        repo.add(alert)

    @handle(SweepLowStock)
    def sweep(self, command):
        raised = []
        for product in current_domain.repository_for(Product).low_on_stock():
            alert_id = _maybe_alert(product.id)
            if alert_id:
                raised.append(alert_id)
        logger.info("low_stock_sweep_finished", alerts_raised=len(raised), requested_by=command.requested_by)
        return raised


def _maybe_alert(product_id: str) -> str | None:
    """Create an alert if the product is low and has no unread alert.

    Returns the new alert's id, or None when nothing was raised.
    """
    product = current_domain.repository_for(Product).find_fresh(product_id)
    if product is None:
        raise ObjectNotFoundError(f"Product with id {product_id} does not exist")

    if not product.is_low_on_stock:
        return None

    repo = current_domain.repository_for(LowStockAlert)
    if repo.unread_for(product_id):
        logger.debug("low_stock_alert_already_pending", product_id=product_id)
        return None

    alert = LowStockAlert(
        product_id=product_id,
        product_name=product.name,
        stock_quantity=product.stock_quantity,
        threshold=product.low_stock_threshold,
        message=alert_message(product.name, product.stock_quantity, product.low_stock_threshold),
    )
    repo.add(alert)

    logger.warning(
        "low_stock_alert_raised",
        product_id=product_id,
        stock=product.stock_quantity,
        threshold=product.low_stock_threshold,
    )
    return str(alert.id)
