"""Inventory ledger: stock reservation and restoration.

Every stock change is a compare-and-set evaluated by the storage engine:
read the stored level, then write the new level only if the stored level is
still the one that was read. A reservation is never granted against a stale
read, so two concurrent reservations cannot both consume the same kilograms.
A lost race re-reads and tries again, up to ``policy.stock_update_attempts()``
times, then gives up with :class:`StockContention`.

Stock writes commit as soon as they land, independently of the unit of work
of the calling command. A caller that aborts after reserving gives the stock
back with :meth:`InventoryLedger.release`.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from grocery.catalogue.product import Product, ProductRepository, round_stock
from grocery.shared import policy
from grocery.shared.errors import InsufficientStock, StockContention, ValidationFailure

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockReservation:
    product_id: str
    quantity: float
    remaining: float
    threshold: float

    @property
    def low_stock(self) -> bool:
        """True when this reservation left the product at or below its threshold."""
        return self.remaining <= self.threshold


class InventoryLedger:
    def __init__(self, products: ProductRepository):
        self.products = products

    def _observe(self, product_id: str) -> Product:
        product = self.products.find_fresh(product_id)
        if product is None:
            raise ObjectNotFoundError(f"Product with id {product_id} does not exist")
        return product

    @staticmethod
    def _check_quantity(quantity: float) -> None:
        if quantity is None or quantity <= 0:
            raise ValidationFailure("quantity", "Quantity must be greater than zero")

    def reserve(self, product_id: str, quantity: float) -> StockReservation:
        """Take ``quantity`` kg out of stock or raise :class:`InsufficientStock`.

        On failure the stored stock is left exactly as it was.
        """
        self._check_quantity(quantity)

        for attempt in range(policy.stock_update_attempts()):
            product = self._observe(product_id)
            observed = product.stock_quantity
            if observed < quantity:
                logger.info(
                    "stock_reservation_refused",
                    product_id=product_id,
                    requested=quantity,
                    available=observed,
                )
                raise InsufficientStock(product_id, quantity, observed)

            remaining = round_stock(observed - quantity)
            if self.products.compare_and_set_stock(product_id, observed, remaining):
                logger.debug(
                    "stock_reserved",
                    product_id=product_id,
                    quantity=quantity,
                    remaining=remaining,
                    attempt=attempt + 1,
                )
                return StockReservation(
                    product_id=product_id,
                    quantity=quantity,
                    remaining=remaining,
                    threshold=product.low_stock_threshold,
                )

            logger.debug("stock_reservation_retry", product_id=product_id, attempt=attempt + 1)

        logger.warning("stock_contention", product_id=product_id, attempts=policy.stock_update_attempts())
        raise StockContention(product_id, policy.stock_update_attempts())

    def restore(self, product_id: str, quantity: float) -> float:
        """Put ``quantity`` kg back into stock and return the new level.

        Used for compensation (cancellations, aborted checkouts) and for
        owner restocking. There is no upper bound on stock.
        """
        self._check_quantity(quantity)

        for attempt in range(policy.stock_update_attempts()):
            observed = self._observe(product_id).stock_quantity
            restored = round_stock(observed + quantity)
            if self.products.compare_and_set_stock(product_id, observed, restored):
                logger.debug(
                    "stock_restored",
                    product_id=product_id,
                    quantity=quantity,
                    stock=restored,
                    attempt=attempt + 1,
                )
                return restored

            logger.debug("stock_restore_retry", product_id=product_id, attempt=attempt + 1)

        logger.warning("stock_contention", product_id=product_id, attempts=policy.stock_update_attempts())
        raise StockContention(product_id, policy.stock_update_attempts())

    def release(self, reservations: list[StockReservation]) -> None:
        """Give back every reservation in ``reservations``, newest first."""
        for reservation in reversed(reservations):
            self.restore(reservation.product_id, reservation.quantity)


def ledger() -> InventoryLedger:
    """Ledger bound to the product repository of the active domain."""
    return InventoryLedger(current_domain.repository_for(Product))
