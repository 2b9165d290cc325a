"""Low-stock alert aggregate shown to the store owner."""

from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from grocery.domain import grocery

ALERT_TITLE = "Low Stock Alert!"


def alert_message(product_name: str, stock: float, threshold: float) -> str:
    return f"{product_name} stock has fallen to {stock:.1f} kg (Threshold: {threshold:g} kg)"


@grocery.aggregate
class LowStockAlert:
    product_id: Identifier(required=True)
    product_name: String(max_length=100)
    stock_quantity: Float(required=True)
    threshold: Float(required=True)
    title: String(max_length=100, default=ALERT_TITLE)
    message: Text(required=True)
    is_read: Boolean(default=False)
    created_at: DateTime(default=lambda: datetime.now(UTC))
    read_at: DateTime()

    def mark_read(self, at: datetime | None = None) -> None:
        if self.is_read:
            return
        self.is_read = True
        self.read_at = at or datetime.now(UTC)


@grocery.repository(part_of=LowStockAlert)
class LowStockAlertRepository:
    def unread_for(self, product_id: str) -> list[LowStockAlert]:
        return self._dao.query.filter(product_id=product_id, is_read=False).all().items

    def unread(self) -> list[LowStockAlert]:
        return self._dao.query.filter(is_read=False).order_by("-created_at").all().items

    def recent(self) -> list[LowStockAlert]:
        return self._dao.query.order_by("-created_at").all().items

    def for_product(self, product_id: str) -> list[LowStockAlert]:
        return self._dao.query.filter(product_id=product_id).all().items

    def remove(self, alert: LowStockAlert) -> None:
        self._dao.delete(alert)
