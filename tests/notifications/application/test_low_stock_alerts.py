"""Application tests for raising and reading low-stock alerts."""

import pytest
from grocery.inventory.ledger import ledger
from grocery.notifications.alert import LowStockAlert
from grocery.notifications.low_stock import MarkAlertRead, RaiseLowStockAlert, SweepLowStock
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain


def _raise(product_id):
    return current_domain.process(RaiseLowStockAlert(product_id=product_id), asynchronous=False)


def _unread(product_id):
    return current_domain.repository_for(LowStockAlert).unread_for(product_id)


class TestRaiseLowStockAlert:
    def test_alert_for_low_product(self, add_product):
        kiwi = add_product(stock=1.0, threshold=2.0)

        alert_id = _raise(kiwi)

        alert = current_domain.repository_for(LowStockAlert).get(alert_id)
        assert alert.product_name == "Kiwi"
        assert alert.stock_quantity == 1.0
        assert alert.message == "Kiwi stock has fallen to 1.0 kg (Threshold: 2 kg)"

    def test_no_alert_above_threshold(self, add_product):
        kiwi = add_product(stock=3.0, threshold=2.0)
        assert _raise(kiwi) is None
        assert _unread(kiwi) == []

    def test_at_most_one_unread_alert(self, add_product):
        kiwi = add_product(stock=5.0, threshold=2.0)
        stock = ledger()

        stock.reserve(kiwi, 3.0)
        _raise(kiwi)
        stock.reserve(kiwi, 1.0)
        assert _raise(kiwi) is None

        assert len(_unread(kiwi)) == 1

    def test_new_alert_after_previous_is_read(self, add_product):
        kiwi = add_product(stock=1.0, threshold=2.0)
        first = _raise(kiwi)

        current_domain.process(MarkAlertRead(alert_id=first), asynchronous=False)
        second = _raise(kiwi)

        assert second is not None
        assert second != first
        assert [a.id for a in _unread(kiwi)] == [second]

    def test_unknown_product(self):
        with pytest.raises(ObjectNotFoundError):
            _raise("no-such-product")


class TestSweep:
    def test_sweep_alerts_every_low_product_once(self, add_product):
        kiwi = add_product(name="Kiwi", stock=1.0, threshold=2.0)
        melon = add_product(name="Melon", stock=0.0, threshold=1.0)
        add_product(name="Apple", stock=10.0, threshold=1.0)

        raised = current_domain.process(SweepLowStock(), asynchronous=False)
        assert len(raised) == 2
        assert len(_unread(kiwi)) == 1
        assert len(_unread(melon)) == 1

        assert current_domain.process(SweepLowStock(), asynchronous=False) == []
