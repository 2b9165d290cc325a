"""Application tests for product management commands."""

import pytest
from grocery.catalogue.management import AddProduct, RemoveProduct, UpdateProduct
from grocery.catalogue.product import Product
from grocery.notifications.alert import LowStockAlert
from grocery.notifications.low_stock import RaiseLowStockAlert
from grocery.ordering import transitions
from grocery.shared.errors import ValidationFailure
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain


class TestAddProduct:
    def test_add_product(self, add_product):
        product_id = add_product(name="Banana", price=12.5, stock=40.0, threshold=5.0)

        product = current_domain.repository_for(Product).get(product_id)
        assert product.name == "Banana"
        assert product.price == 12.5
        assert product.stock_quantity == 40.0
        assert product.low_stock_threshold == 5.0

    def test_negative_initial_stock_rejected(self):
        with pytest.raises(ValidationFailure) as exc:
            current_domain.process(
                AddProduct(name="Plum", price=10.0, initial_stock=-2.0),
                asynchronous=False,
            )
        assert "initial_stock" in exc.value.messages
        assert current_domain.repository_for(Product).all_products() == []


class TestUpdateProduct:
    def test_update_pricing_leaves_stock_alone(self, add_product):
        product_id = add_product(stock=7.5)

        current_domain.process(
            UpdateProduct(product_id=product_id, price=42.0, discount_percent=5.0),
            asynchronous=False,
        )

        product = current_domain.repository_for(Product).get(product_id)
        assert product.price == 42.0
        assert product.discount_percent == 5.0
        assert product.stock_quantity == 7.5

    def test_invalid_discount_rejected(self, add_product):
        product_id = add_product()
        with pytest.raises(ValidationError):
            current_domain.process(
                UpdateProduct(product_id=product_id, discount_percent=150.0),
                asynchronous=False,
            )
        assert current_domain.repository_for(Product).get(product_id).discount_percent == 0.0

    def test_unknown_product(self):
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(UpdateProduct(product_id="missing", price=1.0), asynchronous=False)


class TestLowStockQuery:
    def test_lists_products_at_or_below_threshold(self, add_product):
        add_product(name="Apple", stock=10.0, threshold=2.0)
        low = add_product(name="Kiwi", stock=2.0, threshold=2.0)

        ids = [p.id for p in current_domain.repository_for(Product).low_on_stock()]
        assert ids == [low]


class TestProductTypes:
    def test_type_defaults_to_vegetable(self, add_product):
        product_id = add_product(name="Carrot")
        assert current_domain.repository_for(Product).get(product_id).product_type == "vegetable"

    def test_products_by_type_are_alphabetical(self, add_product):
        add_product(name="Pear", product_type="fruit")
        add_product(name="Leek", product_type="vegetable")
        add_product(name="Apple", product_type="Fruit")

        fruit = current_domain.repository_for(Product).by_type("fruit")

        assert [p.name for p in fruit] == ["Apple", "Pear"]

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationFailure) as exc:
            current_domain.process(AddProduct(name="Rock", price=1.0, product_type="mineral"), asynchronous=False)
        assert "product_type" in exc.value.messages

    def test_type_can_be_changed(self, add_product):
        product_id = add_product(name="Tomato")

        current_domain.process(UpdateProduct(product_id=product_id, product_type="fruit"), asynchronous=False)

        assert [p.id for p in current_domain.repository_for(Product).by_type("fruit")] == [product_id]


class TestRemoveProduct:
    def test_remove_product_and_its_alerts(self, add_product):
        product_id = add_product(stock=1.0, threshold=2.0)
        current_domain.process(RaiseLowStockAlert(product_id=product_id), asynchronous=False)

        current_domain.process(RemoveProduct(product_id=product_id), asynchronous=False)

        assert current_domain.repository_for(Product).all_products() == []
        assert current_domain.repository_for(LowStockAlert).for_product(product_id) == []

    def test_product_on_an_open_order_is_kept(self, add_product, place_order):
        product_id = add_product(stock=10.0)
        place_order([(product_id, 5.0, 38.0)])

        with pytest.raises(ValidationFailure) as exc:
            current_domain.process(RemoveProduct(product_id=product_id), asynchronous=False)

        assert "product_id" in exc.value.messages
        assert current_domain.repository_for(Product).get(product_id).stock_quantity == 5.0

    def test_product_only_on_closed_orders_can_go(self, add_product, place_order):
        product_id = add_product(stock=10.0)
        order = place_order([(product_id, 5.0, 38.0)])
        transitions.cancel(order.id, order.customer_id)

        current_domain.process(RemoveProduct(product_id=product_id), asynchronous=False)

        assert current_domain.repository_for(Product).all_products() == []

    def test_unknown_product(self):
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(RemoveProduct(product_id="missing"), asynchronous=False)
