import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def grocery_bed():
    from grocery.domain import grocery

    bed = DomainFixture(grocery)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(grocery_bed):
    """Run each test inside the domain context and wipe all stores afterwards."""
    with grocery_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()

        for _, broker in current_domain.brokers.items():
            broker._data_reset()

        current_domain.event_store.store._data_reset()


@pytest.fixture()
def add_product():
    """Factory: add a product through the catalogue and return its id."""
    from protean.utils.globals import current_domain

    from grocery.catalogue.management import AddProduct

    def _add(name="Kiwi", price=38.0, stock=5.0, threshold=2.0, discount=0.0, product_type=None):
        command = AddProduct(
            name=name,
            product_type=product_type,
            price=price,
            discount_percent=discount,
            initial_stock=stock,
            low_stock_threshold=threshold,
        )
        return current_domain.process(command, asynchronous=False)

    return _add


@pytest.fixture()
def delivery_slot():
    """A requested delivery time comfortably inside the allowed window."""
    from datetime import UTC, datetime, timedelta

    return datetime.now(UTC) + timedelta(hours=3)


@pytest.fixture()
def place_order(delivery_slot):
    """Factory: check out ``lines`` given as (product_id, quantity, unit_price) tuples."""
    from grocery.ordering.checkout import checkout

    def _place(lines, customer_id="cust-001", coupon_code=None, requested_delivery_at=None, as_of=None):
        return checkout(
            customer_id=customer_id,
            lines=[
                {"product_id": product_id, "quantity": quantity, "unit_price": unit_price}
                for product_id, quantity, unit_price in lines
            ],
            requested_delivery_at=requested_delivery_at or delivery_slot,
            coupon_code=coupon_code,
            as_of=as_of,
        )

    return _place


@pytest.fixture()
def run_concurrently(grocery_bed):
    """Run every callable on its own thread, released together by a barrier.

    Returns one outcome per callable, in order: its return value, or the
    exception it raised. Threads share the domain but push their own context.
    """
    import threading

    def _run(*calls, timeout=30):
        barrier = threading.Barrier(len(calls))
        outcomes = [None] * len(calls)

        def worker(index, call):
            with grocery_bed.domain.domain_context():
                barrier.wait()
                try:
                    outcomes[index] = call()
                except Exception as exc:
                    outcomes[index] = exc

        threads = [threading.Thread(target=worker, args=(index, call)) for index, call in enumerate(calls)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout)
        return outcomes

    return _run
