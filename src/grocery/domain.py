"""The grocery domain: catalogue, inventory, ordering, promotions, loyalty,
low-stock notifications and accounts all register against ``grocery``.

Logging is configured on import so that every element module gets a
structlog logger wired to the same handlers.
"""

from protean.domain import Domain

from grocery.utils.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)

grocery = Domain(name="grocery")
