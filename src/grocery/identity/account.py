"""Platform accounts.

Customers, carriers and the store owner share one account record; what
differs between them is looked up by role rather than modelled as subclasses.
"""

from datetime import UTC, datetime
from enum import Enum

import structlog
from protean import handle
from protean.fields import DateTime, String
from protean.utils.globals import current_domain

from grocery.domain import grocery
from grocery.shared.errors import ValidationFailure

logger = structlog.get_logger(__name__)


class Role(Enum):
    CUSTOMER = "CUSTOMER"
    CARRIER = "CARRIER"
    OWNER = "OWNER"


DASHBOARDS = {
    Role.CUSTOMER: "/shop",
    Role.CARRIER: "/deliveries",
    Role.OWNER: "/console",
}


def dashboard_for(role: str) -> str:
    return DASHBOARDS[Role(role)]


@grocery.aggregate
class Account:
    username: String(required=True, max_length=50, unique=True)
    display_name: String(max_length=100)
    role: String(required=True, max_length=20, choices=Role)
    created_at: DateTime(default=lambda: datetime.now(UTC))

    @property
    def dashboard(self) -> str:
        return dashboard_for(self.role)


@grocery.repository(part_of=Account)
class AccountRepository:
    def find_by_username(self, username: str) -> Account | None:
        rows = self._dao.query.filter(username=username.strip().lower()).all().items
        return rows[0] if rows else None


@grocery.command(part_of="Account")
class RegisterAccount:
    username: String(required=True, max_length=50)
    display_name: String(max_length=100)
    role: String(required=True, max_length=20)


@grocery.command_handler(part_of=Account)
class AccountHandler:
    @handle(RegisterAccount)
    def register_account(self, command):
        if command.role not in {role.value for role in Role}:
            raise ValidationFailure("role", f"Unknown role {command.role}")

        repo = current_domain.repository_for(Account)
        username = command.username.strip().lower()
        if repo.find_by_username(username) is not None:
            raise ValidationFailure("username", f"Username {username} is already taken")

        account = Account(username=username, display_name=command.display_name, role=command.role)
        repo.add(account)

        logger.info("account_registered", account_id=str(account.id), role=command.role)
        return str(account.id)
