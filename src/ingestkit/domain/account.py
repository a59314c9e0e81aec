"""Account domain service."""

from typing import Optional

from ingestkit.database.base import Database
from ingestkit.domain.currency import normalize_currency_code
from ingestkit.domain.entities import Account as AccountEntity
from ingestkit.domain.errors import account_not_found


class AccountService:
    """Service for managing a user's accounts."""

    def __init__(self, db: Database):
        """Initialize account service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_account(self, user_id: str, name: str, currency: str) -> int:
        """Create a new account.

        Args:
            user_id: Account owner
            name: Account name, unique per user
            currency: ISO 4217 code, case-insensitive

        Returns:
            Account ID

        Raises:
            ValueError: If the name is taken or the currency is not a valid code
        """
        name = name.strip()
        if not name:
            raise ValueError("Account name cannot be empty")
        code = normalize_currency_code(currency)
        if code is None:
            raise ValueError(f"Invalid currency code: {currency}")

        for acc in self.db.list_accounts(user_id):
            if acc.name == name:
                raise ValueError(f"Account with name '{name}' already exists")

        return self.db.create_account(user_id=user_id, name=name, currency=code)

    def get_account(self, user_id: str, account_id: int) -> Optional[AccountEntity]:
        """Get one of the user's accounts by ID.

        Returns:
            Account entity or None if not found or owned by someone else
        """
        account = self.db.get_account(account_id)
        if account is None or account.user_id != user_id:
            return None
        return account

    def list_accounts(self, user_id: str) -> list[AccountEntity]:
        return self.db.list_accounts(user_id)

    def resolve_account(self, user_id: str, account: str | int) -> int:
        """Resolve an account name or ID to an account ID.

        Raises:
            ValueError: If no matching account exists
        """
        if isinstance(account, int) or (isinstance(account, str) and account.strip().isdigit()):
            account_id = int(account)
            if self.get_account(user_id, account_id) is None:
                raise ValueError(account_not_found(account_id))
            return account_id

        for acc in self.list_accounts(user_id):
            if acc.name == account:
                return acc.id
        raise ValueError(f"Account '{account}' not found")
