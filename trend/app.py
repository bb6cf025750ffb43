"""
Application wiring: one object holding the repositories and services a
front end needs, built from ``Settings``.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Optional

import requests

from trend.api import TrendAPIClient
from trend.auth import AuthenticationManager, IdentityProvider
from trend.balance import BalanceSummary, balance_summary
from trend.categories import CategoryService
from trend.config import Settings, configure_logging, get_settings
from trend.domain import Transaction, UserAuthData
from trend.repository import GoalRepository, OperationResult, TransactionRepository, UserSetupRepository
from trend.services import PeriodReportService
from trend.storage import AUTH_TOKEN_KEY, JsonFileStore, KeyValueStore, UserScopedStore

logger = logging.getLogger(__name__)


@dataclass
class TrendApp:
    settings: Settings
    store: KeyValueStore
    api: TrendAPIClient
    categories: CategoryService
    transactions: TransactionRepository
    goals: GoalRepository
    user_setup: UserSetupRepository
    reports: PeriodReportService
    auth: Optional[AuthenticationManager] = None
    user_store: Optional[UserScopedStore] = field(default=None, init=False)

    def _bind_store(self, store: KeyValueStore) -> None:
        self.transactions.store = store
        self.goals.store = store
        self.user_setup.store = store

    async def _use_current_user(self) -> None:
        """Point the repositories at the signed-in user's documents."""
        user = self.auth.current_user if self.auth is not None else None
        if user is None or not user.user_id:
            self.user_store = None
            self._bind_store(self.store)
            return
        self.user_store = UserScopedStore(self.store, user.user_id)
        migrated = await self.user_store.migrate_legacy_data()
        if migrated:
            logger.info("Legacy data for user %s: %s", user.user_id, migrated)
        self._bind_store(self.user_store)

    async def _reload(self) -> None:
        self.transactions.transactions = ()
        self.goals.goals = ()
        self.goals.initially_loaded = False
        await self.transactions.load()
        await self.goals.load()

    async def start(self) -> None:
        token = await self.store.get_item(AUTH_TOKEN_KEY)
        self.api.set_token(token)
        if self.auth is not None:
            await self.auth.initialize()
        await self._use_current_user()
        await self._reload()
        logger.info(
            "Loaded %d transactions and %d goals",
            len(self.transactions.transactions), len(self.goals.goals),
        )

    async def login(self, email: str, password: str) -> UserAuthData:
        if self.auth is None:
            raise RuntimeError("No identity provider configured")
        user = await self.auth.login(email, password)
        await self._use_current_user()
        await self._reload()
        return user

    async def set_api_token(self, token: Optional[str]) -> None:
        if token:
            await self.store.set_item(AUTH_TOKEN_KEY, token)
        else:
            await self.store.remove_item(AUTH_TOKEN_KEY)
        self.api.set_token(token)

    async def logout(self) -> None:
        if self.auth is not None:
            await self.auth.logout()
        await self.set_api_token(None)
        self.user_store = None
        self._bind_store(self.store)
        self.transactions.transactions = ()
        self.transactions.clear_editing()
        self.goals.goals = ()
        self.goals.clear_editing()
        self.goals.initially_loaded = False

    async def has_existing_data(self) -> dict:
        if self.user_store is None:
            return {"has_user_setup": False, "has_transactions": False, "has_goals": False, "has_any_data": False}
        return await self.user_store.has_existing_data()

    async def delete_user_data(self) -> OperationResult:
        """Remove every document of the signed-in user. Auth state is left alone."""
        if self.user_store is None:
            return OperationResult(False, error="No user logged in")
        if not await self.user_store.delete_all_user_data():
            return OperationResult(False, error="User data not deleted")
        self.transactions.transactions = ()
        self.goals.goals = ()
        return OperationResult(True)

    async def save_transaction(self, transaction: Transaction) -> OperationResult:
        """Save a transaction and move any spending goal in its category."""
        original = self.transactions.editing
        result = await self.transactions.save(transaction)
        goals = await self.goals.update_spending_goals(new=transaction, original=original)
        if not goals.success:
            logger.warning("Spending goals not updated: %s", goals.error)
        return OperationResult(True, value={"is_new": result.is_new, "alerts": goals.value or []})

    async def delete_transaction(self, transaction_id: str) -> OperationResult:
        result = await self.transactions.delete(transaction_id)
        if result is None:
            return OperationResult(False, error="Transaction not deleted")
        await self.goals.update_spending_goals(original=result.removed)
        return OperationResult(True, value=result.transactions)

    def report(self, granularity: str, selected: Optional[date] = None, today: Optional[date] = None,
               categories=()) -> dict:
        return self.reports.period_report(granularity, self.transactions.transactions, categories, selected, today)

    async def balance(self, selected: Optional[date] = None) -> BalanceSummary:
        income = await self.user_setup.load()
        expenses = self.transactions.total_expenses(selected or date.today())
        return balance_summary(income, expenses, self.goals.total_contributions())


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    provider: Optional[IdentityProvider] = None,
    session: Optional[requests.Session] = None,
) -> TrendApp:
    settings = settings or get_settings()
    configure_logging(settings)

    store = store or JsonFileStore(Path(settings.DATA_DIR))
    api = TrendAPIClient(settings.API_BASE_URL, settings.API_TIMEOUT, session=session)
    categories = CategoryService(api)
    return TrendApp(
        settings=settings,
        store=store,
        api=api,
        categories=categories,
        transactions=TransactionRepository(store),
        goals=GoalRepository(store, categories, loading_timeout=settings.LOADING_TIMEOUT),
        user_setup=UserSetupRepository(store),
        reports=PeriodReportService(week_start=settings.WEEK_START),
        auth=AuthenticationManager(provider, store) if provider is not None else None,
    )
