"""
Goal, transaction and user-setup repositories over a ``KeyValueStore``.

Each repository keeps the last loaded state in memory and writes the whole
document back on every mutation. Storage calls are awaited one after the
other; there is no locking. Repeated delete/edit requests for an id that is
already being processed are dropped.
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, List, NamedTuple, Optional, Set, Tuple

from trend import goals as goal_calc
from trend.balance import total_expenses
from trend.domain import Goal, IncomeData, Transaction
from trend.events import EventBus, GOAL_COMPLETED, SPENDING_ALERT, TRANSACTION_DELETED, TRANSACTION_SAVED, event_bus
from trend.functional import validate_transaction
from trend.storage import GOALS_KEY, TRANSACTIONS_KEY, USER_SETUP_KEY, KeyValueStore
from trend.transforms import (
    goal_from_dict, goal_to_dict, income_from_dict, income_to_dict, load_goal, now_iso,
    remove_transaction, replace_transaction, sanitize_goal, transaction_from_dict,
    transaction_to_dict, validate_goal, validate_goal_form, add_transaction,
)

logger = logging.getLogger(__name__)


class SaveResult(NamedTuple):
    is_new: bool
    transactions: Tuple[Transaction, ...]


class DeleteResult(NamedTuple):
    removed: Transaction
    transactions: Tuple[Transaction, ...]


@dataclass(frozen=True)
class OperationResult:
    success: bool
    error: Optional[str] = None
    value: Any = None


class TransactionRepository:
    def __init__(self, store: KeyValueStore, bus: EventBus = event_bus):
        self.store = store
        self.bus = bus
        self.transactions: Tuple[Transaction, ...] = ()
        self.deleting_ids: Set[str] = set()
        self.editing_ids: Set[str] = set()
        self.editing: Optional[Transaction] = None

    async def _read(self) -> Optional[Tuple[Transaction, ...]]:
        raw = await self.store.get_item(TRANSACTIONS_KEY)
        if raw is None:
            return None
        parsed = []
        for item in raw:
            try:
                parsed.append(transaction_from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping invalid transaction %r: %s", item.get("id") if isinstance(item, dict) else item, e)
        return tuple(parsed)

    async def _write(self, trans: Tuple[Transaction, ...]) -> None:
        await self.store.set_item(TRANSACTIONS_KEY, [transaction_to_dict(t) for t in trans])

    async def load(self) -> Tuple[Transaction, ...]:
        try:
            self.transactions = await self._read() or ()
        except Exception:
            logger.exception("Error loading transactions")
            self.transactions = ()
        return self.transactions

    async def save(self, transaction: Transaction) -> SaveResult:
        """Append a transaction, or replace the one being edited."""
        checked = validate_transaction(transaction)
        if not checked.is_right():
            raise ValueError(checked.get_error()["message"])

        original = None
        if self.editing is not None:
            original = self.editing
            transaction = replace(transaction, id=original.id)

        try:
            current = await self._read() or ()
            if original is not None and any(t.id == original.id for t in current):
                updated = replace_transaction(current, transaction)
            else:
                updated = add_transaction(current, transaction)
            await self._write(updated)
        except Exception:
            logger.exception("Error saving transaction %s", transaction.id)
            raise

        self.transactions = updated
        self.editing = None
        self.bus.publish(TRANSACTION_SAVED, {"transaction": transaction, "original": original})
        return SaveResult(is_new=original is None, transactions=updated)

    async def delete(self, transaction_id: str) -> Optional[DeleteResult]:
        """Remove a transaction by id.

        Returns the stored record that was removed and the remaining
        transactions, or None when the id is already being deleted, nothing
        is stored, or the id is unknown.
        """
        if transaction_id in self.deleting_ids:
            return None
        self.deleting_ids.add(transaction_id)
        try:
            current = await self._read()
            if current is None:
                logger.warning("No transactions found")
                return None

            target = next((t for t in current if t.id == transaction_id), None)
            if target is None:
                logger.warning("Transaction %s not found", transaction_id)
                return None

            updated = remove_transaction(current, transaction_id)
            if len(updated) != len(current) - 1:
                logger.error("Delete of %s removed %d transactions", transaction_id, len(current) - len(updated))
                return None

            await self._write(updated)
            self.transactions = updated
            self.bus.publish(TRANSACTION_DELETED, {"transaction": target})
            return DeleteResult(removed=target, transactions=updated)
        except Exception:
            logger.exception("Error deleting transaction %s", transaction_id)
            raise
        finally:
            self.deleting_ids.discard(transaction_id)

    async def prepare_edit(self, transaction_id: str) -> Optional[Transaction]:
        """Load the stored version of a transaction and mark it for editing."""
        if transaction_id in self.editing_ids:
            return None
        self.editing_ids.add(transaction_id)
        try:
            current = await self._read()
            if current is None:
                logger.warning("No transactions found")
                return None
            found = next((t for t in current if t.id == transaction_id), None)
            if found is None:
                logger.warning("Transaction %s not found", transaction_id)
                return None
            self.editing = found
            return found
        except Exception:
            logger.exception("Error preparing edit for %s", transaction_id)
            return None
        finally:
            self.editing_ids.discard(transaction_id)

    def clear_editing(self) -> None:
        self.editing = None

    def total_expenses(self, selected: date) -> float:
        return total_expenses(self.transactions, selected)


def new_goal_id() -> str:
    return f"goal_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class GoalRepository:
    def __init__(
        self,
        store: KeyValueStore,
        category_service=None,
        bus: EventBus = event_bus,
        loading_timeout: float = 10.0,
    ):
        self.store = store
        self.category_service = category_service
        self.bus = bus
        self.loading_timeout = loading_timeout
        self.goals: Tuple[Goal, ...] = ()
        self.editing: Optional[Goal] = None
        self.loading = False
        self.initially_loaded = False
        self._is_loading = False
        self._loading_timer: Optional[asyncio.TimerHandle] = None

    # --- loading flag

    def _set_loading(self, value: bool) -> None:
        if self._loading_timer is not None:
            self._loading_timer.cancel()
            self._loading_timer = None
        self.loading = value
        if value:
            loop = asyncio.get_running_loop()
            self._loading_timer = loop.call_later(self.loading_timeout, self._loading_timed_out)

    def _loading_timed_out(self) -> None:
        # only the flag is reset, the read keeps going
        logger.warning("Goal loading exceeded %.0fs", self.loading_timeout)
        self.loading = False
        self._loading_timer = None

    # --- storage

    async def _read(self) -> Tuple[Goal, ...]:
        raw = await self.store.get_item(GOALS_KEY)
        if not isinstance(raw, list):
            return ()
        loaded = []
        for item in raw:
            result = load_goal(item)
            if result.is_right():
                loaded.append(result.get_or_else(None))
            else:
                logger.warning("Dropping invalid goal: %s", result.get_error()["message"])
        return tuple(loaded)

    async def _commit(self, updated: Tuple[Goal, ...]) -> Tuple[Goal, ...]:
        await self.store.set_item(GOALS_KEY, [goal_to_dict(g) for g in updated])
        self.goals = updated
        return updated

    def _find(self, goal_id: str) -> Goal:
        if not goal_id:
            raise ValueError("Goal ID is required")
        found = next((g for g in self.goals if g.id == goal_id), None)
        if found is None:
            raise LookupError("Goal not found")
        return found

    def _replaced(self, goal: Goal) -> Tuple[Goal, ...]:
        return tuple(goal if g.id == goal.id else g for g in self.goals)

    # --- operations

    async def load(self, force: bool = False) -> OperationResult:
        if self._is_loading:
            return OperationResult(True, value=self.goals)

        self._is_loading = True
        try:
            if (not self.initially_loaded or force) and not self.goals:
                self._set_loading(True)
            self.goals = await self._read()
            return OperationResult(True, value=self.goals)
        except Exception as e:
            logger.exception("Error loading goals")
            self.goals = ()
            return OperationResult(False, error=str(e))
        finally:
            self.initially_loaded = True
            self._is_loading = False
            self._set_loading(False)

    async def save(self, goal_data: dict, today: Optional[date] = None) -> OperationResult:
        """Create a goal, or update the one prepared for editing."""
        try:
            if not isinstance(goal_data, dict):
                raise ValueError("Invalid goal data provided")
            checked = validate_goal_form(sanitize_goal(goal_data), today).bind(validate_goal)
            if not checked.is_right():
                raise ValueError(checked.get_error()["message"])
            data = checked.get_or_else({})
            if not self.initially_loaded:
                self.goals = await self._read()
                self.initially_loaded = True

            if self.editing is not None:
                existing = self._find(self.editing.id)
                merged = {**goal_to_dict(existing), **data, "id": existing.id, "updatedAt": now_iso()}
                goal = goal_from_dict(merged)
                updated = self._replaced(goal)
            else:
                goal = goal_from_dict({**data, "id": new_goal_id(), "createdAt": now_iso()})
                updated = self.goals + (goal,)

            await self._commit(updated)
            is_new = self.editing is None
            self.editing = None
            return OperationResult(True, value={"goal": goal, "is_new": is_new})
        except (ValueError, LookupError) as e:
            logger.warning("Goal not saved: %s", e)
            return OperationResult(False, error=str(e))
        except Exception as e:
            logger.exception("Error saving goal")
            return OperationResult(False, error=str(e))

    async def delete(self, goal_id: str) -> OperationResult:
        try:
            goal = self._find(goal_id)
            await self._commit(tuple(g for g in self.goals if g.id != goal_id))
            return OperationResult(True, value=goal)
        except (ValueError, LookupError) as e:
            return OperationResult(False, error=str(e))
        except Exception as e:
            logger.exception("Error deleting goal %s", goal_id)
            return OperationResult(False, error=str(e))

    async def toggle_balance_display(self, goal_id: str) -> OperationResult:
        try:
            goal = goal_calc.toggle_balance_card(self._find(goal_id))
            await self._commit(self._replaced(goal))
            return OperationResult(True, value=goal)
        except (ValueError, LookupError) as e:
            return OperationResult(False, error=str(e))
        except Exception as e:
            logger.exception("Error updating goal %s", goal_id)
            return OperationResult(False, error=str(e))

    async def update_progress(self, goal_id: str, amount: float) -> OperationResult:
        try:
            goal = goal_calc.apply_progress(self._find(goal_id), amount)
            await self._commit(self._replaced(goal))
            return OperationResult(True, value=goal)
        except (ValueError, LookupError) as e:
            return OperationResult(False, error=str(e))
        except Exception as e:
            logger.exception("Error updating progress of goal %s", goal_id)
            return OperationResult(False, error=str(e))

    async def update_spending_goals(
        self,
        new: Optional[Transaction] = None,
        original: Optional[Transaction] = None,
    ) -> OperationResult:
        """Re-read goals and move spending goals for a transaction change.

        The result value lists any over-budget alerts raised.
        """
        if new is None and original is None:
            return OperationResult(True, value=[])
        try:
            categories = []
            if self.category_service is not None:
                categories = await self.category_service.get_categories()

            fresh = await self._read()
            before = {g.id: g for g in fresh}
            updated = goal_calc.apply_spending_transaction(fresh, categories, new, original)
            await self._commit(updated)

            alerts: List[dict] = []
            for goal in updated:
                if goal.type == "spending" and before.get(goal.id) != goal:
                    alerts.extend(r for r in self.bus.publish(SPENDING_ALERT, {"goal": goal}) if r.get("alert"))
            return OperationResult(True, value=alerts)
        except Exception as e:
            logger.exception("Error updating spending goals")
            return OperationResult(False, error=str(e))

    async def complete(self, goal_id: str) -> OperationResult:
        try:
            goal = goal_calc.complete_goal(self._find(goal_id))
            await self._commit(self._replaced(goal))
            self.bus.publish(GOAL_COMPLETED, {"goal": goal})
            return OperationResult(True, value=goal)
        except (ValueError, LookupError) as e:
            return OperationResult(False, error=str(e))
        except Exception as e:
            logger.exception("Error completing goal %s", goal_id)
            return OperationResult(False, error=str(e))

    def prepare_edit(self, goal: Optional[Goal]) -> OperationResult:
        if goal is None or not goal.id:
            return OperationResult(False, error="Invalid goal provided for editing")
        self.editing = goal
        return OperationResult(True, value=goal)

    def clear_editing(self) -> None:
        self.editing = None

    def balance_card_goals(self) -> Tuple[Goal, ...]:
        return goal_calc.balance_card_goals(self.goals)

    def total_contributions(self) -> float:
        return goal_calc.total_goal_contributions(self.goals)

    def overdue(self, today: Optional[date] = None) -> Tuple[Goal, ...]:
        return tuple(g for g in self.goals if g.is_active and goal_calc.is_overdue(g, today))


class UserSetupRepository:
    def __init__(self, store: KeyValueStore):
        self.store = store

    async def load(self) -> Optional[IncomeData]:
        try:
            raw = await self.store.get_item(USER_SETUP_KEY)
        except Exception:
            logger.exception("Error loading user setup")
            return None
        return income_from_dict(raw) if isinstance(raw, dict) else None

    async def save(self, income: IncomeData) -> bool:
        try:
            await self.store.set_item(USER_SETUP_KEY, income_to_dict(income))
            return True
        except Exception:
            logger.exception("Error saving user setup")
            return False
